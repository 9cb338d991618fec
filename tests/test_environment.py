"""Unit tests for the process environment facts."""

import importlib.metadata
import os

from amqp_connection.environment import ProcessEnvironmentFacts


def test_framework_version_is_the_interpreter_version(mocker):
    mocker.patch("amqp_connection.environment.platform.python_version", return_value="3.12.4")

    assert ProcessEnvironmentFacts().framework_version == "3.12.4"


def test_transport_version_is_this_package(mocker):
    version = mocker.patch("amqp_connection.environment.importlib.metadata.version", return_value="1.2.3")

    assert ProcessEnvironmentFacts().transport_version == "1.2.3"
    version.assert_called_once_with("amqp-connection")


def test_missing_distribution_reports_unknown_version(mocker):
    mocker.patch(
        "amqp_connection.environment.importlib.metadata.version",
        side_effect=importlib.metadata.PackageNotFoundError("amqp-connection"),
    )

    assert ProcessEnvironmentFacts().transport_version == "0.0.0"


def test_application_path_is_absolute(mocker):
    mocker.patch("amqp_connection.environment.sys.argv", ["bin/worker", "--flag"])

    assert ProcessEnvironmentFacts().application_path == os.path.abspath("bin/worker")


def test_application_path_empty_for_interactive_interpreter(mocker):
    mocker.patch("amqp_connection.environment.sys.argv", [""])

    assert ProcessEnvironmentFacts().application_path == ""


def test_machine_name(mocker):
    mocker.patch("amqp_connection.environment.platform.node", return_value="box-01")

    assert ProcessEnvironmentFacts().machine_name == "box-01"
