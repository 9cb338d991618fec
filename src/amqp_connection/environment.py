"""Process and host facts used to build AMQP client properties."""

import importlib.metadata
import logging
import os
import platform
import sys
import typing as t

from amqp_connection.settings import (
    TRANSPORT_DISTRIBUTION,
    UNKNOWN_VERSION,
)

logger = logging.getLogger(__name__)


class EnvironmentFacts(t.Protocol):
    """Facts about the running process that the resolver reports to the broker.

    The resolver only reads these values; it never looks them up itself, so
    tests can pass any object with these attributes.
    """

    @property
    def framework_version(self) -> str:
        """Version of the host framework, the Python interpreter by default."""
        ...

    @property
    def transport_version(self) -> str:
        """Version of the amqp-connection package."""
        ...

    @property
    def application_path(self) -> str: ...

    @property
    def machine_name(self) -> str: ...


class ProcessEnvironmentFacts:
    """Reads environment facts from the current interpreter process."""

    @property
    def framework_version(self) -> str:
        return platform.python_version()

    @property
    def transport_version(self) -> str:
        return _distribution_version(TRANSPORT_DISTRIBUTION)

    @property
    def application_path(self) -> str:
        # argv[0] is empty for an interactive interpreter
        return os.path.abspath(sys.argv[0]) if sys.argv and sys.argv[0] else ""

    @property
    def machine_name(self) -> str:
        return platform.node()


def _distribution_version(distribution: str) -> str:
    try:
        return importlib.metadata.version(distribution)
    except importlib.metadata.PackageNotFoundError:
        logger.debug(f"Distribution '{distribution}' is not installed, reporting version {UNKNOWN_VERSION}")
        return UNKNOWN_VERSION
