"""Common pytest fixtures for all tests."""

import logging
import sys
from dataclasses import dataclass

import pytest

# Set up logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr
)
logger = logging.getLogger("tests")


@dataclass(frozen=True)
class FakeEnvironmentFacts:
    """Fixed environment facts so client properties are predictable."""
    framework_version: str = "3.12.4"
    transport_version: str = "0.1.0.dev2"
    application_path: str = "/opt/sales/bin/sales-endpoint"
    machine_name: str = "test-machine"


@pytest.fixture
def environment() -> FakeEnvironmentFacts:
    """Provides fake environment facts for the resolver."""
    return FakeEnvironmentFacts()
