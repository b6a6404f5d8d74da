"""
Shared test fixtures and helpers for the Faultline test suite.
"""

import pytest

from faultline.core import Severity
from faultline.engine import Dispatcher
from faultline.testing import FakeHost, RecordingHandler


@pytest.fixture
def host():
    """In-memory host reporting every severity, display on."""
    return FakeHost()


@pytest.fixture
def dispatcher(host):
    """Dispatcher bound to the fake host, no handlers."""
    return Dispatcher(host=host)


@pytest.fixture
def recorder():
    return RecordingHandler()


@pytest.fixture
def quiet_host():
    """Fake host with display off (dispatcher silences by default)."""
    return FakeHost(display=False)


@pytest.fixture
def warning_only_host():
    """Fake host that only reports WARNING."""
    return FakeHost(reporting=Severity.WARNING)
