"""
Shared fixtures: deterministic clock and sleep so that backoff, inter-page
delays and cache ages can be asserted without waiting.
"""

import pytest

from tests.helpers import FakeClock, RecordingSleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
