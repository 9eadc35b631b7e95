import pytest

from helpers import FakeScheduler, SleepRecorder


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()
