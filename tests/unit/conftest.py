import pytest

from activity_fakes import FakeClock, FakeStore


@pytest.fixture()
def store() -> FakeStore:
	return FakeStore()


@pytest.fixture()
def clock() -> FakeClock:
	return FakeClock()
