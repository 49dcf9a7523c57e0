from datetime import date, datetime, time, timedelta

import pytest

DAY = date(2026, 6, 15)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def _at(hour: int = 9, minute: int = 0, second: int = 0, days: int = 0) -> datetime:
    """Local, offset-aware time on the test day (or ``days`` after it)."""
    return datetime.combine(DAY + timedelta(days=days), time(hour, minute, second)).astimezone()


@pytest.fixture
def day() -> date:
    return DAY


@pytest.fixture
def at():
    return _at


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(_at(9))
