from datetime import date, timedelta

import pytest

from lending_desk.library import Library


class FakeClock:
    """Callable standing in for date.today() so due dates are predictable."""

    def __init__(self, start: date) -> None:
        self.current = start

    def __call__(self) -> date:
        return self.current

    def advance(self, days: int) -> date:
        self.current += timedelta(days=days)
        return self.current


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 1))


@pytest.fixture
def data_dir(tmp_path):
    # A fresh data directory per test
    return tmp_path / "library_data"


@pytest.fixture
def lib(data_dir, clock):
    return Library(str(data_dir), today=clock, loan_period_days=14).open()


@pytest.fixture
def stocked(lib):
    """Library with two books and two members, nothing on loan."""
    lib.catalog.add_book("B1", "Dune", "Frank Herbert", 2)
    lib.catalog.add_book("B2", "Emma", "Jane Austen", 1)
    lib.catalog.add_member("M1", "Ada Lovelace", "ada@example.com")
    lib.catalog.add_member("M2", "Alan Turing", "alan@example.com")
    return lib
