import os
from datetime import date

import pytest

from lending_desk.book import Book
from lending_desk.errors import MalformedRecordError, StorageError
from lending_desk.library import Library
from lending_desk.loan import Loan
from lending_desk.member import Member
from lending_desk.store import RecordStore


def test_missing_files_load_as_empty(data_dir):
    store = RecordStore(str(data_dir))
    assert store.load() == ([], [], [])


def test_persistence(stocked, data_dir, clock):
    loan = stocked.lending.borrow("M1", "B1")
    returned = stocked.lending.borrow("M2", "B2")
    clock.advance(2)
    stocked.lending.give_back(returned.loan_id)
    stocked.catalog.remove_member("M2")
    stocked.save()

    # New instance should read the persisted files
    lib2 = Library(str(data_dir), today=clock).open()
    assert lib2.catalog.list_books() == stocked.catalog.list_books()
    assert lib2.catalog.list_members() == stocked.catalog.list_members()
    assert lib2.lending.list_all() == [loan, returned]
    assert lib2.lending.list_all()[1].return_date == date(2024, 3, 3)


def test_file_format(stocked, data_dir):
    stocked.lending.borrow("M1", "B1")
    stocked.save()

    assert (data_dir / "books.csv").read_text(encoding="utf-8").splitlines() == [
        "B1,Dune,Frank Herbert,2,1",
        "B2,Emma,Jane Austen,1,1",
    ]
    assert (data_dir / "members.csv").read_text(encoding="utf-8").splitlines()[0] == "M1,Ada Lovelace,ada@example.com"
    assert (data_dir / "loans.csv").read_text(encoding="utf-8").splitlines() == [
        "L1,B1,M1,2024-03-01,2024-03-15,",
    ]


def test_delimiters_and_quotes_inside_fields_survive(lib, data_dir):
    lib.catalog.add_book("B1", 'The "Best" Stories, Vol. 1', "Doe, Jane", 1)
    lib.catalog.add_member("M1", 'Sam "Sammy" Smith', "sam@example.com")
    lib.save()

    lib2 = Library(str(data_dir)).open()
    assert lib2.catalog.get_book("B1").title == 'The "Best" Stories, Vol. 1'
    assert lib2.catalog.get_book("B1").author == "Doe, Jane"
    assert lib2.catalog.get_member("M1").name == 'Sam "Sammy" Smith'


def test_malformed_lines_are_skipped(data_dir, caplog):
    data_dir.mkdir(parents=True)
    (data_dir / "books.csv").write_text(
        "B1,Dune,Frank Herbert,2,2\n"
        "B2,Too,Few\n"
        "B3,Bad,Count,two,1\n"
        "B4,Inconsistent,Counts,1,3\n"
        "\n"
        "B1,Duplicate,Id,1,1\n"
        "B5,Emma,Jane Austen,1,0\n",
        encoding="utf-8",
    )
    (data_dir / "loans.csv").write_text(
        "L1,B5,M1,2024-01-01,2024-01-15,\n"
        "L2,B5,M1,not-a-date,2024-01-15,\n",
        encoding="utf-8",
    )

    books, members, loans = RecordStore(str(data_dir)).load()

    assert [b.id for b in books] == ["B1", "B5"]
    assert members == []
    assert [l.loan_id for l in loans] == ["L1"]
    assert "Skipping malformed book line 2" in caplog.text


def test_loaded_loans_seed_the_id_sequence(stocked, data_dir, clock):
    stocked.lending.borrow("M1", "B1")
    stocked.lending.borrow("M2", "B1")
    stocked.save()

    lib2 = Library(str(data_dir), today=clock).open()
    lib2.lending.give_back("L1")
    assert lib2.lending.borrow("M1", "B2").loan_id == "L3"


def test_save_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied", encoding="utf-8")
    store = RecordStore(str(blocker / "data"))
    store.books.append(Book("B1", "Dune", "Frank Herbert", 1))

    with pytest.raises(StorageError, match="Failed to save books"):
        store.save()


@pytest.mark.skipif(os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
                    reason="file permissions are not enforced")
def test_unreadable_file_raises_storage_error(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "members.csv"
    path.write_text("M1,Ada,ada@example.com\n", encoding="utf-8")
    path.chmod(0)
    try:
        with pytest.raises(StorageError):
            RecordStore(str(data_dir)).load()
    finally:
        path.chmod(0o644)


def test_record_parsers():
    assert Book.from_row(["B1", "T", "A", "3", "1"]).lent_out == 2
    assert Member.from_row(["M1", "Ada", ""]).email == ""
    loan = Loan.from_row(["L1", "B1", "M1", "2024-01-01", "2024-01-15", "2024-01-20"])
    assert loan.return_date == date(2024, 1, 20)
    assert loan.days_late() == 5

    with pytest.raises(MalformedRecordError):
        Member.from_row(["", "Nobody", ""])
    with pytest.raises(MalformedRecordError):
        Loan.from_row(["L1", "B1", "M1", "2024-01-01"])


def test_undecodable_line_is_skipped(data_dir, caplog):
    data_dir.mkdir(parents=True)
    (data_dir / "loans.csv").write_bytes(
        b"L1,B1,M1,2024-01-01,2024-01-15,\n"
        b"L2,B\xff1,M1,2024-01-01,2024-01-15,\n"
        b"L3,B1,M2,2024-01-02,2024-01-16,2024-01-10\n"
    )

    books, members, loans = RecordStore(str(data_dir)).load()

    assert [l.loan_id for l in loans] == ["L1", "L3"]
    assert "Skipping malformed loan line 2" in caplog.text
    assert "not valid UTF-8" in caplog.text


def _write_unloadable_loans(data_dir):
    # A directory where loans.csv should be cannot be read, whoever runs the tests
    data_dir.mkdir(parents=True)
    (data_dir / "books.csv").write_text("B1,Dune,Frank Herbert,2,1\n", encoding="utf-8")
    (data_dir / "members.csv").write_text("M1,Ada Lovelace,ada@example.com\n", encoding="utf-8")
    (data_dir / "loans.csv").mkdir()


def test_load_failure_keeps_the_files_that_loaded(data_dir):
    _write_unloadable_loans(data_dir)
    store = RecordStore(str(data_dir))

    with pytest.raises(StorageError, match="Failed to load loans") as excinfo:
        store.load()

    assert excinfo.value.path == [data_dir / "loans.csv"]
    assert store.failed_paths == {data_dir / "loans.csv"}
    assert [b.id for b in store.books] == ["B1"]
    assert [m.id for m in store.members] == ["M1"]
    assert store.loans == []


def test_save_after_load_failure_does_not_truncate(data_dir, caplog):
    _write_unloadable_loans(data_dir)
    books_before = (data_dir / "books.csv").read_bytes()
    members_before = (data_dir / "members.csv").read_bytes()
    store = RecordStore(str(data_dir))
    with pytest.raises(StorageError):
        store.load()

    store.save()

    assert (data_dir / "books.csv").read_bytes() == books_before
    assert (data_dir / "members.csv").read_bytes() == members_before
    assert (data_dir / "loans.csv").is_dir()
    assert "Not saving loans" in caplog.text


def test_library_open_failure_keeps_loaded_data_and_seeds_ids(data_dir, clock):
    data_dir.mkdir(parents=True)
    (data_dir / "books.csv").write_text("B1,Dune,Frank Herbert,2,1\n", encoding="utf-8")
    (data_dir / "members.csv").mkdir()
    (data_dir / "loans.csv").write_text("L4,B1,M1,2024-02-20,2024-03-05,\n", encoding="utf-8")
    lib = Library(str(data_dir), today=clock)

    with pytest.raises(StorageError, match="Failed to load members"):
        lib.open()

    assert lib.catalog.get_book("B1").available_copies == 1
    assert [l.loan_id for l in lib.lending.list_active()] == ["L4"]
    assert lib.lending.id_factory() == "L5"
