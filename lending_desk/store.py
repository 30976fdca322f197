"""Flat-file persistence for books, members and loans.

Each record type lives in its own CSV file (no header line) inside the data
directory.  A missing file is treated as an empty collection.  Lines that
cannot be parsed are skipped with a warning so one damaged record does not
take the rest of the catalogue down with it.  Saving rewrites every file in
full from the in-memory state.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from lending_desk.book import Book
from lending_desk.config import settings
from lending_desk.errors import MalformedRecordError, StorageError
from lending_desk.loan import Loan
from lending_desk.member import Member

logger = logging.getLogger(__name__)


def _check_decodable(row: list) -> None:
    # Undecodable bytes come through as lone surrogates
    for field in row:
        try:
            field.encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedRecordError(f"Line is not valid UTF-8: {field!r}") from e


def _read_records(path: Path, parse: Callable[[list], object], kind: str) -> list:
    """Parse every line of ``path`` with ``parse``, skipping malformed and duplicate ones."""
    if not path.exists():
        logger.info("No %s file at %s, starting empty", kind, path)
        return []
    records = []
    seen = set()
    try:
        with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            for line_no, row in enumerate(csv.reader(f), 1):
                if not row or not any(field.strip() for field in row):
                    continue
                try:
                    _check_decodable(row)
                    record = parse(row)
                except MalformedRecordError as e:
                    logger.warning("Skipping malformed %s line %d in %s: %s", kind, line_no, path, e)
                    continue
                key = record.loan_id if isinstance(record, Loan) else record.id
                if key in seen:
                    logger.warning("Skipping duplicate %s %r on line %d in %s", kind, key, line_no, path)
                    continue
                seen.add(key)
                records.append(record)
    except (OSError, csv.Error) as e:
        raise StorageError(f"Failed to load {kind}s from {path}: {e}", path) from e
    logger.info("Loaded %d %ss from %s", len(records), kind, path)
    return records


def _write_records(path: Path, records: list, kind: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, lineterminator="\n")
            for record in records:
                writer.writerow(record.to_row())
    except OSError as e:
        raise StorageError(f"Failed to save {kind}s to {path}: {e}", path) from e
    logger.info("Saved %d %ss to %s", len(records), kind, path)


class RecordStore:
    """Holds the in-memory books, members and loans and moves them to and from disk."""

    def __init__(self, data_dir: Optional[str] = None) -> None:
        self.data_dir = Path(data_dir or settings.data_dir)
        self.books_path = self.data_dir / settings.books_file
        self.members_path = self.data_dir / settings.members_file
        self.loans_path = self.data_dir / settings.loans_file

        self.books: List[Book] = []
        self.members: List[Member] = []
        self.loans: List[Loan] = []
        # Files that exist but could not be read; save() leaves them alone
        self.failed_paths: Set[Path] = set()

    # ------------------------- Persistence ------------------------- #
    def load(self) -> Tuple[List[Book], List[Member], List[Loan]]:
        """Replace the in-memory collections with the contents of the data files.

        Each file is loaded on its own.  If one exists but cannot be read, its
        collection is left as it was, the others are still loaded, the path is
        remembered in ``failed_paths`` and StorageError is raised at the end.
        """
        self.failed_paths = set()
        errors = []
        for attr, path, parse, kind in (
            ("books", self.books_path, Book.from_row, "book"),
            ("members", self.members_path, Member.from_row, "member"),
            ("loans", self.loans_path, Loan.from_row, "loan"),
        ):
            try:
                setattr(self, attr, _read_records(path, parse, kind))
            except StorageError as e:
                logger.error("%s", e)
                self.failed_paths.add(path)
                errors.append(str(e))
        if errors:
            raise StorageError("; ".join(errors), sorted(self.failed_paths))
        return self.books, self.members, self.loans

    def save(self, books: Optional[List[Book]] = None, members: Optional[List[Member]] = None,
             loans: Optional[List[Loan]] = None) -> None:
        """Overwrite the data files with the given (or the store's own) collections.

        Files that failed to load are skipped so their contents survive.
        """
        for path, records, kind in (
            (self.books_path, self.books if books is None else books, "book"),
            (self.members_path, self.members if members is None else members, "member"),
            (self.loans_path, self.loans if loans is None else loans, "loan"),
        ):
            if path in self.failed_paths:
                logger.warning("Not saving %ss: %s failed to load and is left untouched", kind, path)
                continue
            _write_records(path, records, kind)

    # ------------------------- Lookups ------------------------- #
    def find_book(self, book_id: str) -> Optional[Book]:
        for book in self.books:
            if book.id == book_id:
                return book
        return None

    def find_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def find_loan(self, loan_id: str) -> Optional[Loan]:
        for loan in self.loans:
            if loan.loan_id == loan_id:
                return loan
        return None
