"""Loan records.

A loan ties one book copy to one member.  It starts outstanding (no return
date) and becomes returned exactly once; returned loans stay in the history
and are never deleted.  ``book_id`` and ``member_id`` are plain string keys,
so a loan outlives the records it points at.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional

from lending_desk.errors import MalformedRecordError


@dataclass
class Loan:
    """Represents a borrowing transaction between a member and a book."""

    loan_id: str
    book_id: str
    member_id: str
    borrow_date: date
    due_date: date
    return_date: Optional[date] = None

    FIELDS = ("loan_id", "book_id", "member_id", "borrow_date", "due_date", "return_date")

    @property
    def is_outstanding(self) -> bool:
        return self.return_date is None

    @property
    def status(self) -> str:
        """Human readable status: BORROWED or RETURNED."""
        return "BORROWED" if self.return_date is None else "RETURNED"

    def is_overdue(self, today: date) -> bool:
        """Return True if the loan is still out and its due date is before ``today``."""
        if self.return_date is not None:
            return False
        return self.due_date < today

    def days_late(self, on: Optional[date] = None) -> int:
        """Days past the due date at ``on`` (defaults to the return date), never negative."""
        end = on or self.return_date
        if end is None:
            return 0
        return max(0, (end - self.due_date).days)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("borrow_date", "due_date", "return_date"):
            data[key] = data[key].isoformat() if data[key] else None
        data["status"] = self.status
        return data

    def to_row(self) -> list:
        return [
            self.loan_id,
            self.book_id,
            self.member_id,
            self.borrow_date.isoformat(),
            self.due_date.isoformat(),
            self.return_date.isoformat() if self.return_date else "",
        ]

    @staticmethod
    def from_row(row: list) -> "Loan":
        if len(row) < len(Loan.FIELDS):
            raise MalformedRecordError(f"Expected {len(Loan.FIELDS)} fields, got {len(row)}")
        if not row[0].strip():
            raise MalformedRecordError("Loan id is empty")
        try:
            borrowed = date.fromisoformat(row[3].strip())
            due = date.fromisoformat(row[4].strip())
            returned = date.fromisoformat(row[5].strip()) if row[5].strip() else None
        except ValueError as e:
            raise MalformedRecordError(f"Invalid date in loan {row[0]!r}: {e}") from e
        return Loan(row[0].strip(), row[1].strip(), row[2].strip(), borrowed, due, returned)
