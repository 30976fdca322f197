from datetime import date
from typing import Any, Callable, Dict, List, Optional

from lending_desk.book import Book
from lending_desk.errors import NotFoundError
from lending_desk.loan import Loan
from lending_desk.store import RecordStore


class Reporting:
    """Read-only views over the current books, members and loans."""

    def __init__(self, store: RecordStore, today: Callable[[], date] = date.today) -> None:
        self.store = store
        self.today = today

    def low_availability(self, threshold: int) -> List[Book]:
        return [b for b in self.store.books if b.available_copies <= threshold]

    def overdue(self, today: Optional[date] = None) -> List[Loan]:
        """Outstanding loans whose due date is before ``today``."""
        today = today or self.today()
        return [l for l in self.store.loans if l.is_overdue(today)]

    def history(self, member_id: str) -> List[Loan]:
        if self.store.find_member(member_id) is None:
            raise NotFoundError(f"Member with ID {member_id} not found.")
        return [l for l in self.store.loans if l.member_id == member_id]

    def statistics(self) -> Dict[str, Any]:
        """Get library statistics."""
        books = self.store.books
        return {
            "total_books": len(books),
            "total_copies": sum(b.total_copies for b in books),
            "lent_out_copies": sum(b.lent_out for b in books),
            "total_members": len(self.store.members),
            "active_loans": sum(1 for l in self.store.loans if l.is_outstanding),
            "overdue_loans": len(self.overdue()),
        }
