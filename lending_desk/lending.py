"""Borrow and return transactions.

A loan moves from outstanding to returned exactly once.  Copy counts on the
book are kept in step through the CatalogManager so that for every book
``total_copies - available_copies`` equals its number of outstanding loans.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional

from lending_desk.catalog import CatalogManager
from lending_desk.config import settings
from lending_desk.errors import NotFoundError
from lending_desk.loan import Loan
from lending_desk.store import RecordStore

logger = logging.getLogger(__name__)


class LoanIdSequence:
    """Monotonic loan id generator producing ``L1``, ``L2``, ...

    Seeded from already-known ids so it resumes after the highest number and
    never hands out an id that is taken.
    """

    def __init__(self, existing: Iterable[str] = (), prefix: str = "L") -> None:
        self.prefix = prefix
        self._taken = set(existing)
        self._counter = 0
        number = re.compile(rf"^{re.escape(prefix)}(\d+)")
        for loan_id in self._taken:
            match = number.match(loan_id)
            if match:
                self._counter = max(self._counter, int(match.group(1)))

    def __call__(self) -> str:
        while True:
            self._counter += 1
            candidate = f"{self.prefix}{self._counter}"
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate


@dataclass
class ReturnReceipt:
    loan: Loan
    days_late: int

    @property
    def is_late(self) -> bool:
        return self.days_late > 0


class LendingManager:
    """Creates loans on borrow and closes them on return."""

    def __init__(self, store: RecordStore, catalog: CatalogManager,
                 id_factory: Optional[Callable[[], str]] = None,
                 today: Callable[[], date] = date.today,
                 loan_period_days: Optional[int] = None) -> None:
        self.store = store
        self.catalog = catalog
        self.today = today
        self.loan_period = timedelta(days=settings.loan_period_days if loan_period_days is None else loan_period_days)
        self.id_factory = id_factory or LoanIdSequence(l.loan_id for l in store.loans)

    def borrow(self, member_id: str, book_id: str) -> Loan:
        """Lend one copy of ``book_id`` to ``member_id``. The returned loan carries the due date."""
        self.catalog.get_member(member_id)
        book = self.catalog.get_book(book_id)
        self.catalog.checkout_copy(book)

        borrowed = self.today()
        loan = Loan(
            loan_id=self.id_factory(),
            book_id=book.id,
            member_id=member_id,
            borrow_date=borrowed,
            due_date=borrowed + self.loan_period,
        )
        self.store.loans.append(loan)
        logger.info("Loan %s: member %s borrowed %s, due %s", loan.loan_id, member_id, book.id, loan.due_date)
        return loan

    def give_back(self, identifier: str) -> ReturnReceipt:
        """Close the first outstanding loan whose loan id or book id matches ``identifier``."""
        identifier = (identifier or "").strip()
        loan = next(
            (l for l in self.store.loans
             if l.is_outstanding and (l.loan_id == identifier or l.book_id == identifier)),
            None,
        )
        if loan is None:
            raise NotFoundError(f"No active loan found with ID or book ID {identifier}.")

        loan.return_date = self.today()
        if self.catalog.checkin_copy(loan.book_id) is None:
            logger.warning("Loan %s returned for book %s which is no longer catalogued", loan.loan_id, loan.book_id)
        receipt = ReturnReceipt(loan=loan, days_late=loan.days_late())
        logger.info("Loan %s returned on %s (%d day(s) late)", loan.loan_id, loan.return_date, receipt.days_late)
        return receipt

    def list_active(self) -> List[Loan]:
        return [l for l in self.store.loans if l.is_outstanding]

    def list_all(self) -> List[Loan]:
        return list(self.store.loans)
