import logging
from datetime import date
from typing import Callable, Optional

from lending_desk.catalog import CatalogManager
from lending_desk.lending import LendingManager, LoanIdSequence
from lending_desk.reports import Reporting
from lending_desk.store import RecordStore

logger = logging.getLogger(__name__)


class Library:
    """Owns the record store and the managers that operate on it."""

    def __init__(self, data_dir: Optional[str] = None, *,
                 id_factory: Optional[Callable[[], str]] = None,
                 today: Callable[[], date] = date.today,
                 loan_period_days: Optional[int] = None) -> None:
        self.store = RecordStore(data_dir)
        self._custom_ids = id_factory is not None
        self.catalog = CatalogManager(self.store)
        self.lending = LendingManager(self.store, self.catalog, id_factory=id_factory,
                                      today=today, loan_period_days=loan_period_days)
        self.reports = Reporting(self.store, today=today)

    @property
    def data_dir(self):
        return self.store.data_dir

    def open(self) -> "Library":
        """Load the data files into memory.

        Raises StorageError if a file is unreadable; the files that did load are kept.
        """
        try:
            self.store.load()
        finally:
            # Whatever did load still has to seed the loan id sequence
            if not self._custom_ids:
                self.lending.id_factory = LoanIdSequence(l.loan_id for l in self.store.loans)
        logger.info("Library opened from %s", self.store.data_dir)
        return self

    def save(self) -> None:
        """Write the in-memory state back to the data files. Raises StorageError on failure."""
        self.store.save()

