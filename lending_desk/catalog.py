import logging
from typing import List, Optional

from lending_desk.book import Book
from lending_desk.errors import ConflictError, InvalidStateError, NotFoundError
from lending_desk.member import Member
from lending_desk.store import RecordStore

logger = logging.getLogger(__name__)


class CatalogManager:
    """Adds, edits, removes and searches books and members held by a RecordStore."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------- Books ------------------------- #
    def add_book(self, book_id: str, title: str, author: str, total_copies: int) -> Book:
        """Create a book with every copy available. Prevent duplicates by id."""
        book_id = (book_id or "").strip()
        if not book_id:
            raise ValueError("Book ID cannot be empty.")
        if total_copies < 0:
            raise ValueError("Number of copies cannot be negative.")
        if self.store.find_book(book_id):
            raise ConflictError(f"Book with ID {book_id} already exists.")

        book = Book(book_id, title or "", author or "", total_copies)
        self.store.books.append(book)
        logger.info("Added book %s with %d copies", book.id, total_copies)
        return book

    def get_book(self, book_id: str) -> Book:
        book = self.store.find_book(book_id)
        if not book:
            raise NotFoundError(f"Book with ID {book_id} not found.")
        return book

    def update_book(self, book_id: str, *, title: Optional[str] = None, author: Optional[str] = None,
                    total_copies: Optional[int] = None) -> Book:
        """Update title, author and/or total copies. Empty strings and 0 keep the current value.

        Lowering the total below the number of copies currently lent out is
        rejected and leaves the book untouched: title and author edits passed in
        the same call are dropped too, rather than applied ahead of the failing
        total change.
        """
        book = self.get_book(book_id)
        if total_copies is not None and total_copies < 0:
            raise ValueError("Number of copies cannot be negative.")

        new_title = title.strip() if title is not None and title.strip() else book.title
        new_author = author.strip() if author is not None and author.strip() else book.author

        new_total, new_available = book.total_copies, book.available_copies
        if total_copies:
            lent_out = book.lent_out
            if total_copies < lent_out:
                raise InvalidStateError(
                    f"Cannot set total copies below the {lent_out} currently lent out."
                )
            new_total, new_available = total_copies, total_copies - lent_out

        book.title = new_title
        book.author = new_author
        book.total_copies = new_total
        book.available_copies = new_available
        logger.info("Updated book %s", book.id)
        return book

    def remove_book(self, book_id: str) -> Book:
        book = self.get_book(book_id)
        if book.lent_out > 0:
            raise InvalidStateError(
                f"Book {book_id} cannot be removed; {book.lent_out} copies are currently lent out."
            )
        self.store.books = [b for b in self.store.books if b.id != book_id]
        logger.info("Removed book %s", book_id)
        return book

    def search_books(self, keyword: str) -> List[Book]:
        """Case-insensitive substring search over id, title and author."""
        term = (keyword or "").strip().lower()
        return [
            b for b in self.store.books
            if term in b.id.lower() or term in b.title.lower() or term in b.author.lower()
        ]

    def list_books(self) -> List[Book]:
        return list(self.store.books)

    # ------------------------- Members ------------------------- #
    def add_member(self, member_id: str, name: str, email: str = "") -> Member:
        member_id = (member_id or "").strip()
        if not member_id:
            raise ValueError("Member ID cannot be empty.")
        if self.store.find_member(member_id):
            raise ConflictError(f"Member with ID {member_id} already exists.")

        member = Member(member_id, name or "", email or "")
        self.store.members.append(member)
        logger.info("Added member %s", member.id)
        return member

    def get_member(self, member_id: str) -> Member:
        member = self.store.find_member(member_id)
        if not member:
            raise NotFoundError(f"Member with ID {member_id} not found.")
        return member

    def remove_member(self, member_id: str) -> Member:
        member = self.get_member(member_id)
        if any(l.member_id == member_id and l.is_outstanding for l in self.store.loans):
            raise InvalidStateError(f"Member {member_id} has outstanding loans; cannot remove.")
        self.store.members = [m for m in self.store.members if m.id != member_id]
        logger.info("Removed member %s", member_id)
        return member

    def search_members(self, keyword: str) -> List[Member]:
        """Case-insensitive substring search over id and name."""
        term = (keyword or "").strip().lower()
        return [m for m in self.store.members if term in m.id.lower() or term in m.name.lower()]

    def list_members(self) -> List[Member]:
        return list(self.store.members)

    # ------------------------- Copy counts ------------------------- #
    def checkout_copy(self, book: Book) -> None:
        if book.available_copies <= 0:
            raise InvalidStateError(f"No copies of {book.id} available.")
        book.available_copies -= 1

    def checkin_copy(self, book_id: str) -> Optional[Book]:
        """Put one copy back on the shelf; a no-op if the book was removed meanwhile."""
        book = self.store.find_book(book_id)
        if book and book.available_copies < book.total_copies:
            book.available_copies += 1
        return book
