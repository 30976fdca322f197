from __future__ import annotations

from lending_desk.errors import MalformedRecordError


class Book:
    """A catalogued title and how many of its copies are on the shelf."""

    FIELDS = ("id", "title", "author", "total_copies", "available_copies")

    def __init__(self, id: str, title: str, author: str, total_copies: int,
                 available_copies: int | None = None) -> None:
        self.id = id.strip()
        self.title = title.strip()
        self.author = author.strip()
        self.total_copies = total_copies
        self.available_copies = total_copies if available_copies is None else available_copies

    @property
    def lent_out(self) -> int:
        return self.total_copies - self.available_copies

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ID: {self.id})"

    def __repr__(self) -> str:
        return (f"Book(id={self.id!r}, title={self.title!r}, author={self.author!r}, "
                f"total_copies={self.total_copies}, available_copies={self.available_copies})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
        }

    def to_row(self) -> list:
        return [self.id, self.title, self.author, str(self.total_copies), str(self.available_copies)]

    @staticmethod
    def from_row(row: list) -> "Book":
        if len(row) < len(Book.FIELDS):
            raise MalformedRecordError(f"Expected {len(Book.FIELDS)} fields, got {len(row)}")
        try:
            total = int(row[3])
            available = int(row[4])
        except ValueError as e:
            raise MalformedRecordError(f"Copy counts must be integers: {row[3]!r}, {row[4]!r}") from e
        if not row[0].strip():
            raise MalformedRecordError("Book id is empty")
        if total < 0 or not 0 <= available <= total:
            raise MalformedRecordError(f"Inconsistent copy counts: total={total}, available={available}")
        return Book(row[0], row[1], row[2], total, available)
