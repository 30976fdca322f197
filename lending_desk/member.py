from __future__ import annotations

from lending_desk.errors import MalformedRecordError


class Member:
    """A registered borrower."""

    FIELDS = ("id", "name", "email")

    def __init__(self, id: str, name: str, email: str = "") -> None:
        self.id = id.strip()
        self.name = name.strip()
        self.email = email.strip()

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}> (ID: {self.id})"

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, name={self.name!r}, email={self.email!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_row(self) -> list:
        return [self.id, self.name, self.email]

    @staticmethod
    def from_row(row: list) -> "Member":
        if len(row) < len(Member.FIELDS):
            raise MalformedRecordError(f"Expected {len(Member.FIELDS)} fields, got {len(row)}")
        if not row[0].strip():
            raise MalformedRecordError("Member id is empty")
        return Member(row[0], row[1], row[2])
