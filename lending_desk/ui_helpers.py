import os
import json
from typing import List, Any, Dict, Sequence, Tuple
from rich.console import Console
from rich.table import Table
from rich.markup import escape
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

BOOK_COLUMNS: Sequence[Tuple[str, str]] = (
    ("ID", "id"), ("Title", "title"), ("Author", "author"),
    ("Total", "total_copies"), ("Available", "available_copies"),
)
MEMBER_COLUMNS: Sequence[Tuple[str, str]] = (("ID", "id"), ("Name", "name"), ("Email", "email"))
LOAN_COLUMNS: Sequence[Tuple[str, str]] = (
    ("Loan", "loan_id"), ("Book", "book_id"), ("Member", "member_id"),
    ("Borrowed", "borrow_date"), ("Due", "due_date"), ("Returned", "return_date"),
)

STAT_LABELS = {
    "total_books": "Total Books",
    "total_copies": "Total Copies",
    "lent_out_copies": "Copies Lent Out",
    "total_members": "Members",
    "active_loans": "Active Loans",
    "overdue_loans": "Overdue Loans",
}


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def records_table(records: List[Any], columns: Sequence[Tuple[str, str]], title: str) -> Table:
    """Build a Rich table of records, one column per (header, to_dict key) pair."""
    table = Table(title=title, show_lines=True, header_style="bold cyan")
    for header, _ in columns:
        table.add_column(header, style="white")
    for r in records:
        data = r.to_dict()
        table.add_row(*(escape(_cell(data.get(key))) for _, key in columns))
    return table


def stats_panel(stats: Dict[str, Any]) -> Panel:
    content = "\n".join(f"[bold]{STAT_LABELS.get(k, k)}:[/] {v}" for k, v in stats.items())
    return Panel.fit(content, title="Stats", border_style="blue")


def print_records(records: List[Any], columns: Sequence[Tuple[str, str]], *, title: str, empty_message: str) -> None:
    """Print records according to the current output mode.
    - plain: 'a | b | c' rows, or the empty message
    - json: JSON array of the records' to_dict()
    - rich: Rich table
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False))
        return

    if not records:
        print(empty_message)
        return

    if mode == "rich":
        _console.print(records_table(records, columns, title))
    else:
        for r in records:
            data = r.to_dict()
            print(" | ".join(_cell(data.get(key)) for _, key in columns))


def print_books(books: List[Any], empty_message: str = "No books in library.") -> None:
    print_records(books, BOOK_COLUMNS, title="Books", empty_message=empty_message)


def print_members(members: List[Any], empty_message: str = "No members.") -> None:
    print_records(members, MEMBER_COLUMNS, title="Members", empty_message=empty_message)


def print_loans(loans: List[Any], empty_message: str = "No loans yet.") -> None:
    print_records(loans, LOAN_COLUMNS, title="Loans", empty_message=empty_message)


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics according to the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        _console.print(stats_panel(stats))
    else:
        for k, v in stats.items():
            print(f"{STAT_LABELS.get(k, k)}: {v}")
