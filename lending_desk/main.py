import json
import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from lending_desk.config import settings
from lending_desk.errors import LibraryError, StorageError
from lending_desk.library import Library
from lending_desk.ui_helpers import (
    BOOK_COLUMNS,
    LOAN_COLUMNS,
    MEMBER_COLUMNS,
    get_output_mode,
    print_books,
    print_loans,
    print_members,
    print_stats_result,
    records_table,
    set_output_mode,
    stats_panel,
)

APP_NAME = settings.app_name

console = Console()

# --- Typer CLI Application ---
app = typer.Typer(help=APP_NAME)
book_app = typer.Typer(help="Book management")
member_app = typer.Typer(help="Member management")
loan_app = typer.Typer(help="Borrowing and returning")
report_app = typer.Typer(help="Reports")
app.add_typer(book_app, name="book")
app.add_typer(member_app, name="member")
app.add_typer(loan_app, name="loan")
app.add_typer(report_app, name="report")


@app.callback()
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    data_dir: Optional[str] = typer.Option(
        None,
        "--data-dir",
        help="Directory holding books.csv, members.csv and loans.csv",
    ),
):
    """Global CLI options (output mode, data location)."""
    if output:
        set_output_mode(output)
    ctx.obj = {"data_dir": data_dir or settings.data_dir}


def _fail(message: str) -> None:
    print(f"Error: {message}")
    raise typer.Exit(code=1)


def _emit(message: str, record=None) -> None:
    """Print a confirmation, or the affected record in json mode."""
    if record is not None and get_output_mode() == "json":
        print(json.dumps(record.to_dict(), ensure_ascii=False))
    else:
        print(message)


@contextmanager
def library_session(ctx: typer.Context, save: bool = False) -> Iterator[Library]:
    """Load the library, run one command against it and, for mutations, write it back."""
    lib = Library(ctx.obj["data_dir"])
    try:
        lib.open()
    except StorageError as e:
        _fail(str(e))
    try:
        yield lib
    except (LibraryError, ValueError) as e:
        _fail(str(e))
    if save:
        try:
            lib.save()
        except StorageError as e:
            _fail(str(e))


# ------------------------- Books ------------------------- #
@book_app.command("add")
def cli_book_add(
    ctx: typer.Context,
    book_id: str,
    title: str,
    author: str,
    copies: int = typer.Option(1, "--copies", "-c", min=0, help="Number of copies"),
):
    """Add a book with the given number of copies."""
    with library_session(ctx, save=True) as lib:
        book = lib.catalog.add_book(book_id, title, author, copies)
        _emit(f"Book {book.id} added.", book)


@book_app.command("update")
def cli_book_update(
    ctx: typer.Context,
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    author: Optional[str] = typer.Option(None, "--author", help="New author"),
    copies: Optional[int] = typer.Option(None, "--copies", "-c", min=0, help="New total copies (0 to keep)"),
):
    """Update a book's title, author and/or total copies."""
    with library_session(ctx, save=True) as lib:
        book = lib.catalog.update_book(book_id, title=title, author=author, total_copies=copies)
        _emit(f"Book {book.id} updated: {book.title} | {book.author} | "
              f"{book.total_copies} | {book.available_copies}", book)


@book_app.command("remove")
def cli_book_remove(ctx: typer.Context, book_id: str):
    """Remove a book that has no copies lent out."""
    with library_session(ctx, save=True) as lib:
        book = lib.catalog.remove_book(book_id)
        _emit(f"Book {book.id} has been removed.", book)


@book_app.command("search")
def cli_book_search(ctx: typer.Context, keyword: str):
    """Search books by id, title or author."""
    with library_session(ctx) as lib:
        print_books(lib.catalog.search_books(keyword), empty_message="No matching books.")


@book_app.command("list")
def cli_book_list(ctx: typer.Context):
    """List all books."""
    with library_session(ctx) as lib:
        print_books(lib.catalog.list_books())


# ------------------------- Members ------------------------- #
@member_app.command("add")
def cli_member_add(
    ctx: typer.Context,
    member_id: str,
    name: str,
    email: str = typer.Option("", "--email", "-e", help="Contact email"),
):
    """Register a member."""
    with library_session(ctx, save=True) as lib:
        member = lib.catalog.add_member(member_id, name, email)
        _emit(f"Member {member.id} added.", member)


@member_app.command("remove")
def cli_member_remove(ctx: typer.Context, member_id: str):
    """Remove a member without outstanding loans."""
    with library_session(ctx, save=True) as lib:
        member = lib.catalog.remove_member(member_id)
        _emit(f"Member {member.id} has been removed.", member)


@member_app.command("search")
def cli_member_search(ctx: typer.Context, keyword: str):
    """Search members by id or name."""
    with library_session(ctx) as lib:
        print_members(lib.catalog.search_members(keyword), empty_message="No matching members.")


@member_app.command("list")
def cli_member_list(ctx: typer.Context):
    """List all members."""
    with library_session(ctx) as lib:
        print_members(lib.catalog.list_members())


# ------------------------- Loans ------------------------- #
@loan_app.command("borrow")
def cli_loan_borrow(ctx: typer.Context, member_id: str, book_id: str):
    """Lend a copy of a book to a member."""
    with library_session(ctx, save=True) as lib:
        loan = lib.lending.borrow(member_id, book_id)
        _emit(f"Book borrowed. Loan ID: {loan.loan_id}. Due date: {loan.due_date.isoformat()}", loan)


@loan_app.command("return")
def cli_loan_return(ctx: typer.Context, identifier: str):
    """Return a book by loan id or book id."""
    with library_session(ctx, save=True) as lib:
        receipt = lib.lending.give_back(identifier)
        message = f"Book returned on {receipt.loan.return_date.isoformat()}."
        if receipt.is_late:
            message += f"\nReturned late by {receipt.days_late} day(s)."
        _emit(message, receipt.loan)


@loan_app.command("active")
def cli_loan_active(ctx: typer.Context):
    """List loans that have not been returned."""
    with library_session(ctx) as lib:
        print_loans(lib.lending.list_active(), empty_message="No active loans.")


@loan_app.command("all")
def cli_loan_all(ctx: typer.Context):
    """List every loan, returned or not."""
    with library_session(ctx) as lib:
        print_loans(lib.lending.list_all())


# ------------------------- Reports ------------------------- #
@report_app.command("low")
def cli_report_low(
    ctx: typer.Context,
    threshold: int = typer.Option(settings.low_availability_threshold, "--threshold", "-t",
                                  help="Report books with at most this many available copies"),
):
    """Books with low availability."""
    with library_session(ctx) as lib:
        print_books(lib.reports.low_availability(threshold), empty_message="No books below threshold.")


@report_app.command("overdue")
def cli_report_overdue(ctx: typer.Context):
    """Outstanding loans past their due date."""
    with library_session(ctx) as lib:
        print_loans(lib.reports.overdue(), empty_message="No overdue loans.")


@report_app.command("history")
def cli_report_history(ctx: typer.Context, member_id: str):
    """Loan history of one member."""
    with library_session(ctx) as lib:
        print_loans(lib.reports.history(member_id), empty_message="No loan history for this member.")


@report_app.command("stats")
def cli_report_stats(ctx: typer.Context):
    """Show library statistics."""
    with library_session(ctx) as lib:
        print_stats_result(lib.reports.statistics())


@app.command("menu")
def cli_menu(ctx: typer.Context):
    """Start the interactive menu."""
    run_menu(ctx.obj["data_dir"])


# ------------------------- Interactive menu ------------------------- #
def _ask_int(prompt: str, minimum: int, default: Optional[int] = None) -> int:
    while True:
        if default is None:
            value = IntPrompt.ask(prompt, console=console)
        else:
            value = IntPrompt.ask(prompt, default=default, console=console)
        if value >= minimum:
            return value
        console.print(f"[yellow]Value must be >= {minimum}. Try again.[/]")


def _render_menu(title: str, items) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold cyan", width=4)
    table.add_column(justify="left", style="white")
    for key, label in items:
        table.add_row(f"[reverse]{key}[/]", label)
    console.print(Panel(table, title=title, border_style="cyan", box=box.HEAVY, padding=(1, 2)))


def _submenu(title: str, items, actions, lib: Library) -> None:
    choices = [key for key, _ in items]
    while True:
        _render_menu(title, items)
        choice = Prompt.ask("Choice", choices=choices, default="0", console=console).strip()
        if choice == "0":
            return
        try:
            actions[choice](lib)
        except (LibraryError, ValueError) as e:
            console.print(f"[red]{escape(str(e))}[/]")
        console.print()


def _show(records, columns, title: str, empty_message: str) -> None:
    if not records:
        console.print(f"[yellow]{empty_message}[/]")
        return
    console.print(records_table(records, columns, title))


def _show_books(books, empty_message: str) -> None:
    _show(books, BOOK_COLUMNS, "Books", empty_message)


def _show_members(members, empty_message: str) -> None:
    _show(members, MEMBER_COLUMNS, "Members", empty_message)


def _show_loans(loans, empty_message: str) -> None:
    _show(loans, LOAN_COLUMNS, "Loans", empty_message)


def _menu_add_book(lib: Library) -> None:
    book_id = Prompt.ask("Book ID (unique)", console=console).strip()
    if lib.store.find_book(book_id):
        console.print("[yellow]Book with this ID already exists.[/]")
        return
    title = Prompt.ask("Title", console=console)
    author = Prompt.ask("Author", console=console)
    copies = _ask_int("Number of copies", minimum=1)
    lib.catalog.add_book(book_id, title, author, copies)
    console.print("[green]Book added.[/]")


def _menu_update_book(lib: Library) -> None:
    book = lib.catalog.get_book(Prompt.ask("Book ID to update", console=console).strip())
    console.print(f"Current title: {escape(book.title)} | author: {escape(book.author)} | "
                  f"total: {book.total_copies} | avail: {book.available_copies}")
    title = Prompt.ask("New title (leave blank to keep)", default="", show_default=False, console=console)
    author = Prompt.ask("New author (leave blank to keep)", default="", show_default=False, console=console)
    total = _ask_int("New total copies (0 to keep)", minimum=0, default=0)
    lib.catalog.update_book(book.id, title=title, author=author, total_copies=total)
    console.print("[green]Book updated.[/]")


def _menu_remove_book(lib: Library) -> None:
    book = lib.catalog.get_book(Prompt.ask("Book ID to remove", console=console).strip())
    if Confirm.ask(f"Remove [bold]{escape(book.title)}[/]?", default=False, console=console):
        lib.catalog.remove_book(book.id)
        console.print("[green]Book removed.[/]")


def _menu_add_member(lib: Library) -> None:
    member_id = Prompt.ask("Member ID (unique)", console=console).strip()
    if lib.store.find_member(member_id):
        console.print("[yellow]Member with this ID exists.[/]")
        return
    name = Prompt.ask("Name", console=console)
    email = Prompt.ask("Email", default="", show_default=False, console=console)
    lib.catalog.add_member(member_id, name, email)
    console.print("[green]Member added.[/]")


def _menu_remove_member(lib: Library) -> None:
    lib.catalog.remove_member(Prompt.ask("Member ID to remove", console=console).strip())
    console.print("[green]Member removed.[/]")


def _menu_borrow(lib: Library) -> None:
    member_id = Prompt.ask("Member ID", console=console).strip()
    lib.catalog.get_member(member_id)
    book_id = Prompt.ask("Book ID", console=console).strip()
    loan = lib.lending.borrow(member_id, book_id)
    console.print(f"[green]Book borrowed. Due date: {loan.due_date.isoformat()}[/]")


def _menu_return(lib: Library) -> None:
    receipt = lib.lending.give_back(Prompt.ask("Loan ID or Book ID to return", console=console))
    console.print(f"[green]Book returned on {receipt.loan.return_date.isoformat()}[/]")
    if receipt.is_late:
        console.print(f"[yellow]Returned late by {receipt.days_late} day(s).[/]")


BOOK_MENU = [("1", "Add Book"), ("2", "Update Book"), ("3", "Remove Book"),
             ("4", "Search Book by Title/Author/ID"), ("5", "List All Books"), ("0", "Back")]
BOOK_ACTIONS = {
    "1": _menu_add_book,
    "2": _menu_update_book,
    "3": _menu_remove_book,
    "4": lambda lib: _show_books(
        lib.catalog.search_books(Prompt.ask("Search keyword (title/author/id)", console=console)),
        "No matching books."),
    "5": lambda lib: _show_books(lib.catalog.list_books(), "No books in library."),
}

MEMBER_MENU = [("1", "Add Member"), ("2", "Remove Member"), ("3", "Search Member by Name/ID"),
               ("4", "List Members"), ("0", "Back")]
MEMBER_ACTIONS = {
    "1": _menu_add_member,
    "2": _menu_remove_member,
    "3": lambda lib: _show_members(
        lib.catalog.search_members(Prompt.ask("Search keyword (name/id)", console=console)),
        "No matching members."),
    "4": lambda lib: _show_members(lib.catalog.list_members(), "No members."),
}

LOAN_MENU = [("1", "Borrow Book"), ("2", "Return Book"), ("3", "List Active Loans"),
             ("4", "List All Loans"), ("0", "Back")]
LOAN_ACTIONS = {
    "1": _menu_borrow,
    "2": _menu_return,
    "3": lambda lib: _show_loans(lib.lending.list_active(), "No active loans."),
    "4": lambda lib: _show_loans(lib.lending.list_all(), "No loans yet."),
}

REPORT_MENU = [("1", "Books with low availability"), ("2", "Overdue loans"),
               ("3", "Member loan history"), ("4", "Statistics"), ("0", "Back")]
REPORT_ACTIONS = {
    "1": lambda lib: _show_books(
        lib.reports.low_availability(_ask_int("Threshold for available copies", minimum=0,
                                              default=settings.low_availability_threshold)),
        "No books below threshold."),
    "2": lambda lib: _show_loans(lib.reports.overdue(), "No overdue loans."),
    "3": lambda lib: _show_loans(
        lib.reports.history(Prompt.ask("Member ID", console=console).strip()),
        "No loan history for this member."),
    "4": lambda lib: console.print(stats_panel(lib.reports.statistics())),
}

MAIN_MENU = [("1", "Book Management"), ("2", "Member Management"),
             ("3", "Transactions (Borrow/Return)"), ("4", "Reports / Lists"), ("0", "Save & Exit")]
SUBMENUS = {
    "1": ("Book Management", BOOK_MENU, BOOK_ACTIONS),
    "2": ("Member Management", MEMBER_MENU, MEMBER_ACTIONS),
    "3": ("Transactions", LOAN_MENU, LOAN_ACTIONS),
    "4": ("Reports / Lists", REPORT_MENU, REPORT_ACTIONS),
}


def run_menu(data_dir: Optional[str] = None) -> None:
    """Simple interactive menu over books, members, loans and reports."""
    lib = Library(data_dir)
    try:
        lib.open()
        stats = lib.reports.statistics()
        console.print(f"[dim]Loaded {stats['total_books']} books, {stats['total_members']} members, "
                      f"{len(lib.lending.list_all())} loans from {lib.data_dir}[/]")
    except StorageError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")
        console.print("[yellow]Continuing with the data that did load; unreadable files will not be overwritten.[/]")

    while True:
        _render_menu(APP_NAME, MAIN_MENU)
        choice = Prompt.ask("Choose option", choices=[key for key, _ in MAIN_MENU], default="0",
                            console=console).strip()
        if choice == "0":
            try:
                lib.save()
                console.print("[green]Data saved. Exiting. Goodbye![/]")
            except StorageError as e:
                console.print(f"[bold red]{escape(str(e))}[/]")
            break
        title, items, actions = SUBMENUS[choice]
        _submenu(title, items, actions, lib)


def main() -> None:
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.WARNING),
                        format="%(levelname)s: %(message)s")
    if len(sys.argv) > 1:
        app()
    else:
        run_menu()


if __name__ == "__main__":
    main()
