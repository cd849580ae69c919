"""Command-line interface for libraryloans.

Built with Typer for commands and Rich for output.
"""

from datetime import datetime, timedelta
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .catalog import BookCatalog, BookCreate, BookFilter, BookUpdate
from .config import configure_logging, get_config
from .db import Database
from .errors import Result
from .lending import LoanCreate, LoanFilter, LoanLedger, OverdueScanner
from .notifications import HttpEmailSender
from .pagination import Page, PageRequest

# Create the main app
app = typer.Typer(
    name="library-loans",
    help="Manage a library catalog and the loans of its books.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
books_app = typer.Typer(help="Add, find, update and delete books.")
app.add_typer(books_app, name="books")
loans_app = typer.Typer(help="Lend books, return them and send overdue reminders.")
app.add_typer(loans_app, name="loans")

# Rich console for pretty output
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Manage a library catalog and the loans of its books."""
    configure_logging("DEBUG" if verbose else get_config().log_level)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def get_database() -> Database:
    """Open the configured database, creating tables if needed."""
    db = Database(get_config().db_path)
    db.create_tables()
    return db


def get_services() -> tuple[BookCatalog, LoanLedger]:
    db = get_database()
    catalog = BookCatalog(db)
    return catalog, LoanLedger(db, catalog)


def unwrap(result: Result):
    """Return the result's value or print its error and exit 1."""
    if not result.ok:
        print_error(f"{result.error.value}: {result.message}")
        raise typer.Exit(1)
    return result.value


def page_request(page: int, size: Optional[int], sort: Optional[str]) -> PageRequest:
    try:
        return PageRequest(page=page, size=size or get_config().page_size, sort=sort)
    except ValidationError as e:
        print_error(f"Invalid paging options: {e.errors()[0]['msg']}")
        raise typer.Exit(1)


def print_page_footer(page: Page) -> None:
    console.print(
        f"[dim]Page {page.page + 1} of {max(page.total_pages, 1)} "
        f"({page.total} total)[/dim]"
    )


def format_book_table(books: list, title: str = "Books") -> Table:
    """Create a rich table for displaying books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("ISBN")

    for book in books:
        table.add_row(str(book.id), book.title, book.author, book.isbn)

    return table


def format_loan_table(
    loans: list, title: str = "Loans", now: Optional[datetime] = None
) -> Table:
    """Create a rich table for displaying loans.

    With ``now`` set, the status column is replaced by days out.
    """
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Book", style="cyan", max_width=30)
    table.add_column("ISBN")
    table.add_column("Customer", style="green")
    table.add_column("Contact")
    table.add_column("Loaned")
    table.add_column("Days" if now else "Status", justify="right" if now else "left")

    for loan in loans:
        if now:
            status = str(loan.days_out(now))
        else:
            status = "[dim]returned[/dim]" if loan.returned else "[yellow]open[/yellow]"
        table.add_row(
            str(loan.id),
            loan.book.title if loan.book else "-",
            loan.book.isbn if loan.book else "-",
            loan.customer,
            loan.customer_email or "-",
            loan.loan_date.strftime("%Y-%m-%d"),
            status,
        )

    return table


# ============================================================================
# General Commands
# ============================================================================


@app.command()
def init() -> None:
    """Create the database tables."""
    config = get_config()
    for problem in config.validate():
        print_warning(problem)
    get_database()
    print_success(f"Database ready at {config.db_path}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"library-loans version {__version__}")


# ============================================================================
# Book Commands
# ============================================================================


@books_app.command("add")
def books_add(
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Author name"),
    isbn: str = typer.Option(..., "--isbn", "-i", help="ISBN, unique in the catalog"),
) -> None:
    """Add a book to the catalog."""
    catalog, _ = get_services()
    try:
        data = BookCreate(title=title, author=author, isbn=isbn)
    except ValidationError as e:
        print_error(f"Invalid book: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    book = unwrap(catalog.create_book(data))
    print_success(f"Added: {book.title} (id {book.id})")


@books_app.command("show")
def books_show(book_id: int = typer.Argument(..., help="Book ID")) -> None:
    """Show one book."""
    catalog, _ = get_services()
    book = catalog.get_book(book_id)
    if not book:
        print_error(f"Book not found: {book_id}")
        raise typer.Exit(1)

    console.print(format_book_table([book], title=book.title))


@books_app.command("list")
def books_list(
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title contains"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author contains"),
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="ISBN contains"),
    page: int = typer.Option(0, "--page", "-p", help="Page index, from 0"),
    size: Optional[int] = typer.Option(None, "--size", "-s", help="Page size"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort field, '-' for descending"),
) -> None:
    """List books, filtering by partial title, author or ISBN."""
    catalog, _ = get_services()
    criteria = BookFilter(title=title, author=author, isbn=isbn)
    result = unwrap(catalog.find_books(criteria, page_request(page, size, sort)))

    if not result.items:
        console.print("[dim]No books found[/dim]")
    else:
        console.print(format_book_table(result.items))
    print_page_footer(result)


@books_app.command("update")
def books_update(
    book_id: int = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="New author"),
) -> None:
    """Change a book's title or author."""
    catalog, _ = get_services()
    try:
        data = BookUpdate(title=title, author=author)
    except ValidationError as e:
        print_error(f"Invalid update: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    book = unwrap(catalog.update_book(book_id, data))
    print_success(f"Updated: {book.title} by {book.author}")


@books_app.command("delete")
def books_delete(
    book_id: int = typer.Argument(..., help="Book ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Delete a book that has never been loaned."""
    catalog, _ = get_services()
    book = catalog.get_book(book_id)
    if book and not force:
        if not typer.confirm(f"Delete '{book.title}'?"):
            raise typer.Abort()

    unwrap(catalog.delete_book(book_id))
    print_success(f"Deleted book {book_id}")


@books_app.command("loans")
def books_loans(
    book_id: int = typer.Argument(..., help="Book ID"),
    page: int = typer.Option(0, "--page", "-p", help="Page index, from 0"),
    size: Optional[int] = typer.Option(None, "--size", "-s", help="Page size"),
) -> None:
    """Show the loan history of a book."""
    _, ledger = get_services()
    result = unwrap(ledger.find_loans_for_book(book_id, page_request(page, size, None)))

    if not result.items:
        console.print("[dim]No loans found[/dim]")
    else:
        console.print(format_loan_table(result.items, title=f"Loans of book {book_id}"))
    print_page_footer(result)


# ============================================================================
# Loan Commands
# ============================================================================


@loans_app.command("create")
def loans_create(
    isbn: str = typer.Option(..., "--isbn", "-i", help="ISBN of the book to lend"),
    customer: str = typer.Option(..., "--customer", "-c", help="Customer name"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Customer email"),
) -> None:
    """Lend a book to a customer."""
    _, ledger = get_services()
    try:
        data = LoanCreate(isbn=isbn, customer=customer, customer_email=email)
    except ValidationError as e:
        print_error(f"Invalid loan: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    loan = unwrap(ledger.create_loan_for_isbn(data))
    print_success(f"Loan {loan.id}: {loan.book.title} lent to {loan.customer}")


@loans_app.command("return")
def loans_return(
    loan_id: int = typer.Argument(..., help="Loan ID"),
    reopen: bool = typer.Option(False, "--reopen", help="Mark the loan open again"),
) -> None:
    """Mark a loan as returned."""
    _, ledger = get_services()
    loan = unwrap(ledger.return_loan(loan_id, returned=not reopen))
    if loan.returned:
        print_success(f"Loan {loan.id} marked as returned")
    else:
        print_success(f"Loan {loan.id} reopened")


@loans_app.command("show")
def loans_show(loan_id: int = typer.Argument(..., help="Loan ID")) -> None:
    """Show one loan."""
    _, ledger = get_services()
    loan = ledger.get_loan(loan_id)
    if not loan:
        print_error(f"Loan not found: {loan_id}")
        raise typer.Exit(1)

    console.print(format_loan_table([loan], title=f"Loan {loan.id}"))


@loans_app.command("list")
def loans_list(
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="Book ISBN, exact"),
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer contains"),
    page: int = typer.Option(0, "--page", "-p", help="Page index, from 0"),
    size: Optional[int] = typer.Option(None, "--size", "-s", help="Page size"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort field, '-' for descending"),
) -> None:
    """List loans whose book has the ISBN or whose customer matches."""
    _, ledger = get_services()
    criteria = LoanFilter(isbn=isbn, customer=customer)
    result = unwrap(ledger.find_loans(criteria, page_request(page, size, sort)))

    if not result.items:
        console.print("[dim]No loans found[/dim]")
    else:
        console.print(format_loan_table(result.items))
    print_page_footer(result)


def build_scanner(ledger: LoanLedger, days: Optional[int]) -> OverdueScanner:
    config = get_config()
    return OverdueScanner(
        ledger,
        HttpEmailSender.from_config(config),
        threshold=timedelta(days=days if days is not None else config.loan_days),
        message=config.reminder_message,
    )


@loans_app.command("overdue")
def loans_overdue(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Overdue after this many days"),
) -> None:
    """List open loans older than the overdue threshold."""
    _, ledger = get_services()
    scanner = build_scanner(ledger, days)
    now = scanner.clock()
    loans = scanner.find_overdue(now)

    if not loans:
        console.print("[dim]No overdue loans[/dim]")
        return
    console.print(format_loan_table(loans, title="Overdue Loans", now=now))


@loans_app.command("remind")
def loans_remind(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Overdue after this many days"),
) -> None:
    """Email one reminder to every customer with an overdue loan."""
    _, ledger = get_services()
    report = build_scanner(ledger, days).run()

    if report.skipped_without_contact:
        print_warning(f"{report.skipped_without_contact} overdue loans have no email")
    if not report.recipients:
        console.print("[dim]No reminders to send[/dim]")
        return
    if not report.delivered:
        print_error(f"Reminders not sent: {report.error}")
        raise typer.Exit(1)

    print_success(f"Reminded {len(report.recipients)} customers")
