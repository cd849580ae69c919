"""Tests for the CLI interface."""

from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from libraryloans.cli import app
from libraryloans.config import reset_config
from libraryloans.db import Database
from libraryloans.lending.models import Loan


@pytest.fixture(autouse=True)
def setup_test_db(tmp_path: Path, monkeypatch):
    """Point the CLI at a fresh database for each test."""
    db_path = tmp_path / "library.db"
    monkeypatch.setenv("LIBRARYLOANS_DB_PATH", str(db_path))
    monkeypatch.delenv("EMAIL_API_URL", raising=False)
    monkeypatch.delenv("EMAIL_API_KEY", raising=False)
    reset_config()
    yield db_path
    reset_config()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def add_book(runner: CliRunner, title="Clean Code", isbn="9780132350884"):
    result = runner.invoke(
        app, ["books", "add", "--title", title, "--author", "Robert Martin", "--isbn", isbn]
    )
    assert result.exit_code == 0, result.stdout
    return result


def backdate_loans(db_path: Path, days: int) -> None:
    db = Database(db_path)
    with db.get_session() as session:
        for loan in session.query(Loan).all():
            loan.loan_date = loan.loan_date - timedelta(days=days)


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "library catalog" in result.stdout

    def test_version(self, runner: CliRunner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_init(self, runner: CliRunner, setup_test_db: Path):
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert setup_test_db.exists()


class TestBookCommands:
    """Tests for the books command group."""

    def test_add_book(self, runner: CliRunner):
        result = add_book(runner)
        assert "Added:" in result.stdout
        assert "Clean Code" in result.stdout

    def test_add_duplicate_isbn(self, runner: CliRunner):
        add_book(runner)
        result = runner.invoke(
            app, ["books", "add", "--title", "X", "--author", "Y", "--isbn", "9780132350884"]
        )
        assert result.exit_code == 1
        assert "duplicate_isbn" in result.stdout

    def test_add_blank_title(self, runner: CliRunner):
        result = runner.invoke(
            app, ["books", "add", "--title", " ", "--author", "Y", "--isbn", "1"]
        )
        assert result.exit_code == 1
        assert "Invalid book" in result.stdout

    def test_show_book(self, runner: CliRunner):
        add_book(runner)
        result = runner.invoke(app, ["books", "show", "1"])
        assert result.exit_code == 0
        assert "Clean Code" in result.stdout

    def test_show_missing_book(self, runner: CliRunner):
        result = runner.invoke(app, ["books", "show", "9999"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_list_books_filtered(self, runner: CliRunner):
        add_book(runner, title="Dune", isbn="111")
        add_book(runner, title="Dune Messiah", isbn="222")
        add_book(runner, title="Hyperion", isbn="333")

        result = runner.invoke(app, ["books", "list", "--title", "dune"])

        assert result.exit_code == 0
        assert "Dune Messiah" in result.stdout
        assert "Hyperion" not in result.stdout
        assert "2 total" in result.stdout

    def test_list_books_bad_sort(self, runner: CliRunner):
        result = runner.invoke(app, ["books", "list", "--sort", "rating"])
        assert result.exit_code == 1
        assert "invalid_argument" in result.stdout

    def test_update_book(self, runner: CliRunner):
        add_book(runner)
        result = runner.invoke(app, ["books", "update", "1", "--author", "Uncle Bob"])
        assert result.exit_code == 0
        assert "Uncle Bob" in result.stdout

    def test_delete_book(self, runner: CliRunner):
        add_book(runner)
        result = runner.invoke(app, ["books", "delete", "1", "--force"])
        assert result.exit_code == 0
        assert "Deleted" in result.stdout

    def test_delete_loaned_book_refused(self, runner: CliRunner):
        add_book(runner)
        runner.invoke(app, ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"])

        result = runner.invoke(app, ["books", "delete", "1", "--force"])

        assert result.exit_code == 1
        assert "book_has_loans" in result.stdout


class TestLoanCommands:
    """Tests for the loans command group."""

    def test_lend_return_lend(self, runner: CliRunner):
        add_book(runner)
        lend = ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"]

        first = runner.invoke(app, lend)
        assert first.exit_code == 0
        assert "Loan 1" in first.stdout

        second = runner.invoke(app, lend)
        assert second.exit_code == 1
        assert "book_already_loaned" in second.stdout

        returned = runner.invoke(app, ["loans", "return", "1"])
        assert returned.exit_code == 0
        assert "returned" in returned.stdout

        third = runner.invoke(app, lend)
        assert third.exit_code == 0
        assert "Loan 2" in third.stdout

    def test_lend_unknown_isbn(self, runner: CliRunner):
        result = runner.invoke(app, ["loans", "create", "--isbn", "000", "--customer", "Alice"])
        assert result.exit_code == 1
        assert "invalid_reference" in result.stdout

    def test_return_missing_loan(self, runner: CliRunner):
        result = runner.invoke(app, ["loans", "return", "42"])
        assert result.exit_code == 1

    def test_list_loans(self, runner: CliRunner):
        add_book(runner)
        runner.invoke(app, ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"])

        result = runner.invoke(app, ["loans", "list", "--customer", "Ali"])

        assert result.exit_code == 0
        assert "Alice" in result.stdout
        assert "1 total" in result.stdout

    def test_book_loans(self, runner: CliRunner):
        add_book(runner)
        runner.invoke(app, ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"])

        result = runner.invoke(app, ["books", "loans", "1"])

        assert result.exit_code == 0
        assert "Alice" in result.stdout

    def test_show_loan(self, runner: CliRunner):
        add_book(runner)
        runner.invoke(app, ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"])

        result = runner.invoke(app, ["loans", "show", "1"])

        assert result.exit_code == 0
        assert "Alice" in result.stdout

    def test_overdue_lists_old_loans(self, runner: CliRunner, setup_test_db: Path):
        add_book(runner)
        runner.invoke(app, ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice"])
        backdate_loans(setup_test_db, days=5)

        result = runner.invoke(app, ["loans", "overdue"])

        assert result.exit_code == 0
        assert "Alice" in result.stdout
        assert "Days" in result.stdout

    def test_overdue_none(self, runner: CliRunner):
        result = runner.invoke(app, ["loans", "overdue"])
        assert result.exit_code == 0
        assert "No overdue loans" in result.stdout

    def test_remind_without_email_config(self, runner: CliRunner, setup_test_db: Path):
        add_book(runner)
        runner.invoke(
            app,
            ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice",
             "--email", "alice@example.com"],
        )
        backdate_loans(setup_test_db, days=5)

        result = runner.invoke(app, ["loans", "remind"])

        assert result.exit_code == 1
        assert "not configured" in result.stdout

    def test_remind_sends_batch(self, runner: CliRunner, setup_test_db: Path):
        add_book(runner)
        runner.invoke(
            app,
            ["loans", "create", "--isbn", "9780132350884", "--customer", "Alice",
             "--email", "alice@example.com"],
        )
        backdate_loans(setup_test_db, days=5)

        with patch(
            "libraryloans.notifications.email.HttpEmailSender.send_reminder"
        ) as send:
            result = runner.invoke(app, ["loans", "remind"])

        assert result.exit_code == 0
        assert "Reminded 1" in result.stdout
        send.assert_called_once()
        assert send.call_args.args[1] == ["alice@example.com"]
