"""Library lending records: book catalog, loan ledger and overdue reminders."""

__version__ = "0.1.0"
