"""Book lending module.

Provides functionality for:
- Lending a book to a customer, one open loan per book
- Returning loans
- Searching loan history
- Overdue reminders
"""

from .ledger import LoanLedger
from .models import Loan
from .overdue import OverdueScanner, ScanReport
from .schemas import LoanCreate, LoanFilter

__all__ = [
    "LoanLedger",
    "Loan",
    "OverdueScanner",
    "ScanReport",
    "LoanCreate",
    "LoanFilter",
]
