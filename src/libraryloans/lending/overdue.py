"""Overdue loan sweep.

Selects every open loan older than the configured threshold and sends
one reminder batch to the customers holding them. Nothing is recorded
about who was reminded, so each run reminds every loan that is still
open and overdue.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import DEFAULT_REMINDER_MESSAGE
from ..db.models import utcnow
from ..notifications.email import NotificationError, ReminderSender
from .ledger import LoanLedger
from .models import Loan

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Outcome of one sweep."""

    cutoff: datetime
    loans: list[Loan] = field(default_factory=list)
    recipients: list[str] = field(default_factory=list)
    skipped_without_contact: int = 0
    delivered: bool = False
    error: Optional[str] = None

    @property
    def total_overdue(self) -> int:
        return len(self.loans)


class OverdueScanner:
    """Finds overdue loans and hands their contacts to a reminder sender."""

    def __init__(
        self,
        ledger: LoanLedger,
        sender: ReminderSender,
        threshold: timedelta = timedelta(days=4),
        message: str = DEFAULT_REMINDER_MESSAGE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.sender = sender
        self.threshold = threshold
        self.message = message
        self.clock = clock

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        return (now or self.clock()) - self.threshold

    def find_overdue(self, now: Optional[datetime] = None) -> list[Loan]:
        """List overdue loans without notifying anyone."""
        return list(self.ledger.find_open_loans_older_than(self.cutoff(now)))

    def run(self, now: Optional[datetime] = None) -> ScanReport:
        """Sweep once and send a single reminder batch.

        A delivery failure is logged and reported, never raised.

        Args:
            now: Time to measure overdue against (defaults to the clock)

        Returns:
            ScanReport describing what was found and sent
        """
        report = ScanReport(cutoff=self.cutoff(now))

        for loan in self.ledger.find_open_loans_older_than(report.cutoff):
            report.loans.append(loan)
            if loan.customer_email:
                report.recipients.append(loan.customer_email)
            else:
                report.skipped_without_contact += 1

        if report.skipped_without_contact:
            logger.warning(
                "%d overdue loans have no contact address", report.skipped_without_contact
            )

        if not report.recipients:
            logger.info("No overdue loans to remind (cutoff %s)", report.cutoff)
            return report

        try:
            self.sender.send_reminder(self.message, list(report.recipients))
            report.delivered = True
            logger.info(
                "Reminded %d recipients about overdue loans", len(report.recipients)
            )
        except NotificationError as e:
            report.error = str(e)
            logger.warning("Reminder batch not delivered: %s", e)

        return report
