"""Configuration management for libraryloans.

Loads configuration from environment variables and provides defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_REMINDER_MESSAGE = (
    "Attention! You have an overdue loan. Please return the book as soon as possible."
)


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Lending
    loan_days: int
    reminder_message: str
    page_size: int

    # Email provider
    email_api_url: Optional[str]
    email_api_key: Optional[str]
    email_from: str
    email_timeout: float  # seconds

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "LIBRARYLOANS_DB_PATH",
            str(Path.home() / ".libraryloans" / "library.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            loan_days=int(os.environ.get("LIBRARYLOANS_LOAN_DAYS", "4")),
            reminder_message=os.environ.get(
                "LIBRARYLOANS_REMINDER_MESSAGE", DEFAULT_REMINDER_MESSAGE
            ),
            page_size=int(os.environ.get("LIBRARYLOANS_PAGE_SIZE", "10")),
            email_api_url=os.environ.get("EMAIL_API_URL"),
            email_api_key=os.environ.get("EMAIL_API_KEY"),
            email_from=os.environ.get("EMAIL_FROM", "no-reply@library.local"),
            email_timeout=float(os.environ.get("EMAIL_HTTP_TIMEOUT", "10.0")),
            log_level=os.environ.get("LIBRARYLOANS_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.loan_days < 1:
            errors.append(f"Loan days must be positive, got {self.loan_days}")
        if self.page_size < 1:
            errors.append(f"Page size must be positive, got {self.page_size}")

        # Check database directory is writable
        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors

    def has_email_config(self) -> bool:
        """Check if the email provider is configured."""
        return bool(self.email_api_url and self.email_api_key)


def configure_logging(level: str = "WARNING") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
