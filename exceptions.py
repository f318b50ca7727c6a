"""
Unified exception hierarchy for the budget reporting project.

This module defines the exception hierarchy with BudgetReportError as the
base exception. The aggregation engine itself never raises; these errors
belong to the boundaries around it (configuration, snapshot sources,
period parsing and report export).
"""

from typing import Optional


class BudgetReportError(Exception):
    """
    Base exception class for all budget reporting errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
        original_error: Optional original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ) -> None:
        """
        Initialize BudgetReportError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
            original_error: Optional original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} ({detail_str})"
        return msg


class ConfigError(BudgetReportError):
    """Raised when configuration loading or validation fails."""
    pass


class DatabaseError(BudgetReportError):
    """Raised when reading a snapshot from the database fails."""
    pass


class SnapshotError(BudgetReportError):
    """Raised when a snapshot export cannot be read or is missing required data."""
    pass


class StandardizationError(SnapshotError):
    """Raised when a raw record cannot be converted into a domain model."""
    pass


class PeriodError(BudgetReportError):
    """Raised when a reporting month or period type cannot be parsed."""
    pass


class ReportError(BudgetReportError):
    """Raised when report generation or export fails."""
    pass
