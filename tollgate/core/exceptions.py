"""Shared exceptions module.

Only genuinely exceptional conditions are exceptions. Expected business
outcomes (insufficient credits, duplicate trial, already referred) are
returned as named results by the owning service.
"""

from typing import Optional


class TollgateException(Exception):
    """Base exception for Tollgate services."""

    pass


class ValidationError(TollgateException):
    """Exception raised for malformed input, before any store access.

    Examples: missing identity, non-positive amount, empty referral code.
    Never retried.
    """

    def __init__(self, message: Optional[str] = "Invalid input", field: Optional[str] = None):
        """Create a new ValidationError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.
            field (str, optional): Name of the offending argument.

        """
        self.message = message
        self.field = field
        super().__init__(self.message)


class ConfigurationError(TollgateException):
    """Exception raised for programming/configuration errors.

    Raised at construction or registration time (unknown tier, invalid tier
    limits, malformed milestone table), never per request.
    """

    def __init__(self, message: Optional[str] = "Invalid configuration"):
        """Create a new ConfigurationError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class StoreUnavailableError(TollgateException):
    """Exception raised when the backing store times out or is unreachable.

    Transient. Callers treat it as failed-safe (deny) and may retry the whole
    admission check from scratch; they never resume a half-finished operation.
    """

    def __init__(
        self,
        operation: str,
        message: Optional[str] = "Backing store unavailable",
    ):
        """Create a new StoreUnavailableError instance.

        Args:
        ----
            operation (str): The store operation that failed.
            message (str, optional): The error message. Has default message.

        """
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class LedgerConflictError(StoreUnavailableError):
    """Raised when a compare-and-swap on an account row loses a race.

    Nothing was written. Handled exactly like StoreUnavailableError.
    """

    def __init__(self, operation: str, account_id: int):
        """Create a new LedgerConflictError instance."""
        self.account_id = account_id
        super().__init__(
            operation,
            message=f"concurrent modification of account {account_id}",
        )
