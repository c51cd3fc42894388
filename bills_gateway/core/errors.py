from __future__ import annotations

from typing import Any, Optional


class BillsError(Exception):
    """Base class for every failure reported back to a bills caller."""


class UnauthorizedError(BillsError):
    """Raised when the caller credential is missing or unknown."""


class ForbiddenError(UnauthorizedError):
    """Raised when an authenticated caller lacks the admin role."""


class InvalidRequestError(BillsError):
    """Raised for malformed purchases; nothing has been charged yet."""


class InvalidPlanError(InvalidRequestError):
    """Raised when no active data plan matches the requested id."""


class BelowMinimumError(InvalidRequestError):
    """Raised when an airtime amount is under the configured minimum."""


class UnsupportedNetworkError(InvalidRequestError):
    """Raised when a network name has no provider code."""


class InsufficientFundsError(BillsError):
    """Raised when a debit would drop a wallet balance below zero."""


class ProviderError(BillsError):
    """Base class for failures of the prepaid-services provider."""


class ProviderFailureError(ProviderError):
    """Raised when the provider answered without a success status."""

    def __init__(self, message: str, response: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.response = response or {}


class ProviderUnreachableError(ProviderError):
    """Raised on transport errors, timeouts, non-2xx or non-JSON replies."""


class RefundFailedError(BillsError):
    """Raised when a compensating credit could not be applied.

    The wallet has been debited and the purchase was not fulfilled, so this
    always needs a human to reconcile the account.
    """
