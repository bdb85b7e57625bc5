"""
Error code system.

LedgerError is the base exception for all structured errors. Each subclass
is bound to a code from the registry, and the error middleware turns it into
a structured JSON response.

Usage:
    from licenseledger.core.errors import InsufficientPayment
    raise InsufficientPayment(detail="paid 1 < required 5", context={"listing_id": 3})
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^LDG-[A-Z]{2,6}-\d{3}$")


class LedgerError(Exception):
    """Structured ledger error tied to the error registry.

    Args:
        code: Registry error code, e.g. "LDG-PAY-001". Subclasses bind it.
        detail: Internal-only detail message (never exposed to callers).
        context: Arbitrary key-value context for structured logging.
    """

    code: str = "LDG-SYS-001"

    def __init__(
        self,
        code: str | None = None,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        code = code or type(self).code
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class _BoundError(LedgerError):
    def __init__(self, detail: str | None = None, context: dict | None = None) -> None:
        super().__init__(None, detail=detail, context=context)


class NotFound(_BoundError):
    """A listing id outside ``0 <= id < next_listing_id``."""

    code = "LDG-REG-001"


ListingNotFound = NotFound


class UnknownListing(_BoundError):
    """Subscription or penalty against a listing that does not exist."""

    code = "LDG-SUB-001"


class SubscriptionNotFound(_BoundError):
    code = "LDG-SUB-004"


class AlreadyResolved(_BoundError):
    code = "LDG-SUB-002"


class NotYetExpired(_BoundError):
    code = "LDG-SUB-003"


class Unauthorized(_BoundError):
    code = "LDG-ADM-001"


class NothingToWithdraw(_BoundError):
    code = "LDG-ADM-002"


class InsufficientPayment(_BoundError):
    code = "LDG-PAY-001"


class InvalidOraclePrice(_BoundError):
    """The oracle returned a non-positive, stale or unreadable quote."""

    code = "LDG-ORC-001"


__all__ = [
    "CODE_PATTERN",
    "LedgerError",
    "NotFound",
    "ListingNotFound",
    "UnknownListing",
    "SubscriptionNotFound",
    "AlreadyResolved",
    "NotYetExpired",
    "Unauthorized",
    "NothingToWithdraw",
    "InsufficientPayment",
    "InvalidOraclePrice",
]
