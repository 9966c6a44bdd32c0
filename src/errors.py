"""
DropMint - Exception Hierarchy

Every failure raised by the minting engine derives from DropMintError and
carries structured details for logging and API responses.

Families:
- ConfigurationError: rejected before a drop can ever be minted
- DropStateError: drop/collection state forbids the call, nothing moved
- PaymentError: the payer cannot cover the required amount
- SettlementError: a transfer leg or refund failed mid-call
"""

from typing import Any


class DropMintError(Exception):
    """
    Base exception for all minting errors.

    Subclasses set `category` so callers (and the HTTP layer) can branch on
    the family without importing every concrete class.
    """

    category = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(DropMintError):
    """Invalid configuration value."""

    category = "configuration"


class ZeroAddressError(ConfigurationError):
    """A required recipient was the zero address."""

    def __init__(self, field_name: str):
        super().__init__(f"{field_name} cannot be the zero address", {"field": field_name})
        self.field_name = field_name


class InvalidBasisPointsError(ConfigurationError):
    """Basis points are negative or sum above 10000."""

    def __init__(self, total: int, maximum: int = 10_000):
        super().__init__(
            f"Basis points total {total} exceeds {maximum}",
            {"total_bps": total, "max_bps": maximum},
        )
        self.total = total


class InvalidCurrencyError(ConfigurationError):
    """Currency address is zero or not a deployed fungible token."""

    def __init__(self, currency: str):
        super().__init__(f"Invalid currency: {currency}", {"currency": currency})
        self.currency = currency


class InvalidTimeWindowError(ConfigurationError):
    """Drop end time precedes its start time."""

    def __init__(self, start_time: int, end_time: int):
        super().__init__(
            "End time must be zero or not before start time",
            {"start_time": start_time, "end_time": end_time},
        )


# =============================================================================
# State Errors
# =============================================================================


class DropStateError(DropMintError):
    """Drop or call state rejects the mint before any funds move."""

    category = "state"


class DropNotFoundError(DropStateError):
    def __init__(self, collection: str, token_id: int):
        super().__init__(
            f"No drop for token {token_id}",
            {"collection": collection, "token_id": token_id},
        )
        self.token_id = token_id


class DropNotActiveError(DropStateError):
    def __init__(self, collection: str, token_id: int):
        super().__init__(
            f"Drop for token {token_id} is not active",
            {"collection": collection, "token_id": token_id},
        )
        self.collection = collection
        self.token_id = token_id


class DropNotStartedError(DropStateError):
    def __init__(self, collection: str, token_id: int, start_time: int, now: int):
        super().__init__(
            f"Drop for token {token_id} has not started",
            {"collection": collection, "token_id": token_id, "start_time": start_time, "now": now},
        )
        self.token_id = token_id


class DropEndedError(DropStateError):
    def __init__(self, collection: str, token_id: int, end_time: int, now: int):
        super().__init__(
            f"Drop for token {token_id} has ended",
            {"collection": collection, "token_id": token_id, "end_time": end_time, "now": now},
        )
        self.token_id = token_id


class CurrencyNotEnabledError(DropStateError):
    def __init__(self, collection: str, token_id: int, currency: str):
        super().__init__(
            f"Currency {currency} is not enabled for token {token_id}",
            {"collection": collection, "token_id": token_id, "currency": currency},
        )
        self.currency = currency


class ArrayLengthMismatchError(DropStateError):
    def __init__(self, token_ids: int, amounts: int):
        super().__init__(
            "token_ids and amounts must have the same length",
            {"token_ids": token_ids, "amounts": amounts},
        )


class EmptyBatchError(DropStateError):
    def __init__(self):
        super().__init__("Batch contains no items")


class InvalidAmountError(DropStateError):
    """Amount is below one or above the per-call maximum."""

    def __init__(self, amount: int, maximum: int):
        super().__init__(
            f"Amount {amount} must be between 1 and {maximum}",
            {"amount": amount, "max_amount": maximum},
        )
        self.amount = amount


class InvalidRecipientError(DropStateError):
    def __init__(self):
        super().__init__("Cannot mint to the zero address")


class UnknownCollectionError(DropStateError):
    def __init__(self, collection: str):
        super().__init__(f"Collection {collection} is not registered", {"collection": collection})
        self.collection = collection


class NoEligibleCurrencyError(DropStateError):
    def __init__(self, collection: str, token_id: int):
        super().__init__(
            f"No payment currency available for token {token_id}",
            {"collection": collection, "token_id": token_id},
        )


class UnsupportedEntrypointError(DropStateError):
    def __init__(self, collection: str, entrypoint: str):
        super().__init__(
            f"Collection {collection} does not support {entrypoint}",
            {"collection": collection, "entrypoint": entrypoint},
        )


# =============================================================================
# Payment Errors
# =============================================================================


class PaymentError(DropMintError):
    """The payer cannot cover the required amount."""

    category = "payment"

    def __init__(self, message: str, required: int, available: int, currency: str):
        super().__init__(
            message,
            {"required": required, "available": available, "currency": currency},
        )
        self.required = required
        self.available = available
        self.currency = currency


class InsufficientPaymentError(PaymentError):
    def __init__(self, required: int, available: int, currency: str):
        super().__init__(
            f"Insufficient payment: required {required}, supplied {available}",
            required, available, currency,
        )


class InsufficientBalanceError(PaymentError):
    def __init__(self, required: int, available: int, currency: str):
        super().__init__(
            f"Insufficient balance: required {required}, available {available}",
            required, available, currency,
        )


class InsufficientAllowanceError(PaymentError):
    def __init__(self, required: int, available: int, currency: str):
        super().__init__(
            f"Insufficient allowance: required {required}, approved {available}",
            required, available, currency,
        )


# =============================================================================
# Settlement Errors
# =============================================================================


class SettlementError(DropMintError):
    """A value transfer failed after validation passed."""

    category = "settlement"


class TransferFailedError(SettlementError):
    def __init__(self, recipient: str, amount: int, currency: str, reason: str = ""):
        super().__init__(
            f"Transfer of {amount} to {recipient} failed" + (f": {reason}" if reason else ""),
            {"recipient": recipient, "amount": amount, "currency": currency, "reason": reason},
        )
        self.recipient = recipient


class RefundFailedError(SettlementError):
    def __init__(self, recipient: str, amount: int):
        super().__init__(
            f"Refund of {amount} to {recipient} failed",
            {"recipient": recipient, "amount": amount},
        )


class FeeOnTransferError(SettlementError):
    """Recipient received less than the amount sent."""

    def __init__(self, recipient: str, expected: int, received: int, currency: str):
        super().__init__(
            f"Recipient {recipient} received {received} instead of {expected}",
            {"recipient": recipient, "expected": expected, "received": received, "currency": currency},
        )
        self.expected = expected
        self.received = received


# =============================================================================
# Access Errors
# =============================================================================


class UnauthorizedError(DropMintError):
    category = "access"

    def __init__(self, caller: str, role: str):
        super().__init__(f"{caller} lacks role {role}", {"caller": caller, "role": role})
        self.caller = caller
        self.role = role


class ReentrancyError(DropMintError):
    category = "access"

    def __init__(self, contract: str):
        super().__init__(f"Reentrant call into {contract}", {"contract": contract})
