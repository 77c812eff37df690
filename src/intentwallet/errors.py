"""
Intent wallet error types.

Every failure aborts the current operation and leaves wallet state exactly
as it was before the call. Each kind has its own class so callers can tell
an authorization failure from a replay from a failed forwarded call.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class IntentWalletError(Exception):
    """Base error for all intent wallet operations."""
    pass


class NotAuthorizedError(IntentWalletError):
    """Caller is not a current owner of the wallet."""
    def __init__(self, caller: str):
        self.caller = caller
        super().__init__(f"Caller {caller} is not an owner")


# Validation errors
class ValidationKind(str, Enum):
    INVALID_OWNER = "InvalidOwner"
    INVALID_THRESHOLD = "InvalidThreshold"
    INVALID_TOKEN = "InvalidToken"
    INVALID_TARGET = "InvalidTarget"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_SETTLER = "InvalidSettler"
    DUPLICATE_OWNER = "DuplicateOwner"
    ALREADY_OWNER = "AlreadyOwner"
    ALREADY_INITIALIZED = "AlreadyInitialized"
    INVALID_CALL_DATA = "InvalidCallData"


class ValidationError(IntentWalletError):
    """Base error for rejected arguments. ``kind`` names the failed check."""

    kind: ValidationKind

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.kind.value)


class InvalidOwnerError(ValidationError):
    kind = ValidationKind.INVALID_OWNER


class InvalidThresholdError(ValidationError):
    kind = ValidationKind.INVALID_THRESHOLD


class InvalidTokenError(ValidationError):
    kind = ValidationKind.INVALID_TOKEN


class InvalidTargetError(ValidationError):
    kind = ValidationKind.INVALID_TARGET


class InvalidAmountError(ValidationError):
    kind = ValidationKind.INVALID_AMOUNT


class InvalidSettlerError(ValidationError):
    kind = ValidationKind.INVALID_SETTLER


class DuplicateOwnerError(ValidationError):
    kind = ValidationKind.DUPLICATE_OWNER


class AlreadyOwnerError(ValidationError):
    kind = ValidationKind.ALREADY_OWNER


class AlreadyInitializedError(ValidationError):
    kind = ValidationKind.ALREADY_INITIALIZED


class InvalidCallDataError(ValidationError):
    kind = ValidationKind.INVALID_CALL_DATA


# Settlement errors
class ApprovalError(IntentWalletError):
    """Caller is not an approved settler for the stated network."""
    def __init__(self, network_id: int, settler: str):
        self.network_id = network_id
        self.settler = settler
        super().__init__(f"Settler {settler} is not approved for network {network_id}")


class ReplayError(IntentWalletError):
    """Order identifier has already been executed."""
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Intent already executed: {order_id}")


class ExecutionError(IntentWalletError):
    """Forwarded call or token approval failed."""
    pass


class CallRevertedError(IntentWalletError):
    """A contract on the local chain refused a call."""
    pass


# Infrastructure errors
class ConfigError(IntentWalletError):
    """Missing or unsupported configuration."""
    pass


class StateStoreError(IntentWalletError):
    """Persisted chain state is missing or unreadable."""
    pass


class WebhookDeliveryError(IntentWalletError):
    """Committed notifications could not be delivered to a webhook."""
    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Webhook delivery to {url} failed: {message}")
