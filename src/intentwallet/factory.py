"""
Outbound intent creation.

Flow:
1. Owner gate
2. Validate token, target, amount, and settler trust for the destination
3. Derive the order identifier
4. Grant the settler a spend allowance on the token
5. Emit token-approved and intent-created notifications

Nothing is stored: creation and a later execution are linked only by
whatever identifier the settler chooses to submit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .abi import NULL_ADDRESS, compute_order_id, normalize_address
from .approvals import ApprovalRegistry
from .authorization import AuthorizationStore
from .errors import (
    ExecutionError,
    InvalidAmountError,
    InvalidSettlerError,
    InvalidTargetError,
    InvalidTokenError,
)
from .events import Emitter, EventType
from .token import request_approval

if TYPE_CHECKING:
    from .chain import Contract

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Intent:
    """Parameters of one outbound intent at the moment of creation."""

    destination_network_id: int
    token: str
    amount: int
    target: str
    call_data: bytes
    created_at: int

    @property
    def order_id(self) -> str:
        return compute_order_id(
            destination_network_id=self.destination_network_id,
            token=self.token,
            amount=self.amount,
            target=self.target,
            call_data=self.call_data,
            created_at=self.created_at,
        )


class IntentFactory:
    """Validates and announces outbound intents from the wallet account."""

    def __init__(
        self,
        account: "Contract",
        auth: AuthorizationStore,
        registry: ApprovalRegistry,
        emit: Emitter,
    ):
        self._account = account
        self._auth = auth
        self._registry = registry
        self._emit = emit

    def create_intent(
        self,
        caller: str,
        destination_network_id: int,
        token: str,
        amount: int,
        target: str,
        call_data: bytes = b"",
    ) -> str:
        self._auth.require_owner(caller)
        normalized_token = _checked_address(token, InvalidTokenError, "Token")
        normalized_target = _checked_address(target, InvalidTargetError, "Target")
        if isinstance(amount, bool) or int(amount) <= 0:
            raise InvalidAmountError("Amount must be > 0")
        if not self._registry.is_approved(destination_network_id, normalized_target):
            raise InvalidSettlerError(
                f"{normalized_target} is not an approved settler for network {destination_network_id}"
            )

        chain = self._account.chain
        if chain is None:
            raise RuntimeError("Wallet is not deployed")
        intent = Intent(
            destination_network_id=int(destination_network_id),
            token=normalized_token,
            amount=int(amount),
            target=normalized_target,
            call_data=bytes(call_data),
            created_at=chain.timestamp,
        )
        order_id = intent.order_id

        if not request_approval(chain, self._account.address, intent.token, intent.target, intent.amount):
            raise ExecutionError(f"Token {intent.token} refused approval for {intent.target}")
        self._emit(EventType.TOKEN_APPROVED, token=intent.token, spender=intent.target, amount=intent.amount)
        self._emit(
            EventType.INTENT_CREATED,
            order_id=order_id,
            network_id=intent.destination_network_id,
            token=intent.token,
            amount=intent.amount,
            target=intent.target,
        )
        logger.info(
            "Intent created: %s (network=%d, amount=%d, settler=%s)",
            order_id,
            intent.destination_network_id,
            intent.amount,
            intent.target,
        )
        return order_id


def _checked_address(address: str, error: type, label: str) -> str:
    try:
        normalized = normalize_address(address)
    except ValueError as exc:
        raise error(str(exc)) from exc
    if normalized == NULL_ADDRESS:
        raise error(f"{label} cannot be the null address")
    return normalized
