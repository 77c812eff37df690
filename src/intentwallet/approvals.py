"""Per-network settler trust flags."""

from __future__ import annotations

import logging

from .abi import NULL_ADDRESS, normalize_address
from .authorization import AuthorizationStore
from .errors import InvalidSettlerError
from .events import Emitter, EventType
from .state import ApprovalStore

logger = logging.getLogger(__name__)


class ApprovalRegistry:
    """Owners toggle whether a settler is trusted on a given network.

    Entries are independent per network id: approving a settler on one
    network says nothing about any other.
    """

    def __init__(self, auth: AuthorizationStore, approvals: ApprovalStore, emit: Emitter):
        self._auth = auth
        self._approvals = approvals
        self._emit = emit

    def set_settler_approval(self, caller: str, network_id: int, settler: str, approved: bool) -> None:
        self._auth.require_owner(caller)
        try:
            normalized = normalize_address(settler)
        except ValueError as exc:
            raise InvalidSettlerError(str(exc)) from exc
        if normalized == NULL_ADDRESS:
            raise InvalidSettlerError("Settler cannot be the null address")

        self._approvals.set(int(network_id), normalized, bool(approved))
        self._emit(
            EventType.SETTLER_APPROVED,
            network_id=int(network_id),
            settler=normalized,
            approved=bool(approved),
        )
        logger.info(
            "Settler %s %s on network %d", normalized, "approved" if approved else "revoked", network_id
        )

    def is_approved(self, network_id: int, settler: str) -> bool:
        return self._approvals.get(int(network_id), normalize_address(settler))

    def entries(self) -> list[tuple[int, str, bool]]:
        return self._approvals.entries()
