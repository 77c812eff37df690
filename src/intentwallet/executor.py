"""
Inbound intent execution.

Flow:
1. Reject an order id that is already executed
2. Reject a caller that is not an approved settler for the origin network
3. Decode origin data into (target, payload), trusted verbatim
4. Mark the order executed, then forward the call
5. On failure un-mark and raise; on success emit intent-executed

The mark happens before the forwarded call so a callee that re-enters with
the same order id sees it as executed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .abi import decode_origin_data, normalize_address, normalize_order_id
from .approvals import ApprovalRegistry
from .errors import ApprovalError, ExecutionError, InvalidCallDataError, ReplayError
from .events import Emitter, EventType
from .forwarder import CallForwarder
from .state import ExecutedSet

logger = logging.getLogger(__name__)


class ProofVerifier(Protocol):
    def verify(self, order_id: str, origin_network_id: int, origin_data: bytes, proof: bytes) -> None: ...


class AcceptAnyProof:
    """Placeholder verifier: the proof is accepted and ignored."""

    def verify(self, order_id: str, origin_network_id: int, origin_data: bytes, proof: bytes) -> None:
        return None


@dataclass
class ExecutionResult:
    order_id: str
    target: str
    payload: bytes


class IntentExecutor:
    """Performs a settler-requested call at most once per order id."""

    def __init__(
        self,
        registry: ApprovalRegistry,
        executed: ExecutedSet,
        forwarder: CallForwarder,
        emit: Emitter,
        proof_verifier: Optional[ProofVerifier] = None,
    ):
        self._registry = registry
        self._executed = executed
        self._forwarder = forwarder
        self._emit = emit
        self.proof_verifier: ProofVerifier = proof_verifier or AcceptAnyProof()

    def is_executed(self, order_id) -> bool:
        return normalize_order_id(order_id) in self._executed

    def execute_intent(
        self,
        caller: str,
        order_id,
        origin_network_id: int,
        origin_data: bytes,
        proof: bytes = b"",
    ) -> ExecutionResult:
        try:
            normalized_id = normalize_order_id(order_id)
        except ValueError as exc:
            raise InvalidCallDataError(str(exc)) from exc
        if normalized_id in self._executed:
            raise ReplayError(normalized_id)

        settler = normalize_address(caller)
        if not self._registry.is_approved(origin_network_id, settler):
            raise ApprovalError(int(origin_network_id), settler)

        self.proof_verifier.verify(normalized_id, int(origin_network_id), bytes(origin_data), bytes(proof))
        target, payload = decode_origin_data(origin_data)

        self._executed.add(normalized_id)
        try:
            success = self._forwarder.invoke(target, 0, payload)
        except Exception:
            self._executed.discard(normalized_id)
            raise
        if not success:
            self._executed.discard(normalized_id)
            logger.warning("Intent %s: forwarded call to %s failed", normalized_id, target)
            raise ExecutionError(f"Forwarded call to {target} failed for intent {normalized_id}")

        self._emit(EventType.INTENT_EXECUTED, order_id=normalized_id, target=target, payload=payload)
        logger.info("Intent executed: %s -> %s by settler %s", normalized_id, target, settler)
        return ExecutionResult(order_id=normalized_id, target=target, payload=payload)
