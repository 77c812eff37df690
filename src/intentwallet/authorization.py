"""Owner set, setup threshold, and the owner gate shared by every privileged call."""

from __future__ import annotations

import logging
from typing import Sequence

from .abi import NULL_ADDRESS, normalize_address
from .errors import (
    AlreadyInitializedError,
    AlreadyOwnerError,
    DuplicateOwnerError,
    InvalidOwnerError,
    InvalidThresholdError,
    NotAuthorizedError,
)
from .events import Emitter, EventType
from .state import OwnerStore

logger = logging.getLogger(__name__)


class AuthorizationStore:
    """
    Owners and threshold of one wallet.

    The threshold is validated once at setup and afterwards only marks the
    wallet as initialized. Any single owner may perform any privileged call.
    """

    def __init__(self, owners: OwnerStore, emit: Emitter):
        self._owners = owners
        self._emit = emit

    @property
    def owners(self) -> list[str]:
        return list(self._owners)

    @property
    def threshold(self) -> int:
        return self._owners.threshold

    @property
    def initialized(self) -> bool:
        return self._owners.threshold != 0

    def is_owner(self, address: str) -> bool:
        return normalize_address(address) in self._owners

    def require_owner(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise NotAuthorizedError(caller)

    def setup(self, owners: Sequence[str], threshold: int) -> None:
        """Record the initial owners and threshold.

        Checks run in passes: already initialized, then threshold range, then
        every owner address, then duplicates. A list holding both a duplicate
        and a null entry, e.g. ``[A, A, 0x0]``, therefore reports
        ``InvalidOwnerError``.
        """
        if self.initialized:
            raise AlreadyInitializedError("Wallet is already set up")
        if threshold < 1 or threshold > len(owners):
            raise InvalidThresholdError(f"Threshold {threshold} outside 1..{len(owners)}")

        normalized = [_owner_address(o) for o in owners]
        seen: set[str] = set()
        for owner in normalized:
            if owner in seen:
                raise DuplicateOwnerError(f"Duplicate owner {owner}")
            seen.add(owner)

        for owner in normalized:
            self._owners.add(owner)
            self._emit(EventType.OWNER_ADDED, owner=owner)
        self._owners.threshold = int(threshold)
        self._emit(EventType.THRESHOLD_CHANGED, threshold=int(threshold))
        self._emit(EventType.WALLET_SETUP, owners=normalized, threshold=int(threshold))
        logger.info("Wallet setup: %d owner(s), threshold %d", len(normalized), threshold)

    def add_owner(self, caller: str, owner: str) -> None:
        self.require_owner(caller)
        normalized = _owner_address(owner)
        if normalized in self._owners:
            raise AlreadyOwnerError(f"{normalized} is already an owner")
        self._owners.add(normalized)
        self._emit(EventType.OWNER_ADDED, owner=normalized)
        logger.info("Owner added: %s", normalized)


def _owner_address(address: str) -> str:
    try:
        normalized = normalize_address(address)
    except ValueError as exc:
        raise InvalidOwnerError(str(exc)) from exc
    if normalized == NULL_ADDRESS:
        raise InvalidOwnerError("Owner cannot be the null address")
    return normalized
