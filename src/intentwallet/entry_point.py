"""Account-abstraction entry point stand-in: per-account nonce counters."""

from __future__ import annotations

from typing import Any, Mapping

from .abi import NULL_ADDRESS, normalize_address
from .chain import Contract, external


class EntryPoint(Contract):
    """Tracks a nonce per ``(account, key)``. The wallet only records its address."""

    kind = "entry_point"

    def __init__(self) -> None:
        super().__init__()
        self._nonces: dict[str, int] = {}

    def dump_storage(self) -> dict:
        return {"nonces": dict(self._nonces)}

    def load_storage(self, data: Mapping[str, Any]) -> None:
        self._nonces = {str(k): int(v) for k, v in data.get("nonces", {}).items()}

    @external("getNonce(address,uint192)", returns=("uint256",), view=True)
    def get_nonce(self, account: str, key: int = 0, *, sender: str = NULL_ADDRESS) -> int:
        return self._nonces.get(_nonce_key(account, key), 0)

    @external("incrementNonce(uint192)")
    def increment_nonce(self, key: int = 0, *, sender: str) -> None:
        slot = _nonce_key(sender, key)
        self._nonces[slot] = self._nonces.get(slot, 0) + 1


def _nonce_key(account: str, key: int) -> str:
    return f"{normalize_address(account)}:{int(key)}"
