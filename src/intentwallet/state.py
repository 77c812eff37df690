"""
Persistent wallet state, split into the substores each component needs.

Substores are mutated in place, including on restore, so components that
hold a reference to one keep seeing the live data after a rollback.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping


class OwnerStore:
    """Owner set (insertion ordered) and the setup threshold."""

    def __init__(self) -> None:
        self._owners: dict[str, None] = {}
        self.threshold: int = 0

    def __contains__(self, address: str) -> bool:
        return address in self._owners

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def add(self, address: str) -> None:
        self._owners[address] = None

    def dump(self) -> dict:
        return {"owners": list(self._owners), "threshold": self.threshold}

    def load(self, data: Mapping[str, Any]) -> None:
        self._owners = {str(a): None for a in data.get("owners", [])}
        self.threshold = int(data.get("threshold", 0))


class ApprovalStore:
    """``(network_id, settler) -> approved`` flags."""

    def __init__(self) -> None:
        self._entries: dict[tuple[int, str], bool] = {}

    def get(self, network_id: int, settler: str) -> bool:
        return self._entries.get((int(network_id), settler), False)

    def set(self, network_id: int, settler: str, approved: bool) -> None:
        self._entries[(int(network_id), settler)] = bool(approved)

    def entries(self) -> list[tuple[int, str, bool]]:
        return [(n, s, a) for (n, s), a in sorted(self._entries.items())]

    def dump(self) -> dict:
        return {f"{n}:{s}": a for (n, s), a in self._entries.items()}

    def load(self, data: Mapping[str, Any]) -> None:
        entries: dict[tuple[int, str], bool] = {}
        for key, approved in data.items():
            network_id, settler = str(key).split(":", 1)
            entries[(int(network_id), settler)] = bool(approved)
        self._entries = entries


class ExecutedSet:
    """Order identifiers that have been executed. Entries are never removed
    except to undo a mark whose execution failed inside the same operation."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def __contains__(self, order_id: str) -> bool:
        return order_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, order_id: str) -> None:
        self._ids.add(order_id)

    def discard(self, order_id: str) -> None:
        self._ids.discard(order_id)

    def dump(self) -> list[str]:
        return sorted(self._ids)

    def load(self, data: list[str]) -> None:
        self._ids = {str(i) for i in data}


class WalletState:
    """All four persistent stores of one wallet."""

    def __init__(self) -> None:
        self.owners = OwnerStore()
        self.approvals = ApprovalStore()
        self.executed = ExecutedSet()

    def dump(self) -> dict:
        return {
            "owners": self.owners.dump(),
            "approvals": self.approvals.dump(),
            "executed": self.executed.dump(),
        }

    def load(self, data: Mapping[str, Any]) -> None:
        self.owners.load(data.get("owners", {}))
        self.approvals.load(data.get("approvals", {}))
        self.executed.load(data.get("executed", []))
