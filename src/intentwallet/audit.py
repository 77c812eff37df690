"""
Audit trail of committed wallet notifications.

Each committed event becomes one JSONL line carrying a sequence number and
an HMAC link to the line before it, so edits, deletions, and reordering are
all caught on read. Rolled-back operations never reach the trail because the
journal only hands over events when the outermost transaction commits.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import secrets
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from .events import Event, EventType
from .storage import ensure_private_dir, ensure_private_file


DEFAULT_AUDIT_PATH = Path.home() / ".intent-wallet" / "audit.jsonl"
DEFAULT_AUDIT_KEY_PATH = Path.home() / ".intent-wallet-secrets" / "audit_hmac.key"

AUDIT_KEY_ENV = "INTENT_WALLET_AUDIT_HMAC_KEY"

_LINK_FIELDS = {"prev_hash", "event_hash"}


@dataclass
class AuditEvent:
    """A single audit trail entry."""

    seq: int
    event_type: str
    timestamp: int
    contract: str
    order_id: Optional[str] = None
    args: Optional[dict[str, Any]] = None
    prev_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def to_json(self) -> str:
        d = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(d, separators=(",", ":"))


class AuditTrail:
    """Tamper-evident append-only log. Subscribe it to a chain's journal."""

    def __init__(self, path: Optional[Path] = None, key_path: Optional[Path] = None):
        self.path = path or DEFAULT_AUDIT_PATH
        self.key_path = key_path or DEFAULT_AUDIT_KEY_PATH

        for p in (self.path, self.key_path):
            ensure_private_dir(p.parent)
            ensure_private_file(p)

        self._hmac_key = self._read_key()
        self._seq, self._last_hash = self._tail()

    def _read_key(self) -> bytes:
        override = os.getenv(AUDIT_KEY_ENV)
        if override:
            return override.encode()
        stored = self.key_path.read_bytes().strip()
        if stored:
            return stored
        fresh = secrets.token_hex(32).encode()
        self.key_path.write_bytes(fresh)
        return fresh

    def _tail(self) -> tuple[int, str]:
        seq, last = 0, ""
        with open(self.path, "r") as f:
            for line in f:
                if line.strip():
                    raw = json.loads(line)
                    seq, last = int(raw.get("seq", seq + 1)), raw.get("event_hash", "")
        return seq, last

    def _link(self, payload: dict, prev_hash: str) -> str:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hmac.new(self._hmac_key, f"{prev_hash}|{canonical}".encode(), hashlib.sha256).hexdigest()

    def record(self, event: Event) -> AuditEvent:
        """Journal sink hook: append one committed event."""
        raw = event.to_dict()
        args = raw["args"]
        payload = {
            "seq": self._seq + 1,
            "event_type": raw["event_type"],
            "timestamp": raw["timestamp"],
            "contract": raw["contract"],
        }
        if args.get("order_id"):
            payload["order_id"] = args["order_id"]
        if args:
            payload["args"] = args

        event_hash = self._link(payload, self._last_hash)
        entry = AuditEvent(**payload, prev_hash=self._last_hash or None, event_hash=event_hash)
        with open(self.path, "a") as f:
            f.write(entry.to_json() + "\n")
            f.flush()
            os.fsync(f.fileno())

        self._seq, self._last_hash = entry.seq, event_hash
        return entry

    def _verified(self) -> Iterator[dict]:
        expected_prev, expected_seq = "", 1
        with open(self.path, "r") as f:
            for line in f:
                if not line.strip():
                    continue
                raw = json.loads(line)
                if (raw.get("prev_hash") or "") != expected_prev:
                    raise RuntimeError("Audit chain broken: previous hash mismatch")
                if raw.get("seq") != expected_seq:
                    raise RuntimeError(f"Audit chain broken: expected entry {expected_seq}")
                payload = {k: v for k, v in raw.items() if k not in _LINK_FIELDS}
                if not hmac.compare_digest(self._link(payload, expected_prev), raw.get("event_hash") or ""):
                    raise RuntimeError("Audit chain broken: event hash mismatch")
                expected_prev, expected_seq = raw["event_hash"], expected_seq + 1
                yield raw

    def verify(self) -> int:
        """Check the whole chain and return the number of entries."""
        return sum(1 for _ in self._verified())

    def read_events(
        self,
        order_id: Optional[str] = None,
        event_type: Optional[EventType] = None,
        contract: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        matches = [
            AuditEvent(**{k: v for k, v in raw.items() if k in AuditEvent.__dataclass_fields__})
            for raw in self._verified()
            if (order_id is None or raw.get("order_id") == order_id.lower())
            and (event_type is None or raw["event_type"] == event_type.value)
            and (contract is None or raw["contract"] == contract)
        ]
        return matches[-limit:] if limit > 0 else []

    def summary(self) -> dict:
        by_type: dict[str, int] = {}
        by_contract: dict[str, int] = {}
        last: Optional[dict] = None
        for raw in self._verified():
            by_type[raw["event_type"]] = by_type.get(raw["event_type"], 0) + 1
            by_contract[raw["contract"]] = by_contract.get(raw["contract"], 0) + 1
            last = raw
        return {
            "total_events": sum(by_type.values()),
            "by_type": by_type,
            "by_contract": by_contract,
            "last_event": json.dumps(last, separators=(",", ":")) if last else None,
        }
