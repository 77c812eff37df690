"""File-backed persistence for the local chain with lock-based concurrency control."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from .chain import DEFAULT_CHAIN_ID, Chain
from .errors import StateStoreError
from .storage import atomic_write_json, ensure_private_dir, exclusive_lock

# Imported for their contract kind registration.
from . import entry_point as _entry_point  # noqa: F401
from . import token as _token  # noqa: F401
from . import wallet as _wallet  # noqa: F401

logger = logging.getLogger(__name__)


class LocalChainStore:
    """
    Stores every contract's storage as one JSON document.

    ``session()`` holds an exclusive lock across load, use, and save, so two
    CLI invocations never interleave their writes.
    """

    def __init__(self, path: Path, clock: Optional[Callable[[], float]] = None):
        self.path = Path(path)
        ensure_private_dir(self.path.parent)
        self._lock_path = self.path.parent / f".{self.path.name}.lock"
        self._clock = clock

    @property
    def exists(self) -> bool:
        return self.path.exists() and self.path.stat().st_size > 0

    def load(self) -> Chain:
        if not self.exists:
            raise StateStoreError(f"No chain state at {self.path}; run `intent-wallet deploy` first")
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise StateStoreError(f"Corrupt chain state at {self.path}: {exc}") from exc
        return Chain.from_dict(raw, clock=self._clock)

    def save(self, chain: Chain) -> None:
        atomic_write_json(self.path, chain.to_dict())

    @contextmanager
    def session(self, create: bool = False, chain_id: int = DEFAULT_CHAIN_ID) -> Iterator[Chain]:
        """Load (or create) the chain, yield it, and save it if the block succeeds."""
        with exclusive_lock(self._lock_path):
            if create:
                if self.exists:
                    raise StateStoreError(f"Chain state already exists at {self.path}")
                chain = Chain(chain_id=chain_id, clock=self._clock)
            else:
                chain = self.load()
            yield chain
            self.save(chain)
            logger.debug("Saved chain state to %s", self.path)
