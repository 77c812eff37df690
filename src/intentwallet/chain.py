"""
Local chain: contract registry, call dispatch, and nested transactions.

Contracts keep their storage in plain JSON-compatible containers. A
transaction snapshots every contract's storage plus the pending event
journal; if the unit raises, all of it is restored. Low-level calls run in
their own nested transaction and report failure as a flag instead of raising,
the way an EVM ``call`` does.
"""

from __future__ import annotations

import copy
import functools
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Iterator, Mapping, Optional

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .abi import NULL_ADDRESS, decode_call_args, normalize_address, selector
from .errors import CallRevertedError, StateStoreError
from .events import Event, EventJournal, EventType

logger = logging.getLogger(__name__)


DEFAULT_CHAIN_ID = 31337


@dataclass
class CallResult:
    """Outcome of a low-level call. Revert reasons are never surfaced."""

    success: bool
    return_data: bytes = b""


def external(signature: str, returns: tuple[str, ...] = (), view: bool = False):
    """Expose a contract method under a Solidity-style signature.

    Mutating methods run inside a chain transaction when called directly from
    Python, so a raised error rolls back everything the method touched.
    """

    def decorator(fn: Callable) -> Callable:
        if view:
            wrapper = fn
        else:
            @functools.wraps(fn)
            def wrapper(self, *args, **kwargs):
                with self.chain.transaction():
                    return fn(self, *args, **kwargs)

        wrapper.abi_signature = signature
        wrapper.abi_returns = tuple(returns)
        return wrapper

    return decorator


class Contract:
    """Base class for everything deployed on a ``Chain``."""

    kind: ClassVar[str] = "contract"
    registry: ClassVar[dict[str, type["Contract"]]] = {}
    _abi: ClassVar[dict[bytes, tuple[str, str, tuple[str, ...]]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        table: dict[bytes, tuple[str, str, tuple[str, ...]]] = {}
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                signature = getattr(member, "abi_signature", None)
                if signature is not None:
                    table[selector(signature)] = (name, signature, member.abi_returns)
        cls._abi = table
        if "kind" in cls.__dict__:
            Contract.registry[cls.kind] = cls

    def __init__(self) -> None:
        self.chain: Optional[Chain] = None
        self.address: str = NULL_ADDRESS

    def dump_storage(self) -> dict:
        raise NotImplementedError

    def load_storage(self, data: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def dispatch(self, sender: str, data: bytes) -> bytes:
        entry = self._abi.get(bytes(data[:4]))
        if entry is None:
            raise CallRevertedError(
                f"{self.kind} at {self.address} has no function for selector 0x{bytes(data[:4]).hex()}"
            )
        name, signature, returns = entry
        args = decode_call_args(signature, bytes(data[4:]))
        result = getattr(self, name)(*args, sender=sender)
        if not returns:
            return b""
        values = list(result) if len(returns) > 1 else [result]
        return encode(list(returns), [_abi_value(t, v) for t, v in zip(returns, values)])

    def emit(self, event_type: EventType, **args: Any) -> Event:
        if self.chain is None:
            raise RuntimeError(f"{self.kind} is not deployed")
        return self.chain.journal.emit(
            Event(event_type=event_type, contract=self.address, timestamp=self.chain.timestamp, args=args)
        )


def _abi_value(abi_type: str, value: Any) -> Any:
    # bytes32 values travel through Python as 0x-prefixed hex strings
    if abi_type == "bytes32" and isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return value


class Chain:
    """In-process chain holding contracts and the event journal."""

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, clock: Optional[Callable[[], float]] = None):
        self.chain_id = int(chain_id)
        self.contracts: dict[str, Contract] = {}
        self.labels: dict[str, str] = {}
        self.journal = EventJournal()
        self._clock = clock or time.time
        self._deploy_nonce = 0
        self._depth = 0

    @property
    def timestamp(self) -> int:
        return int(self._clock())

    def deploy(self, contract: Contract, deployer: str = NULL_ADDRESS, label: Optional[str] = None) -> Contract:
        address = self._next_address(deployer)
        contract.chain = self
        contract.address = address
        self.contracts[address] = contract
        if label:
            self.labels[label] = address
        logger.info("Deployed %s at %s", contract.kind, address)
        return contract

    def get(self, address: str) -> Optional[Contract]:
        return self.contracts.get(normalize_address(address))

    def resolve(self, label_or_address: str) -> Contract:
        address = self.labels.get(label_or_address, label_or_address)
        try:
            contract = self.get(address)
        except ValueError:
            contract = None
        if contract is None:
            raise KeyError(f"No contract deployed at {label_or_address}")
        return contract

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot = self._snapshot()
        mark = self.journal.mark()
        self._depth += 1
        try:
            yield
        except Exception:
            self._restore(snapshot)
            self.journal.rollback(mark)
            raise
        finally:
            self._depth -= 1
        if self._depth == 0:
            self.journal.commit()

    def call(self, sender: str, target: str, data: bytes = b"", value: int = 0) -> CallResult:
        """Low-level call: never raises for a callee failure.

        ``value`` is accepted for interface parity; the local chain keeps no
        native balances.
        """
        if value < 0:
            raise ValueError("value must be >= 0")
        contract = self.get(target)
        if contract is None:
            return CallResult(success=True)
        try:
            with self.transaction():
                return_data = contract.dispatch(normalize_address(sender), bytes(data))
        except Exception as exc:
            logger.debug("Call %s -> %s reverted: %s", sender, target, exc)
            return CallResult(success=False)
        return CallResult(success=True, return_data=return_data)

    def send(self, sender: str, target: str, data: bytes) -> bytes:
        """Top-level transaction from an external account; errors propagate."""
        contract = self.resolve(target)
        with self.transaction():
            return contract.dispatch(normalize_address(sender), bytes(data))

    def _next_address(self, deployer: str) -> str:
        self._deploy_nonce += 1
        seed = f"{normalize_address(deployer)}:{self.chain_id}:{self._deploy_nonce}".encode()
        return to_checksum_address(keccak(seed)[-20:])

    def _snapshot(self) -> dict[str, dict]:
        return {address: copy.deepcopy(c.dump_storage()) for address, c in self.contracts.items()}

    def _restore(self, snapshot: dict[str, dict]) -> None:
        for address in [a for a in self.contracts if a not in snapshot]:
            del self.contracts[address]
        self.labels = {k: v for k, v in self.labels.items() if v in self.contracts}
        for address, storage in snapshot.items():
            self.contracts[address].load_storage(storage)

    def to_dict(self) -> dict:
        return {
            "chain_id": self.chain_id,
            "deploy_nonce": self._deploy_nonce,
            "labels": dict(self.labels),
            "contracts": {
                address: {"kind": c.kind, "storage": c.dump_storage()}
                for address, c in self.contracts.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], clock: Optional[Callable[[], float]] = None) -> "Chain":
        chain = cls(chain_id=int(data.get("chain_id", DEFAULT_CHAIN_ID)), clock=clock)
        chain._deploy_nonce = int(data.get("deploy_nonce", 0))
        for address, entry in data.get("contracts", {}).items():
            contract_cls = Contract.registry.get(entry.get("kind", ""))
            if contract_cls is None:
                raise StateStoreError(f"Unknown contract kind in state: {entry.get('kind')}")
            contract = contract_cls()
            contract.load_storage(entry.get("storage", {}))
            contract.chain = chain
            contract.address = normalize_address(address)
            chain.contracts[contract.address] = contract
        chain.labels = {k: normalize_address(v) for k, v in data.get("labels", {}).items()}
        return chain
