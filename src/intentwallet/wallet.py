"""
The intent wallet account.

Wires the five components around one ``WalletState`` and exposes them both
as Python methods (caller passed as ``sender``) and as ABI functions the
chain can dispatch calldata to. Every mutating entry point runs as one chain
transaction: it either commits all writes and notifications or none.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from .abi import NULL_ADDRESS, normalize_address
from .approvals import ApprovalRegistry
from .authorization import AuthorizationStore
from .chain import Contract, external
from .executor import ExecutionResult, IntentExecutor, ProofVerifier
from .factory import IntentFactory
from .forwarder import CallForwarder
from .state import WalletState


class IntentWallet(Contract):
    """Owner-controlled account that settlers can ask to execute intents."""

    kind = "intent_wallet"

    def __init__(self, entry_point: str = NULL_ADDRESS, proof_verifier: Optional[ProofVerifier] = None):
        super().__init__()
        self.entry_point = normalize_address(entry_point)
        self.state = WalletState()
        self.auth = AuthorizationStore(self.state.owners, self.emit)
        self.registry = ApprovalRegistry(self.auth, self.state.approvals, self.emit)
        self.forwarder = CallForwarder(self)
        self.factory = IntentFactory(self, self.auth, self.registry, self.emit)
        self.executor = IntentExecutor(
            self.registry, self.state.executed, self.forwarder, self.emit, proof_verifier
        )

    def dump_storage(self) -> dict:
        return {"entry_point": self.entry_point, **self.state.dump()}

    def load_storage(self, data: Mapping[str, Any]) -> None:
        self.entry_point = normalize_address(data.get("entry_point", NULL_ADDRESS))
        self.state.load(data)

    @property
    def owners(self) -> list[str]:
        return self.auth.owners

    @property
    def threshold(self) -> int:
        return self.auth.threshold

    # ── Mutations ────────────────────────────────────────────────

    @external("setup(address[],uint256)")
    def setup(self, owners: Sequence[str], threshold: int, *, sender: str = NULL_ADDRESS) -> None:
        self.auth.setup(list(owners), int(threshold))

    @external("addOwner(address)")
    def add_owner(self, owner: str, *, sender: str) -> None:
        self.auth.add_owner(sender, owner)

    @external("setSettlerApproval(uint256,address,bool)")
    def set_settler_approval(self, network_id: int, settler: str, approved: bool, *, sender: str) -> None:
        self.registry.set_settler_approval(sender, network_id, settler, approved)

    @external("createIntent(uint256,address,uint256,address,bytes)", returns=("bytes32",))
    def create_intent(
        self,
        destination_network_id: int,
        token: str,
        amount: int,
        target: str,
        call_data: bytes = b"",
        *,
        sender: str,
    ) -> str:
        return self.factory.create_intent(sender, destination_network_id, token, amount, target, call_data)

    @external("executeIntent(bytes32,uint256,bytes,bytes)")
    def execute_intent(
        self,
        order_id,
        origin_network_id: int,
        origin_data: bytes,
        proof: bytes = b"",
        *,
        sender: str,
    ) -> ExecutionResult:
        return self.executor.execute_intent(sender, order_id, origin_network_id, origin_data, proof)

    # ── Views ────────────────────────────────────────────────────

    @external("executedIntents(bytes32)", returns=("bool",), view=True)
    def is_executed(self, order_id, *, sender: str = NULL_ADDRESS) -> bool:
        return self.executor.is_executed(order_id)

    @external("approvedSettlers(uint256,address)", returns=("bool",), view=True)
    def is_approved(self, network_id: int, settler: str, *, sender: str = NULL_ADDRESS) -> bool:
        return self.registry.is_approved(network_id, settler)

    @external("isOwner(address)", returns=("bool",), view=True)
    def is_owner(self, address: str, *, sender: str = NULL_ADDRESS) -> bool:
        return self.auth.is_owner(address)

    @external("getOwners()", returns=("address[]",), view=True)
    def get_owners(self, *, sender: str = NULL_ADDRESS) -> list[str]:
        return self.auth.owners

    @external("threshold()", returns=("uint256",), view=True)
    def get_threshold(self, *, sender: str = NULL_ADDRESS) -> int:
        return self.auth.threshold

    @external("entryPoint()", returns=("address",), view=True)
    def get_entry_point(self, *, sender: str = NULL_ADDRESS) -> str:
        return self.entry_point
