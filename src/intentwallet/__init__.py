"""
Intent wallet: authorization and settlement core for intent-based accounts.

Owners trust settlers per network → create intents that grant a spend
allowance → an approved settler triggers each execution at most once.
"""

__version__ = "0.1.0"

from .abi import (
    NULL_ADDRESS,
    compute_order_id,
    decode_origin_data,
    encode_call,
    encode_origin_data,
    normalize_address,
)
from .approvals import ApprovalRegistry
from .audit import AuditTrail
from .authorization import AuthorizationStore
from .chain import CallResult, Chain, Contract, external
from .chain_store import LocalChainStore
from .config import WalletConfig
from .entry_point import EntryPoint
from .events import Event, EventJournal, EventType
from .executor import AcceptAnyProof, ExecutionResult, IntentExecutor, ProofVerifier
from .factory import Intent, IntentFactory
from .forwarder import CallForwarder
from .state import ApprovalStore, ExecutedSet, OwnerStore, WalletState
from .token import ERC20Token
from .wallet import IntentWallet

__all__ = [
    "NULL_ADDRESS", "compute_order_id", "decode_origin_data", "encode_call",
    "encode_origin_data", "normalize_address",
    "AuthorizationStore", "ApprovalRegistry", "IntentFactory", "Intent",
    "IntentExecutor", "ExecutionResult", "ProofVerifier", "AcceptAnyProof",
    "CallForwarder", "IntentWallet",
    "Chain", "Contract", "CallResult", "external", "LocalChainStore",
    "ERC20Token", "EntryPoint",
    "WalletState", "OwnerStore", "ApprovalStore", "ExecutedSet",
    "Event", "EventJournal", "EventType", "AuditTrail", "WalletConfig",
]
