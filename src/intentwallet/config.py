"""Environment-driven configuration and per-network deployment settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .abi import normalize_address
from .errors import ConfigError


DEFAULT_HOME = Path.home() / ".intent-wallet"
DEFAULT_NETWORK = "hardhat"

NETWORKS = {
    "hardhat": 31337,
    "optimism": 10,
    "arbitrum": 42161,
    "base": 8453,
    "sepolia": 11155111,
    "optimism-sepolia": 11155420,
}

# Canonical ERC-4337 entry point per production network.
ENTRY_POINTS = {
    "optimism": "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789",
}


@dataclass
class WalletConfig:
    """Where local state lives and which network the CLI targets."""

    home: Path = DEFAULT_HOME
    state_path: Optional[Path] = None
    audit_path: Optional[Path] = None
    audit_key_path: Optional[Path] = None
    network: str = DEFAULT_NETWORK
    webhook_url: Optional[str] = None

    def __post_init__(self) -> None:
        self.home = Path(self.home)
        if self.state_path is None:
            self.state_path = self.home / "chain_state.json"
        if self.audit_path is None:
            self.audit_path = self.home / "audit.jsonl"
        if self.audit_key_path is None:
            self.audit_key_path = self.home.parent / ".intent-wallet-secrets" / "audit_hmac.key"
        if self.network not in NETWORKS:
            raise ConfigError(f"Unknown network: {self.network} (known: {', '.join(sorted(NETWORKS))})")

    @property
    def chain_id(self) -> int:
        return NETWORKS[self.network]

    @classmethod
    def from_env(cls) -> "WalletConfig":
        home = Path(os.getenv("INTENT_WALLET_HOME") or Path.home() / ".intent-wallet")
        state = os.getenv("INTENT_WALLET_STATE_PATH")
        audit = os.getenv("INTENT_WALLET_AUDIT_PATH")
        return cls(
            home=home,
            state_path=Path(state) if state else None,
            audit_path=Path(audit) if audit else None,
            network=os.getenv("INTENT_WALLET_NETWORK", DEFAULT_NETWORK),
            webhook_url=os.getenv("INTENT_WALLET_WEBHOOK_URL") or None,
        )


def uses_mock_entry_point(network: str) -> bool:
    """Local and test networks get a freshly deployed entry point."""
    return network == "hardhat" or "sepolia" in network


def resolve_entry_point(network: str) -> str:
    """Return the canonical entry point address for a production network."""
    address = ENTRY_POINTS.get(network)
    if address is None:
        raise ConfigError(f"No EntryPoint address configured for network: {network}")
    return normalize_address(address)
