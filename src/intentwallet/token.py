"""ERC-20 style token contract and the approval primitive the wallet relies on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from .abi import NULL_ADDRESS, encode_call, normalize_address
from .chain import Contract, external
from .errors import CallRevertedError

if TYPE_CHECKING:
    from .chain import Chain


APPROVE_SIGNATURE = "approve(address,uint256)"
TRANSFER_SIGNATURE = "transfer(address,uint256)"


class ERC20Token(Contract):
    """Minimal fungible token with balances and allowances in base units."""

    kind = "erc20"

    def __init__(self, name: str = "Test Token", symbol: str = "TEST", decimals: int = 18):
        super().__init__()
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[str, dict[str, int]] = {}

    def dump_storage(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": str(self.total_supply),
            "balances": {a: str(v) for a, v in self._balances.items()},
            "allowances": {
                owner: {spender: str(v) for spender, v in spenders.items()}
                for owner, spenders in self._allowances.items()
            },
        }

    def load_storage(self, data: Mapping[str, Any]) -> None:
        self.name = str(data.get("name", self.name))
        self.symbol = str(data.get("symbol", self.symbol))
        self.decimals = int(data.get("decimals", self.decimals))
        self.total_supply = int(data.get("total_supply", 0))
        self._balances = {a: int(v) for a, v in data.get("balances", {}).items()}
        self._allowances = {
            owner: {spender: int(v) for spender, v in spenders.items()}
            for owner, spenders in data.get("allowances", {}).items()
        }

    def mint(self, to: str, amount: int) -> None:
        recipient = normalize_address(to)
        if recipient == NULL_ADDRESS:
            raise CallRevertedError("Cannot mint to the null address")
        with self.chain.transaction():
            self._balances[recipient] = self._balances.get(recipient, 0) + int(amount)
            self.total_supply += int(amount)

    @external("balanceOf(address)", returns=("uint256",), view=True)
    def balance_of(self, account: str, *, sender: str = NULL_ADDRESS) -> int:
        return self._balances.get(normalize_address(account), 0)

    @external("allowance(address,address)", returns=("uint256",), view=True)
    def allowance(self, owner: str, spender: str, *, sender: str = NULL_ADDRESS) -> int:
        return self._allowances.get(normalize_address(owner), {}).get(normalize_address(spender), 0)

    @external(APPROVE_SIGNATURE, returns=("bool",))
    def approve(self, spender: str, amount: int, *, sender: str) -> bool:
        spender = normalize_address(spender)
        if spender == NULL_ADDRESS:
            raise CallRevertedError("Cannot approve the null address")
        self._allowances.setdefault(normalize_address(sender), {})[spender] = int(amount)
        return True

    @external(TRANSFER_SIGNATURE, returns=("bool",))
    def transfer(self, to: str, amount: int, *, sender: str) -> bool:
        self._move(normalize_address(sender), normalize_address(to), int(amount))
        return True

    @external("transferFrom(address,address,uint256)", returns=("bool",))
    def transfer_from(self, owner: str, to: str, amount: int, *, sender: str) -> bool:
        owner = normalize_address(owner)
        spender = normalize_address(sender)
        allowed = self._allowances.get(owner, {}).get(spender, 0)
        if allowed < int(amount):
            raise CallRevertedError(f"Allowance {allowed} below {amount}")
        self._allowances[owner][spender] = allowed - int(amount)
        self._move(owner, normalize_address(to), int(amount))
        return True

    def _move(self, source: str, to: str, amount: int) -> None:
        if to == NULL_ADDRESS:
            raise CallRevertedError("Cannot transfer to the null address")
        balance = self._balances.get(source, 0)
        if balance < amount:
            raise CallRevertedError(f"Balance {balance} below {amount}")
        self._balances[source] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount


def request_approval(chain: "Chain", owner: str, token: str, spender: str, amount: int) -> bool:
    """Have ``owner`` call ``token.approve(spender, amount)``.

    A revert or an explicit ``false`` counts as refusal; empty return data is
    accepted for tokens that do not return a value. An address without a
    contract is refused.
    """
    if chain.get(token) is None:
        return False
    result = chain.call(owner, token, encode_call(APPROVE_SIGNATURE, [spender, int(amount)]))
    if not result.success:
        return False
    if not result.return_data:
        return True
    try:
        (approved,) = decode(["bool"], result.return_data)
    except DecodingError:
        return False
    return bool(approved)
