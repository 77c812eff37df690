"""Tests for the local chain: transactions, low-level calls, and serialization."""

import pytest
from eth_abi import decode
from eth_account import Account

from intentwallet.abi import encode_call
from intentwallet.chain import Chain, Contract
from intentwallet.errors import CallRevertedError, StateStoreError
from intentwallet.events import EventType
from intentwallet.token import ERC20Token
from intentwallet.wallet import IntentWallet


OWNER = Account.create()
ALICE = Account.create()


def _token_chain():
    chain = Chain(clock=lambda: 1_700_000_000)
    token = chain.deploy(ERC20Token(), label="token")
    token.mint(ALICE.address, 100)
    return chain, token


class TestTransactions:
    def test_failed_unit_restores_storage(self):
        chain, token = _token_chain()

        with pytest.raises(CallRevertedError):
            with chain.transaction():
                token.transfer(OWNER.address, 40, sender=ALICE.address)
                token.transfer(OWNER.address, 500, sender=ALICE.address)

        assert token.balance_of(ALICE.address) == 100
        assert token.balance_of(OWNER.address) == 0

    def test_events_released_only_at_outermost_commit(self):
        chain = Chain()
        wallet = chain.deploy(IntentWallet())
        received = []

        class Sink:
            def record(self, event):
                received.append(event.event_type)

        chain.journal.subscribe(Sink())
        with chain.transaction():
            wallet.setup([OWNER.address], 1)
            assert received == []
            assert len(chain.journal.pending) == 3

        assert received == [EventType.OWNER_ADDED, EventType.THRESHOLD_CHANGED, EventType.WALLET_SETUP]
        assert chain.journal.pending == []

    def test_rollback_discards_pending_events(self):
        chain = Chain()
        wallet = chain.deploy(IntentWallet())

        with pytest.raises(RuntimeError):
            with chain.transaction():
                wallet.setup([OWNER.address], 1)
                raise RuntimeError("abort")

        assert chain.journal.events == []
        assert wallet.owners == []

    def test_deploy_inside_failed_unit_is_undone(self):
        chain = Chain()

        with pytest.raises(RuntimeError):
            with chain.transaction():
                token = chain.deploy(ERC20Token(), label="doomed")
                raise RuntimeError("abort")

        assert chain.get(token.address) is None
        assert "doomed" not in chain.labels


class TestCalls:
    def test_call_reports_failure_without_raising(self):
        chain, token = _token_chain()

        result = chain.call(ALICE.address, token.address, encode_call("transfer(address,uint256)", [OWNER.address, 500]))

        assert not result.success
        assert result.return_data == b""
        assert token.balance_of(ALICE.address) == 100

    def test_call_returns_abi_encoded_result(self):
        chain, token = _token_chain()

        result = chain.call(OWNER.address, token.address, encode_call("balanceOf(address)", [ALICE.address]))

        assert result.success
        assert decode(["uint256"], result.return_data) == (100,)

    def test_unknown_selector_reverts(self):
        chain, token = _token_chain()

        with pytest.raises(CallRevertedError, match="no function for selector"):
            chain.send(ALICE.address, "token", b"\x12\x34\x56\x78")
        assert not chain.call(ALICE.address, token.address, b"\x12\x34\x56\x78").success

    def test_call_to_address_without_contract_succeeds(self):
        chain = Chain()

        assert chain.call(OWNER.address, ALICE.address, b"\x01").success

    def test_negative_value_rejected(self):
        chain, token = _token_chain()

        with pytest.raises(ValueError):
            chain.call(OWNER.address, token.address, b"", value=-1)

    def test_resolve_unknown_label(self):
        chain = Chain()

        with pytest.raises(KeyError):
            chain.resolve("wallet")

    def test_resolve_unknown_address(self):
        chain = Chain()

        with pytest.raises(KeyError):
            chain.resolve(ALICE.address)


class TestSerialization:
    def test_round_trip_preserves_contracts_and_labels(self):
        chain, token = _token_chain()
        wallet = chain.deploy(IntentWallet(), label="wallet")
        wallet.setup([OWNER.address], 1)
        wallet.set_settler_approval(10, ALICE.address, True, sender=OWNER.address)

        restored = Chain.from_dict(chain.to_dict())

        restored_wallet = restored.resolve("wallet")
        assert isinstance(restored_wallet, IntentWallet)
        assert restored_wallet.owners == [OWNER.address]
        assert restored_wallet.is_approved(10, ALICE.address)
        assert restored.resolve("token").balance_of(ALICE.address) == 100

    def test_addresses_stay_unique_after_restore(self):
        chain, token = _token_chain()
        restored = Chain.from_dict(chain.to_dict())

        fresh = restored.deploy(ERC20Token())

        assert fresh.address != token.address

    def test_unknown_contract_kind_rejected(self):
        data = {"contracts": {ALICE.address: {"kind": "mystery", "storage": {}}}}

        with pytest.raises(StateStoreError, match="Unknown contract kind"):
            Chain.from_dict(data)

    def test_subclasses_register_by_kind(self):
        assert Contract.registry["intent_wallet"] is IntentWallet
        assert Contract.registry["erc20"] is ERC20Token
