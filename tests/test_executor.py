"""Tests for inbound intent execution."""

import pytest
from eth_abi import decode
from eth_account import Account
from eth_utils import keccak

from intentwallet.abi import NULL_ADDRESS, encode_call, encode_origin_data
from intentwallet.chain import Chain, Contract, external
from intentwallet.errors import (
    ApprovalError,
    ExecutionError,
    InvalidCallDataError,
    InvalidTargetError,
    ReplayError,
)
from intentwallet.events import EventType
from intentwallet.token import ERC20Token
from intentwallet.wallet import IntentWallet


OWNER = Account.create()
SETTLER = Account.create()
OUTSIDER = Account.create()

OPTIMISM = 10
ARBITRUM = 42161
ONE_TOKEN = 10**18

ORDER_ID = "0x" + keccak(text="order-1").hex()


class ReentrantSettler(Contract):
    """Settler contract that calls back into the wallet with the order it is paid for."""

    kind = "test_reentrant_settler"

    def __init__(self):
        super().__init__()
        self.config = {}
        self.attempts = []

    def dump_storage(self):
        return {"config": dict(self.config), "attempts": list(self.attempts)}

    def load_storage(self, data):
        self.config = dict(data.get("config", {}))
        self.attempts = list(data.get("attempts", []))

    @external("reenter()")
    def reenter(self, *, sender):
        wallet = self.chain.get(self.config["wallet"])
        try:
            wallet.execute_intent(
                self.config["order_id"],
                self.config["network_id"],
                bytes.fromhex(self.config["origin_data"]),
                sender=self.address,
            )
        except ReplayError:
            if not self.config.get("catch", True):
                raise
            self.attempts.append("replay")
        else:
            self.attempts.append("executed")


class VerifierSpy:
    def __init__(self, reject=False):
        self.calls = []
        self.reject = reject

    def verify(self, order_id, origin_network_id, origin_data, proof):
        self.calls.append((order_id, origin_network_id, proof))
        if self.reject:
            raise ExecutionError("proof rejected")


def _deploy(proof_verifier=None):
    chain = Chain(clock=lambda: 1_700_000_000)
    wallet = chain.deploy(IntentWallet(proof_verifier=proof_verifier), label="wallet")
    token = chain.deploy(ERC20Token(), label="token")
    token.mint(wallet.address, 5 * ONE_TOKEN)
    wallet.setup([OWNER.address], 1)
    wallet.set_settler_approval(OPTIMISM, SETTLER.address, True, sender=OWNER.address)
    return chain, wallet, token


def _transfer_origin(token, to, amount):
    payload = encode_call("transfer(address,uint256)", [to, amount])
    return encode_origin_data(token.address, payload)


class TestExecuteIntent:
    def test_approved_settler_executes_transfer(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        result = wallet.execute_intent(ORDER_ID, OPTIMISM, origin, b"", sender=SETTLER.address)

        assert result.order_id == ORDER_ID
        assert result.target == token.address
        assert wallet.is_executed(ORDER_ID)
        assert token.balance_of(SETTLER.address) == ONE_TOKEN
        assert token.balance_of(wallet.address) == 4 * ONE_TOKEN

        executed = chain.journal.events_of(EventType.INTENT_EXECUTED)
        assert len(executed) == 1
        assert executed[0].args["order_id"] == ORDER_ID
        assert executed[0].args["target"] == token.address
        assert executed[0].args["payload"] == encode_call("transfer(address,uint256)", [SETTLER.address, ONE_TOKEN])

    def test_replay_rejected(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)
        wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        with pytest.raises(ReplayError) as exc_info:
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        assert exc_info.value.order_id == ORDER_ID
        assert token.balance_of(SETTLER.address) == ONE_TOKEN
        assert len(chain.journal.events_of(EventType.INTENT_EXECUTED)) == 1

    def test_replay_checked_before_settler_approval(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)
        wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        with pytest.raises(ReplayError):
            wallet.execute_intent(ORDER_ID, ARBITRUM, origin, sender=OUTSIDER.address)

    def test_order_id_accepts_bytes32(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        wallet.execute_intent(bytes.fromhex(ORDER_ID[2:]), OPTIMISM, origin, sender=SETTLER.address)

        assert wallet.is_executed(ORDER_ID.upper().replace("0X", "0x"))

    def test_unapproved_caller_rejected(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, OUTSIDER.address, ONE_TOKEN)

        with pytest.raises(ApprovalError) as exc_info:
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=OUTSIDER.address)

        assert exc_info.value.network_id == OPTIMISM
        assert not wallet.is_executed(ORDER_ID)
        assert token.balance_of(OUTSIDER.address) == 0

    def test_owner_is_not_implicitly_a_settler(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, OWNER.address, ONE_TOKEN)

        with pytest.raises(ApprovalError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=OWNER.address)

    def test_settler_approved_on_other_network_rejected(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        with pytest.raises(ApprovalError):
            wallet.execute_intent(ORDER_ID, ARBITRUM, origin, sender=SETTLER.address)

    def test_revoked_settler_rejected(self):
        chain, wallet, token = _deploy()
        wallet.set_settler_approval(OPTIMISM, SETTLER.address, False, sender=OWNER.address)
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        with pytest.raises(ApprovalError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

    def test_failed_call_leaves_order_retryable(self):
        chain, wallet, token = _deploy()
        overdraw = _transfer_origin(token, SETTLER.address, 10 * ONE_TOKEN)

        with pytest.raises(ExecutionError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, overdraw, sender=SETTLER.address)

        assert not wallet.is_executed(ORDER_ID)
        assert chain.journal.events_of(EventType.INTENT_EXECUTED) == []
        assert token.balance_of(wallet.address) == 5 * ONE_TOKEN

        token.mint(wallet.address, 5 * ONE_TOKEN)
        wallet.execute_intent(ORDER_ID, OPTIMISM, overdraw, sender=SETTLER.address)

        assert wallet.is_executed(ORDER_ID)
        assert token.balance_of(SETTLER.address) == 10 * ONE_TOKEN

    def test_null_target_rejected(self):
        chain, wallet, token = _deploy()
        origin = encode_origin_data(NULL_ADDRESS, b"")

        with pytest.raises(InvalidTargetError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        assert not wallet.is_executed(ORDER_ID)

    def test_malformed_origin_data_rejected(self):
        chain, wallet, token = _deploy()

        with pytest.raises(InvalidCallDataError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, b"\x01\x02", sender=SETTLER.address)

        assert not wallet.is_executed(ORDER_ID)

    def test_malformed_order_id_rejected(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        with pytest.raises(InvalidCallDataError):
            wallet.execute_intent("0x1234", OPTIMISM, origin, sender=SETTLER.address)

    def test_call_to_account_without_code_succeeds(self):
        chain, wallet, token = _deploy()
        origin = encode_origin_data(OUTSIDER.address, b"\xde\xad\xbe\xef")

        result = wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        assert result.payload == b"\xde\xad\xbe\xef"
        assert wallet.is_executed(ORDER_ID)

    def test_proof_is_ignored_by_default(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        wallet.execute_intent(ORDER_ID, OPTIMISM, origin, b"not a real proof", sender=SETTLER.address)

        assert wallet.is_executed(ORDER_ID)

    def test_custom_verifier_is_consulted(self):
        spy = VerifierSpy()
        chain, wallet, token = _deploy(proof_verifier=spy)
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        wallet.execute_intent(ORDER_ID, OPTIMISM, origin, b"\x01", sender=SETTLER.address)

        assert spy.calls == [(ORDER_ID, OPTIMISM, b"\x01")]

    def test_rejecting_verifier_blocks_execution(self):
        chain, wallet, token = _deploy(proof_verifier=VerifierSpy(reject=True))
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)

        with pytest.raises(ExecutionError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=SETTLER.address)

        assert not wallet.is_executed(ORDER_ID)
        assert token.balance_of(SETTLER.address) == 0


class TestReentrancy:
    def _arm(self, chain, wallet, catch):
        settler = chain.deploy(ReentrantSettler(), label="reentrant")
        wallet.set_settler_approval(OPTIMISM, settler.address, True, sender=OWNER.address)
        origin = encode_origin_data(settler.address, encode_call("reenter()"))
        settler.config = {
            "wallet": wallet.address,
            "order_id": ORDER_ID,
            "network_id": OPTIMISM,
            "origin_data": origin.hex(),
            "catch": catch,
        }
        return settler, origin

    def test_nested_execution_sees_order_as_executed(self):
        chain, wallet, token = _deploy()
        settler, origin = self._arm(chain, wallet, catch=True)

        wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=settler.address)

        assert settler.attempts == ["replay"]
        assert wallet.is_executed(ORDER_ID)
        assert len(chain.journal.events_of(EventType.INTENT_EXECUTED)) == 1

    def test_uncaught_nested_replay_fails_outer_call(self):
        chain, wallet, token = _deploy()
        settler, origin = self._arm(chain, wallet, catch=False)

        with pytest.raises(ExecutionError):
            wallet.execute_intent(ORDER_ID, OPTIMISM, origin, sender=settler.address)

        assert settler.attempts == []
        assert not wallet.is_executed(ORDER_ID)
        assert chain.journal.events_of(EventType.INTENT_EXECUTED) == []


class TestAbiDispatch:
    def test_settler_executes_through_calldata(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)
        order_bytes = bytes.fromhex(ORDER_ID[2:])

        chain.send(
            SETTLER.address,
            "wallet",
            encode_call("executeIntent(bytes32,uint256,bytes,bytes)", [order_bytes, OPTIMISM, origin, b""]),
        )

        result = chain.call(SETTLER.address, wallet.address, encode_call("executedIntents(bytes32)", [order_bytes]))
        assert result.success
        assert decode(["bool"], result.return_data) == (True,)
        assert token.balance_of(SETTLER.address) == ONE_TOKEN

    def test_replay_through_calldata_raises(self):
        chain, wallet, token = _deploy()
        origin = _transfer_origin(token, SETTLER.address, ONE_TOKEN)
        data = encode_call(
            "executeIntent(bytes32,uint256,bytes,bytes)",
            [bytes.fromhex(ORDER_ID[2:]), OPTIMISM, origin, b""],
        )
        chain.send(SETTLER.address, "wallet", data)

        with pytest.raises(ReplayError):
            chain.send(SETTLER.address, "wallet", data)

    def test_create_intent_returns_order_id_bytes(self):
        chain, wallet, token = _deploy()

        raw = chain.send(
            OWNER.address,
            "wallet",
            encode_call(
                "createIntent(uint256,address,uint256,address,bytes)",
                [OPTIMISM, token.address, 100, SETTLER.address, b""],
            ),
        )

        (order_bytes,) = decode(["bytes32"], raw)
        created = chain.journal.events_of(EventType.INTENT_CREATED)[0]
        assert "0x" + order_bytes.hex() == created.args["order_id"]
