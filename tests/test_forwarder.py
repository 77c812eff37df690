"""Tests for generic call forwarding."""

import pytest
from eth_account import Account

from intentwallet.abi import NULL_ADDRESS, encode_call
from intentwallet.chain import Chain
from intentwallet.errors import InvalidTargetError
from intentwallet.forwarder import CallForwarder
from intentwallet.token import ERC20Token
from intentwallet.wallet import IntentWallet


RECIPIENT = Account.create()


def _deploy():
    chain = Chain()
    wallet = chain.deploy(IntentWallet(), label="wallet")
    token = chain.deploy(ERC20Token(), label="token")
    token.mint(wallet.address, 50)
    return chain, wallet, token


def test_forwarded_call_runs_as_the_wallet():
    chain, wallet, token = _deploy()

    ok = wallet.forwarder.invoke(token.address, 0, encode_call("transfer(address,uint256)", [RECIPIENT.address, 20]))

    assert ok
    assert token.balance_of(RECIPIENT.address) == 20
    assert token.balance_of(wallet.address) == 30


def test_failed_call_reports_false_and_changes_nothing():
    chain, wallet, token = _deploy()

    ok = wallet.forwarder.invoke(token.address, 0, encode_call("transfer(address,uint256)", [RECIPIENT.address, 99]))

    assert not ok
    assert token.balance_of(wallet.address) == 50


def test_null_target_rejected():
    chain, wallet, token = _deploy()

    with pytest.raises(InvalidTargetError):
        wallet.forwarder.invoke(NULL_ADDRESS, 0, b"")


def test_malformed_target_rejected():
    chain, wallet, token = _deploy()

    with pytest.raises(InvalidTargetError):
        wallet.forwarder.invoke("0xnope", 0, b"")


def test_undeployed_account_cannot_forward():
    forwarder = CallForwarder(IntentWallet())

    with pytest.raises(RuntimeError, match="not deployed"):
        forwarder.invoke(RECIPIENT.address, 0, b"")
