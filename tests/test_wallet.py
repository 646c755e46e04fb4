"""
Unit-tests for wallet.wallet
Run with:  pytest -q
"""

from __future__ import annotations
import importlib
import json

import pytest
from cryptography.exceptions import InvalidTag
from eth_account import Account

from errors.exceptions import SigningError

wallet = importlib.import_module("wallet.wallet")   # wallet/wallet.py

# Throwaway key, never funded
TEST_KEY = "0x" + "11" * 32


# --------------------------------------------------------------------------
#  Shared fixtures
# --------------------------------------------------------------------------
@pytest.fixture(scope="session")
def password() -> str:
    return "S3cr3t-pw-for-tests"


@pytest.fixture
def wallet_json(password: str) -> dict:
    """Fresh in-memory wallet for tests that don’t need disk I/O."""
    return wallet.generate_wallet(password)


@pytest.fixture
def legacy_tx() -> dict:
    address = Account.from_key(TEST_KEY).address
    return {
        "to": address,
        "value": 0,
        "data": "0x01",
        "nonce": 7,
        "gasPrice": 1_000_000_000,
        "gas": 21_016,
        "chainId": 11155931,
    }


# --------------------------------------------------------------------------
#  Keyfile
# --------------------------------------------------------------------------
def test_generate_unlock_roundtrip(wallet_json: dict, password: str):
    """Encrypted wallet → unlock → key that controls the stored address."""
    plain = wallet.unlock_wallet(wallet_json, password)

    assert plain["address"] == wallet_json["address"]
    assert len(plain["privateKey"]) == 64
    assert Account.from_key(plain["privateKey"]).address == wallet_json["address"]
    assert "privateKey" not in wallet_json


def test_unlock_with_wrong_password_fails(wallet_json: dict):
    with pytest.raises(InvalidTag):
        wallet.unlock_wallet(wallet_json, "not-the-password")


def test_get_or_create_wallet_persists(tmp_path, password: str):
    fname = tmp_path / "burner.json"

    created = wallet.get_or_create_wallet(str(fname), password)
    assert fname.exists()
    on_disk = json.loads(fname.read_text())
    assert on_disk["address"] == created["address"]

    reloaded = wallet.get_or_create_wallet(str(fname), password)
    assert reloaded == created


def test_get_or_create_wallet_requires_password(tmp_path):
    with pytest.raises(ValueError):
        wallet.get_or_create_wallet(str(tmp_path / "burner.json"), None)


# --------------------------------------------------------------------------
#  Signer
# --------------------------------------------------------------------------
def test_signer_from_explicit_key():
    signer = wallet.BurnerSigner.from_config(burner_key=TEST_KEY)
    assert signer.address == Account.from_key(TEST_KEY).address


def test_signer_from_keyfile(tmp_path, password: str):
    fname = str(tmp_path / "burner.json")
    plain = wallet.get_or_create_wallet(fname, password)

    signer = wallet.BurnerSigner.from_config(wallet_file=fname, password=password)
    assert signer.address == plain["address"]


@pytest.mark.asyncio
async def test_sign_legacy_transaction(legacy_tx: dict):
    signer = wallet.BurnerSigner(TEST_KEY)

    signed = await signer.sign_transaction(legacy_tx)

    # legacy transactions are a bare RLP list, typed ones start with the type byte
    assert signed.raw[0] >= 0xc0
    assert signed.tx_hash.startswith("0x") and len(signed.tx_hash) == 66
    assert Account.recover_transaction(signed.raw) == signer.address


@pytest.mark.asyncio
async def test_signing_is_deterministic_per_nonce(legacy_tx: dict):
    signer = wallet.BurnerSigner(TEST_KEY)

    first = await signer.sign_transaction(legacy_tx)
    second = await signer.sign_transaction(dict(legacy_tx))

    assert first == second


@pytest.mark.asyncio
async def test_sign_invalid_transaction_raises_signing_error(legacy_tx: dict):
    signer = wallet.BurnerSigner(TEST_KEY)
    legacy_tx["to"] = "not-an-address"

    with pytest.raises(SigningError) as exc_info:
        await signer.sign_transaction(legacy_tx)
    assert exc_info.value.code == "SIGNING_ERROR"
