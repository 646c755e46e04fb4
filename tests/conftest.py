# tests/conftest.py
"""
Shared fixtures for the test suite.

Key design points
─────────────────
1.  Make project-root importable so `from txpool.pool import …` works no
    matter where pytest is launched.
2.  Provide an in-memory ledger and signer so no test touches the network
    or needs a funded account.
3.  The fake signer can be held on a gate to keep a refill "in flight", and
    switched to failing mode to exercise refill and priming failures.
"""

from __future__ import annotations
import asyncio
import pathlib
import sys
import pytest

# ─────────────────────────────────────────────────────────────────────────────
#  Ensure the repo root is on sys.path
# ─────────────────────────────────────────────────────────────────────────────
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Only now import modules that live in the repo
from errors.exceptions import BroadcastFailure, LedgerError, SigningError
from txpool.pool import PreSignedPool
from wallet.wallet import SignedTx

ADDRESS = "0x000000000000000000000000000000000000bEEF"
START_NONCE = 42
GAS_PRICE = 1_000_000_000
GAS_LIMIT = 21_016


# ─────────────────────────────── fake signer ────────────────────────────────
class FakeSigner:
    """Records every transaction it is asked to sign."""

    def __init__(self, address: str = ADDRESS):
        self.address = address
        self.requested: list[dict] = []     # every call, including failed ones
        self.signed: list[int] = []         # nonces that were actually signed
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def sign_transaction(self, tx: dict) -> SignedTx:
        self.requested.append(tx)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SigningError(f"Failed to sign transaction with nonce {tx['nonce']}")
        self.signed.append(tx["nonce"])
        return SignedTx(
            raw=f"signed:{tx['nonce']}".encode(),
            tx_hash=f"0x{tx['nonce']:064x}",
        )

    def requested_nonces(self) -> list[int]:
        return [tx["nonce"] for tx in self.requested]


# ─────────────────────────────── fake ledger ────────────────────────────────
class FakeLedger:
    """In-memory stand-in for ledger.client.LedgerClient."""

    def __init__(self, nonce: int = START_NONCE):
        self.nonce = nonce
        self.gas_price = GAS_PRICE
        self.gas_limit = GAS_LIMIT
        self.balance = 10 ** 18
        self.connected = True
        self.fail_queries = False
        self.fail_broadcast = False
        self.estimated: list[dict] = []
        self.broadcasts: list[bytes] = []
        self.closed = False

    async def get_transaction_count(self, address: str) -> int:
        if self.fail_queries:
            raise LedgerError("Could not read transaction count: connection refused")
        return self.nonce

    async def get_gas_price(self) -> int:
        if self.fail_queries:
            raise LedgerError("Could not read gas price: connection refused")
        return self.gas_price

    async def estimate_gas(self, tx: dict) -> int:
        self.estimated.append(tx)
        return self.gas_limit

    async def get_balance(self, address: str) -> int:
        return self.balance

    async def is_connected(self) -> bool:
        return self.connected

    async def send_raw_transaction_sync(self, raw: bytes) -> dict:
        if self.fail_broadcast:
            raise BroadcastFailure("Broadcast rejected: nonce too low")
        self.broadcasts.append(raw)
        return {"status": "0x1"}

    async def close(self):
        self.closed = True


# ─────────────────────────────── fixtures ───────────────────────────────────
@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def pool(signer, ledger):
    """Fresh, unprimed pool: batch of 10, low-water mark 5."""
    return PreSignedPool(signer, ledger, chain_id=11155931, batch_size=10,
                         low_water_fraction=0.5, refill_trigger="interval")


@pytest.fixture
def events():
    """Async callback that records (event_type, data) pairs."""
    recorded: list[tuple[str, dict]] = []

    async def _record(event_type: str, data: dict):
        recorded.append((event_type, data))

    _record.recorded = recorded
    return _record
