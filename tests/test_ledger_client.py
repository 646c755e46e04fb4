"""
Tests for ledger/client.py with a mocked AsyncWeb3 instance.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from errors.exceptions import BroadcastFailure, LedgerError
from ledger.client import LedgerClient, SEND_RAW_TRANSACTION_SYNC

ADDRESS = "0x000000000000000000000000000000000000bEEF"


async def _value(v):
    return v


@pytest.fixture
def w3():
    mock = MagicMock()
    mock.eth.get_transaction_count = AsyncMock(return_value=7)
    mock.eth.estimate_gas = AsyncMock(return_value=21_016)
    mock.eth.get_balance = AsyncMock(return_value=5 * 10 ** 17)
    mock.provider.make_request = AsyncMock(
        return_value={"jsonrpc": "2.0", "id": 1, "result": {"status": "0x1"}}
    )
    mock.is_connected = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def client(w3):
    return LedgerClient(w3=w3, block_tag="pending")


@pytest.mark.asyncio
async def test_queries_return_ints(client, w3):
    w3.eth.gas_price = _value(3_000_000)

    assert await client.get_transaction_count(ADDRESS) == 7
    assert await client.get_gas_price() == 3_000_000
    assert await client.estimate_gas({"to": ADDRESS}) == 21_016
    assert await client.get_balance(ADDRESS) == 5 * 10 ** 17

    w3.eth.get_transaction_count.assert_awaited_once_with(ADDRESS, "pending")


@pytest.mark.asyncio
async def test_query_failure_raises_ledger_error(client, w3):
    w3.eth.get_transaction_count.side_effect = ConnectionError("connection refused")

    with pytest.raises(LedgerError) as exc_info:
        await client.get_transaction_count(ADDRESS)
    assert exc_info.value.code == "LEDGER_ERROR"


@pytest.mark.asyncio
async def test_broadcast_uses_sync_rpc_method(client, w3):
    result = await client.send_raw_transaction_sync(b"\x01\x02")

    assert result == {"status": "0x1"}
    w3.provider.make_request.assert_awaited_once_with(SEND_RAW_TRANSACTION_SYNC, ["0x0102"])
    assert SEND_RAW_TRANSACTION_SYNC == "eth_sendRawTransactionSync"


@pytest.mark.asyncio
async def test_broadcast_rpc_error_raises_broadcast_failure(client, w3):
    w3.provider.make_request.return_value = {
        "jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"}
    }

    with pytest.raises(BroadcastFailure) as exc_info:
        await client.send_raw_transaction_sync(b"\x01")
    assert "nonce too low" in exc_info.value.message


@pytest.mark.asyncio
async def test_broadcast_transport_error_raises_broadcast_failure(client, w3):
    w3.provider.make_request.side_effect = TimeoutError("timed out")

    with pytest.raises(BroadcastFailure):
        await client.send_raw_transaction_sync(b"\x01")


@pytest.mark.asyncio
async def test_is_connected_swallows_transport_errors(client, w3):
    assert await client.is_connected() is True

    w3.is_connected.side_effect = OSError("unreachable")
    assert await client.is_connected() is False
