"""
Async JSON-RPC client for the test network
"""

import logging
from typing import Any, Dict

import aiohttp
from web3 import AsyncWeb3
from web3.types import RPCEndpoint

from config.config import RPC_URL, RPC_TIMEOUT, BLOCK_TAG
from errors.exceptions import LedgerError, BroadcastFailure

logger = logging.getLogger(__name__)

SEND_RAW_TRANSACTION_SYNC = RPCEndpoint("eth_sendRawTransactionSync")


class LedgerClient:
    """
    Thin wrapper over AsyncWeb3 exposing only the calls the game needs.

    Query failures are raised as LedgerError; a rejected or failed
    synchronous broadcast is raised as BroadcastFailure.
    """

    def __init__(self, rpc_url: str = RPC_URL, timeout: float = RPC_TIMEOUT,
                 block_tag: str = BLOCK_TAG, w3: AsyncWeb3 = None):
        self.rpc_url = rpc_url
        self.block_tag = block_tag
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
        ))

    async def get_transaction_count(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_transaction_count(address, self.block_tag))
        except Exception as e:
            logger.error(f"eth_getTransactionCount failed for {address}: {e}")
            raise LedgerError(f"Could not read transaction count: {e}") from e

    async def get_gas_price(self) -> int:
        try:
            return int(await self.w3.eth.gas_price)
        except Exception as e:
            logger.error(f"eth_gasPrice failed: {e}")
            raise LedgerError(f"Could not read gas price: {e}") from e

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        try:
            return int(await self.w3.eth.estimate_gas(tx))
        except Exception as e:
            logger.error(f"eth_estimateGas failed: {e}")
            raise LedgerError(f"Could not estimate gas: {e}") from e

    async def get_balance(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_balance(address))
        except Exception as e:
            logger.error(f"eth_getBalance failed for {address}: {e}")
            raise LedgerError(f"Could not read balance: {e}") from e

    async def is_connected(self) -> bool:
        try:
            return bool(await self.w3.is_connected())
        except Exception as e:
            logger.warning(f"Ledger connectivity check failed: {e}")
            return False

    async def send_raw_transaction_sync(self, raw: bytes) -> Dict[str, Any]:
        """Broadcast signed bytes and wait for the ledger to confirm them."""
        try:
            response = await self.w3.provider.make_request(
                SEND_RAW_TRANSACTION_SYNC, ["0x" + raw.hex()]
            )
        except Exception as e:
            logger.error(f"Broadcast transport error: {e}")
            raise BroadcastFailure(f"Broadcast did not complete: {e}") from e

        if response.get("error"):
            error = response["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            logger.warning(f"Broadcast rejected: {message}")
            raise BroadcastFailure(f"Broadcast rejected: {message}")

        return response.get("result") or {}

    async def close(self):
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
