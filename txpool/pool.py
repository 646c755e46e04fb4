"""
Pool of pre-signed self-send transactions.

Every entry is signed ahead of time with a consecutive nonce so a reaction
can be broadcast immediately, without a signing step or a nonce lookup.
Consumption is served from a cursor; crossing the low-water mark starts a
background refill that appends the next run of nonces.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config.config import (
    CHAIN_ID,
    POOL_BATCH_SIZE,
    POOL_LOW_WATER_FRACTION,
    POOL_REFILL_TRIGGER,
    PROBE_PAYLOAD,
)
from errors.exceptions import (
    InitializationFailure,
    PoolExhausted,
    RefillFailure,
)
from log_utils import get_logger, log_performance
from monitoring.health import pool_refills

logger = get_logger(__name__)

EventCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]

REFILL_TRIGGERS = ("interval", "threshold")


class PoolState(Enum):
    EMPTY = "empty"
    PRIMING = "priming"
    READY = "ready"
    REFILLING = "refilling"
    FAILED = "failed"


@dataclass(frozen=True)
class PoolEntry:
    """A signed transaction ready for broadcast."""
    sequence: int
    raw: bytes
    tx_hash: str
    payload: bytes


def batch_payload(index: int) -> bytes:
    # Always one non-zero byte so every entry costs the same gas as the probe
    return bytes([(index % 255) + 1])


class PreSignedPool:
    """
    Owns the pre-signed entries, the consumption cursor and the refill guard.

    The pool is driven from a single event loop: ``take`` is synchronous and
    the refill runs as a task on the same loop, so the boolean guard is the
    only coordination needed.
    """

    def __init__(
        self,
        signer,
        ledger,
        chain_id: int = CHAIN_ID,
        batch_size: int = POOL_BATCH_SIZE,
        refill_size: Optional[int] = None,
        low_water_fraction: float = POOL_LOW_WATER_FRACTION,
        refill_trigger: str = POOL_REFILL_TRIGGER,
        on_event: Optional[EventCallback] = None,
    ):
        """
        Args:
            signer: object with ``address`` and async ``sign_transaction(tx)``
            ledger: object with async ``get_transaction_count``, ``get_gas_price``
                and ``estimate_gas``
            chain_id: chain id embedded in every signed transaction
            batch_size: number of entries signed when priming
            refill_size: number of entries appended per refill (defaults to batch_size)
            low_water_fraction: fraction of batch_size that sets the low-water mark
            refill_trigger: "interval" refills whenever the cursor reaches a multiple
                of the low-water mark; "threshold" refills whenever the unused
                entries drop to the low-water mark or below
            on_event: optional async callback receiving (event_type, data)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if refill_size is None:
            refill_size = batch_size
        if refill_size < 1:
            raise ValueError("refill_size must be at least 1")
        if not 0 < low_water_fraction <= 1:
            raise ValueError("low_water_fraction must be in (0, 1]")
        if refill_trigger not in REFILL_TRIGGERS:
            raise ValueError(f"refill_trigger must be one of {REFILL_TRIGGERS}")

        self.signer = signer
        self.ledger = ledger
        self.chain_id = chain_id
        self.batch_size = batch_size
        self.refill_size = refill_size
        self.low_water_mark = max(1, int(batch_size * low_water_fraction))
        self.refill_trigger = refill_trigger
        self.on_event = on_event

        self.entries: List[PoolEntry] = []
        self.cursor = 0
        self.base_sequence = 0
        self.refill_in_flight = False
        self.gas_price = 0
        self.gas_limit = 0
        self.state = PoolState.EMPTY
        self.refills_completed = 0
        self.refills_failed = 0
        self.last_error: Optional[str] = None
        self._refill_task: Optional[asyncio.Task] = None

    @property
    def address(self) -> str:
        return self.signer.address

    @property
    def size(self) -> int:
        return len(self.entries)

    @property
    def available(self) -> int:
        return len(self.entries) - self.cursor

    @property
    def next_sequence(self) -> int:
        """Sequence number the next signed entry must carry."""
        return self.base_sequence + len(self.entries)

    @property
    def is_ready(self) -> bool:
        return self.state in (PoolState.READY, PoolState.REFILLING)

    @log_performance(logger, "pool_prime")
    async def prime(self) -> int:
        """
        Fetch nonce and gas parameters once, then sign the initial batch.

        Returns:
            Number of entries signed

        Raises:
            InitializationFailure: if any query or any signature fails
        """
        if self.state not in (PoolState.EMPTY, PoolState.FAILED):
            raise InitializationFailure(f"Pool cannot be primed while {self.state.value}")

        self.state = PoolState.PRIMING
        address = self.address
        try:
            nonce, gas_price = await asyncio.gather(
                self.ledger.get_transaction_count(address),
                self.ledger.get_gas_price(),
            )
            gas_limit = await self.ledger.estimate_gas({
                "from": address,
                "to": address,
                "value": 0,
                "data": "0x" + PROBE_PAYLOAD.hex(),
            })
            self.gas_price = gas_price
            self.gas_limit = gas_limit
            logger.info(f"Gas estimated: {gas_limit} at price {gas_price}")

            entries = await self.sign_batch(nonce, self.batch_size)
        except Exception as e:
            self.state = PoolState.FAILED
            self.last_error = str(e)
            logger.error(f"Failed to initialize transaction pool: {e}")
            raise InitializationFailure(f"Failed to initialize transaction pool: {e}") from e

        self.entries = entries
        self.cursor = 0
        self.base_sequence = nonce
        self.last_error = None
        self.state = PoolState.READY
        logger.info(
            f"Pre-signed {len(entries)} transactions starting at nonce {nonce}",
            extra={"sequence": nonce, "pool_size": len(entries)},
        )
        return len(entries)

    def build_transaction(self, sequence: int, payload: bytes) -> Dict[str, Any]:
        """Legacy (gasPrice) self-send of zero value carrying ``payload``."""
        return {
            "to": self.address,
            "value": 0,
            "data": "0x" + payload.hex(),
            "nonce": sequence,
            "gasPrice": self.gas_price,
            "gas": self.gas_limit,
            "chainId": self.chain_id,
        }

    async def sign_batch(self, start_sequence: int, count: int) -> List[PoolEntry]:
        """
        Sign ``count`` transactions with nonces ``start_sequence`` onwards.

        Signatures are produced concurrently; the result is ordered by nonce.
        Either the whole batch is returned or the first error propagates.
        """
        payloads = [batch_payload(i) for i in range(count)]
        signed = await asyncio.gather(*(
            self.signer.sign_transaction(self.build_transaction(start_sequence + i, payload))
            for i, payload in enumerate(payloads)
        ))
        return [
            PoolEntry(sequence=start_sequence + i, raw=s.raw, tx_hash=s.tx_hash, payload=payloads[i])
            for i, s in enumerate(signed)
        ]

    def take(self) -> PoolEntry:
        """
        Hand out the next pre-signed entry.

        Must be called from within the running event loop, since it may
        schedule a background refill.

        Raises:
            PoolExhausted: if every entry has already been handed out. A
                refill is started first when none is running, so a pool
                whose last refill failed can still recover.
            RuntimeError: if a refill is due and no event loop is running;
                the pool is left as it was before the call
        """
        if self.cursor >= len(self.entries):
            logger.warning(
                "Transaction pool exhausted",
                extra={"pool_size": len(self.entries)},
            )
            if not self.refill_in_flight and self.is_ready:
                self._trigger_refill()
            raise PoolExhausted(self.cursor, len(self.entries))

        entry = self.entries[self.cursor]
        self.cursor += 1

        if self._should_refill():
            try:
                self._trigger_refill()
            except RuntimeError:
                self.cursor -= 1
                raise

        return entry

    def _should_refill(self) -> bool:
        if self.refill_in_flight or not self.is_ready:
            return False
        if self.refill_trigger == "threshold":
            return self.available <= self.low_water_mark
        return self.cursor % self.low_water_mark == 0

    def _trigger_refill(self):
        # Raises before any state changes when called outside a running loop
        loop = asyncio.get_running_loop()
        # Fixed before any await so a later take() cannot shift the range
        start = self.next_sequence
        count = self.refill_size
        self.refill_in_flight = True
        self.state = PoolState.REFILLING
        logger.info(
            f"Refilling at {self.cursor} transactions used",
            extra={"sequence": start, "pool_size": len(self.entries)},
        )
        self._refill_task = loop.create_task(self._refill(start, count))

    async def _refill(self, start: int, count: int):
        event = "pool_refilled"
        try:
            try:
                entries = await self.sign_batch(start, count)
            except Exception as e:
                raise RefillFailure(start, count, str(e)) from e
            if start != self.next_sequence:
                raise RefillFailure(start, count, f"expected start sequence {self.next_sequence}")
            self.entries.extend(entries)
            self.refills_completed += 1
            pool_refills.labels(outcome="completed").inc()
            logger.info(
                f"Pre-signed {count} transactions. Pool size: {len(self.entries)}",
                extra={"sequence": start, "pool_size": len(self.entries)},
            )
        except RefillFailure as e:
            self.refills_failed += 1
            pool_refills.labels(outcome="failed").inc()
            self.last_error = e.message
            event = "pool_refill_failed"
            logger.error(e.message, extra={"sequence": start, "pool_size": len(self.entries)})
        finally:
            self.refill_in_flight = False
            if self.state is PoolState.REFILLING:
                self.state = PoolState.READY

        await self._emit(event, self.stats())

    async def wait_for_refill(self):
        """Wait for the in-flight refill, if any, to finish."""
        task = self._refill_task
        if task is not None and not task.done():
            await task

    async def _emit(self, event_type: str, data: Dict[str, Any]):
        if self.on_event is None:
            return
        try:
            await self.on_event(event_type, data)
        except Exception as e:
            logger.warning(f"Failed to publish {event_type}: {e}")

    def stats(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "state": self.state.value,
            "size": len(self.entries),
            "cursor": self.cursor,
            "available": self.available,
            "base_sequence": self.base_sequence,
            "next_sequence": self.next_sequence,
            "refill_in_flight": self.refill_in_flight,
            "refills_completed": self.refills_completed,
            "refills_failed": self.refills_failed,
            "low_water_mark": self.low_water_mark,
            "gas_price": self.gas_price,
            "gas_limit": self.gas_limit,
            "last_error": self.last_error,
        }
