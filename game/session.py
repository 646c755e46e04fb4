"""
Reaction game session.

A single player clicks when the signal turns green. Each valid reaction takes
one pre-signed transaction from the pool and broadcasts it synchronously, so
the round records both the human reaction time and the confirmation time.
"""

import asyncio
import random
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config.config import (
    GAME_ROUNDS,
    REACTION_ADJUSTMENT_MS,
    SIGNAL_DELAY_MAX,
    SIGNAL_DELAY_MIN,
)
from errors.exceptions import ReflexError
from events.event_bus import EventTypes
from log_utils import get_logger
from monitoring.health import broadcast_latency, reaction_time, rounds_total
from txpool.pool import PoolState

logger = get_logger(__name__)


class GameState(Enum):
    IDLE = "idle"
    WAITING = "waiting"
    READY = "ready"
    CLICKED = "clicked"
    FINISHED = "finished"
    TOO_EARLY = "too_early"


MESSAGES = {
    GameState.IDLE: "CLICK TO START",
    GameState.WAITING: "WAIT...",
    GameState.READY: "CLICK NOW!",
    GameState.CLICKED: "RECORDING...",
    GameState.FINISHED: "GAME COMPLETE!",
    GameState.TOO_EARLY: "TOO EARLY! CLICK TO RETRY",
}


@dataclass
class RoundResult:
    attempt: int
    reaction_ms: int
    tx_ms: int
    total_ms: int
    failed: bool = False
    sequence: Optional[int] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None


def summarize(results: List[RoundResult]) -> Dict[str, int]:
    """Averages over all rounds for reaction, over successful rounds for tx time."""
    successful = [r for r in results if not r.failed]
    avg_reaction = round(sum(r.reaction_ms for r in results) / len(results)) if results else 0
    avg_tx = round(sum(r.tx_ms for r in successful) / len(successful)) if successful else 0
    overhead = round(avg_tx / avg_reaction * 100) if avg_reaction else 0
    return {
        "rounds": len(results),
        "failed_rounds": len(results) - len(successful),
        "avg_reaction_ms": avg_reaction,
        "avg_tx_ms": avg_tx,
        "avg_total_ms": avg_reaction + avg_tx,
        "tx_overhead_pct": overhead,
    }


class GameSession:

    def __init__(
        self,
        pool,
        ledger,
        rounds: int = GAME_ROUNDS,
        signal_delay: tuple = (SIGNAL_DELAY_MIN, SIGNAL_DELAY_MAX),
        adjustment_ms: int = REACTION_ADJUSTMENT_MS,
        clock: Callable[[], float] = time.perf_counter,
        rng: random.Random = None,
        on_event: Optional[Callable[[str, Dict[str, Any]], Awaitable[None]]] = None,
    ):
        if rounds < 1:
            raise ValueError("rounds must be at least 1")
        if signal_delay[0] < 0 or signal_delay[1] < signal_delay[0]:
            raise ValueError("signal_delay must be a non-negative (min, max) range")

        self.pool = pool
        self.ledger = ledger
        self.rounds = rounds
        self.signal_delay = signal_delay
        self.adjustment_ms = adjustment_ms
        self.clock = clock
        self.rng = rng or random.Random()
        self.on_event = on_event

        self.state = GameState.IDLE
        self.current_round = 0
        self.results: List[RoundResult] = []
        self.signal_time: Optional[float] = None
        self._signal_task: Optional[asyncio.Task] = None

    @property
    def ready(self) -> bool:
        return self.pool.is_ready

    @property
    def message(self) -> str:
        if self.pool.state is PoolState.FAILED:
            return "INITIALIZATION FAILED"
        if not self.ready:
            return "INITIALIZING..."
        return MESSAGES[self.state]

    async def click(self) -> Dict[str, Any]:
        """Apply the player's click to the current state and return a snapshot."""
        now = self.clock()

        if not self.ready:
            logger.debug("Click ignored, pool not ready")
        elif self.state in (GameState.IDLE, GameState.FINISHED, GameState.TOO_EARLY):
            self.current_round = 1
            self.results = []
            self._start_round()
        elif self.state is GameState.WAITING:
            self._cancel_signal()
            self.state = GameState.TOO_EARLY
            self.current_round = 0
            self.results = []
            logger.info("Clicked too early, game reset")
        elif self.state is GameState.READY:
            await self._record_reaction(now)

        return self.snapshot()

    def _start_round(self):
        self._cancel_signal()
        self.state = GameState.WAITING
        self.signal_time = None
        delay = self.rng.uniform(*self.signal_delay)
        self._signal_task = asyncio.get_running_loop().create_task(self._signal_after(delay))

    async def _signal_after(self, delay: float):
        await asyncio.sleep(delay)
        self.state = GameState.READY
        self.signal_time = self.clock()
        await self._emit(EventTypes.SIGNAL_READY, {"round": self.current_round})

    async def wait_for_signal(self):
        """Wait until the pending signal has fired."""
        task = self._signal_task
        if task is not None and not task.done():
            await task

    def _cancel_signal(self):
        if self._signal_task is not None and not self._signal_task.done():
            self._signal_task.cancel()
        self._signal_task = None

    async def _record_reaction(self, now: float):
        reaction_ms = round((now - self.signal_time) * 1000) - self.adjustment_ms
        self.state = GameState.CLICKED
        log = logger.with_context(round=self.current_round)

        try:
            tx_start = self.clock()
            entry = self.pool.take()
            await self.ledger.send_raw_transaction_sync(entry.raw)
            tx_ms = round((self.clock() - tx_start) * 1000)
            result = RoundResult(
                attempt=self.current_round,
                reaction_ms=reaction_ms,
                tx_ms=tx_ms,
                total_ms=reaction_ms + tx_ms,
                sequence=entry.sequence,
                tx_hash=entry.tx_hash,
            )
            broadcast_latency.observe(tx_ms)
            rounds_total.labels(outcome='confirmed').inc()
            log.info(
                f"Round confirmed: reaction {reaction_ms}ms, tx {tx_ms}ms",
                extra={"sequence": entry.sequence, "tx_hash": entry.tx_hash},
            )
        except ReflexError as e:
            result = RoundResult(
                attempt=self.current_round,
                reaction_ms=reaction_ms,
                tx_ms=0,
                total_ms=reaction_ms,
                failed=True,
                error=e.code,
            )
            rounds_total.labels(outcome='failed').inc()
            log.error(f"Transaction failed: {e.message}")

        reaction_time.observe(max(reaction_ms, 0))
        self.results.append(result)
        await self._emit(EventTypes.ROUND_RECORDED, asdict(result))

        if self.current_round >= self.rounds:
            self.state = GameState.FINISHED
            await self._emit(EventTypes.GAME_FINISHED, self.summary())
        else:
            self.current_round += 1
            self._start_round()

    def summary(self) -> Dict[str, int]:
        return summarize(self.results)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "ready": self.ready,
            "message": self.message,
            "pool_state": self.pool.state.value,
            "pool_error": self.pool.last_error,
            "round": self.current_round,
            "rounds": self.rounds,
            "results": [asdict(r) for r in self.results],
            "summary": self.summary(),
        }

    async def _emit(self, event_type: str, data: Dict[str, Any]):
        if self.on_event is None:
            return
        try:
            await self.on_event(event_type, data)
        except Exception as e:
            logger.warning(f"Failed to publish {event_type}: {e}")

    def close(self):
        self._cancel_signal()
