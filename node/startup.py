"""
Service startup and shutdown procedures
"""

from dataclasses import dataclass

from config.config import (
    BURNER_KEY,
    CHAIN_ID,
    POOL_BATCH_SIZE,
    POOL_LOW_WATER_FRACTION,
    POOL_REFILL_SIZE,
    POOL_REFILL_TRIGGER,
    WALLET_FILE,
    WALLET_PASSWORD,
)
from errors.exceptions import InitializationFailure
from events.event_bus import EventBus
from game.session import GameSession
from ledger.client import LedgerClient
from log_utils import get_logger
from monitoring.health import HealthMonitor
from txpool.pool import PreSignedPool
from wallet.wallet import BurnerSigner
from web.websocket_handlers import WebSocketEventHandlers, WebSocketManager

logger = get_logger(__name__)


@dataclass
class Node:
    """Everything one service session owns."""
    signer: BurnerSigner
    ledger: LedgerClient
    pool: PreSignedPool
    session: GameSession
    event_bus: EventBus
    websocket_manager: WebSocketManager
    health_monitor: HealthMonitor


async def startup(signer=None, ledger=None) -> Node:
    """
    Build the service components and prime the pool.

    A priming failure is logged and leaves the pool (and therefore the game)
    not ready; the service still starts so the failure stays visible.
    """
    logger.info("Starting service initialization")

    event_bus = EventBus()
    await event_bus.start()

    if signer is None:
        signer = BurnerSigner.from_config(BURNER_KEY, WALLET_FILE, WALLET_PASSWORD)
    if ledger is None:
        ledger = LedgerClient()
    logger.info(f"Burner account: {signer.address}")

    pool = PreSignedPool(
        signer,
        ledger,
        chain_id=CHAIN_ID,
        batch_size=POOL_BATCH_SIZE,
        refill_size=POOL_REFILL_SIZE,
        low_water_fraction=POOL_LOW_WATER_FRACTION,
        refill_trigger=POOL_REFILL_TRIGGER,
        on_event=event_bus.emit,
    )
    session = GameSession(pool, ledger, on_event=event_bus.emit)

    websocket_manager = WebSocketManager()
    WebSocketEventHandlers(websocket_manager).register_handlers(event_bus)

    node = Node(
        signer=signer,
        ledger=ledger,
        pool=pool,
        session=session,
        event_bus=event_bus,
        websocket_manager=websocket_manager,
        health_monitor=HealthMonitor(pool, ledger),
    )

    try:
        await pool.prime()
        logger.info("Service startup completed, game ready")
    except InitializationFailure as e:
        logger.error(f"Game not ready: {e.message}")

    return node


async def shutdown(node: Node):
    """Cleanup service components"""
    logger.info("Starting service shutdown")

    node.session.close()
    await node.pool.wait_for_refill()
    await node.event_bus.stop()
    try:
        await node.ledger.close()
    except Exception as e:
        # Don't raise during shutdown to allow graceful exit
        logger.error(f"Error closing ledger client: {str(e)}")

    logger.info("Service shutdown completed")
