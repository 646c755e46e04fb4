import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from web3 import Web3

from errors.exceptions import GameNotReady
from middleware.error_handler import setup_error_handlers
from models.schemas import (
    AccountResponse, GameSnapshotResponse, PoolStatsResponse
)
from monitoring.health import HealthStatus
from node.startup import Node, startup, shutdown

logger = logging.getLogger(__name__)


def get_node(request: Request) -> Node:
    return request.app.state.node


def create_app(signer=None, ledger=None) -> FastAPI:
    """
    Build the game API. ``signer`` and ``ledger`` override the configured
    burner account and RPC client (tests pass in fakes).
    """
    app = FastAPI(title="txreflex API", version="1.0.0")

    setup_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"]
    )

    @app.on_event("startup")
    async def startup_event():
        app.state.node = await startup(signer=signer, ledger=ledger)

    @app.on_event("shutdown")
    async def shutdown_event():
        node = getattr(app.state, "node", None)
        if node is not None:
            await shutdown(node)

    @app.get("/account", response_model=AccountResponse)
    async def get_account(request: Request):
        node = get_node(request)
        balance = await node.ledger.get_balance(node.signer.address)
        return {
            "address": node.signer.address,
            "balance_wei": balance,
            "balance_eth": f"{Web3.from_wei(balance, 'ether'):.4f}",
        }

    @app.get("/pool", response_model=PoolStatsResponse)
    async def get_pool(request: Request):
        return get_node(request).pool.stats()

    @app.post("/pool/prime", response_model=PoolStatsResponse)
    async def prime_pool(request: Request):
        """Retry priming after a failed startup; a no-op when already ready."""
        pool = get_node(request).pool
        if not pool.is_ready:
            await pool.prime()
        return pool.stats()

    @app.get("/game", response_model=GameSnapshotResponse)
    async def get_game(request: Request):
        return get_node(request).session.snapshot()

    @app.post("/game/click", response_model=GameSnapshotResponse)
    async def click(request: Request):
        session = get_node(request).session
        if not session.ready:
            raise GameNotReady()
        return await session.click()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        node = websocket.app.state.node
        manager = node.websocket_manager
        await manager.connect(websocket)
        try:
            await websocket.send_json({"type": "snapshot", "data": node.session.snapshot()})
            while True:
                message = await websocket.receive_json()
                if message.get("action") == "click" and node.session.ready:
                    await node.session.click()
                await websocket.send_json({"type": "snapshot", "data": node.session.snapshot()})
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected")
        finally:
            manager.disconnect(websocket)

    @app.get("/health")
    async def health_check(request: Request):
        monitor = get_node(request).health_monitor
        await monitor.run_health_checks()
        summary = monitor.get_health_summary()
        status_code = 503 if monitor.get_overall_health() is HealthStatus.UNHEALTHY else 200
        return JSONResponse(content=summary, status_code=status_code)

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus metrics endpoint"""
        content, content_type = get_node(request).health_monitor.generate_metrics()
        return Response(content=content, media_type=content_type)

    return app
