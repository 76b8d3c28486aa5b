"""
WebSocket Gateway main application.
Pushes realtime events to staff clients subscribed to topics.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from shared.config.constants import ALL_STAFF_ROLES
from shared.config.logging import setup_logging, ws_gateway_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import close_redis_pool, get_redis_pool
from shared.security.auth import verify_jwt
from ws_gateway.connection_registry import ConnectionRegistry
from ws_gateway.protocol import handle_client_message
from ws_gateway.redis_subscriber import run_subscriber


registry = ConnectionRegistry()

HEARTBEAT_CLEANUP_INTERVAL = 30.0


async def start_heartbeat_cleanup() -> None:
    """Periodically close connections without recent heartbeats."""
    while True:
        await asyncio.sleep(HEARTBEAT_CLEANUP_INTERVAL)
        await registry.cleanup_stale()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Starts the Redis subscriber and the heartbeat cleanup task.
    """
    setup_logging()
    logger.info("Starting WebSocket Gateway", port=settings.ws_gateway_port, env=settings.environment)

    subscriber_task = asyncio.create_task(run_subscriber(registry.broadcast))
    cleanup_task = asyncio.create_task(start_heartbeat_cleanup())

    yield

    logger.info("Shutting down WebSocket Gateway")
    for task in (subscriber_task, cleanup_task):
        task.cancel()
    await asyncio.gather(subscriber_task, cleanup_task, return_exceptions=True)

    await registry.shutdown()
    await close_redis_pool()
    logger.info("Redis connection pool closed")


app = FastAPI(
    title="Dine-in WebSocket Gateway",
    description="Real-time notifications for restaurant staff",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    or [settings.frontend_base_url.rstrip("/")],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "ws-gateway",
        "environment": settings.environment,
        **registry.get_stats(),
    }


@app.get("/ws/health/detailed")
async def detailed_health_check():
    """Health check that also verifies Redis connectivity."""
    checks = {
        "service": "ws-gateway",
        "environment": settings.environment,
        "connections": registry.get_stats(),
        "dependencies": {},
    }
    try:
        redis_client = await get_redis_pool()
        await asyncio.wait_for(redis_client.ping(), timeout=3.0)
        checks["dependencies"]["redis"] = {"status": "healthy"}
        checks["status"] = "healthy"
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        checks["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e) or type(e).__name__}
        checks["status"] = "degraded"
        return JSONResponse(content=checks, status_code=503)
    return checks


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket("/ws/staff")
async def staff_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="Staff JWT"),
):
    """
    WebSocket endpoint for staff clients (dashboard, waiter app, kitchen display).

    Admins, managers and waiters start in "admins"; kitchen displays join
    their station topics with ``join_station``.
    """
    try:
        claims = verify_jwt(token)
    except HTTPException as e:
        await websocket.close(code=4001, reason=str(e.detail))
        return

    user_id = int(claims["sub"])
    roles = list(claims.get("roles", []))
    branch_ids = list(claims.get("branch_ids", []))

    if not set(roles) & ALL_STAFF_ROLES:
        await websocket.close(code=4003, reason="Insufficient role")
        return

    try:
        await registry.connect(websocket, user_id, roles, branch_ids)
    except ConnectionError as e:
        logger.warning("WebSocket connection rejected", user_id=user_id, reason=str(e))
        return

    try:
        while True:
            data = await websocket.receive_text()

            if len(data) > settings.ws_max_message_size:
                logger.warning(
                    "Message size exceeded limit",
                    user_id=user_id,
                    size=len(data),
                    max_size=settings.ws_max_message_size,
                )
                await websocket.close(code=1009, reason="Message too large")
                break

            reply = await handle_client_message(registry, websocket, data)
            if isinstance(reply, str):
                await websocket.send_text(reply)
            elif reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info("Staff disconnected", user_id=user_id, roles=roles)
    finally:
        await registry.disconnect(websocket)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ws_gateway.main:app",
        host="0.0.0.0",
        port=settings.ws_gateway_port,
        reload=True,
    )
