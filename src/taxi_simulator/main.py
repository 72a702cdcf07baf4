"""
Taxi Feed Hub Application
=========================

FastAPI entry point for the hub that taxis publish to and clients watch.

Endpoints:
    WS   /subscribe - Taxi or client session (subprotocol map-taxi / map-client)
    GET  /route     - Directions between two places (Google Directions passthrough)
    GET  /taxis     - Latest known taxi positions
    GET  /health    - Liveness probe

Subscribe Query Parameters:
    id    - Session identifier (no "#", "$", "&" or ",")
    lat   - Initial latitude
    lon   - Initial longitude
    head  - Initial heading in whole degrees
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

from fastapi import FastAPI, Query, WebSocket
from fastapi.responses import JSONResponse

from taxi_simulator.config import Settings, settings as default_settings
from taxi_simulator.errors import RouteLookupError
from taxi_simulator.hub import FeedHub
from taxi_simulator.models.messages import PositionMessage, validate_producer_id
from taxi_simulator.models.roles import Role
from taxi_simulator.routing.directions import GoogleDirectionsClient
from taxi_simulator.stream.transport import CLOSE_POLICY_VIOLATION


logger = logging.getLogger(__name__)


def negotiate_role(requested: List[str]) -> Tuple[Optional[Role], Optional[str]]:
    """
    Pick the first requested subprotocol naming a known role.

    Returns:
        (role, subprotocol to echo back), or (None, None)
    """
    for subprotocol in requested:
        try:
            return Role.parse(subprotocol), subprotocol
        except ValueError:
            continue
    return None, None


def parse_subscribe_params(params) -> Tuple[str, PositionMessage]:
    """
    Validate the subscribe query string.

    Raises:
        ValueError: On a missing or malformed parameter
    """
    try:
        session_id = validate_producer_id(params.get("id", ""))
        latitude = float(params["lat"])
        longitude = float(params["lon"])
        heading = int(params.get("head", "0").strip() or 0)
    except KeyError as e:
        raise ValueError(f"missing parameter {e}") from None
    return session_id, PositionMessage(latitude, longitude, heading)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the hub application around its own FeedHub."""
    settings = settings or default_settings
    hub = FeedHub(include_heading=settings.hub.include_heading)

    directions: Optional[GoogleDirectionsClient] = None
    if settings.routing.google_maps_api_key:
        directions = GoogleDirectionsClient(
            settings.routing.google_maps_api_key,
            timeout=settings.routing.timeout_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.startup_time = time.time()
        logger.info(f"Starting taxi feed hub on {settings.server.host}:{settings.server.port}")

        broadcast_task = asyncio.create_task(
            hub.run(settings.hub.broadcast_interval_seconds),
            name="feed_broadcast",
        )

        yield

        logger.info("Shutting down gracefully...")
        hub.stop()
        try:
            await asyncio.wait_for(broadcast_task, timeout=5.0)
        except asyncio.TimeoutError:
            broadcast_task.cancel()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Taxi Feed Hub",
        description="Live taxi position feed",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.hub = hub
    app.state.directions = directions
    app.state.startup_time = time.time()

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - app.state.startup_time, 1),
            "taxis": hub.taxi_count,
            "clients": hub.client_count,
        })

    @app.get("/taxis")
    async def taxis() -> JSONResponse:
        """Latest known position of every connected taxi."""
        return JSONResponse(hub.positions())

    @app.get("/route")
    def route(
        origin: str = Query("", alias="from"),
        destination: str = Query("", alias="to"),
    ) -> JSONResponse:
        """Directions "routes" array; the first route's overview polyline is what simulators decode."""
        if not origin or not destination:
            return JSONResponse({"error": "Missing 'from' or 'to' parameter"}, status_code=400)
        if app.state.directions is None:
            return JSONResponse({"error": "Route lookup is not configured"}, status_code=503)

        try:
            routes = app.state.directions.get_routes(origin, destination)
        except RouteLookupError as e:
            logger.error(f"Route lookup failed: {e}")
            return JSONResponse({"error": "Route lookup failed"}, status_code=502)
        return JSONResponse(routes)

    @app.websocket("/subscribe")
    async def subscribe(websocket: WebSocket) -> None:
        """Taxi or client session."""
        role, subprotocol = negotiate_role(websocket.scope.get("subprotocols", []))
        if role is None:
            logger.warning("Rejecting connection without a known role subprotocol")
            await websocket.close(code=CLOSE_POLICY_VIOLATION)
            return

        try:
            session_id, position = parse_subscribe_params(websocket.query_params)
        except ValueError as e:
            logger.warning(f"Rejecting {role.value} connection: {e}")
            await websocket.close(code=CLOSE_POLICY_VIOLATION)
            return

        await websocket.accept(subprotocol=subprotocol)
        hub.add(session_id, role, websocket, position)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is not None and role is Role.PRODUCER:
                    hub.handle_message(session_id, text)
        finally:
            hub.remove(session_id, websocket)
            logger.info(f"{role.value} {session_id} disconnected")

    return app


app = create_app()


def serve() -> None:
    """Console entry point: run the hub with uvicorn."""
    import uvicorn

    uvicorn.run(
        "taxi_simulator.main:app",
        host=default_settings.server.host,
        port=default_settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    serve()
