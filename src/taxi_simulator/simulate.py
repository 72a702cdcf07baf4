#!/usr/bin/env python3
"""
Taxi Simulator CLI
==================

Drives one taxi or one client session against a running hub.

Taxi:
    Looks up a route (or takes an encoded polyline), opens a "map-taxi"
    session and streams one position per tick until the route ends.

Client:
    Opens a "map-client" session and logs the feed on every batch.
    Abnormal closes are retried with a fixed backoff; a normal close ends
    the run.

Usage:
    taxi-simulate taxi --origin "Wuppertal" --destination "Dusseldorf"
    taxi-simulate taxi --polyline "_p~iF~ps|U_ulLnnqC_mqNvxq\\`@" --interval 0.5
    taxi-simulate client --hub-url ws://127.0.0.1:4200
"""

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from taxi_simulator.config import Settings, settings as default_settings
from taxi_simulator.errors import RouteLookupError, SimulatorError, TransportError
from taxi_simulator.geo.polyline import decode
from taxi_simulator.models.geo import GeoPoint, Route
from taxi_simulator.models.roles import Role
from taxi_simulator.models.session import Session, SessionStatus
from taxi_simulator.routing.client import RouteLookupClient
from taxi_simulator.routing.identity import UuidServiceSource, new_session_id
from taxi_simulator.session.manager import ConnectionRoleManager
from taxi_simulator.stream.streamer import StreamerState
from taxi_simulator.stream.transport import WebSocketConnector


logger = logging.getLogger(__name__)


def build_id_source(settings: Settings) -> Callable[[], str]:
    if settings.identity.service_url:
        return UuidServiceSource(
            settings.identity.service_url,
            timeout=settings.identity.timeout_seconds,
        )
    return new_session_id


def build_manager(settings: Settings, hub_url: Optional[str], interval: Optional[float]) -> ConnectionRoleManager:
    connector = WebSocketConnector(
        hub_url or settings.hub.url,
        open_timeout=settings.hub.open_timeout_seconds,
    )
    return ConnectionRoleManager(
        connector,
        tick_interval=interval if interval is not None else settings.streamer.tick_interval_seconds,
        id_source=build_id_source(settings),
    )


async def resolve_route(settings: Settings, args: argparse.Namespace) -> Route:
    """Route from --polyline, or from the lookup service."""
    if args.polyline:
        route = decode(args.polyline, settings.routing.precision)
        if not route:
            raise RouteLookupError("Polyline decodes to an empty route")
        return route

    if not args.origin or not args.destination:
        raise RouteLookupError("Either --polyline or both --origin and --destination are required")

    client = RouteLookupClient(
        args.route_url or settings.routing.url,
        timeout=settings.routing.timeout_seconds,
        precision=settings.routing.precision,
    )
    return await asyncio.to_thread(client.fetch_route, args.origin, args.destination)


async def run_taxi(settings: Settings, args: argparse.Namespace) -> int:
    """Stream one taxi along its route; 0 if the route was completed."""
    route = await resolve_route(settings, args)
    logger.info(f"Route has {len(route)} points")

    manager = build_manager(settings, args.hub_url, args.interval)
    session = await manager.open_session(Role.PRODUCER, route, args.id)

    try:
        if session.streamer is not None:
            await session.streamer.wait()
    finally:
        await manager.close_all()

    if session.streamer is not None and session.streamer.state is StreamerState.FINISHED:
        logger.info(f"Taxi {session.id} arrived after {session.streamer.sent} positions")
        return 0
    logger.warning(f"Taxi {session.id} stopped before the end of its route")
    return 1


async def run_client(settings: Settings, args: argparse.Namespace) -> int:
    """Watch the feed until the hub closes normally or retries are exhausted."""
    manager = build_manager(settings, args.hub_url, None)
    closures: asyncio.Queue = asyncio.Queue()

    def on_status(session: Session) -> None:
        if session.status is SessionStatus.CLOSED:
            closures.put_nowait(session)

    def on_batch(batch) -> None:
        logger.info(f"Feed: {len(batch)} taxis")
        for row in manager.aggregator.rows():
            logger.info(f"  {row['type']} {row['id']} {row['latitude']},{row['longitude']}")

    manager.add_status_listener(on_status)
    manager.aggregator.add_listener(on_batch)

    location = (GeoPoint(args.lat, args.lon),)
    backoff_sec = settings.client.reconnect_backoff_ms / 1000.0
    max_attempts = settings.client.max_reconnect_attempts
    attempts = 0

    try:
        while True:
            try:
                await manager.open_session(Role.CONSUMER, location, args.id)
                attempts = 0
                closed = await closures.get()
                if not closed.closed_abnormally:
                    logger.info("Feed closed normally")
                    return 0
            except TransportError as e:
                logger.error(f"Connection error: {e}")

            if max_attempts > 0 and attempts >= max_attempts:
                logger.error(f"Max reconnect attempts ({max_attempts}) exceeded")
                return 1

            attempts += 1
            logger.info(f"Reconnecting in {backoff_sec:.1f}s (attempt {attempts})")
            await asyncio.sleep(backoff_sec)
    finally:
        await manager.close_all()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taxi-simulate",
        description="Simulate a taxi or a feed client against a taxi feed hub",
    )
    parser.add_argument("role", help="taxi / client (map-taxi / map-client accepted)")
    parser.add_argument("--id", default=None, help="Session id (generated when omitted)")
    parser.add_argument("--hub-url", default=None, help="Hub WebSocket base URL")

    taxi = parser.add_argument_group("taxi")
    taxi.add_argument("--origin", default=None, help="Route start")
    taxi.add_argument("--destination", default=None, help="Route end")
    taxi.add_argument("--polyline", default=None, help="Encoded route, skips the lookup")
    taxi.add_argument("--route-url", default=None, help="HTTP base serving GET /route")
    taxi.add_argument("--interval", type=float, default=None, help="Seconds between positions")

    client = parser.add_argument_group("client")
    client.add_argument("--lat", type=float, default=0.0, help="Client latitude")
    client.add_argument("--lon", type=float, default=0.0, help="Client longitude")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        role = Role.parse(args.role)
    except ValueError as e:
        logger.error(str(e))
        return 2

    runner = run_taxi if role is Role.PRODUCER else run_client
    try:
        return asyncio.run(runner(default_settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except (SimulatorError, ValueError) as e:
        logger.error(f"{role.value} simulation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
