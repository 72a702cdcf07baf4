"""
Route Lookup Client
===================

Fetches a route between two places and decodes it.

The lookup endpoint is the hub's GET /route?from=...&to=..., which answers
with a JSON array of routes; the first route's overview polyline is decoded
into a Route.

Example:
    client = RouteLookupClient("http://127.0.0.1:4200")
    route = client.fetch_route("Wuppertal", "Dusseldorf")

    # From async code
    route = await asyncio.to_thread(client.fetch_route, "Wuppertal", "Dusseldorf")
"""

import logging
from typing import Optional

import requests
from pydantic import ValidationError

from taxi_simulator.errors import DecodeError, RouteLookupError
from taxi_simulator.geo.polyline import decode
from taxi_simulator.models.directions import DirectionsResponse
from taxi_simulator.models.geo import Route


logger = logging.getLogger(__name__)


ROUTE_PATH = "/route"


class RouteLookupClient:
    """
    Blocking HTTP client for the route endpoint.

    Attributes:
        base_url: HTTP base of the hub, e.g. "http://127.0.0.1:4200"
        timeout: Request timeout in seconds
        precision: Polyline precision used to decode the answer
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        precision: int = 5,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.precision = precision
        self._http = session or requests.Session()

    def fetch_polyline(self, origin: str, destination: str) -> str:
        """
        Look up the encoded polyline of the first route.

        Raises:
            RouteLookupError: On HTTP failure, bad JSON or an empty answer
        """
        url = f"{self.base_url}{ROUTE_PATH}"
        try:
            response = self._http.get(
                url,
                params={"from": origin, "to": destination},
                timeout=self.timeout,
            )
            response.raise_for_status()
            routes = DirectionsResponse.model_validate_json(response.content).root
        except requests.RequestException as e:
            raise RouteLookupError(f"Route lookup failed: {e}") from e
        except ValidationError as e:
            raise RouteLookupError(f"Invalid route payload: {e}") from e

        if not routes:
            raise RouteLookupError(f"No route found from {origin!r} to {destination!r}")

        logger.info(
            f"Route {origin!r} -> {destination!r}: {routes[0].summary or 'unnamed'} "
            f"({len(routes)} alternatives)"
        )
        return routes[0].overview_polyline.points

    def fetch_route(self, origin: str, destination: str) -> Route:
        """
        Look up and decode the first route.

        Raises:
            RouteLookupError: On lookup failure or an undecodable polyline
        """
        points = self.fetch_polyline(origin, destination)
        try:
            route = decode(points, self.precision)
        except DecodeError as e:
            logger.error(f"Dropping undecodable route {origin!r} -> {destination!r}: {e}")
            raise RouteLookupError(f"Undecodable route polyline: {e}") from e

        if not route:
            raise RouteLookupError(f"Empty route from {origin!r} to {destination!r}")
        return route
