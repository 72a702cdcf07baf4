"""
Google Directions Client
========================

Server-side route source behind the hub's GET /route endpoint.

Calls the Directions web service and returns its "routes" array as-is so
the hub can pass it through to simulators.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from taxi_simulator.errors import RouteLookupError


logger = logging.getLogger(__name__)


DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


class GoogleDirectionsClient:
    """
    Blocking client for the Directions web service.

    Attributes:
        api_key: Google Maps API key
        url: Service endpoint
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        url: str = DIRECTIONS_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._http = session or requests.Session()

    def get_routes(self, origin: str, destination: str) -> List[Dict[str, Any]]:
        """
        Directions between two places.

        Returns:
            The "routes" array; empty when no route exists

        Raises:
            RouteLookupError: On HTTP failure or an error status from the service
        """
        try:
            response = self._http.get(
                self.url,
                params={"origin": origin, "destination": destination, "key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RouteLookupError(f"Directions request failed: {e}") from e

        status = data.get("status")
        if status == "ZERO_RESULTS":
            logger.info(f"No directions from {origin!r} to {destination!r}")
            return []
        if status != "OK":
            message = data.get("error_message", "")
            raise RouteLookupError(f"Directions error {status}: {message}".strip())

        return data.get("routes", [])
