"""
Session Identifiers
===================

Sources of fresh session ids used when none is supplied.

    - new_session_id: Local uuid4
    - UuidServiceSource: Remote UUID generator returning a JSON array of ids
"""

import logging
import uuid
from typing import Optional

import requests

from taxi_simulator.errors import IdentifierError


logger = logging.getLogger(__name__)


DEFAULT_UUID_SERVICE_URL = "https://www.uuidtools.com/api/generate/v4"


def new_session_id() -> str:
    return str(uuid.uuid4())


class UuidServiceSource:
    """
    Fetches ids from a remote UUID generator.

    The service answers with a JSON array whose first element is the id.
    Blocking; call it from a worker thread inside the event loop.

    Attributes:
        url: Generator endpoint
        timeout: Request timeout in seconds
        fallback_to_local: Use a local uuid4 if the service fails
    """

    def __init__(
        self,
        url: str = DEFAULT_UUID_SERVICE_URL,
        timeout: float = 5.0,
        fallback_to_local: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.fallback_to_local = fallback_to_local
        self._http = session or requests.Session()

    def __call__(self) -> str:
        try:
            response = self._http.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, list) or not data or not isinstance(data[0], str):
                raise ValueError(f"unexpected payload: {data!r}")
            return data[0]
        except (requests.RequestException, ValueError) as e:
            if not self.fallback_to_local:
                raise IdentifierError(f"UUID service failed: {e}") from e
            logger.warning(f"UUID service failed, using local uuid4: {e}")
            return new_session_id()
