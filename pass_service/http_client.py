"""
HTTP Client

Thin wrapper over ``requests`` used for every outbound call (CelesTrak,
SatNOGS, Open-Meteo). Every call carries an explicit timeout, and all
transport, status and decoding failures surface as ``FetchError``.
"""

import logging
from typing import Any, Dict, Optional

import requests

from pass_service import __version__

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"satpass-service/{__version__}"


class FetchError(RuntimeError):
    """Network, HTTP status or payload decoding failure."""


class HttpClient:
    """
    requests-based client.

    Args:
        timeout: Seconds before a request is abandoned
        session: Optional requests.Session (a new one is created otherwise)
        user_agent: User-Agent header value
    """

    def __init__(
        self,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def _get(self, url: str, params: Optional[Dict[str, Any]], accept: str) -> requests.Response:
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": accept},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise FetchError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            raise FetchError(f"HTTP {status} from {url}") from e
        except requests.RequestException as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

        logger.debug(f"GET {response.url} -> {response.status_code}")
        return response

    def get_text(self, url: str, params: Optional[Dict[str, Any]] = None, accept: str = "text/plain") -> str:
        return self._get(url, params, accept).text

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._get(url, params, "application/json")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}") from e
