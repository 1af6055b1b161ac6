"""
HTTP transport used by provider adapters.

The core only needs ``post(url, headers, json_body) -> (status, json_body)``;
anything that satisfies the ``Transport`` protocol can be injected (tests use
an in-memory fake).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

import requests

from .exceptions import MalformedResponse, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "llmclient"


@runtime_checkable
class Transport(Protocol):
    """Interface every transport must satisfy."""

    def post(
        self, url: str, headers: Dict[str, str], json_body: Dict[str, Any]
    ) -> Tuple[int, Any]:
        """
        POST a JSON body and return the HTTP status and decoded JSON body.

        Raises:
            TransportError: On network failure or timeout.
            MalformedResponse: If the body is not JSON.
        """
        ...


class RequestsTransport:
    """Transport backed by a ``requests.Session``."""

    def __init__(self, timeout: float = 120.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def post(
        self, url: str, headers: Dict[str, str], json_body: Dict[str, Any]
    ) -> Tuple[int, Any]:
        try:
            response = self._session.post(url, headers=headers, json=json_body, timeout=self.timeout)
        except requests.exceptions.Timeout as exc:
            raise TransportError(f"Request timed out after {self.timeout} seconds") from exc
        except requests.exceptions.ConnectionError as exc:
            raise TransportError(f"Could not connect to {url}: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"Request failed: {exc}") from exc

        logger.debug("POST %s -> %s (%d bytes)", url, response.status_code, len(response.content))

        try:
            body = response.json()
        except ValueError as exc:
            if response.status_code >= 400:
                raise TransportError(
                    response.text[:500] or response.reason or "no body", status=response.status_code
                ) from exc
            raise MalformedResponse("transport", f"Body is not JSON: {response.text[:200]!r}") from exc

        return response.status_code, body

    def close(self) -> None:
        self._session.close()


__all__ = ["Transport", "RequestsTransport", "USER_AGENT"]
