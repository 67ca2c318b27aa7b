"""
peer/client.py -- HTTP/JSON client for the external analysis engine.

The analysis peer performs the actual model computation. ModelGate treats it
as opaque: request bodies are forwarded verbatim and responses returned
unchanged. Four operations are exposed, one POST endpoint each:

    get_user_token         POST {peer_address}/user-token
    send_query             POST {peer_address}/query
    start_simulation       POST {peer_address}/simulation/start
    take_simulation_step   POST {peer_address}/simulation/step

Every call is blocking with the configured timeout. Callers invoke the peer
strictly after authorization and after any storage transaction has
committed, so a slow or hung peer never holds a database lock.

Every failure (connection error, timeout, non-2xx status, body that is not a
JSON object) raises PeerError; the API layer reports it as Internal.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from core.config import Settings

logger = logging.getLogger("modelgate.peer")


class PeerError(Exception):
    """The analysis peer could not be reached or returned an unusable response."""


class AnalysisBackend(Protocol):
    """What the API layer needs from the peer. Tests substitute a fake."""

    def get_user_token(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    def send_query(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    def start_simulation(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    def take_simulation_step(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class AnalysisPeer:
    """requests-based AnalysisBackend.

    Usage:
        peer = AnalysisPeer(settings)
        result = peer.send_query({"user_id": 1, "query_id": 7, "query": "...", "components_info": {...}})
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.base_url = settings.peer_address.rstrip("/")
        self.timeout = settings.peer_timeout_seconds
        # One pooled session per client. The peer is a fixed internal address,
        # so redirects are never expected.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def get_user_token(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/user-token", payload)

    def send_query(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/query", payload)

    def start_simulation(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/simulation/start", payload)

    def take_simulation_step(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/simulation/step", payload)

    def close(self) -> None:
        self._session.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = self.base_url + path
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as exc:
            logger.warning("Analysis peer call %s failed: %s", path, exc)
            raise PeerError(f"Analysis peer call {path} failed.") from exc
        except ValueError as exc:
            logger.warning("Analysis peer call %s returned a non-JSON body", path)
            raise PeerError(f"Analysis peer call {path} returned an invalid response.") from exc
        if not isinstance(body, dict):
            raise PeerError(f"Analysis peer call {path} returned an invalid response.")
        return body
