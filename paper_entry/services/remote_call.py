"""
Remote call capability for the question-bank API.

The rest of the package only needs ``execute(endpoint, payload) -> JSON``.
``HttpRemoteCall`` provides it over a shared ``requests.Session``; handles are
cloned per paper task and all clones share the one session.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class RemoteCallError(Exception):
    """Remote call failed at the transport level (network, HTTP status, bad JSON)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _SharedSession:
    """One underlying HTTP session, released when the last handle closes."""

    def __init__(self, session: requests.Session) -> None:
        self.session = session
        self._refs = 1
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            if self._refs <= 0:
                raise RemoteCallError("Session already closed")
            self._refs += 1

    def release(self) -> bool:
        """Drop one reference; returns True when the session was closed."""
        with self._lock:
            self._refs -= 1
            if self._refs == 0:
                self.session.close()
                return True
            return False


class HttpRemoteCall:
    """
    Execute JSON POST requests against the question-bank API.

    Usage:
        remote = HttpRemoteCall(base_url, token="...")
        with remote.clone() as handle:
            result = handle.execute("/question/new/save", payload)
        remote.close()
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        cookie: Optional[str] = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        _shared: Optional[_SharedSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = (connect_timeout, read_timeout)
        self._closed = False

        if _shared is not None:
            self._shared = _shared
            return

        session = session or requests.Session()
        session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json, text/plain, */*",
            }
        )
        if token:
            session.headers["tikutoken"] = token
        if cookie:
            session.headers["Cookie"] = cookie
        self._shared = _SharedSession(session)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> HttpRemoteCall:
        tiku = config.get("tiku") or {}
        timeout_cfg = tiku.get("request_timeout_seconds") or {}
        return cls(
            tiku["base_url"],
            token=tiku.get("token"),
            cookie=tiku.get("cookie"),
            connect_timeout=float(timeout_cfg.get("connect", 10)),
            read_timeout=float(timeout_cfg.get("read", 60)),
        )

    def clone(self) -> HttpRemoteCall:
        """Return another handle on the same underlying session."""
        self._shared.acquire()
        return HttpRemoteCall(
            self.base_url,
            connect_timeout=self._timeout[0],
            read_timeout=self._timeout[1],
            _shared=self._shared,
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._shared.release():
            logger.debug("Closed question-bank HTTP session")

    def __enter__(self) -> HttpRemoteCall:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def execute(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        """
        POST ``payload`` to ``endpoint`` and return the decoded JSON body.

        Returns:
            Decoded JSON; ``None`` when the server answered with JSON null

        Raises:
            RemoteCallError: On network errors, non-2xx status or a non-JSON body
        """
        if self._closed:
            raise RemoteCallError("Remote call handle is closed")

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            resp = self._shared.session.post(
                url, data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise RemoteCallError(f"Network error calling {endpoint}: {e}") from e

        if not resp.ok:
            raise RemoteCallError(
                f"{endpoint} returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteCallError(
                f"{endpoint} returned a non-JSON body: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e
