"""REST request dispatch bound to a Session.

Each call is sent at most twice: an INVALID_SESSION_ID answer on the first
attempt refreshes the token and re-sends the identical request once. Any
other failure is returned to the caller as-is.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import requests

from .config import mask
from .errors import ApiError, ExpiredSession, ForceError, NoSessionId, TransportError, parse_error_body
from .refresher import PROXY_ENDPOINT_HEADER, TokenRefresher
from .session import Session
from .usage import LIMIT_HEADER, UsageCounter

DATA_ROOT = "/services/data/"

# Raw (unparsed) response shapes selectable via response_type
RESPONSE_TYPES = ("bytes", "text", "response")


@dataclass
class Succeeded:
    value: Any


@dataclass
class NeedsRefresh:
    error: ExpiredSession
    token: Optional[str]  # token the expired attempt was sent with


@dataclass
class Failed:
    error: ForceError


Outcome = Union[Succeeded, NeedsRefresh, Failed]


def build_target(instance_url: str, path: str) -> str:
    """Absolute URL for a path relative to /services/data/ (absolute URLs pass through)."""
    if path.startswith(("https://", "http://")):
        return path
    path = path.lstrip("/")
    if path.startswith(DATA_ROOT.lstrip("/")):
        path = path[len(DATA_ROOT) - 1:]
    return instance_url.rstrip("/") + DATA_ROOT + path


def build_headers(session: Session, target: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    auth = f"Bearer {session.session_id}"
    if session.proxy_url:
        # Some relays drop a header named exactly Authorization
        headers["X-Authorization"] = auth
        headers[PROXY_ENDPOINT_HEADER] = target
    else:
        headers["Authorization"] = auth
    return headers


class Dispatcher:
    def __init__(
        self,
        refresher: TokenRefresher,
        usage: UsageCounter,
        *,
        http: Optional[Any] = None,
        timeout: Optional[float] = None,
        verbose: bool = False,
    ) -> None:
        self.refresher = refresher
        self.usage = usage
        self.http = http or requests.Session()
        self.timeout = timeout
        self.verbose = verbose

    def send(
        self,
        session: Session,
        path: str,
        method: str = "GET",
        payload: Any = None,
        *,
        response_type: Optional[str] = None,
    ) -> Any:
        """
        Issue one API call. Returns parsed JSON (None for an empty body), or the
        raw body when response_type is "bytes", "text" or "response".
        """
        if not session.session_id:
            raise NoSessionId()
        if response_type is not None and response_type not in RESPONSE_TYPES:
            raise ValueError(f"response_type must be one of {RESPONSE_TYPES}, got {response_type!r}")

        retried = False
        while True:
            outcome = self._attempt(session, path, method, payload, response_type, retried=retried)
            if isinstance(outcome, Succeeded):
                return outcome.value
            if isinstance(outcome, Failed):
                raise outcome.error
            # NeedsRefresh: only ever produced on the first attempt
            if self.verbose:
                print(f"[dispatch] session expired; refreshing and retrying {method} {path}")
            self.refresher.refresh_expired(session, outcome.token)
            retried = True

    def _attempt(
        self,
        session: Session,
        path: str,
        method: str,
        payload: Any,
        response_type: Optional[str],
        *,
        retried: bool,
    ) -> Outcome:
        if not session.instance_url:
            return Failed(TransportError("Session has no instance_url"))

        token = session.access_token
        target = build_target(session.instance_url, path)
        headers = build_headers(session, target)
        url = session.proxy_url or target
        body = json.dumps(payload) if payload is not None else None

        if self.verbose:
            via = f" via {session.proxy_url}" if session.proxy_url else ""
            print(f"[dispatch] {method} {target}{via} (session {mask(session.session_id)}{', retry' if retried else ''})")

        try:
            r = self.http.request(method, url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            return Failed(TransportError(f"{method} {target} failed: {e}"))

        if 200 <= r.status_code < 300:
            # Not every endpoint reports usage (e.g. /services/data/ itself)
            self.usage.record(r.headers.get(LIMIT_HEADER))
            try:
                return Succeeded(self._read_body(r, response_type))
            except TransportError as e:
                return Failed(e)

        try:
            err: ApiError = parse_error_body(r.status_code, r.text)
        except TransportError as e:
            return Failed(e)

        if self.verbose:
            print(f"[dispatch] {r.status_code} {err.error_code}: {err.message}")
        if isinstance(err, ExpiredSession) and not retried:
            return NeedsRefresh(err, token)
        return Failed(err)

    @staticmethod
    def _read_body(r: Any, response_type: Optional[str]) -> Any:
        if response_type == "bytes":
            return r.content
        if response_type == "text":
            return r.text
        if response_type == "response":
            return r
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise TransportError(f"Malformed JSON in {r.status_code} response: {r.text[:200]!r}", status=r.status_code) from e
