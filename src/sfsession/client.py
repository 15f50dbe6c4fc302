"""ForceClient: one Session, one UsageCounter, and the calls that use them.

Each client owns its own state; two clients never share a session or usage.
"""
from __future__ import annotations

import sys
from typing import Any, Callable, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests

from .config import ForceConfig, load_config, verbose_enabled
from .dispatcher import Dispatcher
from .errors import ForceError
from .refresher import TokenRefresher
from .session import Session
from .surfaces import LocalCallbackSurface, LoginSurface, PasteSurface
from .usage import UsageCounter
from .watcher import LoginWatcher


def default_surface(config: ForceConfig) -> LoginSurface:
    """Local callback server for localhost callbacks, paste-back otherwise."""
    cb = config.callback_url or ""
    if cb.startswith(("http://localhost", "http://127.0.0.1")):
        return LocalCallbackSurface(cb)
    return PasteSurface()


class ForceClient:
    def __init__(
        self,
        config: Optional[ForceConfig] = None,
        *,
        session: Optional[Session] = None,
        http: Optional[Any] = None,
        verbose: Optional[bool] = None,
    ) -> None:
        self.config = config or load_config()
        self.verbose = verbose_enabled() if verbose is None else verbose
        self.session = session or Session()
        self.usage_counter = UsageCounter()
        self.http = http or requests.Session()
        self.refresher = TokenRefresher(self.config, http=self.http, verbose=self.verbose)
        self.dispatcher = Dispatcher(
            self.refresher,
            self.usage_counter,
            http=self.http,
            timeout=self.config.http_timeout,
            verbose=self.verbose,
        )

    # ----------------------------
    # Session lifecycle
    # ----------------------------

    def login(
        self,
        surface: Optional[LoginSurface] = None,
        callback: Optional[Callable[[Session], None]] = None,
    ) -> Optional[Session]:
        """
        Run the implicit-grant login on surface and populate this client's session.

        Returns the session (also passed to callback), or None if the user
        abandoned the login. Provider errors raise LoginFailed.
        """
        watcher = LoginWatcher(self.config, surface or default_surface(self.config), verbose=self.verbose)
        session = watcher.watch(self.session)
        if session is None:
            return None

        if self.config.fetch_email and session.identity_url:
            self._fetch_email()

        if callback:
            callback(session)
        return session

    def _fetch_email(self) -> None:
        try:
            self.session.email = self.identity().get("email")
        except ForceError as e:
            print(f"sfsession: could not fetch user email: {e}", file=sys.stderr)

    def attach_session(self, session_id: str, instance_url: str) -> Session:
        """Bootstrap from a session id handed over by a host page (no login, no refresh token)."""
        self.session.access_token = session_id
        self.session.instance_url = instance_url.rstrip("/")
        self.session.proxy_url = self.config.proxy_url
        # Nothing from an earlier login carries over to the injected session
        self.session.refresh_token = None
        self.session.identity_url = None
        self.session.email = None
        return self.session

    def refresh(self, session: Optional[Session] = None) -> Session:
        """Refresh the access token; if session is given it becomes this client's session first."""
        if session is not None:
            self.session = session
        return self.refresher.refresh(self.session)

    def usage(self) -> Dict[str, Optional[int]]:
        return self.usage_counter.snapshot()

    # ----------------------------
    # Requests
    # ----------------------------

    def request(
        self,
        path: str,
        method: str = "GET",
        payload: Any = None,
        *,
        response_type: Optional[str] = None,
    ) -> Any:
        """Any REST call; path is relative to /services/data/."""
        return self.dispatcher.send(self.session, path, method, payload, response_type=response_type)

    raw = request

    def versions(self) -> List[Dict[str, Any]]:
        return self.request("")

    def identity(self) -> Dict[str, Any]:
        if not self.session.identity_url:
            raise RuntimeError("Session has no identity URL (login did not return an id)")
        return self.request(self.session.identity_url)

    def query(self, soql: str) -> Dict[str, Any]:
        return self.request(f"{self.config.api_version}/query?q={quote(soql, safe='')}")

    def iter_records(self, soql: str) -> Iterator[Dict[str, Any]]:
        """Yield every record of a query, following nextRecordsUrl."""
        page = self.query(soql)
        while True:
            for rec in page.get("records") or []:
                yield rec
            nxt = page.get("nextRecordsUrl")
            if page.get("done", True) or not nxt:
                break
            page = self.request(nxt)

    def query_all(self, soql: str) -> List[Dict[str, Any]]:
        return list(self.iter_records(soql))

    def _sobject_path(self, sobject: str, record_id: Optional[str] = None) -> str:
        path = f"{self.config.api_version}/sobjects/{sobject}"
        return f"{path}/{record_id}" if record_id else path

    def create(self, sobject: str, record: Dict[str, Any]) -> Dict[str, Any]:
        return self.request(self._sobject_path(sobject), "POST", record)

    def retrieve(self, sobject: str, record_id: str) -> Dict[str, Any]:
        return self.request(self._sobject_path(sobject, record_id))

    def update(self, sobject: str, record_id: str, updates: Dict[str, Any]) -> None:
        return self.request(self._sobject_path(sobject, record_id), "PATCH", updates)

    def delete(self, sobject: str, record_id: str) -> None:
        return self.request(self._sobject_path(sobject, record_id), "DELETE")
