"""Login watcher: turn a user-driven login on a LoginSurface into a Session.

Flow: open the authorize URL (response_type=token) on the surface, read its
location every poll interval until it reaches the callback URL, then close
the surface and write the redirect credentials onto the session.

Outcomes:
- Session populated and returned.
- None if the user closed the surface first (abandoned, not an error).
- LoginFailed if the provider redirected back with error=...
- LoginTimeout only when a login timeout is configured.
"""
from __future__ import annotations

import time
from typing import Callable, Dict, Optional
from urllib.parse import unquote_plus

from oauthlib.oauth2 import MobileApplicationClient

from .config import ForceConfig
from .credentials import apply_credentials, extract_credentials, parse_fragment
from .errors import LoginFailed, LoginTimeout
from .session import Session
from .surfaces import LoginSurface


def build_authorize_url(config: ForceConfig) -> str:
    """Implicit-grant authorize URL; client id and callback are percent-encoded."""
    if not config.consumer_key:
        raise RuntimeError("Missing env var: SF_CONSUMER_KEY")
    if not config.callback_url:
        raise RuntimeError("Missing env var: SF_CALLBACK_URL")
    client = MobileApplicationClient(config.consumer_key)
    return client.prepare_request_uri(
        config.authorize_url,
        redirect_uri=config.callback_url,
        display="popup",
    )


class LoginWatcher:
    def __init__(
        self,
        config: ForceConfig,
        surface: LoginSurface,
        *,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        verbose: bool = False,
    ) -> None:
        self.config = config
        self.surface = surface
        self.interval = config.poll_interval if interval is None else interval
        self.timeout = config.login_timeout if timeout is None else timeout
        self._sleep = sleep
        self._clock = clock
        self.verbose = verbose
        self.polls = 0

    def check(self, url: Optional[str]) -> Optional[Dict[str, str]]:
        """One observation of the surface: credentials, None (keep waiting), or LoginFailed."""
        params = parse_fragment(url, self.config.callback_url)
        if params and params.get("error"):
            raise LoginFailed(
                unquote_plus(params["error"]),
                unquote_plus(params["error_description"]) if params.get("error_description") else None,
            )
        return extract_credentials(url, self.config.callback_url)

    def watch(self, session: Session) -> Optional[Session]:
        url = build_authorize_url(self.config)
        self.surface.open(url)
        if self.verbose:
            print(f"[login] waiting for redirect to {self.config.callback_url}")

        deadline = self._clock() + self.timeout if self.timeout else None
        try:
            location = self.surface.read_location()
            while True:
                self.polls += 1
                creds = self.check(location)
                if creds:
                    self.surface.close()
                    apply_credentials(session, creds, proxy_url=self.config.proxy_url)
                    if self.verbose:
                        print(f"[login] authenticated against {session.instance_url} after {self.polls} poll(s)")
                    return session

                if self.surface.closed:
                    # Navigations seen before the close are still checked, oldest first
                    location = self.surface.read_location()
                    if location is not None:
                        continue
                    if self.verbose:
                        print("[login] surface closed before redirect; login abandoned")
                    return None

                if deadline is not None and self._clock() >= deadline:
                    raise LoginTimeout(self.timeout or 0)

                self._sleep(self.interval)
                location = self.surface.read_location()
        except BaseException:
            self.surface.close()
            raise
