"""Salesforce OAuth: refresh_token → access_token.

Mutates the Session in place so every dispatch sees the new token. Overlapping
callers that hit the same expired token share a single refresh call.
"""
from __future__ import annotations

import threading
from typing import Any, Optional

import requests

from .config import ForceConfig, mask
from .errors import NoRefreshToken, TransportError, parse_error_body
from .session import Session

PROXY_ENDPOINT_HEADER = "SalesforceProxy-Endpoint"


class TokenRefresher:
    def __init__(
        self,
        config: ForceConfig,
        *,
        http: Optional[Any] = None,
        verbose: bool = False,
    ) -> None:
        self.config = config
        self.http = http or requests.Session()
        self.verbose = verbose
        self._lock = threading.Lock()

    def refresh(self, session: Session) -> Session:
        """
        Exchange session.refresh_token for a new access token.

        Raises NoRefreshToken before any network call if there is no refresh
        token, and the provider's ApiError (session untouched) on non-2xx.
        """
        if not session.refresh_token:
            raise NoRefreshToken()

        url = self.config.token_url
        data = {
            "grant_type": "refresh_token",
            "client_id": self.config.consumer_key or "",
            "refresh_token": session.refresh_token,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        target = url
        if session.proxy_url:
            headers[PROXY_ENDPOINT_HEADER] = url
            target = session.proxy_url

        if self.verbose:
            print(f"[refresh] POST {url} (refresh token {mask(session.refresh_token)})")
        try:
            r = self.http.request("POST", target, data=data, headers=headers, timeout=self.config.http_timeout)
        except requests.RequestException as e:
            raise TransportError(f"Token refresh failed: {e}") from e

        if not 200 <= r.status_code < 300:
            raise parse_error_body(r.status_code, r.text)

        try:
            token = r.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError(f"Token refresh returned no access_token: {r.text[:200]!r}", status=r.status_code) from e

        session.access_token = token
        if self.verbose:
            print(f"[refresh] new access token {mask(token)}")
        return session

    def refresh_expired(self, session: Session, expired_token: Optional[str]) -> Session:
        """
        Refresh after a dispatch failed with expired_token.

        Callers queue on one lock; whoever gets in after the token already
        changed just reuses the new one instead of refreshing again.
        """
        with self._lock:
            if session.access_token and session.access_token != expired_token:
                if self.verbose:
                    print("[refresh] token already refreshed by a concurrent call")
                return session
            return self.refresh(session)
