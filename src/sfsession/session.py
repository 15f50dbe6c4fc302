"""Session state for one client.

session_id is derived from access_token on every read, so the two can never
drift apart after a login, an injected session or a refresh.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import unquote


@dataclass
class Session:
    access_token: Optional[str] = None
    instance_url: Optional[str] = None
    refresh_token: Optional[str] = None
    proxy_url: Optional[str] = None
    email: Optional[str] = None
    identity_url: Optional[str] = None  # "id" from the login redirect

    @property
    def session_id(self) -> Optional[str]:
        return unquote(self.access_token) if self.access_token else None

    @property
    def active(self) -> bool:
        return bool(self.access_token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "session_id": self.session_id,
            "instance_url": self.instance_url,
            "refresh_token": self.refresh_token,
            "proxy_url": self.proxy_url,
            "email": self.email,
            "id": self.identity_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Rebuild a session the caller persisted with to_dict()."""
        return cls(
            access_token=data.get("access_token") or data.get("session_id"),
            instance_url=data.get("instance_url"),
            refresh_token=data.get("refresh_token"),
            proxy_url=data.get("proxy_url"),
            email=data.get("email"),
            identity_url=data.get("id"),
        )

    def env_lines(self) -> List[str]:
        """KEY=VALUE lines a caller can paste into .env."""
        lines = [f"SF_ACCESS_TOKEN={self.access_token or ''}", f"SF_INSTANCE_URL={self.instance_url or ''}"]
        if self.refresh_token:
            lines.append(f"SF_REFRESH_TOKEN={self.refresh_token}")
        return lines
