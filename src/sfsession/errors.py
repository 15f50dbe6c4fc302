"""Error types for sfsession.

Every failure carries an error_code / message pair, the same shape as the
Salesforce REST error envelope, so callers can branch on one field.
Upstream codes are open-ended and passed through verbatim.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

NO_SESSION_ID = "NO_SESSION_ID"
NO_REFRESH_TOKEN = "NO_REFRESH_TOKEN"
INVALID_SESSION_ID = "INVALID_SESSION_ID"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
LOGIN_TIMEOUT = "LOGIN_TIMEOUT"


class ForceError(Exception):
    def __init__(self, error_code: str, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(f"{error_code}: {message}")
        self.error_code = error_code
        self.message = message
        self.status = status

    def as_dict(self) -> Dict[str, Any]:
        return {"errorCode": self.error_code, "message": self.message}


class NoSessionId(ForceError):
    def __init__(self) -> None:
        super().__init__(NO_SESSION_ID, "There is no session id on this client, please login first.")


class NoRefreshToken(ForceError):
    def __init__(self) -> None:
        super().__init__(NO_REFRESH_TOKEN, "There is no refresh token on this client to refresh with.")


class TransportError(ForceError):
    """Network failure or a response body that could not be parsed."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(TRANSPORT_ERROR, message, status=status)


class ApiError(ForceError):
    """Structured error returned by the API or the OAuth token endpoint."""

    def __init__(
        self,
        error_code: str,
        message: str,
        *,
        status: Optional[int] = None,
        fields: Optional[List[str]] = None,
    ) -> None:
        super().__init__(error_code, message, status=status)
        self.fields = fields or []

    def as_dict(self) -> Dict[str, Any]:
        d = super().as_dict()
        if self.fields:
            d["fields"] = list(self.fields)
        return d


class ExpiredSession(ApiError):
    pass


class LoginFailed(ForceError):
    """The identity provider redirected back with an OAuth error."""

    def __init__(self, error: str, description: Optional[str] = None) -> None:
        super().__init__(error, description or error)
        self.error = error
        self.description = description


class LoginTimeout(ForceError):
    def __init__(self, seconds: float) -> None:
        super().__init__(LOGIN_TIMEOUT, f"Login did not complete within {seconds:g}s")


def parse_error_body(status: int, text: str) -> ApiError:
    """
    Build an ApiError from a non-2xx response body.

    Accepts the REST envelope (a JSON array whose first element has errorCode
    and message) and the OAuth token endpoint object (error, error_description).
    Anything else raises TransportError.
    """
    try:
        data = json.loads(text) if text else None
    except ValueError:
        raise TransportError(f"HTTP {status} with non-JSON body: {text[:200]!r}", status=status)

    if isinstance(data, list) and data and isinstance(data[0], dict):
        first = data[0]
        code = str(first.get("errorCode") or "UNKNOWN_ERROR")
        message = str(first.get("message") or "")
        fields = first.get("fields") or []
        cls = ExpiredSession if code == INVALID_SESSION_ID else ApiError
        return cls(code, message, status=status, fields=list(fields))

    if isinstance(data, dict) and "error" in data:
        return ApiError(str(data["error"]), str(data.get("error_description") or ""), status=status)

    raise TransportError(f"HTTP {status} with unrecognised error body: {text[:200]!r}", status=status)
