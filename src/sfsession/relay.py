"""Same-origin relay for the REST API.

Forwards any request to the URL in the SalesforceProxy-Endpoint header and
returns the upstream status and body, keeping only an allow-list of response
headers. The caller's token arrives as X-Authorization and is forwarded as
Authorization.

Served with the stdlib WSGI server via `sfsession relay`; any WSGI server works.
"""
from __future__ import annotations

import sys
from http import HTTPStatus
from typing import Any, Iterable, List, Optional, Tuple

import requests

from .refresher import PROXY_ENDPOINT_HEADER

ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, HEAD"
ALLOWED_HEADERS = "authorization, x-authorization, content-type, salesforceproxy-endpoint"
RESPONSE_HEADER_ALLOW = ("content-type", "content-language", "set-cookie", "sforce-limit-info")

# (WSGI environ key, upstream header name)
_PASS_THROUGH = (
    ("HTTP_SOAPACTION", "SOAPAction"),
    ("HTTP_SFORCE_QUERY_OPTIONS", "Sforce-Query-Options"),
    ("HTTP_X_USER_AGENT", "X-User-Agent"),
)

_ENDPOINT_ENVIRON = "HTTP_" + PROXY_ENDPOINT_HEADER.upper().replace("-", "_")


def _status_line(code: int) -> str:
    try:
        return f"{code} {HTTPStatus(code).phrase}"
    except ValueError:
        return f"{code} Unknown"


def _cors_headers() -> List[Tuple[str, str]]:
    return [
        ("Access-Control-Allow-Methods", ALLOWED_METHODS),
        ("Access-Control-Allow-Headers", ALLOWED_HEADERS),
    ]


def _request_body(environ: dict) -> Optional[bytes]:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return None
    return environ["wsgi.input"].read(length)


def upstream_headers(environ: dict) -> dict:
    headers = {}
    auth = environ.get("HTTP_X_AUTHORIZATION")
    if auth:
        headers["Authorization"] = auth
    ctype = environ.get("CONTENT_TYPE") or environ.get("HTTP_CONTENT_TYPE")
    if ctype:
        headers["Content-Type"] = ctype
    for key, name in _PASS_THROUGH:
        if environ.get(key):
            headers[name] = environ[key]
    forwarded = environ.get("HTTP_X_FORWARDED_FOR")
    remote = environ.get("REMOTE_ADDR")
    if forwarded:
        headers["X-Forwarded-For"] = f"{forwarded}, {remote}" if remote else forwarded
    elif remote:
        headers["X-Forwarded-For"] = remote
    if environ.get("HTTP_USER_AGENT"):
        headers["User-Agent"] = environ["HTTP_USER_AGENT"]
    return headers


def filter_response_headers(headers: Any) -> List[Tuple[str, str]]:
    """Keep Content-Type, Content-Language, Set-Cookie and Sforce-Limit-Info."""
    out: List[Tuple[str, str]] = []
    items = headers.items() if hasattr(headers, "items") else headers
    for name, value in items:
        if name.lower() in RESPONSE_HEADER_ALLOW:
            out.append((name, value))
    return out


def response_header_lines(r: Any) -> Iterable[Tuple[str, str]]:
    """Upstream headers one line each; r.headers folds repeated Set-Cookie lines into one value."""
    raw_headers = getattr(getattr(r, "raw", None), "headers", None)
    if raw_headers is None:
        return r.headers.items()
    if hasattr(raw_headers, "iteritems"):
        return raw_headers.iteritems()
    return raw_headers.items()


class RelayApp:
    """WSGI application implementing the relay."""

    def __init__(self, *, http: Optional[Any] = None, timeout: Optional[float] = None, verbose: bool = False) -> None:
        self.http = http or requests.Session()
        self.timeout = timeout
        self.verbose = verbose

    def __call__(self, environ: dict, start_response) -> Iterable[bytes]:
        method = environ.get("REQUEST_METHOD", "GET").upper()
        url = environ.get(_ENDPOINT_ENVIRON)

        # Preflights carry header names, not values, so they never have the endpoint
        if method == "OPTIONS":
            start_response("200 OK", _cors_headers())
            return [b""]

        if not url:
            start_response("400 Bad Request", [("Content-Type", "text/plain")])
            return [b"ERROR: SALESFORCEPROXY-ENDPOINT NOT SPECIFIED"]

        if self.verbose:
            print(f"[relay] {method} {url}")
        try:
            r = self.http.request(
                method,
                url,
                data=_request_body(environ),
                headers=upstream_headers(environ),
                allow_redirects=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            print(f"[relay] {method} {url} failed: {e}", file=sys.stderr)
            start_response("500 Internal Server Error", _cors_headers() + [("Content-Type", "text/plain")])
            return [f"Relay error ({type(e).__name__}): {e}\n".encode("utf-8")]

        headers = _cors_headers() + filter_response_headers(response_header_lines(r))
        start_response(_status_line(r.status_code), headers)
        return [r.content]


def serve(host: str = "127.0.0.1", port: int = 8765, *, verbose: bool = False) -> None:
    from wsgiref.simple_server import make_server

    with make_server(host, port, RelayApp(verbose=verbose)) as httpd:
        print(f"sfsession relay listening on http://{host}:{port}/")
        httpd.serve_forever()
