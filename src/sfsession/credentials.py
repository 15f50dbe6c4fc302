"""Implicit-grant redirect parsing.

The identity provider redirects to the callback URL with the credentials in
the fragment: #access_token=...&instance_url=...&id=...[&refresh_token=...].
A URL that doesn't match yet is "not ready", never an error; the login
surface may pass through intermediate pages first.
"""
from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import unquote

from .session import Session


def matches_callback(url: str | None, callback_url: str | None) -> bool:
    return bool(url and callback_url and callback_url in url)


def parse_fragment(url: str | None, callback_url: str | None) -> Optional[Dict[str, str]]:
    """
    Split the redirect fragment into raw (still percent-encoded) key/value pairs.

    Returns None when the URL is not the callback yet or has an empty fragment.
    """
    if url is None or not matches_callback(url, callback_url):
        return None
    _, sep, fragment = url.partition("#")
    if not sep or not fragment:
        return None

    params: Dict[str, str] = {}
    for pair in fragment.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[key] = value
    return params or None


def extract_credentials(url: str | None, callback_url: str | None) -> Optional[Dict[str, str]]:
    """
    Decode the fields a Session needs from a redirect URL.

    access_token stays encoded (session_id is its decoded form); everything
    else is decoded. None unless both access_token and instance_url are there.
    """
    params = parse_fragment(url, callback_url)
    if not params or not params.get("access_token") or not params.get("instance_url"):
        return None

    out = {
        "access_token": params["access_token"],
        "instance_url": unquote(params["instance_url"]),
    }
    for key in ("refresh_token", "id"):
        if params.get(key):
            out[key] = unquote(params[key])
    return out


def apply_credentials(session: Session, creds: Dict[str, str], *, proxy_url: str | None = None) -> Session:
    """Write all login fields onto the session together."""
    session.access_token = creds["access_token"]
    session.instance_url = creds["instance_url"]
    session.refresh_token = creds.get("refresh_token")
    session.identity_url = creds.get("id")
    session.proxy_url = proxy_url
    return session
