"""Shared fixtures: a scripted stand-in for requests.Session."""
import json
from types import SimpleNamespace

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from sfsession.config import ForceConfig


class FakeRawHeaders:
    """urllib3-style header list that keeps repeated names apart."""

    def __init__(self, lines):
        self.lines = list(lines)

    def iteritems(self):
        return iter(self.lines)


class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None, content=None, raw_headers=None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        if raw_headers is not None:
            self.raw = SimpleNamespace(headers=FakeRawHeaders(raw_headers))
        if content is not None:
            self.content = content
        elif body is None:
            self.content = b""
        else:
            self.content = json.dumps(body).encode("utf-8")

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.text)


class FakeHttp:
    """Replays queued responses (or exceptions) and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def expired():
    return FakeResponse(401, [{"errorCode": "INVALID_SESSION_ID", "message": "Session expired or invalid"}])


def token(access_token):
    return FakeResponse(200, {"access_token": access_token, "instance_url": "https://na1.salesforce.com"})


@pytest.fixture
def config():
    return ForceConfig(
        consumer_key="3MVG9key",
        callback_url="https://app.example.com/cb",
        login_url="https://login.salesforce.com/",
        api_version="v35.0",
    )


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def conn_error():
    return requests.ConnectionError("connection refused")
