"""Unit tests for sfsession.refresher."""
import threading

import pytest

from conftest import FakeHttp, FakeResponse, token
from sfsession.errors import ApiError, NoRefreshToken, TransportError
from sfsession.refresher import TokenRefresher
from sfsession.session import Session


def _session(**kw):
    base = dict(access_token="old", instance_url="https://na1.salesforce.com", refresh_token="5Aep==")
    base.update(kw)
    return Session(**base)


def test_no_refresh_token_makes_no_call(config, http):
    r = TokenRefresher(config, http=http)
    with pytest.raises(NoRefreshToken) as exc:
        r.refresh(_session(refresh_token=None))
    assert exc.value.error_code == "NO_REFRESH_TOKEN"
    assert http.calls == []


def test_refresh_updates_token_only(config):
    http = FakeHttp(token("NEW%21TOKEN"))
    s = _session()
    TokenRefresher(config, http=http).refresh(s)
    assert s.access_token == "NEW%21TOKEN"
    assert s.session_id == "NEW!TOKEN"
    assert s.instance_url == "https://na1.salesforce.com"
    assert s.refresh_token == "5Aep=="

    call = http.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://login.salesforce.com/services/oauth2/token"
    assert call["data"] == {"grant_type": "refresh_token", "client_id": "3MVG9key", "refresh_token": "5Aep=="}


def test_refresh_via_relay(config):
    http = FakeHttp(token("NEW"))
    TokenRefresher(config, http=http).refresh(_session(proxy_url="https://relay.example.com/proxy"))
    call = http.calls[0]
    assert call["url"] == "https://relay.example.com/proxy"
    assert call["headers"]["SalesforceProxy-Endpoint"] == "https://login.salesforce.com/services/oauth2/token"


def test_provider_error_surfaces_unchanged(config):
    http = FakeHttp(FakeResponse(400, {"error": "invalid_grant", "error_description": "expired access/refresh token"}))
    s = _session()
    with pytest.raises(ApiError) as exc:
        TokenRefresher(config, http=http).refresh(s)
    assert exc.value.error_code == "invalid_grant"
    assert exc.value.message == "expired access/refresh token"
    assert exc.value.status == 400
    assert s.access_token == "old"


def test_transport_failure(config, conn_error):
    s = _session()
    with pytest.raises(TransportError):
        TokenRefresher(config, http=FakeHttp(conn_error)).refresh(s)
    assert s.access_token == "old"


def test_refresh_expired_skips_when_token_already_changed(config, http):
    s = _session(access_token="newer")
    TokenRefresher(config, http=http).refresh_expired(s, "old")
    assert http.calls == []
    assert s.access_token == "newer"


def test_concurrent_refresh_expired_collapses(config):
    http = FakeHttp(token("NEW"))
    refresher = TokenRefresher(config, http=http)
    s = _session()
    threads = [threading.Thread(target=refresher.refresh_expired, args=(s, "old")) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(http.calls) == 1
    assert s.access_token == "NEW"
