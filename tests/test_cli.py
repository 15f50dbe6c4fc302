"""Unit tests for sfsession.cli."""
import sys

import pytest

from conftest import FakeHttp, FakeResponse
from sfsession import cli
from sfsession.client import ForceClient
from sfsession.config import ForceConfig
from sfsession.session import Session


@pytest.fixture
def fake_client(monkeypatch):
    http = FakeHttp()
    client = ForceClient(
        ForceConfig(api_version="v35.0"),
        session=Session(access_token="t", instance_url="https://na1.salesforce.com"),
        http=http,
        verbose=False,
    )
    monkeypatch.setattr(cli, "_client", lambda: client)
    return client, http


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["sfsession", *argv])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    return exc.value.code


def test_query_prints_json_and_usage(monkeypatch, capsys, fake_client):
    _, http = fake_client
    http.queue(FakeResponse(200, {"done": True, "records": []}, headers={"Sforce-Limit-Info": "api-usage=7/100"}))
    assert _run(monkeypatch, "query", "SELECT Id FROM Account") == 0
    out, err = capsys.readouterr()
    assert '"done": true' in out
    assert "API usage 7/100" in err


def test_raw_sends_payload(monkeypatch, fake_client):
    _, http = fake_client
    http.queue(FakeResponse(204))
    assert _run(monkeypatch, "raw", "v35.0/sobjects/Account/001", "-X", "patch", "-d", '{"Name": "B"}') == 0
    assert http.calls[0]["method"] == "PATCH"
    assert http.calls[0]["data"] == '{"Name": "B"}'


def test_api_error_exits_1(monkeypatch, capsys, fake_client):
    _, http = fake_client
    http.queue(FakeResponse(400, [{"errorCode": "MALFORMED_QUERY", "message": "bad"}]))
    assert _run(monkeypatch, "query", "SELEC") == 1
    assert "MALFORMED_QUERY" in capsys.readouterr().err


def test_verify_missing_env(monkeypatch, capsys):
    monkeypatch.delenv("SF_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SF_INSTANCE_URL", raising=False)
    assert _run(monkeypatch, "verify") == 1
    assert "Missing env: SF_ACCESS_TOKEN" in capsys.readouterr().err


def test_session_from_env(monkeypatch):
    monkeypatch.setenv("SF_ACCESS_TOKEN", "00D%21x")
    monkeypatch.setenv("SF_INSTANCE_URL", "https://na1.salesforce.com")
    monkeypatch.delenv("SF_REFRESH_TOKEN", raising=False)
    monkeypatch.delenv("SF_PROXY_URL", raising=False)
    s = cli._session_from_env()
    assert s.session_id == "00D!x"
    assert s.refresh_token is None
