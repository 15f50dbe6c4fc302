"""Unit tests for sfsession.config."""
import pytest

from sfsession import config

SF_VARS = (
    "SF_CONSUMER_KEY",
    "SF_CALLBACK_URL",
    "SF_LOGIN_URL",
    "SF_API_VERSION",
    "SF_PROXY_URL",
    "SF_POLL_INTERVAL",
    "SF_HTTP_TIMEOUT",
    "SF_LOGIN_TIMEOUT",
    "SF_FETCH_EMAIL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in SF_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_verbose_enabled_false(monkeypatch):
    monkeypatch.delenv("SFS_VERBOSE", raising=False)
    assert config.verbose_enabled() is False
    monkeypatch.setenv("SFS_VERBOSE", "0")
    assert config.verbose_enabled() is False
    monkeypatch.setenv("SFS_VERBOSE", "false")
    assert config.verbose_enabled() is False


def test_verbose_enabled_true(monkeypatch):
    monkeypatch.setenv("SFS_VERBOSE", "1")
    assert config.verbose_enabled() is True
    monkeypatch.setenv("SFS_VERBOSE", "yes")
    assert config.verbose_enabled() is True


def test_env_present(monkeypatch):
    monkeypatch.setenv("TEST_VAR_XYZ", "value")
    assert config.env("TEST_VAR_XYZ") == "value"


def test_env_missing(monkeypatch):
    monkeypatch.delenv("MISSING_VAR_XYZ", raising=False)
    with pytest.raises(RuntimeError, match="Missing env var: MISSING_VAR_XYZ"):
        config.env("MISSING_VAR_XYZ")


def test_load_config_defaults(clean_env):
    c = config.load_config()
    assert c.consumer_key is None
    assert c.login_url == "https://login.salesforce.com/"
    assert c.api_version == "v35.0"
    assert c.poll_interval == 0.1
    assert c.http_timeout is None
    assert c.login_timeout is None
    assert c.fetch_email is True
    assert c.token_url == "https://login.salesforce.com/services/oauth2/token"
    assert c.authorize_url == "https://login.salesforce.com/services/oauth2/authorize"


def test_load_config_from_env(clean_env):
    clean_env.setenv("SF_CONSUMER_KEY", "3MVG9key")
    clean_env.setenv("SF_CALLBACK_URL", "https://app.example.com/cb")
    clean_env.setenv("SF_LOGIN_URL", "https://test.salesforce.com")
    clean_env.setenv("SF_API_VERSION", "v58.0")
    clean_env.setenv("SF_PROXY_URL", "https://relay.example.com/proxy")
    clean_env.setenv("SF_POLL_INTERVAL", "0.25")
    clean_env.setenv("SF_HTTP_TIMEOUT", "30")
    clean_env.setenv("SF_LOGIN_TIMEOUT", "0")
    clean_env.setenv("SF_FETCH_EMAIL", "no")
    c = config.load_config()
    assert c.consumer_key == "3MVG9key"
    assert c.token_url == "https://test.salesforce.com/services/oauth2/token"
    assert c.api_version == "v58.0"
    assert c.proxy_url == "https://relay.example.com/proxy"
    assert c.poll_interval == 0.25
    assert c.http_timeout == 30.0
    assert c.login_timeout is None
    assert c.fetch_email is False


def test_load_config_bad_seconds(clean_env):
    clean_env.setenv("SF_HTTP_TIMEOUT", "soon")
    with pytest.raises(RuntimeError, match="SF_HTTP_TIMEOUT"):
        config.load_config()


def test_mask():
    assert config.mask(None) == "(none)"
    assert config.mask("abc") == "****"
    assert config.mask("00D!AQsecretWXYZ") == "...WXYZ"
