import pytest

from smart_search.config import DEFAULT_ENDPOINTS, AIConfig, endpoints_for
from smart_search.errors import (
    AllEndpointsFailedError,
    ConnectivityUnavailableError,
    RateLimitedError,
    SmartSearchError,
    user_friendly_error,
)

ENV_VARS = [
    "GEMINI_API_KEY", "GEMINI_BASE_URL", "DEBUG", "APP_ENV", "PRODUCTION",
    "GEMINI_TIMEOUT_SEC", "GEMINI_MAX_RETRIES",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # a developer .env must not leak into these tests
    monkeypatch.setattr("smart_search.config.load_dotenv", lambda *args, **kwargs: False)
    return monkeypatch


def test_defaults(clean_env):
    config = AIConfig.from_env(secret_files=[])

    assert config.gemini_api_key is None
    assert config.endpoints == DEFAULT_ENDPOINTS
    assert config.request_timeout == 30.0
    assert config.max_retries == 2
    assert not config.debug_enabled
    assert not config.production


def test_environment_overrides(clean_env):
    clean_env.setenv("GEMINI_API_KEY", "AIzaSyFromEnvironment")
    clean_env.setenv("GEMINI_BASE_URL", "https://proxy.test/v1/")
    clean_env.setenv("DEBUG", "true")
    clean_env.setenv("GEMINI_TIMEOUT_SEC", "12.5")
    clean_env.setenv("GEMINI_MAX_RETRIES", "4")

    config = AIConfig.from_env(secret_files=[])

    assert config.gemini_api_key == "AIzaSyFromEnvironment"
    assert config.endpoints[0] == "https://proxy.test/v1/models/gemini-1.5-flash:generateContent"
    assert config.debug_enabled
    assert config.request_timeout == 12.5
    assert config.max_retries == 4


@pytest.mark.parametrize("name,value", [("APP_ENV", "production"), ("PRODUCTION", "1")])
def test_production_flag(clean_env, name, value):
    clean_env.setenv(name, value)
    assert AIConfig.from_env(secret_files=[]).production


def test_key_from_secret_file(clean_env, tmp_path):
    secret = tmp_path / "gemini-api-key"
    secret.write_text("AIzaSyFromSecretFile\n")

    config = AIConfig.from_env(secret_files=[str(tmp_path / "missing"), str(secret)])

    assert config.gemini_api_key == "AIzaSyFromSecretFile"


def test_environment_key_wins_over_secret_file(clean_env, tmp_path):
    secret = tmp_path / "gemini-api-key"
    secret.write_text("AIzaSyFromSecretFile")
    clean_env.setenv("GEMINI_API_KEY", "AIzaSyFromEnvironment")

    assert AIConfig.from_env(secret_files=[str(secret)]).gemini_api_key == "AIzaSyFromEnvironment"


def test_endpoints_follow_model_order():
    assert [e.split("/models/")[1] for e in endpoints_for("https://x.test")] == [
        "gemini-1.5-flash:generateContent",
        "gemini-pro:generateContent",
        "gemini-1.0-pro:generateContent",
    ]


def test_user_friendly_errors():
    assert user_friendly_error(ConnectivityUnavailableError("offline")) == ConnectivityUnavailableError.user_message
    assert user_friendly_error(RateLimitedError("https://x.test", 429)) == RateLimitedError.user_message
    assert "timed out" in user_friendly_error(TimeoutError("read timeout")).lower()
    assert "trouble connecting" in user_friendly_error(OSError("connection refused"))
    assert user_friendly_error(ValueError("odd")) == SmartSearchError.user_message


def test_all_endpoints_failed_reports_rate_limit():
    error = AllEndpointsFailedError("Endpoint https://x.test: 429 Too Many Requests", 429)

    assert error.rate_limited
    assert str(error) == "All Gemini API endpoints failed. Last error: Endpoint https://x.test: 429 Too Many Requests"
