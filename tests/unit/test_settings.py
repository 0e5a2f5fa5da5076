from __future__ import annotations

from volume_expander.core.settings import (
    DEFAULT_PROMETHEUS_URL,
    ControllerSettings,
    read_bearer_token,
)


def test_defaults_when_environment_is_empty(tmp_path):
    settings = ControllerSettings.from_env({}, token_file=tmp_path / "missing")
    assert settings.prometheus_url == DEFAULT_PROMETHEUS_URL
    assert settings.token == ""
    assert settings.verify_tls is False
    assert settings.timeout == (30.0, 30.0)
    assert settings.error_backoff == 60.0
    assert settings.log_level == "INFO"


def test_environment_overrides(tmp_path):
    env = {
        "PROMETHEUS_URL": "http://prometheus.monitoring:9090",
        "TOKEN": "abc",
        "PROMETHEUS_VERIFY_TLS": "true",
        "PROMETHEUS_CONNECT_TIMEOUT": "5",
        "PROMETHEUS_READ_TIMEOUT": "10.5",
        "VOLUME_EXPANDER_ERROR_BACKOFF": "15",
        "VOLUME_EXPANDER_LOG_LEVEL": "debug",
    }
    settings = ControllerSettings.from_env(env, token_file=tmp_path / "missing")
    assert settings.prometheus_url == "http://prometheus.monitoring:9090"
    assert settings.token == "abc"
    assert settings.verify_tls is True
    assert settings.timeout == (5.0, 10.5)
    assert settings.error_backoff == 15.0
    assert settings.log_level == "DEBUG"


def test_ca_bundle_enables_verification(tmp_path):
    settings = ControllerSettings.from_env(
        {"PROMETHEUS_CA_BUNDLE": "/etc/ssl/ca.pem"}, token_file=tmp_path / "missing"
    )
    assert settings.verify_tls == "/etc/ssl/ca.pem"


def test_invalid_numbers_fall_back(tmp_path):
    env = {"PROMETHEUS_CONNECT_TIMEOUT": "soon", "VOLUME_EXPANDER_ERROR_BACKOFF": "-1"}
    settings = ControllerSettings.from_env(env, token_file=tmp_path / "missing")
    assert settings.connect_timeout == 30.0
    assert settings.error_backoff == 60.0


def test_token_env_wins_over_file(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("from-file\n", encoding="utf-8")
    assert read_bearer_token({"TOKEN": "from-env"}, token_file) == "from-env"
    assert read_bearer_token({}, token_file) == "from-file"


def test_missing_token_file_gives_empty_token(tmp_path, caplog):
    assert read_bearer_token({}, tmp_path / "nope") == ""
    assert "unable to read token file" in caplog.text
