from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

DEFAULT_PROMETHEUS_URL = "https://prometheus-k8s.openshift-monitoring.svc:9092"
TOKEN_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/token")

PROMETHEUS_URL_ENV = "PROMETHEUS_URL"
TOKEN_ENV = "TOKEN"
VERIFY_TLS_ENV = "PROMETHEUS_VERIFY_TLS"
CA_BUNDLE_ENV = "PROMETHEUS_CA_BUNDLE"
CONNECT_TIMEOUT_ENV = "PROMETHEUS_CONNECT_TIMEOUT"
READ_TIMEOUT_ENV = "PROMETHEUS_READ_TIMEOUT"
ERROR_BACKOFF_ENV = "VOLUME_EXPANDER_ERROR_BACKOFF"
LOG_LEVEL_ENV = "VOLUME_EXPANDER_LOG_LEVEL"


@dataclass(slots=True)
class ControllerSettings:
    prometheus_url: str = DEFAULT_PROMETHEUS_URL
    token: str = ""
    verify_tls: bool | str = False
    connect_timeout: float = 30.0
    read_timeout: float = 30.0
    error_backoff: float = 60.0
    log_level: str = "INFO"

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        token_file: Path = TOKEN_FILE,
    ) -> "ControllerSettings":
        env = os.environ if environ is None else environ
        verify: bool | str = _parse_bool(env.get(VERIFY_TLS_ENV), default=False)
        if env.get(CA_BUNDLE_ENV):
            verify = env[CA_BUNDLE_ENV]
        return cls(
            prometheus_url=env.get(PROMETHEUS_URL_ENV) or DEFAULT_PROMETHEUS_URL,
            token=read_bearer_token(env, token_file),
            verify_tls=verify,
            connect_timeout=_parse_float(env, CONNECT_TIMEOUT_ENV, 30.0),
            read_timeout=_parse_float(env, READ_TIMEOUT_ENV, 30.0),
            error_backoff=_parse_float(env, ERROR_BACKOFF_ENV, 60.0),
            log_level=(env.get(LOG_LEVEL_ENV) or "INFO").upper(),
        )


def read_bearer_token(environ: Mapping[str, str], token_file: Path = TOKEN_FILE) -> str:
    """Return the Prometheus bearer token; the environment wins over the file."""
    if TOKEN_ENV in environ:
        return environ[TOKEN_ENV]
    try:
        return token_file.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.error("unable to read token file %s: %s", token_file, e)
        return ""


def _parse_bool(raw: Optional[str], *, default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("invalid %s=%r, using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("invalid %s=%r, using %s", key, raw, default)
        return default
    return value
