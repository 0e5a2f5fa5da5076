from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from volume_expander.core.exceptions import MetricsShapeError, MetricsUnavailableError
from volume_expander.models.resources import MetricsSample


logger = logging.getLogger(__name__)

USED_BYTES_METRIC = "kubelet_volume_stats_used_bytes"
CAPACITY_BYTES_METRIC = "kubelet_volume_stats_capacity_bytes"


@dataclass(slots=True)
class QueryResult:
    result_type: Optional[str]
    result: Any
    warnings: List[str] = field(default_factory=list)


def _session(token: str, verify: bool | str, pool_maxsize: int = 100) -> requests.Session:
    sess = requests.Session()
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=pool_maxsize, max_retries=0)
    sess.mount("https://", adapter)
    sess.mount("http://", adapter)
    sess.verify = verify
    if token:
        sess.headers["Authorization"] = f"Bearer {token}"
    return sess


class PrometheusClient:
    """Minimal client for the Prometheus instant-query HTTP API.

    The session, credential and timeouts are set up once and reused by
    every query.
    """

    def __init__(
        self,
        url: str,
        *,
        token: str = "",
        verify: bool | str = False,
        timeout: Tuple[float, float] = (30.0, 30.0),
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or _session(token, verify)

    def query(self, promql: str, at: Optional[datetime] = None) -> QueryResult:
        when = at or datetime.now(timezone.utc)
        try:
            resp = self.session.get(
                f"{self.url}/api/v1/query",
                params={"query": promql, "time": f"{when.timestamp():.3f}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise MetricsUnavailableError(f"query to {self.url} failed: {e}") from e

        if resp.status_code in (401, 403):
            raise MetricsUnavailableError(
                f"Prometheus rejected credentials (HTTP {resp.status_code})"
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise MetricsUnavailableError(
                f"non-JSON response from Prometheus (HTTP {resp.status_code})"
            ) from e
        if not isinstance(payload, dict):
            raise MetricsShapeError(f"unexpected response body: {type(payload).__name__}")
        if payload.get("status") != "success":
            raise MetricsUnavailableError(
                f"query failed: {payload.get('errorType', 'unknown')}: {payload.get('error', '')}"
            )

        data = payload.get("data") or {}
        return QueryResult(
            result_type=data.get("resultType"),
            result=data.get("result"),
            warnings=[str(w) for w in payload.get("warnings") or []],
        )


def _label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def volume_query(metric: str, namespace: str, name: str) -> str:
    return (
        f'{metric}{{namespace="{_label_value(namespace)}",'
        f'persistentvolumeclaim="{_label_value(name)}"}}'
    )


class MetricsPoller:
    def __init__(self, client: PrometheusClient) -> None:
        self.client = client

    def poll(self, namespace: str, name: str) -> MetricsSample:
        """Fetch used and capacity bytes for one claim.

        Returns an unavailable sample when either series has no data yet.
        Raises MetricsUnavailableError when Prometheus cannot be queried and
        MetricsShapeError when the answer is ambiguous or malformed.
        """
        used = self._query_bytes(volume_query(USED_BYTES_METRIC, namespace, name))
        if used is None:
            logger.debug("%s/%s: no used-bytes series yet", namespace, name)
            return MetricsSample.unavailable()
        capacity = self._query_bytes(volume_query(CAPACITY_BYTES_METRIC, namespace, name))
        if capacity is None:
            logger.debug("%s/%s: no capacity-bytes series yet", namespace, name)
            return MetricsSample.unavailable()
        return MetricsSample(available=True, used_bytes=used, capacity_bytes=capacity)

    def _query_bytes(self, promql: str) -> Optional[int]:
        res = self.client.query(promql)
        for warning in res.warnings:
            logger.info("Prometheus warning for %s: %s", promql, warning)
        logger.debug("result for %s: type=%s result=%s", promql, res.result_type, res.result)

        if res.result_type != "vector" or not isinstance(res.result, list):
            raise MetricsShapeError(f"unexpected result type {res.result_type!r} for {promql}")
        if len(res.result) == 0:
            return None
        if len(res.result) != 1:
            raise MetricsShapeError(f"expected 1 sample for {promql}, got {len(res.result)}")
        return _sample_bytes(res.result[0], promql)


def _sample_bytes(sample: Any, promql: str) -> int:
    try:
        raw = sample["value"][1]
        value = float(raw)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise MetricsShapeError(f"malformed sample for {promql}: {sample!r}") from e
    if not math.isfinite(value):
        raise MetricsShapeError(f"non-finite sample for {promql}: {raw}")
    return int(value)
