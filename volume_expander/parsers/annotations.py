from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Mapping, Optional, TypeVar

from volume_expander.core.exceptions import ConfigParseError
from volume_expander.models.resources import AutoscalePolicy
from volume_expander.utils.units import MAX_QUANTITY, parse_duration, parse_quantity


logger = logging.getLogger(__name__)

ANNOTATION_PREFIX = "volume-expander-operator.redhat-cop.io/"
AUTOEXPAND_ANNOTATION = ANNOTATION_PREFIX + "autoexpand"
POLLING_FREQUENCY_ANNOTATION = ANNOTATION_PREFIX + "polling-frequency"
EXPAND_BY_PERCENT_ANNOTATION = ANNOTATION_PREFIX + "expand-by-percent"
EXPAND_THRESHOLD_PERCENT_ANNOTATION = ANNOTATION_PREFIX + "expand-threshold-percent"
EXPAND_UP_TO_ANNOTATION = ANNOTATION_PREFIX + "expand-up-to"

_INT_PATTERN = re.compile(r"^[+-]?\d+$")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PolicyDefaults:
    polling_interval: timedelta = timedelta(seconds=30)
    growth_percent: int = 25
    threshold_percent: int = 80
    ceiling_bytes: int = MAX_QUANTITY


DEFAULTS = PolicyDefaults()


def is_opted_in(annotations: Optional[Mapping[str, str]]) -> bool:
    return (annotations or {}).get(AUTOEXPAND_ANNOTATION) == "true"


def resolve_policy(
    annotations: Optional[Mapping[str, str]],
    defaults: PolicyDefaults = DEFAULTS,
    warnings: Optional[List[str]] = None,
) -> AutoscalePolicy:
    """Build the autoscaling policy for a claim from its annotations.

    Missing keys take the default. Values that do not parse or fall outside
    their range are reported (logged, and appended to ``warnings`` when given)
    and also take the default, so this never raises.
    """
    ann = annotations or {}
    return AutoscalePolicy(
        polling_interval=_lookup(
            ann, POLLING_FREQUENCY_ANNOTATION, _parse_interval, defaults.polling_interval, warnings
        ),
        growth_percent=_lookup(
            ann, EXPAND_BY_PERCENT_ANNOTATION, _parse_growth, defaults.growth_percent, warnings
        ),
        threshold_percent=_lookup(
            ann,
            EXPAND_THRESHOLD_PERCENT_ANNOTATION,
            _parse_threshold,
            defaults.threshold_percent,
            warnings,
        ),
        ceiling_bytes=_lookup(
            ann, EXPAND_UP_TO_ANNOTATION, _parse_ceiling, defaults.ceiling_bytes, warnings
        ),
    )


def _lookup(
    annotations: Mapping[str, str],
    key: str,
    parse: Callable[[str], T],
    default: T,
    warnings: Optional[List[str]],
) -> T:
    raw = annotations.get(key)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ConfigParseError as e:
        msg = f"annotation {key}={raw!r}: {e}; using default {default}"
        logger.warning(msg)
        if warnings is not None:
            warnings.append(msg)
        return default


def _parse_int(raw: str) -> int:
    s = str(raw).strip()
    if not _INT_PATTERN.match(s):
        raise ConfigParseError("not an integer")
    return int(s)


def _parse_interval(raw: str) -> timedelta:
    try:
        interval = parse_duration(raw)
    except ValueError as e:
        raise ConfigParseError(str(e)) from e
    if interval <= timedelta(0):
        raise ConfigParseError("polling interval must be positive")
    return interval


def _parse_growth(raw: str) -> int:
    value = _parse_int(raw)
    if value < 1:
        raise ConfigParseError("expansion percent must be at least 1")
    return value


def _parse_threshold(raw: str) -> int:
    value = _parse_int(raw)
    if value < 1 or value > 99:
        raise ConfigParseError("threshold must be between 1 and 99")
    return value


def _parse_ceiling(raw: str) -> int:
    try:
        return parse_quantity(raw)
    except ValueError as e:
        raise ConfigParseError(str(e)) from e
