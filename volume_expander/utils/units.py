from __future__ import annotations

import re
from datetime import timedelta
from decimal import ROUND_CEILING, Decimal, InvalidOperation


# Largest value a Kubernetes quantity can hold as an integer (int64)
MAX_QUANTITY = 2**63 - 1

_QUANTITY_PATTERN = re.compile(
    r"^(?P<val>\d+(?:\.\d*)?|\.\d+)"
    r"(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|n|u|m|k|M|G|T|P|E|[eE][+-]?\d+)?$"
)

_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "k": Decimal(10) ** 3,
    "M": Decimal(10) ** 6,
    "G": Decimal(10) ** 9,
    "T": Decimal(10) ** 12,
    "P": Decimal(10) ** 15,
    "E": Decimal(10) ** 18,
}

_DURATION_PATTERN = re.compile(r"(?P<val>\d+(?:\.\d*)?|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)")

_DURATION_UNITS = {
    "ns": Decimal("1e-9"),
    "us": Decimal("1e-6"),
    "µs": Decimal("1e-6"),
    "μs": Decimal("1e-6"),
    "ms": Decimal("1e-3"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}


def parse_quantity(value: str | int) -> int:
    """Parse a Kubernetes resource quantity into an integer number of bytes.

    - 1Gi => 1073741824
    - 1G => 1000000000
    - 1.5Ki => 1536
    - 100m => 1 (fractions round up, like Quantity.Value())

    Values beyond the int64 range are clamped to MAX_QUANTITY.
    """
    if isinstance(value, bool):
        raise ValueError(f"Unknown quantity: {value}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Negative quantity: {value}")
        return min(value, MAX_QUANTITY)
    s = str(value).strip()
    m = _QUANTITY_PATTERN.match(s)
    if not m:
        raise ValueError(f"Unknown quantity: {value}")
    try:
        number = Decimal(m.group("val"))
    except InvalidOperation as e:  # pragma: no cover - regex guarantees a number
        raise ValueError(f"Unknown quantity: {value}") from e

    suffix = m.group("suffix") or ""
    if suffix in _BINARY_SUFFIXES:
        scaled = number * _BINARY_SUFFIXES[suffix]
    elif suffix in _DECIMAL_SUFFIXES:
        scaled = number * _DECIMAL_SUFFIXES[suffix]
    elif suffix:
        scaled = number.scaleb(int(suffix[1:]))
    else:
        scaled = number

    result = int(scaled.to_integral_value(rounding=ROUND_CEILING))
    return min(result, MAX_QUANTITY)


def format_quantity(num_bytes: int) -> str:
    """Render bytes as a binary-SI quantity, e.g. 1288490188800 => 1200Gi.

    Falls back to a plain integer when no binary suffix divides exactly.
    """
    if num_bytes < 0:
        raise ValueError(f"Negative quantity: {num_bytes}")
    for suffix, mult in sorted(_BINARY_SUFFIXES.items(), key=lambda kv: kv[1], reverse=True):
        if num_bytes >= mult and num_bytes % mult == 0:
            return f"{num_bytes // mult}{suffix}"
    return str(num_bytes)


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as 30s, 1m30s, 1.5h or 500ms.

    A bare "0" is accepted, and so is a leading sign ("+30s", "-5s"). This
    only parses; callers that need a positive interval reject the rest.
    """
    s = str(value).strip()
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"Unknown duration: {value!r}")

    total = Decimal(0)
    pos = 0
    for m in _DURATION_PATTERN.finditer(s):
        if m.start() != pos:
            raise ValueError(f"Unknown duration: {value}")
        total += Decimal(m.group("val")) * _DURATION_UNITS[m.group("unit")]
        pos = m.end()
    if pos != len(s):
        raise ValueError(f"Unknown duration: {value}")
    return timedelta(seconds=sign * float(total))
