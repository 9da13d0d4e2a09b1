"""Timestamp formatting shared by span times and log labels."""

from __future__ import annotations

from datetime import datetime, timezone

_NANOS_PER_SECOND = 1_000_000_000


def format_rfc3339_nano(timestamp_ns: int) -> str:
    """
    Format epoch nanoseconds as an RFC3339 UTC timestamp.

    Fractional seconds keep nanosecond precision with trailing zeros
    trimmed; whole seconds carry no fraction at all.

    >>> format_rfc3339_nano(1_700_000_000_123_450_000)
    '2023-11-14T22:13:20.12345Z'
    """
    seconds, nanos = divmod(timestamp_ns, _NANOS_PER_SECOND)
    base = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    if not nanos:
        return f"{base}Z"
    fraction = f"{nanos:09d}".rstrip("0")
    return f"{base}.{fraction}Z"
