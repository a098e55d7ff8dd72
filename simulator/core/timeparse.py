from __future__ import annotations

import re


_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")
_PART_RE = re.compile(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)")

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration_to_seconds(raw: str) -> float:
    """Parse '500ms', '10s', '5m', '1h', compound '1m30s', or bare seconds '2.5'."""
    text = raw.strip()
    if not text:
        raise ValueError("duration must not be empty")

    if _NUMBER_RE.match(text):
        return float(text)

    total = 0.0
    pos = 0
    for match in _PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group("value")) * _UNIT_SECONDS[match.group("unit")]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(
            "duration must match <number><unit>[<number><unit>...] where unit is ms|s|m|h"
        )

    return total


def format_seconds(seconds: float) -> str:
    """Render seconds the way durations are written on the command line."""
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs:g}s")
    return "".join(parts)
