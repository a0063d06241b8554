from __future__ import annotations

DURATION_MARKER = "PT"
UNIT_SECONDS: dict[str, int] = {"H": 3_600, "M": 60, "S": 1}
_ASCII_DIGITS = frozenset("0123456789")


def parse_duration(value: str) -> int:
    """Return the total seconds of a `PT<n>H<n>M<n>S` duration.

    Only hour, minute and second groups are understood. Anything else (no `PT`
    marker, a digit run without a known unit, a unit without digits, or nothing
    after the marker) yields 0, so callers cannot tell a zero-length video from
    an unparseable duration.
    """
    if not value.startswith(DURATION_MARKER):
        return 0
    remainder = value[len(DURATION_MARKER) :]
    if not remainder:
        return 0

    total = 0
    index = 0
    while index < len(remainder):
        start = index
        while index < len(remainder) and remainder[index] in _ASCII_DIGITS:
            index += 1
        if index == start or index >= len(remainder):
            return 0
        multiplier = UNIT_SECONDS.get(remainder[index])
        if multiplier is None:
            return 0
        total += int(remainder[start:index]) * multiplier
        index += 1
    return total


def is_short(duration_seconds: int, min_duration_seconds: int) -> bool:
    return duration_seconds < min_duration_seconds
