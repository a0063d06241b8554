from __future__ import annotations

from typing import Any, cast

from ytt.errors import RemoteError


def execute_request(request: Any, *, context: str) -> dict[str, Any]:
    try:
        response = request.execute()
    except Exception as exc:
        raise RemoteError(context, cause=exc) from exc
    return as_dict(response)


def as_dict(value: object) -> dict[str, Any]:
    if isinstance(value, dict):
        return cast(dict[str, Any], value)
    return {}


def as_list(value: object) -> list[Any]:
    if isinstance(value, list):
        return cast(list[Any], value)
    return []


def coerce_str(raw_value: object) -> str:
    if isinstance(raw_value, str):
        return raw_value
    return ""


def coerce_count(raw_value: object) -> int:
    # The Data API serializes counters as decimal strings.
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(0, raw_value)
    if isinstance(raw_value, str) and raw_value.strip().isdigit():
        return int(raw_value.strip())
    return 0


def extract_string_list(raw_value: object) -> tuple[str, ...]:
    if not isinstance(raw_value, list):
        return ()
    values: list[str] = []
    for raw_item in cast(list[Any], raw_value):
        if isinstance(raw_item, str) and raw_item.strip():
            values.append(raw_item)
    return tuple(values)
