"""
Utility functions for the API module.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder

_LOCATION_PREFIXES = {"body", "query", "path", "header"}
_VALUE_ERROR_PREFIX = "Value error, "


def validation_detail(error: dict[str, Any]) -> dict[str, Any]:
    """
    Convert one pydantic error into a ``{field, message, value}`` entry.

    Password values and whole-body inputs are never echoed back.

    Args:
        error: An item from ``RequestValidationError.errors()``

    Returns:
        Client-facing detail dict
    """
    loc = [str(part) for part in error.get("loc", ()) if part not in _LOCATION_PREFIXES]
    field = ".".join(loc)

    message = str(error.get("msg", "Invalid value"))
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]

    value = None
    if error.get("type") != "missing" and field and "password" not in field.lower():
        value = jsonable_encoder(error.get("input"))

    return {"field": field, "message": message, "value": value}


def paging_value(raw: str | None, default: int, maximum: int | None = None) -> int:
    """
    Read a positive integer query parameter leniently.

    Missing, non-numeric or non-positive values fall back to ``default``;
    values above ``maximum`` are capped.
    """
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    if value < 1:
        value = default
    if maximum is not None:
        value = min(value, maximum)
    return value
