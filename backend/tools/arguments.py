"""Coercion helpers for arguments supplied by the model."""

from typing import Any, List, Optional

from errors import ErrorCode, ValidationError


def bounded_int(value: Any, default: int, low: int, high: int, name: str) -> int:
    """Coerce value to an int clamped into [low, high]; None means default."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(
            f"Invalid value for {name}",
            parameter=name,
            expected="integer",
            received=str(value),
            code=ErrorCode.VALIDATION_INVALID_TYPE,
        )
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid value for {name}",
            parameter=name,
            expected="integer",
            received=str(value),
            code=ErrorCode.VALIDATION_INVALID_TYPE,
        ) from None
    return max(low, min(high, number))


def optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return bounded_int(value, 0, -(2**63), 2**63 - 1, name)


def string_list(value: Any) -> List[str]:
    """Accept a list of strings or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value)]
