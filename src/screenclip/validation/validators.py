"""
Field validation functions for configuration values.
"""

from typing import Any, FrozenSet, Iterable, List, Optional, Union

from .exceptions import ValidationError


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a number within bounds.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_boolean(value: Any, field_name: str = "value") -> bool:
    """
    Validate a boolean, accepting the usual string spellings from env vars.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    raise ValidationError(
        f"{field_name} must be a boolean, got {value!r}",
        field_name=field_name,
        value=value
    )


def validate_enum_choice(
    value: Any,
    valid_choices: List[str],
    field_name: str = "value"
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Raises:
        ValidationError: If value is not in valid choices
    """
    str_value = str(value)
    if str_value not in valid_choices:
        raise ValidationError(
            f"{field_name} must be one of {valid_choices}, got '{str_value}'",
            field_name=field_name,
            value=value
        )
    return str_value


def validate_extensions(
    value: Union[str, Iterable[Any]],
    field_name: str = "extensions"
) -> FrozenSet[str]:
    """
    Normalize a list of file extensions.

    Accepts a comma separated string or an iterable of strings. Leading dots
    are stripped and the result is lower-cased.

    Raises:
        ValidationError: If the list is empty or contains non-string entries
    """
    if isinstance(value, str):
        items: List[Any] = [part for part in value.split(",")]
    else:
        try:
            items = list(value)
        except TypeError:
            raise ValidationError(
                f"{field_name} must be a list of strings, got {value!r}",
                field_name=field_name,
                value=value
            )

    normalized = set()
    for item in items:
        if not isinstance(item, str):
            raise ValidationError(
                f"{field_name} entries must be strings, got {item!r}",
                field_name=field_name,
                value=value
            )
        ext = item.strip().lstrip(".").lower()
        if not ext:
            continue
        if "/" in ext or "\\" in ext:
            raise ValidationError(
                f"{field_name} entry '{item}' is not a file extension",
                field_name=field_name,
                value=value
            )
        normalized.add(ext)

    if not normalized:
        raise ValidationError(
            f"{field_name} must contain at least one extension",
            field_name=field_name,
            value=value
        )
    return frozenset(normalized)


def validate_log_level(value: Any, field_name: str = "log_level") -> str:
    """Validate a logging level name."""
    return validate_enum_choice(
        str(value).upper(),
        valid_choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        field_name=field_name,
    )
