"""Validation utilities for runtime configuration."""

from pydantic import ValidationError as PydanticValidationError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into human-readable messages.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        List of messages, one per field error
    """
    errors: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "unknown"
        msg = error.get("msg", "Unknown error")

        if error.get("type", "") == "value_error":
            formatted = f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
        else:
            formatted = f"Field '{field_path}': {msg}"
        errors.append(formatted)

    return errors if errors else ["Validation failed with unknown error"]


def first_error_field(exc: PydanticValidationError) -> str:
    """Return the dotted location of the first error, or ``settings``."""
    for error in exc.errors():
        loc = error.get("loc", ())
        if loc:
            return ".".join(str(item) for item in loc)
    return "settings"
