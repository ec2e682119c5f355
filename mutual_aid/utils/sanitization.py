"""Helpers for keeping secrets out of logged request bodies."""
from typing import Any

# Keys removed before a body is written to the logs.
SENSITIVE_KEYS = frozenset({"password", "token", "authorization", "creditCard"})


def redact(value: Any) -> Any:
    """Copy of a decoded JSON value with sensitive keys dropped, for logging."""
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, dict):
        return {key: redact(item) for key, item in value.items() if key not in SENSITIVE_KEYS}
    return value
