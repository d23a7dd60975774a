"""Redacting wrapper for secret material.

Container tokens carry a password that must never reach a log line or a
status page. ``SecretValue`` keeps the bytes reachable for the code that
needs them while rendering as ``[REDACTED]`` everywhere else.

Example:
    >>> secret = SecretValue(b"hunter2")
    >>> str(secret)
    '[REDACTED]'
    >>> secret.get_secret()
    b'hunter2'
"""

from __future__ import annotations


class SecretValue:
    """Wrapper for secret values that prevents accidental logging."""

    __slots__ = ("_value",)

    def __init__(self, value: bytes | str):
        self._value = value

    def get_secret(self) -> bytes | str:
        """Get the actual secret value."""
        return self._value

    def __str__(self) -> str:
        return "[REDACTED]"

    def __repr__(self) -> str:
        return "SecretValue('[REDACTED]')"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretValue):
            return self._value == other._value
        return False

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __len__(self) -> int:
        return len(self._value)
