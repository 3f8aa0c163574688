from __future__ import annotations

from typing import Any, Optional


class DradisError(Exception):
    """Base class for every error raised by dradis_client."""


class ConfigError(DradisError, ValueError):
    pass


class UnexpectedStatusError(DradisError):
    """The server answered, but not with the single status code the operation expects."""

    def __init__(self, operation: str, expected: int, status_code: int, response: Any = None) -> None:
        super().__init__(f"could not {operation}: expected HTTP {expected}, got {status_code}")
        self.operation = operation
        self.expected = expected
        self.status_code = status_code
        self.response = response


class DecodeError(DradisError):
    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"could not {operation}: malformed response body ({cause})")
        self.operation = operation
        self.cause = cause


class FieldNotFoundError(DradisError, KeyError):
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"no field named {self.key!r}"


class NotFoundError(DradisError, LookupError):
    def __init__(self, what: str, query: Any) -> None:
        super().__init__(f"could not find {what} {query}")
        self.what = what
        self.query = query


class DetachedEntityError(DradisError):
    """An operation needed a back-reference (node or project) that is not set."""
