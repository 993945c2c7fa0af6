from __future__ import annotations

import inspect
from typing import Any, Generic, TypeVar


T = TypeVar("T")

ANONYMOUS = "anonymous"


class Token(Generic[T]):
    """Opaque lookup key for a dependency.

    Two tokens are never equal unless they are the same object, even when they
    share a description. The type parameter is for type checkers only.
    """

    __slots__ = ("_description",)

    def __init__(self, description: str | None = None) -> None:
        object.__setattr__(self, "_description", description)

    @property
    def description(self) -> str | None:
        return self._description

    def __setattr__(self, name: str, value: Any) -> None:
        msg = "Token is immutable"
        raise AttributeError(msg)

    def __delattr__(self, name: str) -> None:
        msg = "Token is immutable"
        raise AttributeError(msg)

    def __repr__(self) -> str:
        return f"Token({self._description!r})"


def create_token(description: str | None = None) -> Token[Any]:
    """Create a new unique token.

    Example:
      Database = create_token("Database")

    """
    return Token(description)


def describe(token: object) -> str:
    """Human readable label for `token`, used in errors and debug listings."""
    if isinstance(token, Token):
        return token.description or ANONYMOUS
    if inspect.isclass(token):
        return token.__qualname__
    if isinstance(token, str):
        return token or ANONYMOUS
    return repr(token)
