from __future__ import annotations

from typing import TYPE_CHECKING

from ._token import describe


if TYPE_CHECKING:
    from collections.abc import Sequence


class ResolutionError(RuntimeError):
    """Base class for every error raised while resolving a token."""

    def __init__(self, token: object, message: str) -> None:
        super().__init__(message)
        self.token = token


class ProviderNotFoundError(ResolutionError):
    def __init__(self, token: object) -> None:
        super().__init__(token, f"No provider registered for token: {describe(token)}")


class AsyncProviderError(ResolutionError):
    def __init__(self, token: object) -> None:
        super().__init__(token, f'Provider for token "{describe(token)}" is async. Use get_async() instead.')


class CircularDependencyError(ResolutionError):
    """Raised when a token is requested again while it is still being built.

    `path` holds the tokens in traversal order, ending with the repeated one.
    """

    def __init__(self, path: Sequence[object]) -> None:
        self.path = tuple(path)
        cycle = " → ".join(describe(t) for t in self.path)
        super().__init__(self.path[-1], f"Circular dependency detected: {cycle}")


class CircularAliasError(ResolutionError):
    def __init__(self, chain: Sequence[object]) -> None:
        self.chain = tuple(chain)
        cycle = " → ".join(describe(t) for t in self.chain)
        super().__init__(self.chain[0], f"Circular alias detected: {cycle}")
