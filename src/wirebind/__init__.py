"""Token based dependency injection.

This package provides a small inversion-of-control container for Python,
allowing registration of values, classes and factories under opaque tokens,
with explicit dependency lists, configurable lifetimes, and child containers
for overrides and scopes.

Exports:
- `Container`: registers providers and resolves tokens, sync or async.
- `create_token`: creates a unique `Token`, optionally described for diagnostics.
- `Lifetime`: singleton, transient or scoped caching of resolved instances.
- `ValueProvider`, `ClassProvider`, `FactoryProvider`: the three ways to provide a value.
- `ResolutionError` and its subclasses, raised when a token cannot be resolved.

Test helpers live in `wirebind.testing`.
"""

from ._container import Container, ContainerInfo, create_container
from ._errors import (
    AsyncProviderError,
    CircularAliasError,
    CircularDependencyError,
    ProviderNotFoundError,
    ResolutionError,
)
from ._provider import ClassProvider, FactoryProvider, Lifetime, Provider, Registration, ValueProvider
from ._token import Token, create_token, describe


__all__ = [
    "AsyncProviderError",
    "CircularAliasError",
    "CircularDependencyError",
    "ClassProvider",
    "Container",
    "ContainerInfo",
    "FactoryProvider",
    "Lifetime",
    "Provider",
    "ProviderNotFoundError",
    "Registration",
    "ResolutionError",
    "Token",
    "ValueProvider",
    "create_container",
    "create_token",
    "describe",
]
