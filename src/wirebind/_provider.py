from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"
    SCOPED = "scoped"


@dataclass(frozen=True)
class ValueProvider:
    """A precomputed value, handed out as-is."""

    value: Any
    lifetime: Lifetime | None = None


@dataclass(frozen=True)
class ClassProvider:
    """A class constructed with its resolved `deps` passed positionally."""

    cls: type
    deps: tuple[Any, ...] = ()
    lifetime: Lifetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "deps", tuple(self.deps))


@dataclass(frozen=True)
class FactoryProvider:
    """A callable invoked with its resolved `deps` passed positionally.

    `is_async` marks a factory whose result must be awaited. Left as None it is
    inferred from the callable.
    """

    factory: Callable[..., Any]
    deps: tuple[Any, ...] = ()
    lifetime: Lifetime | None = None
    is_async: bool | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "deps", tuple(self.deps))
        if self.is_async is None:
            object.__setattr__(self, "is_async", inspect.iscoroutinefunction(self.factory))


Provider = ValueProvider | ClassProvider | FactoryProvider

_DEFAULT_LIFETIMES: dict[type, Lifetime] = {
    ValueProvider: Lifetime.SINGLETON,
    ClassProvider: Lifetime.SINGLETON,
    FactoryProvider: Lifetime.TRANSIENT,
}


@dataclass(frozen=True, eq=False)
class Registration:
    """A provider stored under a token, with its effective lifetime.

    Compared by identity: a cached instance belongs to one registration object.
    """

    provider: Provider
    lifetime: Lifetime

    @classmethod
    def create(cls, provider: Provider, lifetime: Lifetime | None = None) -> Registration:
        if not isinstance(provider, (ValueProvider, ClassProvider, FactoryProvider)):
            msg = f"Expected ValueProvider, ClassProvider or FactoryProvider, got {type(provider).__name__}"
            raise TypeError(msg)

        effective = lifetime or provider.lifetime or _DEFAULT_LIFETIMES[type(provider)]
        return cls(provider=provider, lifetime=effective)

    @property
    def deps(self) -> tuple[Any, ...]:
        if isinstance(self.provider, ValueProvider):
            return ()
        return self.provider.deps

    @property
    def is_async(self) -> bool:
        return isinstance(self.provider, FactoryProvider) and bool(self.provider.is_async)

    @property
    def is_cached(self) -> bool:
        return self.lifetime is not Lifetime.TRANSIENT
