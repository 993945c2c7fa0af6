from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._errors import (
    AsyncProviderError,
    CircularAliasError,
    CircularDependencyError,
    ProviderNotFoundError,
)
from ._provider import (
    ClassProvider,
    FactoryProvider,
    Lifetime,
    Provider,
    Registration,
    ValueProvider,
)
from ._token import Token, describe


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Iterator

    T = TypeVar("T")
    R = TypeVar("R")

_MISSING: Any = object()


@dataclass(frozen=True)
class ContainerInfo:
    """Snapshot of one container's local state, for debugging."""

    tokens: list[str] = field(default_factory=list)
    aliases: list[tuple[str, str]] = field(default_factory=list)


class Container:
    """Token based DI container.

    - register values, classes or factories with explicit dependency tokens
    - resolve synchronously or asynchronously, with cycle detection
    - lifetimes: singleton / transient / scoped
    - parent/child hierarchy for overrides and scopes.

    A child only holds a reference to its parent, never the other way around.
    """

    def __init__(self, parent: Container | None = None, *, allow_optional: bool = False) -> None:
        self._parent = parent
        self._allow_optional = allow_optional
        self._registrations: dict[Any, Registration] = {}
        self._aliases: dict[Any, Any] = {}
        # token -> (registration it was built from, instance)
        self._singletons: dict[Any, tuple[Registration, object]] = {}
        self._scoped: dict[Any, tuple[Registration, object]] = {}
        self._pending: dict[Any, asyncio.Future[Any]] = {}
        # One lock per container tree, so a child and its ancestors never deadlock.
        self._lock = parent._lock if parent is not None else threading.RLock()

    @property
    def parent(self) -> Container | None:
        return self._parent

    @property
    def allow_optional(self) -> bool:
        return self._allow_optional

    # ------------------------------------------------------------------
    # Registration

    def register(self, token: object, provider: Provider, *, lifetime: Lifetime | None = None) -> Container:
        """Register a provider for a token, replacing any previous one.

        Example:
          container.register(UserService, ClassProvider(UserServiceImpl, deps=[Database]))
          container.register(Config, ValueProvider(config))

        """
        registration = Registration.create(provider, lifetime)

        with self._lock:
            self._registrations[token] = registration
            self._evict(token)

        logger.debug(
            "Registered %s as %s (%s)",
            describe(token),
            type(provider).__name__,
            registration.lifetime.value,
        )
        return self

    def register_value(self, token: object, value: object, lifetime: Lifetime = Lifetime.SINGLETON) -> Container:
        return self.register(token, ValueProvider(value), lifetime=lifetime)

    def register_class(
        self,
        token: object,
        cls: type,
        deps: Iterable[object] = (),
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> Container:
        return self.register(token, ClassProvider(cls, tuple(deps)), lifetime=lifetime)

    def register_factory(
        self,
        token: object,
        factory: Callable[..., Any],
        deps: Iterable[object] = (),
        *,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        is_async: bool | None = None,
    ) -> Container:
        """Register a factory called with its resolved `deps`.

        Coroutine functions are treated as async factories unless `is_async` says otherwise.
        """
        return self.register(token, FactoryProvider(factory, tuple(deps), is_async=is_async), lifetime=lifetime)

    def register_many(self, entries: Iterable[tuple[object, Provider]]) -> Container:
        for token, provider in entries:
            self.register(token, provider)
        return self

    def alias(self, source: object, alias: object) -> Container:
        """Make `alias` resolve to whatever `source` resolves to."""
        with self._lock:
            self._aliases[alias] = source
        return self

    def unregister(self, token: object) -> Container:
        """Remove the local registration for `token` and its cached instances.

        Aliases pointing at `token` are kept.
        """
        with self._lock:
            self._registrations.pop(token, None)
            self._evict(token)

        logger.debug("Unregistered %s", describe(token))
        return self

    def clear(self) -> None:
        """Drop every local registration, alias and cached instance. The parent is untouched."""
        with self._lock:
            self._registrations.clear()
            self._aliases.clear()
            self._singletons.clear()
            self._scoped.clear()
            self._pending.clear()

    def _evict(self, token: object) -> None:
        self._singletons.pop(token, None)
        self._scoped.pop(token, None)

    # ------------------------------------------------------------------
    # Introspection

    def has(self, token: object) -> bool:
        """Whether `token` resolves to a registration here or in an ancestor."""
        with self._lock:
            return self._lookup(self._canonical(token)) is not None

    def registration_for(self, token: object, *, local: bool = False) -> Registration | None:
        with self._lock:
            key = self._canonical(token)
            if local:
                return self._registrations.get(key)
            found = self._lookup(key)
            return found[1] if found else None

    def debug(self) -> ContainerInfo:
        with self._lock:
            return ContainerInfo(
                tokens=[describe(t) for t in self._registrations],
                aliases=[(describe(a), describe(s)) for a, s in self._aliases.items()],
            )

    # ------------------------------------------------------------------
    # Resolution

    @overload
    def get(self, token: Token[T]) -> T: ...

    @overload
    def get(self, token: type[T]) -> T: ...

    @overload
    def get(self, token: object) -> Any: ...

    def get(self, token: object) -> Any:
        """Resolve the token to an instance.

        Raises:
          ProviderNotFoundError: nothing is registered (unless `allow_optional`).
          AsyncProviderError: the provider, or one of its dependencies, is async.
          CircularDependencyError: the dependency graph loops back on itself.
          CircularAliasError: the alias chain loops back on itself.

        """
        with self._lock:
            return self._resolve(token, [])

    def get_optional(self, token: object, default: Any = None) -> Any:
        try:
            with self._lock:
                if not self.has(token):
                    return default
                return self.get(token)
        except ProviderNotFoundError:
            return default

    @overload
    async def get_async(self, token: Token[T]) -> T: ...

    @overload
    async def get_async(self, token: type[T]) -> T: ...

    @overload
    async def get_async(self, token: object) -> Any: ...

    async def get_async(self, token: object) -> Any:
        """Resolve the token, awaiting async factories along the way.

        Concurrent calls for a singleton (or scoped) token that is not cached yet
        share a single construction.
        """
        return await self._resolve_async(token, [])

    async def get_optional_async(self, token: object, default: Any = None) -> Any:
        try:
            if not self.has(token):
                return default
            return await self.get_async(token)
        except ProviderNotFoundError:
            return default

    def _canonical(self, token: object) -> object:
        chain = [token]
        current = token
        while True:
            target = self._find_alias(current)
            if target is _MISSING:
                return current
            if target in chain:
                raise CircularAliasError([*chain, target])
            chain.append(target)
            current = target

    def _find_alias(self, token: object) -> object:
        container: Container | None = self
        while container is not None:
            target = container._aliases.get(token, _MISSING)
            if target is not _MISSING:
                return target
            container = container._parent
        return _MISSING

    def _lookup(self, token: object) -> tuple[Container, Registration] | None:
        container: Container | None = self
        while container is not None:
            registration = container._registrations.get(token)
            if registration is not None:
                return container, registration
            container = container._parent
        return None

    def _locate(self, token: object, path: list[object]) -> tuple[object, Container, Registration] | None:
        key = self._canonical(token)
        if key in path:
            raise CircularDependencyError([*path, key])

        found = self._lookup(key)
        if found is None:
            if self._allow_optional:
                return None
            raise ProviderNotFoundError(key)

        owner, registration = found
        return key, owner, registration

    def _holder(self, owner: Container, registration: Registration) -> Container | None:
        """Container whose cache keeps the instance, None for transient."""
        if not registration.is_cached:
            return None
        return owner if registration.lifetime is Lifetime.SINGLETON else self

    def _cache(self, registration: Registration) -> dict[Any, tuple[Registration, object]]:
        return self._singletons if registration.lifetime is Lifetime.SINGLETON else self._scoped

    def _cached(self, key: object, registration: Registration) -> object:
        entry = self._cache(registration).get(key)
        if entry is not None and entry[0] is registration:
            return entry[1]
        return _MISSING

    def _store(self, key: object, registration: Registration, instance: object) -> None:
        with self._lock:
            self._cache(registration)[key] = (registration, instance)

    def _resolve(self, token: object, path: list[object]) -> Any:
        located = self._locate(token, path)
        if located is None:
            return None
        key, owner, registration = located

        if isinstance(registration.provider, ValueProvider):
            return registration.provider.value

        if registration.is_async:
            raise AsyncProviderError(key)

        holder = self._holder(owner, registration)
        if holder is not None:
            instance = holder._cached(key, registration)
            if instance is not _MISSING:
                return instance

        # Singletons see the dependencies of the container that owns them.
        resolver = owner if registration.lifetime is Lifetime.SINGLETON else self

        path.append(key)
        try:
            args = [resolver._resolve(dep, path) for dep in registration.deps]
            instance = _construct(registration, args)
        finally:
            path.pop()

        if holder is not None:
            holder._store(key, registration, instance)
            logger.debug("Created %s instance of %s", registration.lifetime.value, describe(key))
        return instance

    async def _resolve_async(self, token: object, path: list[object]) -> Any:
        located = self._locate(token, path)
        if located is None:
            return None
        key, owner, registration = located

        if isinstance(registration.provider, ValueProvider):
            return registration.provider.value

        resolver = owner if registration.lifetime is Lifetime.SINGLETON else self

        holder = self._holder(owner, registration)
        if holder is None:
            return await resolver._construct_async(key, registration, path)

        instance = holder._cached(key, registration)
        if instance is not _MISSING:
            return instance

        pending = holder._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(
                resolver._create_async(holder, key, registration, list(path)),
            )
            holder._pending[key] = pending
        # Shielded so one cancelled caller does not cancel the construction shared by the others.
        return await asyncio.shield(pending)

    async def _create_async(
        self,
        holder: Container,
        key: object,
        registration: Registration,
        path: list[object],
    ) -> Any:
        try:
            instance = await self._construct_async(key, registration, path)
            holder._store(key, registration, instance)
            logger.debug("Created %s instance of %s", registration.lifetime.value, describe(key))
            return instance
        finally:
            holder._pending.pop(key, None)

    async def _construct_async(self, key: object, registration: Registration, path: list[object]) -> Any:
        path.append(key)
        try:
            args = [await self._resolve_async(dep, path) for dep in registration.deps]
            instance = _construct(registration, args)
            if registration.is_async or inspect.isawaitable(instance):
                instance = await instance
        finally:
            path.pop()
        return instance

    # ------------------------------------------------------------------
    # Hierarchy and scopes

    def create_child(self, overrides: Iterable[tuple[object, Provider]] | None = None) -> Container:
        """Create a container that looks up in itself first, then falls back to this one."""
        child = Container(self, allow_optional=self._allow_optional)
        if overrides:
            child.register_many(overrides)
        return child

    @contextmanager
    def scope(self, overrides: Iterable[tuple[object, Provider]] | None = None) -> Iterator[Container]:
        """Yield a child container which is cleared on exit, however the block exits."""
        child = self.create_child(overrides)
        logger.debug("Entered scope %#x", id(child))
        try:
            yield child
        finally:
            child.clear()
            logger.debug("Disposed scope %#x", id(child))

    def run_in_scope(
        self,
        fn: Callable[[Container], R],
        overrides: Iterable[tuple[object, Provider]] | None = None,
    ) -> R:
        """Call `fn` with a child container that is cleared afterwards.

        Raises TypeError when `fn` returns an awaitable; use `run_in_scope_async` for those.
        """
        with self.scope(overrides) as child:
            result = fn(child)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                msg = "run_in_scope() got an awaitable result, use run_in_scope_async() instead"
                raise TypeError(msg)
            return result

    async def run_in_scope_async(
        self,
        fn: Callable[[Container], Awaitable[R] | R],
        overrides: Iterable[tuple[object, Provider]] | None = None,
    ) -> R:
        """Like `run_in_scope`, awaiting the callback's result when it is awaitable.

        Example:
          await container.run_in_scope_async(handle_request, [(RequestId, ValueProvider(rid))])

        """
        with self.scope(overrides) as child:
            result = fn(child)
            if inspect.isawaitable(result):
                result = await result
            return result

    @contextmanager
    def override(self, token: object, provider: Provider) -> Iterator[Container]:
        """Temporarily register `provider` for `token` in this container.

        On exit the previous local state comes back exactly: the same registration
        and its cached instances, or no registration at all.
        An aliased `token` is overridden at the token its alias chain ends on.
        """
        with self._lock:
            token = self._canonical(token)
            previous = self._registrations.get(token)
            singleton = self._singletons.get(token)
            scoped = self._scoped.get(token)
            self.register(token, provider)

        try:
            yield self
        finally:
            with self._lock:
                self._evict(token)
                if previous is None:
                    self._registrations.pop(token, None)
                else:
                    self._registrations[token] = previous
                    if singleton is not None:
                        self._singletons[token] = singleton
                    if scoped is not None:
                        self._scoped[token] = scoped
            logger.debug("Restored %s", describe(token))


def _construct(registration: Registration, args: list[Any]) -> Any:
    provider = registration.provider
    if isinstance(provider, ClassProvider):
        return provider.cls(*args)
    if isinstance(provider, FactoryProvider):
        return provider.factory(*args)
    if isinstance(provider, ValueProvider):
        return provider.value

    msg = f"Unknown provider type: {type(provider).__name__}"
    raise TypeError(msg)


def create_container(parent: Container | None = None, *, allow_optional: bool = False) -> Container:
    """Create a new container, optionally as a child of `parent`."""
    return Container(parent, allow_optional=allow_optional)
