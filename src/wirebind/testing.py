"""Helpers for swapping dependencies in tests.

- `create_test_container`: a disposable child container.
- `with_mock` / `with_mock_async`: run a callback while a token resolves to a mock,
  restoring the previous registration afterwards.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ._container import Container
from ._provider import ValueProvider
from ._token import describe


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    R = TypeVar("R")


@dataclass(frozen=True)
class IsolatedContainer:
    """A container whose state can be thrown away without touching its base."""

    container: Container

    def dispose(self) -> None:
        self.container.clear()

    def __enter__(self) -> Container:
        return self.container

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()


def create_test_container(base: Container | None = None) -> IsolatedContainer:
    """Create a child of `base` (or of a fresh root) for one test.

    Example:
      isolated = create_test_container(app_container)
      isolated.container.register_value(Config, test_config)
      ...
      isolated.dispose()

    """
    root = base if base is not None else Container()
    return IsolatedContainer(root.create_child())


def with_mock(container: Container, token: object, mock: Any, fn: Callable[[], R]) -> R:
    """Call `fn` while `token` resolves to `mock` in `container`.

    The previous registration, and any instance it had cached, is restored even
    when `fn` raises.
    """
    logger.debug("Mocking %s", describe(token))
    with container.override(token, ValueProvider(mock)):
        return fn()


async def with_mock_async(
    container: Container,
    token: object,
    mock: Any,
    fn: Callable[[], Awaitable[R] | R],
) -> R:
    logger.debug("Mocking %s", describe(token))
    with container.override(token, ValueProvider(mock)):
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result
