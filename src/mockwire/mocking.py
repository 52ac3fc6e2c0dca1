from __future__ import annotations

from typing import Any, TypeVar, cast
from unittest.mock import Mock, create_autospec

from mockwire.injector import Injector
from mockwire.keys import type_name
from mockwire.markers import inject
from mockwire.providers import Provider

T = TypeVar("T")


class MockProvider(Provider[T]):
    """Supply an autospecced ``unittest.mock`` stand-in for ``cls``.

    The stand-in rejects attributes ``cls`` does not declare and checks call
    signatures, so a test cannot silently drift from the real interface.
    """

    def __init__(self, cls: type[T]) -> None:
        self.cls = cls

    def get(self) -> T:
        return cast("T", create_autospec(self.cls, instance=True))

    def __repr__(self) -> str:
        return f"MockProvider({type_name(self.cls)})"


class SpyProvider(Provider[T]):
    """Supply a real ``cls`` wrapped in a spy.

    The real object is built through its constructor with every dependency
    injected, ignoring the binding the spy itself occupies. Calls pass through
    to it and are recorded on the returned ``Mock``.
    """

    def __init__(self, cls: type[T]) -> None:
        self.cls = cls
        self._injector: Injector | None = None

    @inject
    def use_injector(self, injector: Injector) -> None:
        self._injector = injector

    def get(self) -> T:
        if self._injector is None:
            msg = f"{self!r} is not attached to an injector."
            raise RuntimeError(msg)
        spied: Any = self._injector.construct(self.cls)
        return cast("T", Mock(spec=spied, wraps=spied))

    def __repr__(self) -> str:
        return f"SpyProvider({type_name(self.cls)})"


__all__ = ["MockProvider", "SpyProvider"]
