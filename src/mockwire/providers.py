from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar, get_args

from mockwire.exceptions import MockWireConfigurationError
from mockwire.keys import Key

T = TypeVar("T")


class Provider(ABC, Generic[T]):
    """Supply values of ``T`` on demand.

    Inject ``Provider[T]`` to defer construction or to break a construction
    cycle; subclass it and pass an instance or the class to
    ``BindingBuilder.to_provider`` to control how a binding is built.
    """

    @abstractmethod
    def get(self) -> T:
        """Return a value of ``T``."""

    def __call__(self) -> T:
        return self.get()


class CallableProvider(Provider[T]):
    """Adapt a zero-argument callable to the ``Provider`` interface."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory

    def get(self) -> T:
        return self._factory()

    def __repr__(self) -> str:
        return f"CallableProvider({self._factory!r})"


def ensure_provided_key(key: Key, *, site: object) -> Key:
    """Map ``Provider[T]`` to ``T``, keeping the qualifier; return other keys unchanged.

    Args:
        key: Key as declared by an injection point.
        site: Hook, field or parameter that declared the key, used in errors.

    Raises:
        MockWireConfigurationError: If the provider is not parameterized.

    """
    if key.raw_type is not Provider:
        return key
    provided = get_args(key.type)
    if not provided:
        msg = f"{site} requests {key} without a type parameter; use Provider[T]."
        raise MockWireConfigurationError(msg)
    return key.with_type(provided[0])


__all__ = ["CallableProvider", "Provider", "ensure_provided_key"]
