from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from mockwire.injector import Injector
from mockwire.keys import type_name
from mockwire.markers import inject
from mockwire.providers import Provider

T = TypeVar("T")


class Factory(ABC, Generic[T]):
    """Build values of ``T`` from caller-supplied (``Assisted``) arguments.

    Inject ``Factory[T]`` where a class needs values known only at call time
    alongside injected collaborators. Bind it with ``AssistedFactoryProvider``;
    an unbound ``Factory[T]`` is mocked like any other abstract type.

    Examples:
        .. code-block:: python

            class Payment:
                def __init__(self, gateway: Gateway, amount: Annotated[int, Assisted]) -> None: ...


            binder.bind(Factory[Payment]).to_provider(AssistedFactoryProvider(Payment))
            payment = injector.get_instance(Factory[Payment]).create(amount=100)

    """

    @abstractmethod
    def create(self, **assisted: Any) -> T:
        """Build a ``T`` with ``assisted`` supplying its ``Assisted`` parameters."""


class _InjectingFactory(Factory[T]):
    def __init__(self, injector: Injector, produced_type: type[T]) -> None:
        self._injector = injector
        self._produced_type = produced_type

    def create(self, **assisted: Any) -> T:
        return self._injector.construct(self._produced_type, assisted=assisted)

    def __repr__(self) -> str:
        return f"Factory[{type_name(self._produced_type)}]"


class AssistedFactoryProvider(Provider[Factory[T]]):
    """Supply a ``Factory`` that builds ``produced_type`` through the injector.

    Parameters qualified with ``Assisted`` are taken from the keyword arguments
    of ``Factory.create``; ``Assisted("name")`` reads the argument ``name``.
    Everything else is injected.
    """

    def __init__(self, produced_type: type[T]) -> None:
        self.produced_type = produced_type
        self._injector: Injector | None = None

    @inject
    def use_injector(self, injector: Injector) -> None:
        self._injector = injector

    def get(self) -> Factory[T]:
        if self._injector is None:
            msg = f"{self!r} is not attached to an injector."
            raise RuntimeError(msg)
        return _InjectingFactory(self._injector, self.produced_type)

    def __repr__(self) -> str:
        return f"AssistedFactoryProvider({type_name(self.produced_type)})"


__all__ = ["AssistedFactoryProvider", "Factory"]
