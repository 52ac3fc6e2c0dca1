from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mockwire._internal.type_checks import is_runtime_class
from mockwire.assisted import AssistedFactoryProvider
from mockwire.binder import Binder, BindingBuilder, ConstantBindingBuilder
from mockwire.keys import Key
from mockwire.mocking import SpyProvider
from mockwire.providers import Provider
from mockwire.scope import TestScope

if TYPE_CHECKING:
    from typing_extensions import Self


@dataclass(slots=True)
class BindingInfo:
    """What one explicit binding statement binds, and what it resolves to.

    Created when the statement starts and completed as the fluent calls are
    made. ``bound_type`` stays ``None`` until a target class is known;
    fixed-value bindings have no dependencies to trace.
    """

    abstract_type: Any
    qualifier: Any = None
    bound_type: Any = None
    is_bound_to_fixed_value: bool = False

    @property
    def key(self) -> Key:
        return Key(self.abstract_type, self.qualifier)

    @property
    def traced_type(self) -> Any:
        """Type whose injection points are followed by the closure walk."""
        return self.abstract_type if self.bound_type is None else self.bound_type


class ObservedLinkedBindingBuilder:
    """Record the target and scope of a statement, then forward to the real builder."""

    def __init__(self, delegate: BindingBuilder, info: BindingInfo) -> None:
        self._delegate = delegate
        self._info = info

    def to(self, target: Any) -> Self:
        self._info.bound_type = Key.of(target).type
        self._delegate.to(target)
        return self

    def to_instance(self, instance: Any) -> None:
        self._info.is_bound_to_fixed_value = True
        self._delegate.to_instance(instance)

    def to_provider(self, provider: Any) -> Self:
        if isinstance(provider, SpyProvider):
            self._info.bound_type = self._info.abstract_type
        elif isinstance(provider, AssistedFactoryProvider):
            self._info.bound_type = provider.produced_type
        elif isinstance(provider, Key):
            self._info.bound_type = provider.type
        elif is_runtime_class(provider) and issubclass(provider, Provider):
            self._info.bound_type = provider
        else:
            self._info.is_bound_to_fixed_value = True
        self._delegate.to_provider(provider)
        return self

    def in_scope(self, scope: TestScope) -> None:
        self._delegate.in_scope(scope)

    def as_eager_singleton(self) -> None:
        self._delegate.as_eager_singleton()


class ObservedAnnotatedBindingBuilder(ObservedLinkedBindingBuilder):
    """Builder returned by ``bind``: may be qualified before its target is chosen."""

    def annotated_with(self, qualifier: Any) -> ObservedLinkedBindingBuilder:
        self._delegate.annotated_with(qualifier)
        self._info.qualifier = qualifier
        return ObservedLinkedBindingBuilder(self._delegate, self._info)


class ObservedConstantBindingBuilder:
    """Builder returned by ``bind_constant``: the constant's type becomes the bound type."""

    def __init__(self, delegate: ConstantBindingBuilder, info: BindingInfo) -> None:
        self._delegate = delegate
        self._info = info

    def annotated_with(self, qualifier: Any) -> Self:
        self._delegate.annotated_with(qualifier)
        self._info.qualifier = qualifier
        return self

    def to(self, value: Any) -> None:
        self._delegate.to(value)
        self._info.abstract_type = type(value)
        self._info.is_bound_to_fixed_value = True


class BindingObserver:
    """Binder front that records every statement in ``bindings_observed``.

    Each ``bind`` or ``bind_constant`` call appends exactly one ``BindingInfo``
    and returns a builder mirroring the real one; every fluent call is
    forwarded unchanged after its effect is recorded.
    """

    def __init__(self, binder: Binder, bindings_observed: list[BindingInfo]) -> None:
        self._binder = binder
        self._bindings_observed = bindings_observed

    def bind(self, dependency: Any) -> ObservedAnnotatedBindingBuilder:
        key = Key.of(dependency)
        delegate = self._binder.bind(key)
        info = BindingInfo(abstract_type=key.type, qualifier=key.qualifier)
        self._bindings_observed.append(info)
        return ObservedAnnotatedBindingBuilder(delegate, info)

    def bind_constant(self) -> ObservedConstantBindingBuilder:
        delegate = self._binder.bind_constant()
        info = BindingInfo(abstract_type=None)
        self._bindings_observed.append(info)
        return ObservedConstantBindingBuilder(delegate, info)


__all__ = [
    "BindingInfo",
    "BindingObserver",
    "ObservedAnnotatedBindingBuilder",
    "ObservedConstantBindingBuilder",
    "ObservedLinkedBindingBuilder",
]
