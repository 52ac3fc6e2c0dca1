from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from mockwire._internal.type_checks import is_runtime_class
from mockwire.exceptions import MockWireConfigurationError, MockWireInvalidBindingError
from mockwire.keys import Key, is_qualifier
from mockwire.providers import CallableProvider, Provider
from mockwire.scope import TestScope

if TYPE_CHECKING:
    from typing_extensions import Self


class BindingKind(Enum):
    """How a binding produces its value."""

    UNTARGETTED = auto()
    """Build the key's own class through its constructor."""

    INSTANCE = auto()
    """Return a fixed value."""

    LINKED_KEY = auto()
    """Delegate to another key, typically an implementation class."""

    PROVIDER = auto()
    """Call ``get()`` on a provider instance."""

    PROVIDER_KEY = auto()
    """Resolve a provider from another key, then call ``get()`` on it."""


@dataclass(frozen=True, slots=True)
class Binding:
    """A completed association from a key to the way its value is produced."""

    key: Key
    kind: BindingKind
    target: Any = None
    """Instance, linked ``Key``, provider instance or provider ``Key``, depending on ``kind``."""
    scope: TestScope | None = None
    """``None`` means a new value is produced on every request."""


class Module(ABC):
    """A unit of binding configuration."""

    @abstractmethod
    def configure(self, binder: Binder) -> None:
        """Declare bindings on ``binder``."""

    @property
    def root_needs(self) -> tuple[tuple[Key, str], ...]:
        """``(key, site)`` pairs the module requires outside any binding.

        Read after ``configure``; the injector validates each key along with
        the bindings. The default requires nothing.
        """
        return ()


@dataclass(slots=True)
class _BindingDraft:
    dependency: Any
    qualifier: Any = None
    kind: BindingKind = BindingKind.UNTARGETTED
    target: Any = None
    scope: TestScope | None = None
    is_constant: bool = False
    is_targeted: bool = False

    @property
    def key(self) -> Key:
        return Key(self.dependency, self.qualifier)


class BindingBuilder:
    """Fluent builder returned by ``Binder.bind``.

    A statement reads ``bind(T)``, optionally ``annotated_with(q)``, at most
    one target (``to``, ``to_instance``, ``to_provider``), and at most one
    scope (``in_scope``, ``as_eager_singleton``).
    """

    def __init__(self, draft: _BindingDraft) -> None:
        self._draft = draft

    def annotated_with(self, qualifier: Any) -> Self:
        """Qualify the bound key with a qualifier instance or marker class."""
        if not is_qualifier(qualifier):
            msg = f"{qualifier!r} is not a qualifier; subclass mockwire.Qualifier."
            raise MockWireInvalidBindingError(msg)
        if self._draft.is_targeted or self._draft.scope is not None:
            msg = f"annotated_with() must come before the target of {self._draft.key}."
            raise MockWireInvalidBindingError(msg)
        if self._draft.qualifier is not None:
            msg = f"{self._draft.key} is already qualified."
            raise MockWireInvalidBindingError(msg)
        self._draft.qualifier = qualifier
        return self

    def to(self, target: Any) -> Self:
        """Link the key to an implementation class or to another ``Key``."""
        linked_key = Key.of(target)
        if linked_key == self._draft.key:
            msg = f"Binding for {linked_key} points to itself."
            raise MockWireInvalidBindingError(msg)
        self._set_target(BindingKind.LINKED_KEY, linked_key)
        return self

    def to_instance(self, instance: Any) -> None:
        """Bind the key to a fixed value."""
        self._set_target(BindingKind.INSTANCE, instance)

    def to_provider(self, provider: Any) -> Self:
        """Bind the key to a provider instance, a provider class, a provider ``Key`` or a callable."""
        if isinstance(provider, Key):
            self._set_target(BindingKind.PROVIDER_KEY, provider)
        elif is_runtime_class(provider) and issubclass(provider, Provider):
            self._set_target(BindingKind.PROVIDER_KEY, Key.of(provider))
        elif isinstance(provider, Provider):
            self._set_target(BindingKind.PROVIDER, provider)
        elif callable(provider) and not is_runtime_class(provider):
            self._set_target(BindingKind.PROVIDER, CallableProvider(provider))
        else:
            msg = f"{provider!r} is not a provider for {self._draft.key}."
            raise MockWireInvalidBindingError(msg)
        return self

    def in_scope(self, scope: TestScope) -> None:
        """Place the binding in a test scope."""
        if not isinstance(scope, TestScope):
            msg = f"{scope!r} is not a TestScope."
            raise MockWireInvalidBindingError(msg)
        if self._draft.kind is BindingKind.INSTANCE:
            msg = f"Instance binding for {self._draft.key} cannot be scoped."
            raise MockWireInvalidBindingError(msg)
        if self._draft.scope is not None:
            msg = f"{self._draft.key} is already scoped."
            raise MockWireInvalidBindingError(msg)
        self._draft.scope = scope

    def as_eager_singleton(self) -> None:
        """Place the binding in ``TestScope.EAGER_SINGLETON``."""
        self.in_scope(TestScope.EAGER_SINGLETON)

    def _set_target(self, kind: BindingKind, target: Any) -> None:
        if self._draft.is_targeted:
            msg = f"{self._draft.key} already has a target."
            raise MockWireInvalidBindingError(msg)
        if self._draft.scope is not None:
            msg = f"The target of {self._draft.key} must come before its scope."
            raise MockWireInvalidBindingError(msg)
        self._draft.kind = kind
        self._draft.target = target
        self._draft.is_targeted = True


class ConstantBindingBuilder:
    """Fluent builder returned by ``Binder.bind_constant``.

    The bound key's type is the type of the constant.
    """

    def __init__(self, draft: _BindingDraft) -> None:
        self._draft = draft

    def annotated_with(self, qualifier: Any) -> Self:
        if not is_qualifier(qualifier):
            msg = f"{qualifier!r} is not a qualifier; subclass mockwire.Qualifier."
            raise MockWireInvalidBindingError(msg)
        if self._draft.is_targeted or self._draft.qualifier is not None:
            msg = "annotated_with() must be called once, before to(), on a constant binding."
            raise MockWireInvalidBindingError(msg)
        self._draft.qualifier = qualifier
        return self

    def to(self, value: Any) -> None:
        if self._draft.is_targeted:
            msg = f"Constant {self._draft.key} already has a value."
            raise MockWireInvalidBindingError(msg)
        self._draft.dependency = type(value)
        self._draft.kind = BindingKind.INSTANCE
        self._draft.target = value
        self._draft.is_targeted = True


class Binder:
    """Collect binding statements from modules and turn them into bindings."""

    def __init__(self) -> None:
        self._drafts: list[_BindingDraft] = []

    def bind(self, dependency: Any) -> BindingBuilder:
        """Start a binding statement for a type, an ``Annotated`` token or a ``Key``."""
        key = Key.of(dependency)
        draft = _BindingDraft(dependency=key.type, qualifier=key.qualifier)
        self._drafts.append(draft)
        return BindingBuilder(draft)

    def bind_constant(self) -> ConstantBindingBuilder:
        """Start a constant binding; its key type is taken from the value."""
        draft = _BindingDraft(dependency=None, is_constant=True)
        self._drafts.append(draft)
        return ConstantBindingBuilder(draft)

    def install(self, module: Module) -> None:
        module.configure(self)

    def build(self) -> dict[Key, Binding]:
        """Return the completed bindings keyed by their keys.

        Raises:
            MockWireConfigurationError: If a key is bound twice or a constant
                binding never received its value.

        """
        bindings: dict[Key, Binding] = {}
        errors: list[str] = []
        for draft in self._drafts:
            if draft.is_constant and not draft.is_targeted:
                errors.append("bind_constant() statement is missing to(value).")
                continue
            key = draft.key
            if key in bindings:
                errors.append(f"{key} is already bound.")
                continue
            bindings[key] = Binding(key=key, kind=draft.kind, target=draft.target, scope=draft.scope)
        if errors:
            raise MockWireConfigurationError(errors)
        return bindings


__all__ = [
    "Binder",
    "Binding",
    "BindingBuilder",
    "BindingKind",
    "ConstantBindingBuilder",
    "Module",
]
