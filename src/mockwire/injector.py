from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, get_args

from mockwire._internal.type_checks import TypeClassifier, is_runtime_class
from mockwire.binder import Binder, Binding, BindingKind, Module
from mockwire.exceptions import (
    MockWireCircularDependencyError,
    MockWireConfigurationError,
    MockWireDependencyNotBoundError,
)
from mockwire.injection_points import (
    Dependency,
    InjectionPoint,
    InjectionPointKind,
    InjectionPointsExtractor,
)
from mockwire.keys import All, Assisted, Key
from mockwire.providers import Provider, ensure_provided_key
from mockwire.scope import Stage, TestScope

T = TypeVar("T")

logger = logging.getLogger(__name__)


class MembersInjector(ABC, Generic[T]):
    """Inject the fields and ``@inject`` methods of existing instances of ``T``."""

    @abstractmethod
    def inject_members(self, instance: T) -> None:
        """Inject ``instance`` in place."""


class _InjectorMembersInjector(MembersInjector[Any]):
    def __init__(self, injector: Injector) -> None:
        self._injector = injector

    def inject_members(self, instance: Any) -> None:
        self._injector.inject_members(instance)


class _KeyProvider(Provider[Any]):
    def __init__(self, injector: Injector, key: Key) -> None:
        self._injector = injector
        self._key = key

    def get(self) -> Any:
        return self._injector.get_instance(self._key)

    def __repr__(self) -> str:
        return f"Provider[{self._key}]"


def is_core_type(raw_type: Any) -> bool:
    """Return True for types the injector supplies natively.

    These are the injector itself, loggers, the stage, members injectors and
    ``type[T]`` descriptors. They are never bound explicitly or synthesized.
    """
    if not is_runtime_class(raw_type):
        return False
    return issubclass(raw_type, (Injector, logging.Logger, Stage, MembersInjector, type))


def is_assisted_key(key: Key) -> bool:
    """Return True for keys supplied by a factory call rather than by a binding."""
    qualifier_type = key.qualifier_type
    return qualifier_type is not None and issubclass(qualifier_type, Assisted)


@dataclass(frozen=True, slots=True)
class _Edge:
    key: Key
    site: str
    deferred: bool = False


class Injector:
    """Build values from bindings.

    Create injectors with ``Injector.create``: it configures every module on
    one binder, validates the resulting graph and reports every unsatisfied
    dependency and construction cycle at once.

    Unqualified concrete classes without a binding are built just in time,
    unscoped. ``Provider[T]`` dependencies resolve lazily, which is the way to
    break a construction cycle.
    """

    def __init__(
        self,
        bindings: Mapping[Key, Binding],
        *,
        stage: Stage = Stage.DEVELOPMENT,
        extractor: InjectionPointsExtractor | None = None,
        classifier: TypeClassifier | None = None,
    ) -> None:
        """Initialize an injector over completed bindings.

        Prefer ``Injector.create``; this constructor does not validate.

        Args:
            bindings: Completed bindings keyed by their keys.
            stage: ``Stage.PRODUCTION`` creates every singleton when a test
                scope is entered.
            extractor: Injection-point extractor shared with the caller.
            classifier: Type classifier shared with the caller.

        """
        self.stage = stage
        self._bindings = dict(bindings)
        self._extractor = extractor or InjectionPointsExtractor()
        self._classifier = classifier or TypeClassifier()
        self._singletons: dict[Key, Any] = {}
        self._resolution_stack: list[Key] = []

    @classmethod
    def create(cls, *modules: Module, stage: Stage = Stage.DEVELOPMENT) -> Injector:
        """Configure ``modules``, validate the bindings and return an injector.

        Args:
            *modules: Modules to configure on a single binder.
            stage: Stage passed to the injector.

        Raises:
            MockWireConfigurationError: If a key is bound twice, a non-optional
                dependency of a binding or of a module's root needs cannot be
                satisfied, or bindings form a construction cycle.

        """
        binder = Binder()
        for module in modules:
            binder.install(module)
        injector = cls(binder.build(), stage=stage)
        injector.validate([need for module in modules for need in module.root_needs])
        for binding in injector._bindings.values():
            if binding.kind is BindingKind.PROVIDER:
                injector.inject_members(binding.target)
        logger.info(
            "Created injector: bindings=%d stage=%s",
            len(injector._bindings),
            stage.name,
        )
        return injector

    @property
    def bindings(self) -> Mapping[Key, Binding]:
        return self._bindings

    def get_binding(self, dependency: Any) -> Binding | None:
        return self._bindings.get(Key.of(dependency))

    def get_instance(self, dependency: Any) -> Any:
        """Return a value for a type, an ``Annotated`` token or a ``Key``.

        Raises:
            MockWireDependencyNotBoundError: If nothing can supply the key.
            MockWireCircularDependencyError: If building the value requires itself.

        """
        return self._get(Key.of(dependency), requester=None, site=None)

    def get_provider(self, dependency: Any) -> Provider[Any]:
        return _KeyProvider(self, Key.of(dependency))

    def construct(self, cls: type[T], *, assisted: Mapping[str, Any] | None = None) -> T:
        """Build ``cls`` through its constructor, ignoring any binding for ``cls`` itself.

        Args:
            cls: Concrete class to build.
            assisted: Values for constructor parameters qualified with
                ``Assisted``, by parameter name (or by ``Assisted("name")``).

        Raises:
            TypeError: If an assisted value is missing.

        """
        injection_point = self._extractor.for_constructor_of(cls)
        kwargs = self._resolve_dependencies(injection_point, requester=cls, assisted=assisted)
        instance = cls(**kwargs)
        self.inject_members(instance)
        return instance

    def inject_members(self, instance: Any) -> None:
        """Inject ``Injected[T]`` fields and ``@inject`` methods of an existing object."""
        requester = type(instance)
        for injection_point in self._extractor.for_instance_methods_and_fields(requester):
            if injection_point.kind is InjectionPointKind.FIELD:
                dependency = injection_point.dependencies[0]
                if dependency.optional and not self.can_resolve(dependency.key):
                    if not dependency.has_default:
                        setattr(instance, dependency.name, None)
                    continue
                value = self._get(dependency.key, requester=requester, site=str(injection_point))
                setattr(instance, dependency.name, value)
            elif injection_point.optional and not all(
                self.can_resolve(dependency.key) for dependency in injection_point.dependencies
            ):
                continue
            else:
                kwargs = self._resolve_dependencies(injection_point, requester=requester)
                getattr(instance, injection_point.member)(**kwargs)

    def resolve_arguments(self, method: Callable[..., Any]) -> dict[str, Any]:
        """Resolve the ``Injected[T]`` parameters of a function or bound method.

        Parameters qualified with ``All`` are left to the caller.
        """
        function = getattr(method, "__func__", method)
        bound_to = getattr(method, "__self__", None)
        owner = type(bound_to) if bound_to is not None else None
        injection_point = self._extractor.for_hook(function, owner=owner)
        return self._resolve_dependencies(injection_point, requester=owner, skip_broadcast=True)

    def call_with_injection(self, method: Callable[..., T], /, **kwargs: Any) -> T:
        """Call ``method`` with its ``Injected[T]`` parameters resolved and ``kwargs`` passed through."""
        return method(**kwargs, **self.resolve_arguments(method))

    def can_resolve(self, key: Key) -> bool:
        """Return True when ``key`` is bound, native or buildable just in time."""
        if self._is_native(key):
            return True
        return key in self._bindings or self._is_just_in_time(key)

    @contextmanager
    def test_scope(self) -> Iterator[Injector]:
        """Scope singletons to one test.

        Eager singletons (every singleton in ``Stage.PRODUCTION``) are built on
        entry; all singletons are dropped on exit.
        """
        self._singletons.clear()
        try:
            for binding in list(self._bindings.values()):
                if binding.scope is TestScope.EAGER_SINGLETON or (
                    self.stage is Stage.PRODUCTION and binding.scope is TestScope.SINGLETON
                ):
                    self._get(binding.key, requester=None, site="eager singleton")
            yield self
        finally:
            self._singletons.clear()

    def validate(self, roots: Iterable[tuple[Key, str]] = ()) -> None:
        """Check every binding's dependency graph without building anything.

        Args:
            roots: ``(key, site)`` pairs required outside any binding, such as
                the injected parameters of test hooks. Each is checked like a
                dependency of ``site``.

        Raises:
            MockWireConfigurationError: Listing every unsatisfiable dependency
                (with the site requiring it) and every construction cycle that
                is not broken by ``Provider[T]``.

        """
        errors: dict[str, None] = {}
        visiting: list[Key] = []
        visited: set[Key] = set()

        def visit(key: Key) -> None:
            if key in visited:
                return
            if key in visiting:
                cycle = [*visiting[visiting.index(key) :], key]
                errors[f"Circular dependency: {' -> '.join(str(item) for item in cycle)}"] = None
                return
            visiting.append(key)
            for edge in self._edges(key):
                if not self.can_resolve(edge.key):
                    errors[f"No binding for {edge.key} (required by {edge.site})"] = None
                elif not edge.deferred:
                    visit(edge.key)
            visiting.pop()
            visited.add(key)

        def visit_safely(key: Key) -> None:
            try:
                visit(key)
            except MockWireConfigurationError as error:
                errors.update(dict.fromkeys(error.messages))
                visiting.clear()

        for key, binding in self._bindings.items():
            if binding.kind is BindingKind.UNTARGETTED and not self._classifier.is_instantiable(
                key.raw_type,
            ):
                errors[f"{key} is bound without a target but cannot be constructed"] = None
                continue
            visit_safely(key)
        for key, site in roots:
            if self.can_resolve(key):
                visit_safely(key)
            else:
                errors[f"No binding for {key} (required by {site})"] = None
        if errors:
            raise MockWireConfigurationError(errors)

    def _edges(self, key: Key) -> list[_Edge]:
        if self._is_native(key):
            return []
        binding = self._bindings.get(key)
        if binding is None:
            return self._class_edges(key.raw_type)
        if binding.kind is BindingKind.UNTARGETTED:
            return self._class_edges(key.raw_type)
        if binding.kind in (BindingKind.LINKED_KEY, BindingKind.PROVIDER_KEY):
            return [_Edge(binding.target, site=f"binding for {key}")]
        if binding.kind is BindingKind.PROVIDER:
            return self._members_edges(type(binding.target))
        return []

    def _class_edges(self, cls: Any) -> list[_Edge]:
        if not self._classifier.is_instantiable(cls):
            return []
        injection_point = self._extractor.for_constructor_of(cls)
        return [
            *self._point_edges(injection_point),
            *self._members_edges(cls),
        ]

    def _members_edges(self, cls: type[Any]) -> list[_Edge]:
        edges: list[_Edge] = []
        for injection_point in self._extractor.for_instance_methods_and_fields(cls):
            if not injection_point.optional:
                edges.extend(self._point_edges(injection_point))
        return edges

    def _point_edges(self, injection_point: InjectionPoint) -> list[_Edge]:
        edges: list[_Edge] = []
        for dependency in injection_point.dependencies:
            if dependency.optional or is_assisted_key(dependency.key):
                continue
            if injection_point.kind is InjectionPointKind.FIELD:
                site = str(injection_point)
            else:
                site = f"parameter '{dependency.name}' of {injection_point}"
            provided = ensure_provided_key(dependency.key, site=site)
            edges.append(
                _Edge(provided, site=str(injection_point), deferred=provided != dependency.key),
            )
        return edges

    def _is_native(self, key: Key) -> bool:
        return key.raw_type is Provider or (key.qualifier is None and is_core_type(key.raw_type))

    def _is_just_in_time(self, key: Key) -> bool:
        return key.qualifier is None and self._classifier.is_instantiable(key.raw_type)

    def _native_value(self, key: Key, requester: type[Any] | None, site: str | None) -> Any:
        raw_type = key.raw_type
        if raw_type is Provider:
            return _KeyProvider(self, ensure_provided_key(key, site=site or key))
        if issubclass(raw_type, Injector):
            return self
        if issubclass(raw_type, logging.Logger):
            if requester is None:
                return logging.getLogger()
            return logging.getLogger(requester.__module__)
        if issubclass(raw_type, Stage):
            return self.stage
        if issubclass(raw_type, MembersInjector):
            return _InjectorMembersInjector(self)
        described = get_args(key.type)
        if not described:
            msg = f"{site or 'caller'} requests {key} without a type parameter; use type[T]."
            raise MockWireConfigurationError(msg)
        return described[0]

    def _get(self, key: Key, *, requester: type[Any] | None, site: str | None) -> Any:
        if self._is_native(key):
            return self._native_value(key, requester, site)
        if key in self._resolution_stack:
            raise MockWireCircularDependencyError([*self._resolution_stack, key])

        binding = self._bindings.get(key)
        if binding is None:
            if not self._is_just_in_time(key):
                raise MockWireDependencyNotBoundError(key, site)
            binding = Binding(key=key, kind=BindingKind.UNTARGETTED)
        if binding.scope is not None and key in self._singletons:
            return self._singletons[key]

        self._resolution_stack.append(key)
        try:
            value = self._produce(binding)
        finally:
            self._resolution_stack.pop()
        if binding.scope is not None:
            self._singletons[key] = value
        return value

    def _produce(self, binding: Binding) -> Any:
        if binding.kind is BindingKind.INSTANCE:
            return binding.target
        if binding.kind is BindingKind.LINKED_KEY:
            return self._get(binding.target, requester=None, site=f"binding for {binding.key}")
        if binding.kind is BindingKind.PROVIDER:
            return binding.target.get()
        if binding.kind is BindingKind.PROVIDER_KEY:
            provider = self._get(binding.target, requester=None, site=f"binding for {binding.key}")
            return provider.get()
        return self.construct(binding.key.raw_type)

    def _resolve_dependencies(
        self,
        injection_point: InjectionPoint,
        *,
        requester: type[Any] | None,
        assisted: Mapping[str, Any] | None = None,
        skip_broadcast: bool = False,
    ) -> dict[str, Any]:
        site = str(injection_point)
        kwargs: dict[str, Any] = {}
        for dependency in injection_point.dependencies:
            if skip_broadcast and _is_broadcast(dependency):
                continue
            if is_assisted_key(dependency.key):
                kwargs[dependency.name] = _assisted_value(dependency, assisted, site)
            elif dependency.optional and not self.can_resolve(dependency.key):
                if not dependency.has_default:
                    kwargs[dependency.name] = None
            else:
                kwargs[dependency.name] = self._get(
                    dependency.key,
                    requester=requester,
                    site=site,
                )
        return kwargs


def _is_broadcast(dependency: Dependency) -> bool:
    return dependency.key.qualifier_type is All


def _assisted_value(
    dependency: Dependency,
    assisted: Mapping[str, Any] | None,
    site: str,
) -> Any:
    qualifier = dependency.key.qualifier
    name = qualifier.value if isinstance(qualifier, Assisted) and qualifier.value else dependency.name
    if assisted is None or name not in assisted:
        msg = f"{site} requires assisted argument '{name}'"
        raise TypeError(msg)
    return assisted[name]


__all__ = [
    "Injector",
    "MembersInjector",
    "is_assisted_key",
    "is_core_type",
]
