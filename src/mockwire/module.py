from __future__ import annotations

import logging
from typing import Any

from mockwire._internal.type_checks import TypeClassifier, is_runtime_class
from mockwire.binder import Binder, Module
from mockwire.exceptions import MockWireUnresolvedNeedError
from mockwire.injection_points import InjectionPointsExtractor
from mockwire.injector import is_assisted_key, is_core_type
from mockwire.keys import Key
from mockwire.markers import NestedScope
from mockwire.mocking import MockProvider, SpyProvider
from mockwire.observer import (
    BindingInfo,
    BindingObserver,
    ObservedAnnotatedBindingBuilder,
    ObservedConstantBindingBuilder,
)
from mockwire.providers import ensure_provided_key
from mockwire.scanner import RootNeedScanner
from mockwire.scope import TestScope

logger = logging.getLogger(__name__)


class TestModule(Module):
    """Module that completes the object graph of a test class.

    Override ``configure_test`` to declare the bindings that matter for the
    test; every other dependency reachable from the test's hooks, injected
    fields and marked nested classes is bound automatically when the module
    is configured:

    - concrete classes get a real singleton per test,
    - abstract classes, protocols and force-mocked classes get an
      autospecced mock singleton per test,
    - container-internal types, ``Assisted`` keys and value types are never
      synthesized.

    Examples:
        .. code-block:: python

            class TestCheckout:
                class Module(TestModule):
                    def configure_test(self) -> None:
                        self.bind(PaymentGateway).to(FakeGateway)
                        self.force_mock(AuditLog)

                def test_total(self, checkout: Injected[Checkout]) -> None: ...

    """

    __test__ = False

    def __init__(
        self,
        test_class: type[Any] | None = None,
        *,
        extractor: InjectionPointsExtractor | None = None,
        classifier: TypeClassifier | None = None,
    ) -> None:
        """Initialize the module.

        Args:
            test_class: Test class whose hooks and fields are scanned for
                root needs. Without one, only explicit bindings are traced.
            extractor: Injection-point extractor, shared with the injector.
            classifier: Classifier deciding which types are abstract or value types.

        """
        self.test_class = test_class
        self._extractor = extractor or InjectionPointsExtractor()
        self._classifier = classifier or TypeClassifier()
        self._force_mocked: set[type[Any]] = set()
        self._dont_force_mocked: set[type[Any]] = set()
        self._force_mock_positive: set[type[Any]] = set()
        self._force_mock_negative: set[type[Any]] = set()
        self._bindings_observed: list[BindingInfo] = []
        self._binder: Binder | None = None
        self._observer: BindingObserver | None = None
        self._observed: set[Key] = set()
        self._needed: dict[Key, None] = {}
        self._root_needs: list[tuple[Key, str]] = []

    def configure_test(self) -> None:
        """Declare explicit bindings. The default declares none."""

    @property
    def bindings_observed(self) -> tuple[BindingInfo, ...]:
        """Explicit and synthesized real bindings recorded by the last pass."""
        return tuple(self._bindings_observed)

    @property
    def observed_keys(self) -> frozenset[Key]:
        """Keys bound by the last pass, explicitly or automatically."""
        return frozenset(self._observed)

    @property
    def needed_keys(self) -> tuple[Key, ...]:
        """Keys required by some hook or injection point in the last pass, in discovery order."""
        return tuple(self._needed)

    @property
    def root_needs(self) -> tuple[tuple[Key, str], ...]:
        """Keys required by the test class's hooks and fields, with the requiring member."""
        return tuple(self._root_needs)

    def bind(self, dependency: Any) -> ObservedAnnotatedBindingBuilder:
        """Start a binding statement; see ``Binder.bind``."""
        return self._require_observer().bind(dependency)

    def bind_constant(self) -> ObservedConstantBindingBuilder:
        """Start a constant binding; see ``Binder.bind_constant``."""
        return self._require_observer().bind_constant()

    def bind_mock(self, dependency: Any) -> None:
        """Bind ``dependency`` to a per-test autospecced mock of its class."""
        raw_type = Key.of(dependency).raw_type
        self.bind(dependency).to_provider(MockProvider(raw_type)).in_scope(TestScope.SINGLETON)

    def bind_spy(self, dependency: Any) -> None:
        """Bind ``dependency`` to a per-test spy wrapping a real instance of its class."""
        raw_type = Key.of(dependency).raw_type
        self.bind(dependency).to_provider(SpyProvider(raw_type)).in_scope(TestScope.SINGLETON)

    def force_mock(self, cls: type[Any]) -> None:
        """Mock ``cls`` and its subclasses when they are bound automatically."""
        if cls not in self._force_mocked:
            self._force_mocked.add(cls)
            self._dont_force_mocked.discard(cls)
            self._clear_force_mock_cache()

    def dont_force_mock(self, cls: type[Any]) -> None:
        """Exempt ``cls`` and its subclasses from a ``force_mock`` on an ancestor."""
        if cls not in self._dont_force_mocked:
            self._dont_force_mocked.add(cls)
            self._force_mocked.discard(cls)
            self._clear_force_mock_cache()

    def configure(self, binder: Binder) -> None:
        """Record explicit bindings, then bind every other needed key.

        Raises:
            MockWireConfigurationError: If a hook or injection point declares
                a malformed dependency.
            MockWireUnresolvedNeedError: If a needed concrete class was never bound.

        """
        self._binder = binder
        self._bindings_observed = []
        self._observer = BindingObserver(binder, self._bindings_observed)
        self._observed = set()
        self._needed = {}
        self._root_needs = []

        self.configure_test()
        self._observed.update(info.key for info in self._bindings_observed)

        if self.test_class is not None:
            scanner = RootNeedScanner(self.test_class, self._extractor)
            self._bind_nested_types(scanner)
            self._root_needs.extend(scanner.hook_needs())
            self._root_needs.extend(scanner.instance_needs())
            for key, _ in self._root_needs:
                self.add_needed_key(key)

        index = 0
        while index < len(self._bindings_observed):
            info = self._bindings_observed[index]
            index += 1
            if not info.is_bound_to_fixed_value:
                self._add_dependencies_of(info.traced_type)

        self._bind_leftover_needs(binder)
        logger.debug(
            "Completed bindings for %s: observed=%d needed=%d",
            self._test_class_name(),
            len(self._observed),
            len(self._needed),
        )

    def add_needed_key(self, key: Key) -> None:
        """Record ``key`` as needed and bind it right away when it is a concrete class."""
        self._needed.setdefault(key, None)
        self.bind_if_concrete(key)

    def bind_if_concrete(self, key: Key) -> None:
        """Bind an unbound concrete ``key`` as a real singleton so its dependencies get traced."""
        if key in self._observed or self._is_excluded(key):
            return
        raw_type = key.raw_type
        if not self._classifier.is_instantiable(raw_type) or self._is_force_mocked(raw_type):
            return
        self.bind(key).in_scope(TestScope.SINGLETON)
        self._observed.add(key)
        logger.debug("Bound %s to a real singleton", key)

    def add_key_dependency(self, key: Key, *, site: object) -> None:
        """Add a dependency key, reading ``Provider[T]`` as ``T``."""
        self.add_needed_key(ensure_provided_key(key, site=site))

    def _bind_nested_types(self, scanner: RootNeedScanner) -> None:
        for cls, scope in scanner.nested_types():
            key = Key(cls)
            if key in self._observed:
                continue
            if scope is NestedScope.SINGLETON:
                self.bind(cls).in_scope(TestScope.SINGLETON)
            elif scope is NestedScope.EAGER_SINGLETON:
                self.bind(cls).as_eager_singleton()
            else:
                self.bind_mock(cls)
            self._observed.add(key)
            logger.debug("Bound nested %s as %s", key, scope.value)

    def _add_dependencies_of(self, traced_type: Any) -> None:
        raw_type = Key.of(traced_type).raw_type
        if not is_runtime_class(raw_type) or self._classifier.is_value_type(raw_type):
            return
        if self._classifier.is_instantiable(raw_type):
            injection_point = self._extractor.for_constructor_of(raw_type)
            for dependency in injection_point.dependencies:
                if not dependency.optional:
                    self.add_key_dependency(
                        dependency.key,
                        site=f"parameter '{dependency.name}' of {injection_point}",
                    )
        for injection_point in self._extractor.for_instance_methods_and_fields(raw_type):
            if injection_point.optional:
                continue
            for dependency in injection_point.dependencies:
                if not dependency.optional:
                    self.add_key_dependency(dependency.key, site=injection_point)

    def _bind_leftover_needs(self, binder: Binder) -> None:
        for key in self._needed:
            if key in self._observed or self._is_excluded(key):
                continue
            raw_type = key.raw_type
            if self._classifier.is_abstract(raw_type) or (
                self._classifier.is_instantiable(raw_type) and self._is_force_mocked(raw_type)
            ):
                binder.bind(key).to_provider(MockProvider(raw_type)).in_scope(TestScope.SINGLETON)
                self._observed.add(key)
                logger.debug("Bound %s to a mock singleton", key)
            elif self._classifier.is_instantiable(raw_type):
                msg = f"{key} is needed by {self._test_class_name()} but was never bound."
                raise MockWireUnresolvedNeedError(msg)

    def _is_excluded(self, key: Key) -> bool:
        return is_core_type(key.raw_type) or is_assisted_key(key)

    def _is_force_mocked(self, cls: type[Any]) -> bool:
        if cls in self._force_mock_positive:
            return True
        if cls in self._force_mock_negative:
            return False
        result = False
        for klass in cls.__mro__:
            if klass in self._dont_force_mocked:
                break
            if klass in self._force_mocked:
                result = True
                break
        (self._force_mock_positive if result else self._force_mock_negative).add(cls)
        return result

    def _clear_force_mock_cache(self) -> None:
        self._force_mock_positive.clear()
        self._force_mock_negative.clear()

    def _require_observer(self) -> BindingObserver:
        if self._observer is None:
            msg = "bind() is only available while the module is being configured."
            raise RuntimeError(msg)
        return self._observer

    def _test_class_name(self) -> str:
        return "module" if self.test_class is None else self.test_class.__qualname__


__all__ = ["TestModule"]
