from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Annotated

import pytest

from mockwire.binder import Binder, Module
from mockwire.exceptions import (
    MockWireCircularDependencyError,
    MockWireConfigurationError,
    MockWireDependencyNotBoundError,
)
from mockwire.injector import Injector, MembersInjector, is_core_type
from mockwire.keys import Assisted, Component, Key
from mockwire.markers import Injected, Maybe, inject
from mockwire.providers import Provider
from mockwire.scope import Stage, TestScope


class _Clock(ABC):
    @abstractmethod
    def now(self) -> int: ...


class _FixedClock(_Clock):
    def now(self) -> int:
        return 42


class _Notifier(ABC):
    @abstractmethod
    def notify(self, message: str) -> None: ...


class _Leaf:
    pass


class _Repository:
    def __init__(self, clock: _Clock) -> None:
        self.clock = clock


class _Service:
    def __init__(self, repository: _Repository, leaf: _Leaf) -> None:
        self.repository = repository
        self.leaf = leaf


class _LazyConsumer:
    def __init__(self, leaf: Provider[_Leaf]) -> None:
        self.leaf = leaf


class _CycleA:
    def __init__(self, b: _CycleB) -> None:
        self.b = b


class _CycleB:
    def __init__(self, a: _CycleA) -> None:
        self.a = a


class _BrokenCycleA:
    def __init__(self, b: _BrokenCycleB) -> None:
        self.b = b


class _BrokenCycleB:
    def __init__(self, a: Provider[_BrokenCycleA]) -> None:
        self.a = a


class _NeedsInternals:
    def __init__(
        self,
        injector: Injector,
        logger: logging.Logger,
        stage: Stage,
        members: MembersInjector[_Leaf],
        leaf_type: type[_Leaf],
    ) -> None:
        self.injector = injector
        self.logger = logger
        self.stage = stage
        self.members = members
        self.leaf_type = leaf_type


class _OptionalConsumer:
    def __init__(self, notifier: Maybe[_Notifier], clock: _Clock | None = None) -> None:
        self.notifier = notifier
        self.clock = clock


class _Members:
    repository: Injected[_Repository]
    notifier: Injected[Maybe[_Notifier]]
    label: Injected[str] = "default"

    @inject
    def attach(self, leaf: _Leaf) -> None:
        self.leaf = leaf

    @inject(optional=True)
    def subscribe(self, notifier: _Notifier) -> None:
        self.subscribed = notifier


class _Payment:
    def __init__(
        self,
        leaf: _Leaf,
        amount: Annotated[int, Assisted],
        memo: Annotated[str, Assisted("note")],
    ) -> None:
        self.leaf = leaf
        self.amount = amount
        self.memo = memo


class _NeedsName:
    def __init__(self, name: str) -> None:
        self.name = name


class _BareProviderConsumer:
    def __init__(self, provider: Provider) -> None:  # type: ignore[type-arg]
        self.provider = provider


class _ClockModule(Module):
    def configure(self, binder: Binder) -> None:
        binder.bind(_Clock).to(_FixedClock)


class _BindingsModule(Module):
    def __init__(self, *bindings: object) -> None:
        self.bindings = bindings

    def configure(self, binder: Binder) -> None:
        for dependency in self.bindings:
            binder.bind(dependency)


class _RootsModule(Module):
    def __init__(self, *roots: tuple[Key, str]) -> None:
        self.roots = roots

    def configure(self, binder: Binder) -> None:
        _ = binder

    @property
    def root_needs(self) -> tuple[tuple[Key, str], ...]:
        return self.roots


def test_unbound_concrete_classes_are_built_just_in_time() -> None:
    injector = Injector.create()

    first = injector.get_instance(_Leaf)
    second = injector.get_instance(_Leaf)

    assert isinstance(first, _Leaf)
    assert first is not second


def test_linked_binding_supplies_implementation() -> None:
    injector = Injector.create(_ClockModule())

    service = injector.get_instance(_Service)

    assert isinstance(service.repository.clock, _FixedClock)


def test_unbound_abstract_class_is_not_built() -> None:
    injector = Injector.create()

    with pytest.raises(MockWireDependencyNotBoundError, match="No binding for _Clock"):
        injector.get_instance(_Repository)


def test_unbound_qualified_key_is_not_built() -> None:
    injector = Injector.create()

    with pytest.raises(MockWireDependencyNotBoundError):
        injector.get_instance(Annotated[_Leaf, Component("special")])


def test_singletons_are_cached_per_test_scope() -> None:
    class SingletonModule(Module):
        def configure(self, binder: Binder) -> None:
            binder.bind(_Leaf).in_scope(TestScope.SINGLETON)

    injector = Injector.create(SingletonModule())

    with injector.test_scope():
        first = injector.get_instance(_Leaf)
        assert injector.get_instance(_Leaf) is first
    with injector.test_scope():
        assert injector.get_instance(_Leaf) is not first


def test_eager_singletons_are_built_on_scope_entry() -> None:
    created: list[_Leaf] = []

    def build_leaf() -> _Leaf:
        leaf = _Leaf()
        created.append(leaf)
        return leaf

    class EagerModule(Module):
        def configure(self, binder: Binder) -> None:
            binder.bind(_Leaf).to_provider(build_leaf).as_eager_singleton()

    injector = Injector.create(EagerModule())
    assert created == []

    with injector.test_scope():
        assert len(created) == 1
        assert injector.get_instance(_Leaf) is created[0]


def test_production_stage_builds_every_singleton_eagerly() -> None:
    created: list[_Leaf] = []

    def build_leaf() -> _Leaf:
        leaf = _Leaf()
        created.append(leaf)
        return leaf

    class LazyModule(Module):
        def configure(self, binder: Binder) -> None:
            binder.bind(_Leaf).to_provider(build_leaf).in_scope(TestScope.SINGLETON)

    development = Injector.create(LazyModule())
    with development.test_scope():
        assert created == []

    production = Injector.create(LazyModule(), stage=Stage.PRODUCTION)
    with production.test_scope():
        assert len(created) == 1


def test_provider_dependencies_resolve_lazily() -> None:
    injector = Injector.create()

    consumer = injector.get_instance(_LazyConsumer)

    assert isinstance(consumer.leaf, Provider)
    assert isinstance(consumer.leaf.get(), _Leaf)
    assert isinstance(consumer.leaf(), _Leaf)


def test_get_provider_defers_resolution() -> None:
    injector = Injector.create(_ClockModule())

    provider = injector.get_provider(_Clock)

    assert isinstance(provider.get(), _FixedClock)


def test_build_time_validation_reports_cycles() -> None:
    with pytest.raises(MockWireConfigurationError) as exc_info:
        Injector.create(_BindingsModule(_CycleA))

    assert exc_info.value.messages == ("Circular dependency: _CycleA -> _CycleB -> _CycleA",)


def test_provider_edge_breaks_cycle() -> None:
    injector = Injector.create(_BindingsModule(_BrokenCycleA))

    a = injector.get_instance(_BrokenCycleA)

    assert isinstance(a.b.a.get(), _BrokenCycleA)


def test_runtime_cycle_raises_with_chain() -> None:
    injector = Injector.create()

    with pytest.raises(MockWireCircularDependencyError) as exc_info:
        injector.get_instance(_CycleA)

    assert exc_info.value.chain == (Key(_CycleA), Key(_CycleB), Key(_CycleA))


def test_build_time_validation_aggregates_missing_bindings() -> None:
    with pytest.raises(MockWireConfigurationError) as exc_info:
        Injector.create(_BindingsModule(_Repository, _NeedsName))

    assert exc_info.value.messages == (
        "No binding for _Clock (required by _Repository.__init__)",
        "No binding for str (required by _NeedsName.__init__)",
    )


def test_untargetted_abstract_binding_is_reported() -> None:
    with pytest.raises(MockWireConfigurationError, match="bound without a target"):
        Injector.create(_BindingsModule(_Clock))


def test_bare_provider_dependency_is_reported_with_site() -> None:
    with pytest.raises(
        MockWireConfigurationError,
        match="parameter 'provider' of _BareProviderConsumer.__init__ requests Provider",
    ):
        Injector.create(_BindingsModule(_BareProviderConsumer))


def test_container_internal_values_are_supplied_natively() -> None:
    injector = Injector.create(stage=Stage.PRODUCTION)

    consumer = injector.get_instance(_NeedsInternals)

    assert consumer.injector is injector
    assert consumer.logger.name == _NeedsInternals.__module__
    assert consumer.stage is Stage.PRODUCTION
    assert isinstance(consumer.members, MembersInjector)
    assert consumer.leaf_type is _Leaf


def test_is_core_type_covers_container_internal_types() -> None:
    assert is_core_type(Injector)
    assert is_core_type(logging.Logger)
    assert is_core_type(Stage)
    assert is_core_type(MembersInjector)
    assert is_core_type(type)
    assert not is_core_type(_Leaf)
    assert not is_core_type(Provider[_Leaf])


def test_optional_constructor_dependencies_fall_back() -> None:
    injector = Injector.create()

    consumer = injector.get_instance(_OptionalConsumer)

    assert consumer.notifier is None
    assert consumer.clock is None


def test_optional_constructor_dependencies_use_bindings_when_present() -> None:
    injector = Injector.create(_ClockModule())

    consumer = injector.get_instance(_OptionalConsumer)

    assert isinstance(consumer.clock, _FixedClock)


def test_inject_members_fills_fields_and_methods() -> None:
    injector = Injector.create(_ClockModule())
    members = _Members()

    injector.inject_members(members)

    assert isinstance(members.repository.clock, _FixedClock)
    assert members.notifier is None
    assert members.label == "default"
    assert isinstance(members.leaf, _Leaf)
    assert not hasattr(members, "subscribed")


def test_members_injector_injects_existing_instances() -> None:
    injector = Injector.create(_ClockModule())
    members = _Members()

    injector.get_instance(MembersInjector[_Members]).inject_members(members)

    assert isinstance(members.leaf, _Leaf)


def test_construct_ignores_binding_for_the_class_itself() -> None:
    sentinel = _Leaf()

    class InstanceModule(Module):
        def configure(self, binder: Binder) -> None:
            binder.bind(_Leaf).to_instance(sentinel)

    injector = Injector.create(InstanceModule())

    assert injector.get_instance(_Leaf) is sentinel
    constructed = injector.construct(_Leaf)
    assert isinstance(constructed, _Leaf)
    assert constructed is not sentinel


def test_construct_takes_assisted_values_by_name() -> None:
    injector = Injector.create()

    payment = injector.construct(_Payment, assisted={"amount": 10, "note": "rent"})

    assert isinstance(payment.leaf, _Leaf)
    assert payment.amount == 10
    assert payment.memo == "rent"


def test_construct_reports_missing_assisted_value() -> None:
    injector = Injector.create()

    with pytest.raises(TypeError, match="requires assisted argument 'note'"):
        injector.construct(_Payment, assisted={"amount": 10})


def test_call_with_injection_resolves_injected_parameters() -> None:
    injector = Injector.create()

    def handler(value: int, leaf: Injected[_Leaf]) -> tuple[int, _Leaf]:
        return value, leaf

    value, leaf = injector.call_with_injection(handler, value=3)

    assert value == 3
    assert isinstance(leaf, _Leaf)


def test_module_root_needs_are_validated_with_the_bindings() -> None:
    module = _RootsModule(
        (Key(str), "_Suite.test_it"),
        (Key(_Repository), "_Suite.test_it"),
        (Key(_Leaf), "_Suite.leaf"),
    )

    with pytest.raises(MockWireConfigurationError) as exc_info:
        Injector.create(module)

    assert exc_info.value.messages == (
        "No binding for str (required by _Suite.test_it)",
        "No binding for _Clock (required by _Repository.__init__)",
    )


def test_satisfied_root_needs_pass_validation() -> None:
    injector = Injector.create(_ClockModule(), _RootsModule((Key(_Repository), "_Suite.test_it")))

    assert isinstance(injector.get_instance(_Repository).clock, _FixedClock)


def test_optional_injected_parameters_fall_back_to_none() -> None:
    injector = Injector.create()

    def handler(
        inner: Injected[_Notifier | None],
        outer: Injected[_Notifier] | None,
        clock: Injected[Maybe[_Clock]],
    ) -> tuple[object, object, object]:
        return inner, outer, clock

    assert injector.call_with_injection(handler) == (None, None, None)


def test_optional_injected_parameters_use_bindings_when_present() -> None:
    injector = Injector.create(_ClockModule())

    def handler(clock: Injected[_Clock | None]) -> _Clock | None:
        return clock

    assert isinstance(injector.call_with_injection(handler), _FixedClock)


def test_injector_creation_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="mockwire.injector"):
        Injector.create(_ClockModule())

    assert "Created injector: bindings=1 stage=DEVELOPMENT" in caplog.messages


def test_get_binding_looks_up_explicit_bindings_only() -> None:
    injector = Injector.create(_ClockModule())

    binding = injector.get_binding(_Clock)

    assert binding is not None
    assert binding.target == Key(_FixedClock)
    assert injector.get_binding(_Leaf) is None
