from mockwire.assisted import AssistedFactoryProvider, Factory
from mockwire.binder import Binder, Binding, BindingBuilder, BindingKind, Module
from mockwire.exceptions import (
    MockWireCircularDependencyError,
    MockWireConfigurationError,
    MockWireDependencyNotBoundError,
    MockWireError,
    MockWireInvalidBindingError,
    MockWireUnresolvedNeedError,
)
from mockwire.injector import Injector, MembersInjector
from mockwire.keys import All, Assisted, Component, Key, Qualifier
from mockwire.markers import (
    Injected,
    Maybe,
    after,
    before,
    eager_singleton,
    inject,
    mock_singleton,
    singleton,
)
from mockwire.mocking import MockProvider, SpyProvider
from mockwire.module import TestModule
from mockwire.observer import BindingInfo
from mockwire.providers import Provider
from mockwire.runner import TestRunner, create_injector, find_test_module
from mockwire.scope import Stage, TestScope

__all__ = [
    "All",
    "Assisted",
    "AssistedFactoryProvider",
    "Binder",
    "Binding",
    "BindingBuilder",
    "BindingInfo",
    "BindingKind",
    "Component",
    "Factory",
    "Injected",
    "Injector",
    "Key",
    "Maybe",
    "MembersInjector",
    "MockProvider",
    "MockWireCircularDependencyError",
    "MockWireConfigurationError",
    "MockWireDependencyNotBoundError",
    "MockWireError",
    "MockWireInvalidBindingError",
    "MockWireUnresolvedNeedError",
    "Module",
    "Provider",
    "Qualifier",
    "SpyProvider",
    "Stage",
    "TestModule",
    "TestRunner",
    "TestScope",
    "after",
    "before",
    "create_injector",
    "eager_singleton",
    "find_test_module",
    "inject",
    "mock_singleton",
    "singleton",
]
