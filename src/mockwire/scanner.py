from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from typing import Any

from mockwire.exceptions import MockWireConfigurationError
from mockwire.injection_points import (
    InjectionPoint,
    InjectionPointKind,
    InjectionPointsExtractor,
)
from mockwire.keys import All, Key
from mockwire.markers import NestedScope, lifecycle_hook_of, nested_scope_of
from mockwire.providers import ensure_provided_key

TEST_METHOD_PREFIX = "test"


class RootNeedScanner:
    """Find the closure roots declared by a test class.

    Roots come from three places: nested classes marked ``@singleton``,
    ``@eager_singleton`` or ``@mock_singleton``; the ``Injected[T]``
    parameters of test methods and ``@before``/``@after`` hooks; and the
    non-optional injected fields and ``@inject`` methods of the test class.
    The class and all of its ancestors are scanned.
    """

    def __init__(self, test_class: type[Any], extractor: InjectionPointsExtractor) -> None:
        self.test_class = test_class
        self._extractor = extractor

    def nested_types(self) -> list[tuple[type[Any], NestedScope]]:
        """Return marked nested classes, those of the test class first."""
        found: dict[type[Any], NestedScope] = {}
        for klass in self._hierarchy():
            for member in vars(klass).values():
                if not inspect.isclass(member) or member in found:
                    continue
                scope = nested_scope_of(member)
                if scope is not None:
                    found[member] = scope
        return list(found.items())

    def hook_methods(self) -> list[tuple[type[Any], Callable[..., Any]]]:
        """Return ``(declaring class, function)`` for test methods and lifecycle hooks.

        A method overridden in a subclass is returned once, from the subclass.
        """
        seen: set[str] = set()
        hooks: list[tuple[type[Any], Callable[..., Any]]] = []
        for klass in self._hierarchy():
            for name, member in vars(klass).items():
                if name in seen or not inspect.isfunction(member):
                    continue
                seen.add(name)
                if name.startswith(TEST_METHOD_PREFIX) or lifecycle_hook_of(member) is not None:
                    hooks.append((klass, member))
        return hooks

    def hook_needs(self) -> list[tuple[Key, str]]:
        """Return ``(key, hook)`` for every injected hook parameter, ``Provider[T]`` unwrapped.

        Parameters qualified with ``All`` are supplied by the runner and skipped.

        Raises:
            MockWireConfigurationError: Listing every malformed hook parameter,
                such as a bare ``Provider`` or an unresolvable annotation.

        """
        needs: list[tuple[Key, str]] = []
        errors: list[str] = []
        for klass, function in self.hook_methods():
            try:
                injection_point = self._extractor.for_hook(function, owner=klass)
                needs.extend(self._needs_of(injection_point, skip_broadcast=True))
            except MockWireConfigurationError as error:
                errors.extend(error.messages)
        if errors:
            raise MockWireConfigurationError(errors)
        return needs

    def instance_needs(self) -> list[tuple[Key, str]]:
        """Return ``(key, member)`` for the test class's required fields and ``@inject`` methods."""
        needs: list[tuple[Key, str]] = []
        for injection_point in self._extractor.for_instance_methods_and_fields(self.test_class):
            if not injection_point.optional:
                needs.extend(self._needs_of(injection_point, skip_broadcast=False))
        return needs

    def _hierarchy(self) -> Iterator[type[Any]]:
        for klass in self.test_class.__mro__:
            if klass is not object:
                yield klass

    def _needs_of(
        self,
        injection_point: InjectionPoint,
        *,
        skip_broadcast: bool,
    ) -> Iterator[tuple[Key, str]]:
        for dependency in injection_point.dependencies:
            if dependency.optional:
                continue
            if skip_broadcast and dependency.key.qualifier_type is All:
                continue
            if injection_point.kind is InjectionPointKind.FIELD:
                site = str(injection_point)
            else:
                site = f"parameter '{dependency.name}' of {injection_point}"
            yield ensure_provided_key(dependency.key, site=site), str(injection_point)


__all__ = ["TEST_METHOD_PREFIX", "RootNeedScanner"]
