from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, cast

import pytest

from mockwire.exceptions import MockWireConfigurationError
from mockwire.integrations.pytest_plugin import pytest_pycollect_makeitem, pytest_pyfunc_call
from mockwire.keys import All
from mockwire.markers import Injected
from mockwire.runner import TestRunner, create_injector


class _Service:
    def __init__(self, value: str = "service") -> None:
        self.value = value


class _ServiceSuite:
    def test_service(self, value: int, service: Injected[_Service]) -> _Service:
        _ = value
        return service


class _DummyCollector:
    def __init__(self, *, is_test_function: bool, cls: type[Any] | None = None) -> None:
        self._is_test_function = is_test_function
        self.cls = cls

    def istestfunction(self, obj: object, name: str) -> bool:
        _ = obj, name
        return self._is_test_function


class _DummyPyFuncItem:
    def __init__(self, *, obj: Callable[..., Any], runner: TestRunner | None) -> None:
        self.obj = obj
        self.nodeid = "test_dummy.py::test_handler"
        if runner is not None:
            self._mockwire_runner = runner


def test_pycollect_makeitem_ignores_non_function_objects() -> None:
    collector = _DummyCollector(is_test_function=True)

    result = pytest_pycollect_makeitem(collector=collector, name="test_value", obj=1)

    assert result is None


def test_pycollect_makeitem_ignores_non_test_functions() -> None:
    collector = _DummyCollector(is_test_function=False)

    def helper(value: int, service: Injected[_Service]) -> None:
        _ = value, service

    original_signature = inspect.signature(helper)
    result = pytest_pycollect_makeitem(collector=collector, name="helper", obj=helper)

    assert result is None
    assert inspect.signature(helper) == original_signature


def test_pycollect_makeitem_hides_injected_parameters() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(value: int, service: Injected[_Service]) -> tuple[int, _Service]:
        return value, service

    assert tuple(inspect.signature(test_handler).parameters) == ("value", "service")
    result = pytest_pycollect_makeitem(
        collector=collector,
        name="test_handler",
        obj=test_handler,
    )

    assert result is None
    assert tuple(inspect.signature(test_handler).parameters) == ("value",)


def test_pycollect_makeitem_keeps_broadcast_parameters_visible() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(case: Injected[All[int]], service: Injected[_Service]) -> None:
        _ = case, service

    pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)

    assert tuple(inspect.signature(test_handler).parameters) == ("case",)


def test_pycollect_makeitem_resolves_methods_against_their_class() -> None:
    collector = _DummyCollector(is_test_function=True, cls=_ServiceSuite)
    function = _ServiceSuite.__dict__["test_service"]

    pytest_pycollect_makeitem(collector=collector, name="test_service", obj=function)

    assert tuple(inspect.signature(function).parameters) == ("self", "value")


def test_pycollect_makeitem_leaves_unresolvable_annotations_to_the_injector() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(service: Injected[_Missing]) -> None:  # type: ignore[name-defined]  # noqa: F821
        _ = service

    original_signature = inspect.signature(test_handler)
    result = pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)

    assert result is None
    assert inspect.signature(test_handler) == original_signature


def test_pyfunc_call_passes_through_when_no_injected_parameters() -> None:
    def test_handler(value: int) -> int:
        return value

    item = _DummyPyFuncItem(obj=test_handler, runner=None)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    assert item.obj is test_handler
    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_binds_injected_arguments_and_restores_original() -> None:
    collector = _DummyCollector(is_test_function=True, cls=_ServiceSuite)
    pytest_pycollect_makeitem(
        collector=collector,
        name="test_service",
        obj=_ServiceSuite.__dict__["test_service"],
    )
    suite = _ServiceSuite()
    original = suite.test_service
    runner = TestRunner(create_injector(_ServiceSuite), suite)
    item = _DummyPyFuncItem(obj=original, runner=runner)

    with runner.run_test():
        hook = pytest_pyfunc_call(cast("Any", item))
        next(hook)

        wrapped = cast("Callable[..., _Service]", item.obj)
        assert wrapped(value=1) is runner.injector.get_instance(_Service)
        next(hook, None)

    assert item.obj is original


def test_pyfunc_call_rejects_injected_parameters_outside_mockwire_classes() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(service: Injected[_Service]) -> _Service:
        return service

    pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)
    item = _DummyPyFuncItem(obj=test_handler, runner=None)
    hook = pytest_pyfunc_call(cast("Any", item))

    with pytest.raises(MockWireConfigurationError, match="not part of a mockwire test class"):
        next(hook)
    assert item.obj is test_handler
