from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest

from mockwire.exceptions import MockWireConfigurationError
from mockwire.injection_points import InjectionPointsExtractor
from mockwire.injector import Injector
from mockwire.keys import All
from mockwire.markers import ORIGINAL_SIGNATURE_ATTR
from mockwire.module import TestModule
from mockwire.runner import TestRunner, create_injector, find_test_module_class
from mockwire.scope import Stage

MARKER_NAME = "mockwire"
_MOCKWIRE_RUNNER_ATTR = "_mockwire_runner"
_MOCKWIRE_INJECTED_PARAMETERS_ATTR = "__mockwire_pytest_injected_parameters__"
_INJECTION_POINTS_EXTRACTOR = InjectionPointsExtractor()


def pytest_configure(config: pytest.Config) -> None:
    """Register the ``mockwire`` marker."""
    config.addinivalue_line(
        "markers",
        f"{MARKER_NAME}(stage=None): complete the test class's bindings with mockwire; "
        "stage overrides the mockwire_stage fixture.",
    )


def is_mockwire_class(test_class: type[Any] | None, node: Any) -> bool:
    """Return True when a test class opts in to mockwire.

    A class opts in by nesting a ``TestModule`` subclass (directly or through
    an ancestor) or by carrying the ``mockwire`` marker.
    """
    if test_class is None:
        return False
    if find_test_module_class(test_class) is not TestModule:
        return True
    return node.get_closest_marker(MARKER_NAME) is not None


@pytest.fixture(scope="class")
def mockwire_stage() -> Stage:
    """Stage of the injector built for each opted-in test class.

    Override this fixture (class scope or wider) to build every injector of a
    suite in ``Stage.PRODUCTION``.

    Returns:
        ``Stage.DEVELOPMENT``.

    """
    return Stage.DEVELOPMENT


@pytest.fixture(scope="class")
def mockwire_injector(request: pytest.FixtureRequest, mockwire_stage: Stage) -> Injector:
    """Build one injector per opted-in test class.

    The closure pass runs here, so configuration errors fail the class's tests
    during setup, before any test body runs.

    Returns:
        Injector completed for ``request.cls``.

    """
    test_class = request.cls
    if test_class is None:
        msg = "mockwire_injector is only available to tests defined in a class."
        raise MockWireConfigurationError(msg)
    marker = request.node.get_closest_marker(MARKER_NAME)
    stage = mockwire_stage
    if marker is not None and marker.kwargs.get("stage") is not None:
        stage = marker.kwargs["stage"]
    return create_injector(test_class, stage=stage)


@pytest.fixture(autouse=True)
def _mockwire_test_scope(request: pytest.FixtureRequest) -> Iterator[None]:
    """Run each opted-in test inside a fresh test scope with hooks and members injected."""
    if not is_mockwire_class(request.cls, request.node):
        yield
        return

    injector = cast("Injector", request.getfixturevalue("mockwire_injector"))
    runner = TestRunner(injector, request.instance)
    node = cast("Any", request.node)
    with runner.run_test():
        setattr(node, _MOCKWIRE_RUNNER_ATTR, runner)
        try:
            yield
        finally:
            delattr(node, _MOCKWIRE_RUNNER_ATTR)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide ``Injected[...]`` parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names. This hook rewrites
    the public signature of test functions with injected parameters and keeps
    the original one for the injector. Parameters qualified with ``All`` stay
    visible: pytest supplies them through fixtures or parametrization.

    Args:
        collector: Pytest collector instance.
        name: Collected object name.
        obj: Candidate object.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not inspect.isfunction(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    owner = getattr(collector, "cls", None)
    try:
        injection_point = _INJECTION_POINTS_EXTRACTOR.for_hook(obj, owner=owner)
    except MockWireConfigurationError:
        # Reported with its site when the class's injector is built.
        return None
    injected_names = tuple(
        dependency.name
        for dependency in injection_point.dependencies
        if dependency.key.qualifier_type is not All
    )
    if not injected_names:
        return None

    obj_as_any = cast("Any", obj)
    signature = getattr(obj_as_any, ORIGINAL_SIGNATURE_ATTR, None) or inspect.signature(obj)
    obj_as_any.__dict__[_MOCKWIRE_INJECTED_PARAMETERS_ATTR] = injected_names
    obj_as_any.__dict__[ORIGINAL_SIGNATURE_ATTR] = signature
    obj_as_any.__signature__ = signature.replace(
        parameters=[
            parameter
            for parameter in signature.parameters.values()
            if parameter.name not in injected_names
        ],
    )
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Wrap test function execution to resolve ``Injected[...]`` parameters.

    The wrapper binds the resolved values to the test callable for the
    duration of the call. Tests without injected parameters are untouched.

    Args:
        pyfuncitem: Collected pytest function item.

    Raises:
        MockWireConfigurationError: If a test declares injected parameters but
            its class does not opt in to mockwire.

    Yields:
        Control back to pytest around test execution.

    """
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    injected_names = getattr(original_callable, _MOCKWIRE_INJECTED_PARAMETERS_ATTR, None)
    if not injected_names:
        yield
        return

    runner = cast("TestRunner | None", getattr(pyfuncitem, _MOCKWIRE_RUNNER_ATTR, None))
    if runner is None:
        msg = (
            f"{pyfuncitem.nodeid} declares Injected parameters {list(injected_names)} but is "
            "not part of a mockwire test class. Nest a TestModule subclass in the class or "
            f"mark it with @pytest.mark.{MARKER_NAME}."
        )
        raise MockWireConfigurationError(msg)

    pyfuncitem.obj = functools.partial(
        original_callable,
        **runner.injected_arguments(original_callable),
    )
    try:
        yield
    finally:
        pyfuncitem.obj = original_callable
