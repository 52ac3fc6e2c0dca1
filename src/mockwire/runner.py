from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from mockwire.injector import Injector
from mockwire.markers import LifecycleHook, lifecycle_hook_of
from mockwire.module import TestModule
from mockwire.scope import Stage

T = TypeVar("T")

logger = logging.getLogger(__name__)


def find_test_module_class(test_class: type[Any]) -> type[TestModule]:
    """Return the ``TestModule`` subclass nested in ``test_class`` or its nearest ancestor.

    Falls back to ``TestModule`` itself, which declares no explicit bindings.
    """
    for klass in test_class.__mro__:
        for member in vars(klass).values():
            if inspect.isclass(member) and issubclass(member, TestModule):
                return member
    return TestModule


def find_test_module(test_class: type[Any]) -> TestModule:
    return find_test_module_class(test_class)(test_class)


def create_injector(
    test_class: type[Any],
    module: TestModule | None = None,
    *,
    stage: Stage = Stage.DEVELOPMENT,
) -> Injector:
    """Build the injector serving every test of ``test_class``.

    Args:
        test_class: Test class scanned for root needs.
        module: Module to configure; defaults to ``find_test_module(test_class)``.
        stage: Stage passed to the injector.

    Raises:
        MockWireConfigurationError: If the configuration is malformed or a
            dependency cannot be satisfied.

    Examples:
        .. code-block:: python

            injector = create_injector(TestCheckout)
            runner = TestRunner(injector, TestCheckout())
            runner.run(runner.test_instance.test_total)

    """
    if module is None:
        module = find_test_module(test_class)
    module.test_class = test_class
    return Injector.create(module, stage=stage)


class TestRunner:
    """Run the tests of one test instance against an injector.

    Each test runs in a fresh test scope: the instance's injected fields and
    ``@inject`` methods are filled in, ``@before`` hooks run base class first,
    the test runs, then ``@after`` hooks run subclass first. Every ``@after``
    hook runs whatever failed before it; the first ``@after`` failure is
    raised only when the test itself passed.
    """

    __test__ = False

    def __init__(self, injector: Injector, test_instance: Any) -> None:
        self.injector = injector
        self.test_instance = test_instance

    @contextmanager
    def run_test(self) -> Iterator[TestRunner]:
        with self.injector.test_scope():
            self.injector.inject_members(self.test_instance)
            try:
                for hook in self._hooks(LifecycleHook.BEFORE):
                    self.injector.call_with_injection(hook)
                yield self
            finally:
                error = self._run_after_hooks()
            if error is not None:
                raise error

    def run(self, test_method: Callable[..., T], /, **kwargs: Any) -> T:
        """Run ``test_method`` inside ``run_test`` with its injected parameters resolved."""
        with self.run_test():
            return self.injector.call_with_injection(test_method, **kwargs)

    def injected_arguments(self, test_method: Callable[..., Any]) -> dict[str, Any]:
        return self.injector.resolve_arguments(test_method)

    def _run_after_hooks(self) -> Exception | None:
        first_error: Exception | None = None
        for hook in reversed(self._hooks(LifecycleHook.AFTER)):
            try:
                self.injector.call_with_injection(hook)
            except Exception as error:
                logger.warning("After hook %s failed", hook.__qualname__, exc_info=True)
                if first_error is None:
                    first_error = error
        return first_error

    def _hooks(self, kind: LifecycleHook) -> list[Callable[..., Any]]:
        test_class = type(self.test_instance)
        names: dict[str, None] = {}
        for klass in reversed(test_class.__mro__):
            for name, member in vars(klass).items():
                if inspect.isfunction(member):
                    names.setdefault(name, None)
        return [
            getattr(self.test_instance, name)
            for name in names
            if lifecycle_hook_of(getattr(test_class, name)) is kind
        ]


__all__ = ["TestRunner", "create_injector", "find_test_module", "find_test_module_class"]
