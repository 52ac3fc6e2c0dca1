from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class MockWireError(Exception):
    """Represent a base class for all mockwire-specific failures.

    Catch this type when you want to handle any mockwire error path without
    matching each concrete exception class individually.
    """


class MockWireConfigurationError(MockWireError):
    """Signal a malformed test or container configuration.

    Raised while configuring modules and building the injector, before any
    test method executes. Typical triggers are an unparameterized
    ``Provider`` on a hook parameter, a required constructor parameter without
    an annotation, a key bound twice, a dependency nothing can satisfy, or a
    construction cycle.

    Every entry of ``messages`` names the offending key and the site that
    required it.
    """

    def __init__(self, messages: str | Iterable[str]) -> None:
        self.messages: tuple[str, ...] = (
            (messages,) if isinstance(messages, str) else tuple(messages)
        )
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.messages) == 1:
            return self.messages[0]
        lines = [f"{len(self.messages)} configuration errors:"]
        lines.extend(f"{index}) {message}" for index, message in enumerate(self.messages, 1))
        return "\n".join(lines)


class MockWireInvalidBindingError(MockWireConfigurationError):
    """Signal misuse of the fluent binding builder.

    Raised by ``BindingBuilder`` methods when a statement is completed twice,
    qualified after its target was chosen, or scoped when it is bound to an
    instance.
    """


class MockWireUnresolvedNeedError(MockWireConfigurationError):
    """Signal a concrete dependency that was needed but never bound.

    Concrete classes are bound eagerly as soon as they are discovered, so this
    error indicates an internal invariant violation rather than a user mistake.
    """


class MockWireDependencyNotBoundError(MockWireError):
    """Signal that a dependency key has no binding and cannot be built just in time.

    Raised by ``Injector.get_instance`` for qualified keys, abstract classes
    and value types that were never bound.
    """

    def __init__(self, key: Any, site: str | None = None) -> None:
        self.key = key
        self.site = site
        msg = f"No binding for {key}"
        if site is not None:
            msg = f"{msg} (required by {site})"
        super().__init__(msg)


class MockWireCircularDependencyError(MockWireError):
    """Signal a construction cycle detected while building a value.

    Break the cycle by injecting ``Provider[T]`` on one edge of it.
    """

    def __init__(self, chain: Iterable[Any]) -> None:
        self.chain: tuple[Any, ...] = tuple(chain)
        rendered = " -> ".join(str(key) for key in self.chain)
        super().__init__(f"Circular dependency: {rendered}")
