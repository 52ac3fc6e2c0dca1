from __future__ import annotations

from enum import Enum, auto


class TestScope(Enum):
    """Scopes a binding can be placed in, relative to a single test."""

    __test__ = False

    SINGLETON = auto()
    """One value per test, created on first request and dropped when the test ends."""

    EAGER_SINGLETON = auto()
    """One value per test, created when the test scope is entered."""


class Stage(Enum):
    """Stage the injector runs in. Injectable as a container-internal value."""

    DEVELOPMENT = auto()
    """Singletons are created lazily, on first request."""

    PRODUCTION = auto()
    """Every singleton is created when the test scope is entered."""
