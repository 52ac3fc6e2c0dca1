from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, TypeVar, Union, get_args, get_origin, overload

T = TypeVar("T")
C = TypeVar("C", bound=type[Any])
F = TypeVar("F", bound=Callable[..., Any])
_ANNOTATED_MARKER_MIN_ARGS = 2

INJECT_METHOD_ATTR = "__mockwire_inject__"
NESTED_SCOPE_ATTR = "__mockwire_nested_scope__"
LIFECYCLE_HOOK_ATTR = "__mockwire_hook__"
ORIGINAL_SIGNATURE_ATTR = "__mockwire_original_signature__"


class InjectedMarker:
    """A marker used to indicate a parameter or field should be injected.

    Used to identify test-hook parameters that must be removed from pytest's
    fixture matching and supplied by the injector instead.
    """


class MaybeMarker:
    """Marker that indicates a dependency is optional."""


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a hook parameter or a class attribute for injection.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``.

    Examples:
        .. code-block:: python

            class TestCheckout:
                cart: Injected[Cart]

                def test_total(self, pricing: Injected[PricingService]) -> None: ...
    """

    Maybe = Union[T, T]  # noqa: UP007,PYI016
    """Mark a dependency as optional.

    At runtime ``Maybe[T]`` becomes ``Annotated[T, MaybeMarker()]``.
    """

else:

    class Injected:
        """Mark a hook parameter or a class attribute for injection.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.
        """

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                return build_annotated((args[0], *args[1:], InjectedMarker()))
            return build_annotated((item, InjectedMarker()))

    class Maybe:
        """Mark a dependency as optional.

        At runtime ``Maybe[T]`` resolves to ``Annotated[T, MaybeMarker()]``.
        Optional dependencies never trigger synthesized bindings; the injector
        supplies them only when a binding exists.
        """

        def __class_getitem__(cls, item: T) -> Annotated[T, MaybeMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                return build_annotated((args[0], *args[1:], MaybeMarker()))
            return build_annotated((item, MaybeMarker()))


def is_injected_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., InjectedMarker()]."""
    return _has_marker(annotation, InjectedMarker)


def is_maybe_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., MaybeMarker()]."""
    return _has_marker(annotation, MaybeMarker)


def _has_marker(annotation: Any, marker_type: type[Any]) -> bool:
    if get_origin(annotation) is not Annotated:
        return False
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return False
    return any(isinstance(item, marker_type) for item in annotation_args[1:])


def build_annotated(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]


@overload
def inject(method: F, /) -> F: ...


@overload
def inject(*, optional: bool = False) -> Callable[[F], F]: ...


def inject(method: F | None = None, /, *, optional: bool = False) -> F | Callable[[F], F]:
    """Mark a method as a method injection point.

    The injector calls marked methods after construction (and on
    ``inject_members``) with every annotated parameter resolved. An optional
    method is called only when all of its dependencies are bound, and never
    makes the test module synthesize bindings.

    Examples:
        .. code-block:: python

            class Reporter:
                @inject
                def set_clock(self, clock: Clock) -> None:
                    self.clock = clock

    """

    def decorator(target: F) -> F:
        setattr(target, INJECT_METHOD_ATTR, optional)
        return target

    if method is not None:
        return decorator(method)
    return decorator


class NestedScope(Enum):
    """How a nested class of a test class is bound automatically."""

    SINGLETON = "singleton"
    """Bound to itself in ``TestScope.SINGLETON``."""

    EAGER_SINGLETON = "eager_singleton"
    """Bound to itself in ``TestScope.EAGER_SINGLETON``."""

    MOCK_SINGLETON = "mock_singleton"
    """Bound to a mock of itself in ``TestScope.SINGLETON``."""


def singleton(cls: C) -> C:
    """Bind a class nested in a test class as a real per-test singleton."""
    setattr(cls, NESTED_SCOPE_ATTR, NestedScope.SINGLETON)
    return cls


def eager_singleton(cls: C) -> C:
    """Bind a class nested in a test class as a singleton built when each test starts."""
    setattr(cls, NESTED_SCOPE_ATTR, NestedScope.EAGER_SINGLETON)
    return cls


def mock_singleton(cls: C) -> C:
    """Bind a class nested in a test class to a per-test mock of itself."""
    setattr(cls, NESTED_SCOPE_ATTR, NestedScope.MOCK_SINGLETON)
    return cls


def nested_scope_of(cls: type[Any]) -> NestedScope | None:
    """Return the marker declared on ``cls`` itself, ignoring inherited ones."""
    marker = cls.__dict__.get(NESTED_SCOPE_ATTR)
    return marker if isinstance(marker, NestedScope) else None


class LifecycleHook(Enum):
    """Test-method hooks whose injected parameters are closure roots."""

    BEFORE = "before"
    AFTER = "after"


def before(method: F) -> F:
    """Run the method before every test of the class, with injected parameters."""
    setattr(method, LIFECYCLE_HOOK_ATTR, LifecycleHook.BEFORE)
    return method


def after(method: F) -> F:
    """Run the method after every test of the class, with injected parameters."""
    setattr(method, LIFECYCLE_HOOK_ATTR, LifecycleHook.AFTER)
    return method


def lifecycle_hook_of(method: object) -> LifecycleHook | None:
    hook = getattr(method, LIFECYCLE_HOOK_ATTR, None)
    return hook if isinstance(hook, LifecycleHook) else None


__all__ = [
    "Injected",
    "InjectedMarker",
    "LifecycleHook",
    "Maybe",
    "MaybeMarker",
    "NestedScope",
    "after",
    "before",
    "build_annotated",
    "eager_singleton",
    "inject",
    "is_injected_annotation",
    "is_maybe_annotation",
    "lifecycle_hook_of",
    "mock_singleton",
    "nested_scope_of",
    "singleton",
]
