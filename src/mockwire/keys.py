from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, get_args, get_origin

from mockwire._internal.type_checks import is_runtime_class
from mockwire.exceptions import MockWireConfigurationError


class Qualifier:
    """Base class for everything that can tell two keys of the same type apart.

    A qualifier instance compares by value (``Component("primary")``). A
    qualifier subclass used as a bare class is a *marker* and compares by
    identity (``All``, ``Assisted``).
    """

    __slots__ = ()


@dataclass(frozen=True, slots=True)
class Component(Qualifier):
    """Differentiate multiple bindings for the same base type.

    Examples:
        .. code-block:: python

            PrimaryDb = Annotated[Database, Component("primary")]
            ReplicaDb = Annotated[Database, Component("replica")]

    """

    value: Any


class All(Qualifier):
    """Broadcast marker for hook parameters supplied by the test runner itself.

    ``All[T]`` is shorthand for ``Annotated[T, All]``. Keys qualified with
    ``All`` are never synthesized.
    """

    def __class_getitem__(cls, item: Any) -> Any:
        if get_origin(item) is Annotated:
            item = get_args(item)[0]
        return Annotated[item, All]


@dataclass(frozen=True, slots=True)
class Assisted(Qualifier):
    """Mark a constructor parameter supplied by a factory call rather than by a binding.

    Use the bare class (``Annotated[str, Assisted]``) or a named instance
    (``Annotated[str, Assisted("memo")]``) when a constructor takes two
    assisted values of the same type.
    """

    value: str = ""


def is_qualifier(candidate: object) -> bool:
    """Return True for qualifier instances and qualifier marker classes."""
    if isinstance(candidate, Qualifier):
        return True
    return is_runtime_class(candidate) and issubclass(candidate, Qualifier)


@dataclass(frozen=True, slots=True)
class Key:
    """Identity of a requested dependency: a type plus an optional qualifier.

    Keys are hashable and immutable. ``typing.Annotated`` is never stored: it
    is parsed into the type and its single qualifier by ``Key.of``.
    """

    type: Any
    qualifier: Any = None

    def __post_init__(self) -> None:
        if self.qualifier is not None and not is_qualifier(self.qualifier):
            msg = f"{self.qualifier!r} is not a qualifier; subclass mockwire.Qualifier."
            raise MockWireConfigurationError(msg)

    @classmethod
    def of(cls, dependency: Any, qualifier: Any = None) -> Key:
        """Build a key from a type, an ``Annotated`` token or an existing key.

        Args:
            dependency: Type, ``Annotated[T, qualifier]`` token or ``Key``.
            qualifier: Optional qualifier instance or marker class.

        Raises:
            MockWireConfigurationError: If two qualifiers are supplied.

        """
        if isinstance(dependency, Key):
            key = dependency
        elif get_origin(dependency) is Annotated:
            key = cls.from_annotation(dependency)
        else:
            key = cls(dependency)
        if qualifier is None:
            return key
        if key.qualifier is not None and key.qualifier != qualifier:
            msg = f"{key} already carries a qualifier; cannot add {qualifier!r}."
            raise MockWireConfigurationError(msg)
        return cls(key.type, qualifier)

    @classmethod
    def from_annotation(cls, annotation: Any) -> Key:
        """Parse ``Annotated[T, *metadata]``, keeping at most one qualifier.

        Non-qualifier metadata (markers such as ``Injected``) is ignored.
        """
        if get_origin(annotation) is not Annotated:
            return cls(annotation)
        dependency, *metadata = get_args(annotation)
        qualifiers = [item for item in metadata if is_qualifier(item)]
        if len(qualifiers) > 1:
            msg = f"{annotation!r} carries more than one qualifier: {qualifiers!r}."
            raise MockWireConfigurationError(msg)
        return cls(dependency, qualifiers[0] if qualifiers else None)

    @property
    def raw_type(self) -> Any:
        return get_origin(self.type) or self.type

    @property
    def qualifier_type(self) -> Any:
        if self.qualifier is None:
            return None
        if isinstance(self.qualifier, Qualifier):
            return type(self.qualifier)
        return self.qualifier

    def with_type(self, new_type: Any) -> Key:
        """Return a key for ``new_type`` carrying this key's qualifier.

        An ``Annotated`` ``new_type`` is parsed, so its own qualifier merges
        with this one.
        """
        return Key.of(new_type, self.qualifier)

    def __str__(self) -> str:
        rendered = type_name(self.type)
        if self.qualifier is None:
            return rendered
        if isinstance(self.qualifier, Qualifier):
            return f"{rendered} @ {self.qualifier!r}"
        return f"{rendered} @ {self.qualifier.__name__}"


def type_name(dependency: Any) -> str:
    if is_runtime_class(dependency):
        return dependency.__qualname__
    return repr(dependency).replace("typing.", "")


__all__ = ["All", "Assisted", "Component", "Key", "Qualifier", "is_qualifier", "type_name"]
