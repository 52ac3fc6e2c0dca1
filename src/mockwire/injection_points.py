from __future__ import annotations

import inspect
import types
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from mockwire.exceptions import MockWireConfigurationError
from mockwire.keys import Key
from mockwire.markers import (
    INJECT_METHOD_ATTR,
    ORIGINAL_SIGNATURE_ATTR,
    build_annotated,
    is_injected_annotation,
    is_maybe_annotation,
)

_SKIPPED_PARAMETER_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_UNION_ORIGINS = (Union, types.UnionType)


class InjectionPointKind(Enum):
    """Where an injection point lives."""

    CONSTRUCTOR = "constructor"
    FIELD = "field"
    METHOD = "method"
    HOOK = "hook"


@dataclass(frozen=True, slots=True)
class Dependency:
    """A single value an injection point requires."""

    key: Key
    name: str
    optional: bool = False
    """True for ``Maybe[T]`` annotations and parameters or fields with a default."""
    has_default: bool = False
    """True when the declaration supplies its own default value."""


@dataclass(frozen=True, slots=True)
class InjectionPoint:
    """A constructor, field, method or test hook that requires injected values."""

    declaring_type: type[Any] | None
    member: str
    kind: InjectionPointKind
    dependencies: tuple[Dependency, ...]
    optional: bool = False

    def __str__(self) -> str:
        if self.declaring_type is None:
            return self.member
        return f"{self.declaring_type.__qualname__}.{self.member}"


class InjectionPointsExtractor:
    """Extract injection points and their dependency keys from classes and callables.

    Constructors contribute every annotated parameter; fields contribute
    ``Injected[T]`` class attributes; methods contribute the parameters of
    ``@inject``-decorated methods; hooks contribute their ``Injected[T]``
    parameters only. Class results are cached.
    """

    def __init__(self) -> None:
        self._constructor_cache: dict[type[Any], InjectionPoint] = {}
        self._members_cache: dict[type[Any], tuple[InjectionPoint, ...]] = {}

    def for_constructor_of(self, cls: type[Any]) -> InjectionPoint:
        """Return the constructor injection point of ``cls``.

        Args:
            cls: Concrete class to inspect.

        Raises:
            MockWireConfigurationError: If a required parameter has no usable
                annotation.

        """
        cached = self._constructor_cache.get(cls)
        if cached is not None:
            return cached

        init_func = cls.__init__
        if init_func is object.__init__:
            dependencies: tuple[Dependency, ...] = ()
        else:
            dependencies = self._callable_dependencies(
                init_func,
                owner=cls,
                site=f"{cls.__qualname__}.__init__",
                skip_first_parameter=True,
                injected_only=False,
            )
        injection_point = InjectionPoint(
            declaring_type=cls,
            member="__init__",
            kind=InjectionPointKind.CONSTRUCTOR,
            dependencies=dependencies,
        )
        self._constructor_cache[cls] = injection_point
        return injection_point

    def for_instance_methods_and_fields(self, cls: type[Any]) -> tuple[InjectionPoint, ...]:
        """Return field and ``@inject`` method injection points, base classes first.

        Args:
            cls: Class to inspect.

        Raises:
            MockWireConfigurationError: If an annotation cannot be resolved.

        """
        cached = self._members_cache.get(cls)
        if cached is not None:
            return cached

        field_hints = self._resolve_hints(cls, owner=cls, site=cls.__qualname__)
        seen_methods: set[str] = set()
        per_class: list[list[InjectionPoint]] = []
        for klass in cls.__mro__:
            if klass is object:
                continue
            points = [
                self._field_point(cls, klass, name, field_hints[name])
                for name in inspect.get_annotations(klass)
                if name in field_hints and _is_injected_field(field_hints[name])
            ]
            for name, member in vars(klass).items():
                if name in seen_methods or not inspect.isfunction(member):
                    continue
                seen_methods.add(name)
                optional = getattr(member, INJECT_METHOD_ATTR, None)
                if optional is None:
                    continue
                points.append(
                    InjectionPoint(
                        declaring_type=klass,
                        member=name,
                        kind=InjectionPointKind.METHOD,
                        dependencies=self._callable_dependencies(
                            member,
                            owner=klass,
                            site=f"{klass.__qualname__}.{name}",
                            skip_first_parameter=True,
                            injected_only=False,
                        ),
                        optional=bool(optional),
                    ),
                )
            per_class.append(points)

        result = tuple(point for points in reversed(per_class) for point in points)
        self._members_cache[cls] = result
        return result

    def for_hook(
        self,
        function: Callable[..., Any],
        *,
        owner: type[Any] | None,
    ) -> InjectionPoint:
        """Return the ``Injected[T]`` parameters of a test hook as an injection point.

        Args:
            function: Plain function. When ``owner`` is given it is a method
                declared on ``owner`` and its first parameter is skipped.
            owner: Class declaring the method; its namespace resolves short names.

        """
        if owner is None:
            member = getattr(function, "__qualname__", repr(function))
            site = member
        else:
            member = getattr(function, "__name__", repr(function))
            site = f"{owner.__qualname__}.{member}"
        return InjectionPoint(
            declaring_type=owner,
            member=member,
            kind=InjectionPointKind.HOOK,
            dependencies=self._callable_dependencies(
                function,
                owner=owner,
                site=site,
                skip_first_parameter=owner is not None,
                injected_only=True,
            ),
        )

    def _field_point(
        self,
        cls: type[Any],
        klass: type[Any],
        name: str,
        hint: Any,
    ) -> InjectionPoint:
        hint, nullable = strip_optional(hint)
        has_default = hasattr(cls, name)
        optional = has_default or nullable or is_maybe_annotation(hint)
        dependency = Dependency(
            key=self._key_for(hint, site=f"{klass.__qualname__}.{name}"),
            name=name,
            optional=optional,
            has_default=has_default,
        )
        return InjectionPoint(
            declaring_type=klass,
            member=name,
            kind=InjectionPointKind.FIELD,
            dependencies=(dependency,),
            optional=optional,
        )

    def _callable_dependencies(
        self,
        func: Callable[..., Any],
        *,
        owner: type[Any] | None,
        site: str,
        skip_first_parameter: bool,
        injected_only: bool,
    ) -> tuple[Dependency, ...]:
        signature = getattr(func, ORIGINAL_SIGNATURE_ATTR, None)
        if signature is None:
            try:
                signature = inspect.signature(func)
            except (TypeError, ValueError):
                return ()
        hints = self._resolve_hints(func, owner=owner, site=site)

        parameters = list(signature.parameters.values())
        if skip_first_parameter and parameters:
            parameters = parameters[1:]

        dependencies: list[Dependency] = []
        for parameter in parameters:
            if parameter.kind in _SKIPPED_PARAMETER_KINDS:
                continue
            has_default = parameter.default is not inspect.Parameter.empty
            annotation, nullable = strip_optional(hints.get(parameter.name, parameter.annotation))
            if injected_only and not is_injected_annotation(annotation):
                continue
            if annotation is inspect.Parameter.empty:
                if has_default:
                    continue
                msg = f"Parameter '{parameter.name}' of {site} has no type annotation."
                raise MockWireConfigurationError(msg)
            dependencies.append(
                Dependency(
                    key=self._key_for(annotation, site=f"parameter '{parameter.name}' of {site}"),
                    name=parameter.name,
                    optional=has_default or nullable or is_maybe_annotation(annotation),
                    has_default=has_default,
                ),
            )
        return tuple(dependencies)

    def _resolve_hints(self, obj: Any, *, owner: type[Any] | None, site: str) -> dict[str, Any]:
        localns: dict[str, Any] | None = None
        if owner is not None:
            localns = {}
            for klass in reversed(owner.__mro__):
                localns.update(vars(klass))
            localns[owner.__name__] = owner
        try:
            return get_type_hints(obj, localns=localns, include_extras=True)
        except (NameError, TypeError) as error:
            msg = f"Cannot resolve type annotations of {site}: {error}"
            raise MockWireConfigurationError(msg) from error

    def _key_for(self, annotation: Any, *, site: str) -> Key:
        try:
            return Key.of(annotation)
        except MockWireConfigurationError as error:
            msg = f"{error} (at {site})"
            raise MockWireConfigurationError(msg) from error


def _is_injected_field(hint: Any) -> bool:
    return is_injected_annotation(strip_optional(hint)[0])


def strip_optional(annotation: Any) -> tuple[Any, bool]:
    """Return ``(T, True)`` for ``T | None`` and ``Optional[T]``, else ``(annotation, False)``.

    The first argument of an ``Annotated`` form is unwrapped too, so
    ``Injected[T | None]`` reads like ``Injected[T] | None``.
    """
    if get_origin(annotation) is Annotated:
        inner, *metadata = get_args(annotation)
        inner, nullable = strip_optional(inner)
        if nullable:
            return build_annotated((inner, *metadata)), True
        return annotation, False
    if get_origin(annotation) not in _UNION_ORIGINS:
        return annotation, False
    members = get_args(annotation)
    present = [member for member in members if member is not type(None)]
    if len(present) == 1 and len(members) == 2:  # noqa: PLR2004
        inner, _ = strip_optional(present[0])
        return inner, True
    return annotation, False


__all__ = [
    "Dependency",
    "InjectionPoint",
    "InjectionPointKind",
    "InjectionPointsExtractor",
    "strip_optional",
]
