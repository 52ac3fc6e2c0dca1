from __future__ import annotations

import datetime
import decimal
import inspect
import pathlib
import types
import uuid
from dataclasses import dataclass
from typing import Any, TypeGuard

_VALUE_MODULES = ("builtins", "types")


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_protocol_class(candidate: type[Any]) -> bool:
    return bool(getattr(candidate, "_is_protocol", False))


@dataclass(frozen=True, slots=True)
class TypeClassifier:
    """Classify raw dependency types into abstract, concrete and value types."""

    value_base_types: tuple[type[Any], ...] = (
        pathlib.PurePath,
        datetime.datetime,
        datetime.date,
        datetime.time,
        datetime.timedelta,
        uuid.UUID,
        decimal.Decimal,
    )

    def is_abstract(self, candidate: object) -> bool:
        """Return true for interfaces: ABCs with abstract members and protocols.

        Args:
            candidate: Raw type of a dependency key.

        """
        if not is_runtime_class(candidate):
            return False
        return inspect.isabstract(candidate) or is_protocol_class(candidate)

    def is_value_type(self, candidate: object) -> bool:
        """Return true for builtins and plain-data library classes.

        Value types are never synthesized and must be bound explicitly.

        Args:
            candidate: Raw type of a dependency key.

        """
        if not is_runtime_class(candidate):
            return False
        if candidate.__module__ in _VALUE_MODULES:
            return True
        if issubclass(candidate, type):
            return True
        return issubclass(candidate, self.value_base_types)

    def is_instantiable(self, candidate: object) -> TypeGuard[type[Any]]:
        """Return true when a raw type can be built through its constructor.

        Args:
            candidate: Raw type of a dependency key.

        """
        if not is_runtime_class(candidate):
            return False
        return not self.is_abstract(candidate) and not self.is_value_type(candidate)


__all__ = ["TypeClassifier", "is_protocol_class", "is_runtime_class"]
