"""Shared pytest fixtures for mockwire tests."""

import pytest

from mockwire._internal.type_checks import TypeClassifier
from mockwire.binder import Binder
from mockwire.injection_points import InjectionPointsExtractor


@pytest.fixture()
def binder() -> Binder:
    """Empty binder."""
    return Binder()


@pytest.fixture()
def extractor() -> InjectionPointsExtractor:
    """InjectionPointsExtractor instance."""
    return InjectionPointsExtractor()


@pytest.fixture()
def classifier() -> TypeClassifier:
    """TypeClassifier with the default value base types."""
    return TypeClassifier()
