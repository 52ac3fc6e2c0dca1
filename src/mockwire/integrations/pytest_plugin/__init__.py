from mockwire.integrations.pytest_plugin.plugin import (
    _mockwire_test_scope,
    is_mockwire_class,
    mockwire_injector,
    mockwire_stage,
    pytest_configure,
    pytest_pycollect_makeitem,
    pytest_pyfunc_call,
)

__all__ = [
    "_mockwire_test_scope",
    "is_mockwire_class",
    "mockwire_injector",
    "mockwire_stage",
    "pytest_configure",
    "pytest_pycollect_makeitem",
    "pytest_pyfunc_call",
]
