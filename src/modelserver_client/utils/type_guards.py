"""Type guard helpers.

Small predicates that check the runtime shape of untyped JSON values
(as decoded from model server responses). They never raise: a missing
property or a type mismatch yields ``False``.

Callers combine them to build custom guards for the typed client operations:

    def is_task(value: object) -> TypeGuard[dict]:
        return is_defined_object(value) and is_string(value, "name") and is_boolean(value, "done")

    task = await client.get("Tasks.json", is_task)
"""

from collections.abc import Callable, Mapping
from typing import Any, TypeAlias, TypeGuard, TypeVar

T = TypeVar("T")

TypeGuardFn: TypeAlias = Callable[[Any], TypeGuard[T]]
"""A caller-supplied guard verifying that a value is of type ``T``."""


def is_defined_object(value: Any) -> TypeGuard[Mapping[str, Any]]:
    """Check that the value is defined and of object (mapping) shape."""
    return value is not None and isinstance(value, Mapping)


def _property(value: Any, property_key: str) -> tuple[bool, Any]:
    if not is_defined_object(value) or property_key not in value:
        return False, None
    return True, value[property_key]


def is_string(value: Any, property_key: str) -> bool:
    """Check that the value has a ``str`` property with the given key."""
    present, prop = _property(value, property_key)
    return present and isinstance(prop, str)


def is_boolean(value: Any, property_key: str) -> bool:
    """Check that the value has a ``bool`` property with the given key."""
    present, prop = _property(value, property_key)
    return present and isinstance(prop, bool)


def is_number(value: Any, property_key: str) -> bool:
    """Check that the value has a numeric property with the given key.

    ``bool`` is a subclass of ``int`` in Python but is not a JSON number,
    so boolean properties are rejected.
    """
    present, prop = _property(value, property_key)
    return present and isinstance(prop, int | float) and not isinstance(prop, bool)


def is_object(value: Any, property_key: str) -> bool:
    """Check that the value has a nested object property with the given key."""
    present, prop = _property(value, property_key)
    return present and is_defined_object(prop)


def is_array(value: Any, property_key: str) -> bool:
    """Check that the value has a list property with the given key."""
    present, prop = _property(value, property_key)
    return present and isinstance(prop, list)
