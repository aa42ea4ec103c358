"""Shared utilities."""

from .type_guards import TypeGuardFn, is_array, is_boolean, is_defined_object, is_number, is_object, is_string

__all__ = [
    "TypeGuardFn",
    "is_array",
    "is_boolean",
    "is_defined_object",
    "is_number",
    "is_object",
    "is_string",
]
