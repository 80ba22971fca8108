"""Naming helpers for code generation."""

import keyword
import re

# Names generated code already uses on structs and in codec method scope
RESERVED_NAMES = frozenset(["size", "serialize", "deserialize", "compose", "offset", "cls", "self"])

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Convert CamelCase or mixedCase to snake_case."""
    return _CAMEL_BOUNDARY.sub("_", name).replace("-", "_").lower()


def python_name(name: str) -> str:
    """Return a keyword safe snake_case identifier for a schema name."""
    result = to_snake_case(name)
    if keyword.iskeyword(result) or result in RESERVED_NAMES:
        result += "_"
    return result


def docstring(text: str | None, fallback: str) -> str:
    """Return text usable inside a triple quoted docstring."""
    text = (text or fallback).strip().replace("\\", "\\\\").replace('"""', "'''")
    if text.endswith('"'):
        text += " "
    return text or fallback
