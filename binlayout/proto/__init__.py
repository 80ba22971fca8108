"""Runtime support for binlayout generated codecs."""

from .runtime import EnvelopeDispatcher
from .serialization import (
    BufferUnderrunError,
    InvariantViolation,
    LayoutEnum,
    SerializationError,
    Struct,
    UnknownDiscriminantError,
    checked_serialize,
    layout_field,
)

__all__ = [
    "BufferUnderrunError",
    "EnvelopeDispatcher",
    "InvariantViolation",
    "LayoutEnum",
    "SerializationError",
    "Struct",
    "UnknownDiscriminantError",
    "checked_serialize",
    "layout_field",
]
