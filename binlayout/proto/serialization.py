"""Serialization base types for binlayout generated codecs."""

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, ClassVar, Self


class SerializationError(RuntimeError):
    """Raised when serialization or deserialization fails."""


class BufferUnderrunError(SerializationError):
    """Raised when fewer bytes remain than a field requires."""


class UnknownDiscriminantError(SerializationError):
    """Raised when no concrete entity matches an envelope discriminant."""


class InvariantViolation(AssertionError):
    """Raised when a value's size() disagrees with its encoded length.

    This indicates a defect in generated code, not a bad input.
    """


@dataclass(frozen=True)
class LayoutFieldInfo:
    """Metadata for a generated struct field."""

    kind: str
    type_name: str | None = None
    width: int | None = None
    array: bool = False
    alignment: int = 0
    group: str | None = None


# Sentinel for missing default
_MISSING: Any = object()


def layout_field(
    kind: str,
    *,
    type_name: str | None = None,
    width: int | None = None,
    array: bool = False,
    alignment: int = 0,
    group: str | None = None,
    default: Any = _MISSING,
) -> Any:
    """Define a struct field with layout metadata.

    Args:
        kind: The resolved field kind (e.g., "int", "wide", "bytes", "struct").
        type_name: Referenced entity name for struct, enum and flag fields.
        width: Static byte width of the field, if known.
        array: True for sequence fields.
        alignment: Per-element padding boundary for arrays (0 = none).
        group: Inline mixin the field was flattened from.
        default: Default value for the field (conditional fields use None).

    Returns:
        A dataclass field with layout metadata attached.
    """
    metadata = {"binlayout": LayoutFieldInfo(kind, type_name, width, array, alignment, group)}

    if default is not _MISSING:
        return field(default=default, metadata=metadata)
    return field(metadata=metadata)


def layout_fields(cls: type) -> dict[str, LayoutFieldInfo]:
    """Return the layout metadata of a generated struct, keyed by field name."""
    return {f.name: f.metadata["binlayout"] for f in fields(cls) if "binlayout" in f.metadata}


class Struct:
    """Base class for generated struct types.

    Subclasses are @dataclass decorated and implement the three codec
    operations. Fields are declared with layout_field().

    Example:
        @dataclass(kw_only=True)
        class Mosaic(Struct):
            mosaic_id: int = layout_field("wide", width=8)
            amount: Amount = layout_field("struct", type_name="Amount", width=8)
    """

    def size(self) -> int:
        """Return the encoded size in bytes. Generated code overrides this."""
        raise NotImplementedError("size() must be implemented by generated code")

    def serialize(self) -> bytes:
        """Serialize this struct to bytes. Generated code overrides this."""
        raise NotImplementedError("serialize() must be implemented by generated code")

    @classmethod
    def deserialize(cls, data: bytes | memoryview, offset: int = 0) -> tuple[Self, int]:
        """Deserialize a struct from bytes.

        Args:
            data: The bytes to deserialize from.
            offset: Starting offset in data.

        Returns:
            Tuple of (instance, bytes_consumed).
        """
        raise NotImplementedError("deserialize() must be implemented by generated code")


class LayoutEnum(IntEnum):
    """Base class for generated enums.

    Subclasses declare their wire width with a non-member attribute:

    Example:
        class LinkAction(LayoutEnum):
            layout_size = nonmember(1)
            UNLINK = 0
            LINK = 1
    """

    layout_size: ClassVar[int]

    def size(self) -> int:
        return self.layout_size

    def serialize(self) -> bytes:
        return self.value.to_bytes(self.layout_size, "little")

    @classmethod
    def deserialize(cls, data: bytes | memoryview, offset: int = 0) -> tuple[Self, int]:
        from . import codec

        return codec.read_enum(cls, data, offset, cls.layout_size), cls.layout_size


def checked_serialize(value: Struct) -> bytes:
    """Serialize a value, verifying that size() matches the encoded length."""
    payload = value.serialize()
    expected = value.size()
    if len(payload) != expected:
        raise InvariantViolation(
            f"{type(value).__name__}.size() reported {expected} bytes, serialize() produced {len(payload)}"
        )
    return payload
