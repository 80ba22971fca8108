"""Byte-level codec helpers used by generated code.

All multi-byte integers are little-endian. Decoders take a buffer and an
offset and never read past the end of the buffer.
"""

import struct
from collections.abc import Callable, Iterable, Sequence
from enum import IntEnum
from typing import Any, Protocol, TypeVar

from .serialization import BufferUnderrunError, SerializationError

E = TypeVar("E", bound=IntEnum)
T = TypeVar("T")

Decoder = Callable[[bytes | memoryview, int], tuple[T, int]]

# Map integer widths to struct format characters
FORMAT_CHARS = {1: "B", 2: "H", 4: "I", 8: "Q"}
SIGNED_FORMAT_CHARS = {1: "b", 2: "h", 4: "i", 8: "q"}


class Sized(Protocol):
    def size(self) -> int: ...

    def serialize(self) -> bytes: ...


def format_char(width: int, signed: bool = False) -> str | None:
    """Return the struct format character for an integer width, if any."""
    return (SIGNED_FORMAT_CHARS if signed else FORMAT_CHARS).get(width)


def require(data: bytes | memoryview, offset: int, length: int) -> None:
    """Raise BufferUnderrunError unless length bytes remain at offset."""
    if length < 0 or offset + length > len(data):
        available = max(len(data) - offset, 0)
        raise BufferUnderrunError(f"need {length} bytes at offset {offset}, {available} available")


def pack(fmt: str, *values: Any) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as e:
        raise SerializationError(str(e)) from e


def unpack(fmt: str, data: bytes | memoryview, offset: int) -> tuple[Any, ...]:
    require(data, offset, struct.calcsize(fmt))
    return struct.unpack_from(fmt, data, offset)


def write_uint(value: int, width: int) -> bytes:
    try:
        return int(value).to_bytes(width, "little")
    except OverflowError as e:
        raise SerializationError(f"{value} does not fit in {width} unsigned bytes") from e


def read_uint(data: bytes | memoryview, offset: int, width: int) -> int:
    require(data, offset, width)
    return int.from_bytes(data[offset : offset + width], "little")


def write_int(value: int, width: int) -> bytes:
    try:
        return int(value).to_bytes(width, "little", signed=True)
    except OverflowError as e:
        raise SerializationError(f"{value} does not fit in {width} signed bytes") from e


def read_int(data: bytes | memoryview, offset: int, width: int) -> int:
    require(data, offset, width)
    return int.from_bytes(data[offset : offset + width], "little", signed=True)


def write_wide(value: int) -> bytes:
    return write_uint(value, 8)


def read_wide(data: bytes | memoryview, offset: int) -> int:
    return read_uint(data, offset, 8)


def write_bytes(value: bytes, length: int) -> bytes:
    if len(value) != length:
        raise SerializationError(f"expected {length} bytes, got {len(value)}")
    return bytes(value)


def read_bytes(data: bytes | memoryview, offset: int, length: int) -> bytes:
    require(data, offset, length)
    return bytes(data[offset : offset + length])


def write_int_list(values: Sequence[int], width: int, *, signed: bool = False, count: int | None = None) -> bytes:
    """Encode a list of fixed-width integers back to back."""
    _check_count(values, count)
    fc = format_char(width, signed)
    if fc is not None:
        return pack(f"<{len(values)}{fc}", *values)

    write = write_int if signed else write_uint
    return b"".join(write(value, width) for value in values)


def read_int_list(
    data: bytes | memoryview, offset: int, count: int, width: int, *, signed: bool = False
) -> list[int]:
    require(data, offset, count * width)
    fc = format_char(width, signed)
    if fc is not None:
        return list(struct.unpack_from(f"<{count}{fc}", data, offset))

    read = read_int if signed else read_uint
    return [read(data, offset + i * width, width) for i in range(count)]


def pad(size: int, alignment: int) -> int:
    """Return the number of padding bytes that align size to alignment."""
    if alignment == 0:
        return 0
    return (alignment - size % alignment) % alignment


def size_with_padding(size: int, alignment: int) -> int:
    return size + pad(size, alignment)


def list_size(elements: Iterable[Sized], alignment: int = 0) -> int:
    """Return the encoded size of a list, including per-element padding."""
    return sum(size_with_padding(element.size(), alignment) for element in elements)


def write_list(elements: Sequence[Sized], alignment: int = 0, *, count: int | None = None) -> bytes:
    """Encode each element, zero padding every element to alignment."""
    _check_count(elements, count)
    buf = bytearray()
    for element in elements:
        payload = element.serialize()
        buf.extend(payload)
        buf.extend(bytes(pad(len(payload), alignment)))
    return bytes(buf)


def read_list(
    decoder: Decoder[T], data: bytes | memoryview, offset: int, count: int, alignment: int = 0
) -> tuple[list[T], int]:
    """Decode exactly count elements.

    Returns:
        Tuple of (elements, bytes_consumed), padding included.
    """
    items: list[T] = []
    o = offset
    for _ in range(count):
        item, n = decoder(data, o)
        padding = pad(n, alignment)
        require(data, o + n, padding)
        items.append(item)
        o += n + padding
    return items, o - offset


def read_list_until(
    decoder: Decoder[T], data: bytes | memoryview, offset: int, budget: int, alignment: int = 0
) -> tuple[list[T], int]:
    """Decode elements until budget bytes have been consumed.

    Elements never see bytes past the budget.

    Returns:
        Tuple of (elements, bytes_consumed).
    """
    require(data, offset, budget)
    end = offset + budget
    view = memoryview(data)[:end]

    items: list[T] = []
    o = offset
    while o < end:
        item, n = decoder(view, o)
        if n == 0:
            raise SerializationError(f"zero sized element at offset {o}")
        padding = pad(n, alignment)
        require(view, o + n, padding)
        items.append(item)
        o += n + padding
    return items, o - offset


def read_enum(enum_cls: type[E], data: bytes | memoryview, offset: int, width: int) -> E:
    value = read_uint(data, offset, width)
    try:
        return enum_cls(value)
    except ValueError as e:
        raise SerializationError(f"{value} is not a valid {enum_cls.__name__}") from e


def to_flags(enum_cls: type[E], mask: int) -> set[E]:
    """Expand an integer mask into the set of enum constants whose bits are set."""
    return {member for member in enum_cls if member.value & mask}


def from_flags(enum_cls: type[E], flags: Iterable[E | int]) -> int:
    """Fold a set of enum constants into their bitwise OR."""
    mask = 0
    for flag in flags:
        try:
            mask |= enum_cls(flag).value
        except ValueError as e:
            raise SerializationError(f"{flag} is not a valid {enum_cls.__name__}") from e
    return mask


def _check_count(values: Sequence[Any], count: int | None) -> None:
    if count is not None and len(values) != count:
        raise SerializationError(f"expected {count} elements, got {len(values)}")
