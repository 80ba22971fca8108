"""Enum emission context."""

from dataclasses import dataclass

from .types import SchemaEntity, SchemaResolutionError
from .util import docstring


@dataclass(frozen=True)
class EnumMember:
    name: str
    value: str
    comment: str | None


@dataclass(frozen=True)
class EnumContext:
    """Everything the template needs to emit one LayoutEnum subclass."""

    name: str
    doc: str
    width: int
    flags: bool
    members: tuple[EnumMember, ...]


def enum_context(entity: SchemaEntity) -> EnumContext:
    if not entity.is_enum or entity.size is None:
        raise SchemaResolutionError(f"{entity.name} is not an enum with a declared size")

    fallback = "Flag set." if entity.flags else "Enumeration."
    members = []
    for value in entity.values:
        if not value.name.isidentifier():
            raise SchemaResolutionError(f"{entity.name}.{value.name} is not a valid constant name")
        literal = f"0x{value.value:X}" if entity.flags or value.value > 0xFF else str(value.value)
        comment = value.comment.strip().replace("\n", " ") if value.comment else None
        members.append(EnumMember(value.name, literal, comment))

    return EnumContext(
        name=entity.name,
        doc=docstring(entity.comment, fallback),
        width=entity.size,
        flags=entity.flags,
        members=tuple(members),
    )
