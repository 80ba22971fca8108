"""Type definitions for schema loading and code generation."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from dataclasses_json import DataClassJsonMixin

# Type name of primitive byte fields
BYTE_TYPE = "byte"


class SchemaResolutionError(ValueError):
    """Raised when a schema cannot be resolved into codecs."""


class EntityKind(StrEnum):
    STRUCT = "struct"
    ENUM = "enum"
    BYTE = "byte"


class Disposition(StrEnum):
    """How a field occupies the wire."""

    PLAIN = "plain"
    INLINE = "inline"
    CONST = "const"
    ARRAY = "array"
    ARRAY_FILL = "array-fill"
    ARRAY_SIZED = "array-sized"
    RESERVED = "reserved"

    @property
    def is_array(self) -> bool:
        return self in (Disposition.ARRAY, Disposition.ARRAY_FILL, Disposition.ARRAY_SIZED)


class Signedness(StrEnum):
    UNSIGNED = "unsigned"
    SIGNED = "signed"


class ConditionOperation(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not-equals"
    IN = "in"


@dataclass(frozen=True)
class FieldCondition(DataClassJsonMixin):
    """Guard on a sibling field (the discriminant)."""

    field: str
    operation: ConditionOperation
    value: Any


@dataclass(frozen=True)
class FieldLayout(DataClassJsonMixin):
    """Represents a single field of a struct entity.

    For size:
    - int: fixed width (plain byte fields) or element count (arrays)
    - str: name of a sibling field carrying the count or byte budget
    - None: anonymous width (inline, enum and struct references, array-fill)
    """

    type: str
    name: str | None = None
    disposition: Disposition = Disposition.PLAIN
    size: int | str | None = None
    signedness: Signedness = Signedness.UNSIGNED
    element_size: int | None = None
    condition: FieldCondition | None = None
    value: Any | None = None
    element_alignment: int = 0
    comment: str | None = None

    @property
    def is_byte(self) -> bool:
        return self.type == BYTE_TYPE


@dataclass(frozen=True)
class EnumValue(DataClassJsonMixin):
    name: str
    value: int
    comment: str | None = None


@dataclass(frozen=True)
class SchemaEntity(DataClassJsonMixin):
    """Represents a named entity of the schema.

    Structs carry fields in wire order, enums carry values, and byte
    entities are fixed width scalar aliases of the declared size.
    """

    name: str
    kind: EntityKind
    size: int | None = None
    signedness: Signedness = Signedness.UNSIGNED
    fields: list[FieldLayout] = field(default_factory=list)
    values: list[EnumValue] = field(default_factory=list)
    flags: bool = False
    mixin: bool = False
    comment: str | None = None

    @property
    def is_struct(self) -> bool:
        return self.kind == EntityKind.STRUCT

    @property
    def is_enum(self) -> bool:
        return self.kind == EntityKind.ENUM

    @property
    def is_byte(self) -> bool:
        return self.kind == EntityKind.BYTE


class EntityTable(Mapping[str, SchemaEntity]):
    """Read-only lookup of schema entities by name, in declaration order."""

    def __init__(self, entities: Iterable[SchemaEntity]) -> None:
        table: dict[str, SchemaEntity] = {}
        for entity in entities:
            if entity.name in table:
                raise SchemaResolutionError(f"Duplicate entity name: {entity.name}")
            if entity.name == BYTE_TYPE:
                raise SchemaResolutionError(f"Entity name {BYTE_TYPE!r} is reserved")
            table[entity.name] = entity
        self._entities = MappingProxyType(table)
        self._validate()

    def _validate(self) -> None:
        for entity in self._entities.values():
            if entity.is_enum or entity.is_byte:
                if entity.size is None or entity.size <= 0:
                    raise SchemaResolutionError(f"{entity.kind} entity {entity.name} must declare a positive size")

            if entity.is_enum:
                names = [value.name for value in entity.values]
                duplicates = sorted({name for name in names if names.count(name) > 1})
                if duplicates:
                    raise SchemaResolutionError(f"Enum {entity.name} repeats values: {', '.join(duplicates)}")
                limit = 1 << (8 * (entity.size or 0))
                for value in entity.values:
                    if not 0 <= value.value < limit:
                        raise SchemaResolutionError(
                            f"Enum value {entity.name}.{value.name} does not fit in {entity.size} bytes"
                        )

        self._check_references()

    def _check_references(self) -> None:
        """Reject unknown types and reference cycles, including cycles through mixins."""
        done: set[str] = set()

        def visit(name: str, path: list[str]) -> None:
            if name in path:
                cycle = " -> ".join(path[path.index(name) :] + [name])
                raise SchemaResolutionError(f"Reference cycle: {cycle}")
            if name in done:
                return

            for layout in self.lookup(name).fields:
                if layout.type != BYTE_TYPE:
                    visit(layout.type, path + [name])
            done.add(name)

        for name in self._entities:
            visit(name, [])

    def __getitem__(self, name: str) -> SchemaEntity:
        return self._entities[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def lookup(self, name: str) -> SchemaEntity:
        """Return the named entity or raise SchemaResolutionError."""
        try:
            return self._entities[name]
        except KeyError:
            raise SchemaResolutionError(f"Unknown type: {name}") from None

    @property
    def enums(self) -> list[SchemaEntity]:
        return [e for e in self._entities.values() if e.is_enum]

    @property
    def structs(self) -> list[SchemaEntity]:
        """Struct and byte alias entities, i.e. everything that becomes a Struct class."""
        return [e for e in self._entities.values() if not e.is_enum]


class FieldKind(StrEnum):
    """Value shape of a resolved field."""

    INT = "int"
    WIDE = "wide"
    BYTES = "bytes"
    STRUCT = "struct"
    ENUM = "enum"
    FLAGS = "flags"


class FieldRole(StrEnum):
    """Where a resolved field's value comes from when serializing."""

    VALUE = "value"
    CONST = "const"
    RESERVED = "reserved"
    COUNT = "count"
    SIZE_PREFIX = "size-prefix"


@dataclass(frozen=True)
class ResolvedCondition:
    """A field condition with its literals rendered as Python expressions."""

    field: str
    operation: ConditionOperation
    literals: tuple[str, ...]
    membership: bool = False


@dataclass(frozen=True)
class ResolvedField:
    """A field layout resolved against the entity table."""

    layout: FieldLayout
    name: str | None
    generated_name: str
    kind: FieldKind
    role: FieldRole
    annotation: str
    type_name: str | None = None
    width: int | None = None  # None means dynamic
    element_width: int | None = None
    is_array: bool = False
    inline_group: str | None = None
    count_of: str | None = None
    condition: ResolvedCondition | None = None
    literal: str | None = None  # const and reserved value

    @property
    def declarable(self) -> bool:
        return self.role == FieldRole.VALUE

    @property
    def disposition(self) -> Disposition:
        return self.layout.disposition

    @property
    def signed(self) -> bool:
        return self.layout.signedness == Signedness.SIGNED

    @property
    def alignment(self) -> int:
        return self.layout.element_alignment

    @property
    def is_enum_reference(self) -> bool:
        return self.kind == FieldKind.ENUM

    @property
    def is_flag_reference(self) -> bool:
        return self.kind == FieldKind.FLAGS

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None


@dataclass(frozen=True)
class ResolvedEntity:
    """A struct entity after inline flattening.

    fields are in wire order and include consts. inherited holds every
    field of the superclass chain, outermost ancestor first.
    """

    entity: SchemaEntity
    fields: tuple[ResolvedField, ...]
    superclass: str | None = None
    inherited: tuple[ResolvedField, ...] = ()
    inline_groups: Mapping[str, str] = field(default_factory=dict)
    references: frozenset[str] = frozenset()

    @property
    def name(self) -> str:
        return self.entity.name

    @property
    def declarable(self) -> tuple[ResolvedField, ...]:
        return tuple(f for f in self.fields if f.declarable)

    @property
    def constructor_fields(self) -> tuple[ResolvedField, ...]:
        """Every constructor argument, inherited ones first."""
        return tuple(f for f in self.inherited if f.declarable) + self.declarable

    @property
    def constants(self) -> tuple[ResolvedField, ...]:
        return tuple(f for f in self.fields if f.role == FieldRole.CONST)

    def find(self, name: str) -> ResolvedField | None:
        """Find a field by schema name, own fields first."""
        for f in self.fields + self.inherited:
            if f.name == name:
                return f
        return None

    def is_inherited(self, f: ResolvedField) -> bool:
        return not any(f is own for own in self.fields)
