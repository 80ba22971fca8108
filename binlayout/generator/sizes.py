"""Static size analysis for schema entities."""

from dataclasses import dataclass
from enum import StrEnum, auto

from binlayout.proto.codec import size_with_padding

from .types import Disposition, EntityTable, FieldLayout, SchemaResolutionError


class SizeKind(StrEnum):
    """Classification of size characteristics."""

    FIXED = auto()  # Min == Max, no variable components
    VARIABLE = auto()  # Depends on counts, conditions or trailing data


@dataclass(frozen=True)
class SizeInfo:
    """Size information for a type or field."""

    min_size: int
    max_size: int | None  # None means unbounded
    kind: SizeKind

    @property
    def is_fixed(self) -> bool:
        return self.kind == SizeKind.FIXED

    @property
    def is_bounded(self) -> bool:
        return self.max_size is not None


FIXED_ZERO = SizeInfo(0, 0, SizeKind.FIXED)
UNBOUNDED = SizeInfo(0, None, SizeKind.VARIABLE)


@dataclass(frozen=True)
class EntitySizeInfo:
    """Complete size information for an entity."""

    name: str
    size: SizeInfo


def _fixed(size: int) -> SizeInfo:
    return SizeInfo(size, size, SizeKind.FIXED)


def _sum(sizes: list[SizeInfo]) -> SizeInfo:
    total_min = 0
    total_max: int | None = 0
    overall_kind = SizeKind.FIXED

    for size in sizes:
        total_min += size.min_size
        if total_max is not None and size.max_size is not None:
            total_max += size.max_size
        else:
            total_max = None

        if size.kind == SizeKind.VARIABLE:
            overall_kind = SizeKind.VARIABLE

    return SizeInfo(total_min, total_max, overall_kind)


class SizeCalculator:
    """Calculate static sizes of entities and field layouts."""

    def __init__(self, table: EntityTable):
        self.table = table
        self._cache: dict[str, SizeInfo] = {}

    def calc_primitive_size(self, layout: FieldLayout) -> SizeInfo:
        """Calculate size for a byte field (plain, reserved, const or array)."""
        if layout.disposition == Disposition.CONST:
            return FIXED_ZERO

        if not isinstance(layout.size, int) or layout.disposition == Disposition.ARRAY_FILL:
            if layout.disposition.is_array:
                return UNBOUNDED
            raise SchemaResolutionError(f"byte field {layout.name!r} must have an integer size")

        if layout.disposition.is_array:
            return _fixed(layout.size * (layout.element_size or 1))
        return _fixed(layout.size)

    def calc_type_size(self, name: str) -> SizeInfo:
        """Calculate size for any entity (enum, byte alias or struct)."""
        entity = self.table.lookup(name)

        if not entity.is_struct:
            if entity.size is None:
                raise SchemaResolutionError(f"{entity.kind} entity {name} must declare a size")
            return _fixed(entity.size)

        return self.calc_entity_size(name).size

    def calc_field_size(self, layout: FieldLayout) -> SizeInfo:
        """Calculate size for a field layout (handles arrays and conditions)."""
        if layout.is_byte:
            size = self.calc_primitive_size(layout)
        elif layout.disposition == Disposition.CONST:
            size = FIXED_ZERO
        else:
            size = self._calc_reference_size(layout)

        if layout.condition is not None:
            # Absent when the condition does not hold
            return SizeInfo(0, size.max_size, SizeKind.VARIABLE)
        return size

    def _calc_reference_size(self, layout: FieldLayout) -> SizeInfo:
        elem_size = self.calc_type_size(layout.type)

        if not layout.disposition.is_array:
            return elem_size

        if not isinstance(layout.size, int) or layout.disposition != Disposition.ARRAY:
            return UNBOUNDED

        count = layout.size
        alignment = layout.element_alignment
        min_size = count * size_with_padding(elem_size.min_size, alignment)
        if elem_size.max_size is None:
            return SizeInfo(min_size, None, SizeKind.VARIABLE)

        max_size = count * size_with_padding(elem_size.max_size, alignment)
        return SizeInfo(min_size, max_size, elem_size.kind)

    def calc_entity_size(self, name: str) -> EntitySizeInfo:
        """Calculate size for an entity (with caching)."""
        if name in self._cache:
            return EntitySizeInfo(name, self._cache[name])

        entity = self.table.lookup(name)
        if entity.is_struct:
            size = _sum([self.calc_field_size(layout) for layout in entity.fields])
        else:
            size = self.calc_type_size(name)

        self._cache[name] = size
        return EntitySizeInfo(name, size)

    def fixed_size(self, name: str) -> int | None:
        """Return the static size of an entity, or None when it varies."""
        size = self.calc_type_size(name)
        return size.min_size if size.is_fixed else None


def calculate_sizes(table: EntityTable) -> dict[str, EntitySizeInfo]:
    """Calculate size information for every entity of a table."""
    calc = SizeCalculator(table)
    return {name: calc.calc_entity_size(name) for name in table}
