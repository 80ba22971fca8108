"""Resolution of field layouts into codec ready fields."""

from collections.abc import Sequence
from typing import Any

from binlayout.proto.codec import size_with_padding

from .sizes import SizeCalculator
from .types import (
    ConditionOperation,
    Disposition,
    EntityTable,
    FieldKind,
    FieldLayout,
    FieldRole,
    ResolvedCondition,
    ResolvedField,
    SchemaResolutionError,
)
from .util import python_name

# Integer widths above this are raw bytes
WIDE_WIDTH = 8

# Suffixes of fields that may carry a sibling array's count or byte size
COUNT_SUFFIXES = ("_count", "_size")

_ANNOTATIONS = {
    FieldKind.INT: "int",
    FieldKind.WIDE: "int",
    FieldKind.BYTES: "bytes",
}


def _label(layout: FieldLayout) -> str:
    return layout.name or layout.type


class LayoutResolver:
    """Resolve field layouts against an entity table.

    Resolution is pure: it reads the table and the sibling layouts and
    never records state between calls.
    """

    def __init__(self, table: EntityTable):
        self.table = table
        self.sizes = SizeCalculator(table)

    def resolve(
        self,
        layout: FieldLayout,
        siblings: Sequence[FieldLayout],
        *,
        scope: Sequence[FieldLayout] = (),
        inline_group: str | None = None,
    ) -> ResolvedField:
        """Resolve one field.

        Args:
            layout: The field to resolve.
            siblings: Every field of the same flattened entity, in wire order.
            scope: Fields visible to conditions (inherited fields and siblings).
            inline_group: The outermost mixin the field was flattened from.
        """
        self._check_size_reference(layout, siblings)
        role = self._role(layout, siblings)
        kind, type_name, width, element_width, is_array = self._shape(layout)
        condition = self._condition(layout, scope or siblings)

        literal = None
        if role in (FieldRole.CONST, FieldRole.RESERVED):
            literal = self._literal(layout, kind, type_name)

        count_of = None
        if role == FieldRole.COUNT:
            count_of = self._measured(layout.name, siblings)

        return ResolvedField(
            layout=layout,
            name=layout.name,
            generated_name=self._generated_name(layout, role),
            kind=kind,
            role=role,
            annotation=self._annotation(kind, type_name, is_array, condition is not None),
            type_name=type_name,
            width=width,
            element_width=element_width,
            is_array=is_array,
            inline_group=inline_group,
            count_of=count_of,
            condition=condition,
            literal=literal,
        )

    def _generated_name(self, layout: FieldLayout, role: FieldRole) -> str:
        if role == FieldRole.CONST:
            if not layout.name:
                raise SchemaResolutionError(f"const field of type {layout.type} needs a name")
            return layout.name if layout.name.isidentifier() else python_name(layout.name)

        if layout.name:
            return python_name(layout.name)
        if role == FieldRole.RESERVED:
            return ""
        if layout.disposition == Disposition.INLINE:
            return python_name(layout.type)
        raise SchemaResolutionError(f"{layout.disposition} field of type {layout.type} needs a name")

    def _measured(self, name: str | None, siblings: Sequence[FieldLayout]) -> str | None:
        """Return the sibling whose size refers to name."""
        if name is None:
            return None
        for sibling in siblings:
            if sibling.size == name:
                return sibling.name
        return None

    def _role(self, layout: FieldLayout, siblings: Sequence[FieldLayout]) -> FieldRole:
        if layout.disposition in (Disposition.CONST, Disposition.RESERVED):
            if layout.value is None:
                raise SchemaResolutionError(f"{layout.disposition} field {_label(layout)} needs a value")
            if layout.disposition == Disposition.CONST:
                return FieldRole.CONST
            return FieldRole.RESERVED

        measured = self._measured(layout.name, siblings)
        if measured is not None and layout.name and layout.name.endswith(COUNT_SUFFIXES):
            return FieldRole.COUNT
        if measured is None and layout.name == "size" and layout.is_byte and layout.disposition == Disposition.PLAIN:
            return FieldRole.SIZE_PREFIX
        return FieldRole.VALUE

    def _check_size_reference(self, layout: FieldLayout, siblings: Sequence[FieldLayout]) -> None:
        d = layout.disposition

        if d == Disposition.ARRAY and layout.size is None:
            raise SchemaResolutionError(f"array field {_label(layout)} needs a size")
        if d == Disposition.ARRAY_SIZED and not isinstance(layout.size, str):
            raise SchemaResolutionError(f"array-sized field {_label(layout)} needs a sibling size field")
        if layout.element_alignment < 0:
            raise SchemaResolutionError(f"field {_label(layout)} has a negative alignment")
        if layout.element_alignment and not d.is_array:
            raise SchemaResolutionError(f"alignment applies to arrays only ({_label(layout)})")

        if not isinstance(layout.size, str):
            return

        if not d.is_array:
            raise SchemaResolutionError(f"{d} field {_label(layout)} cannot take its size from a sibling")

        sibling = next((s for s in siblings if s.name == layout.size), None)
        if sibling is None:
            raise SchemaResolutionError(f"field {_label(layout)} refers to unknown size field {layout.size}")
        if not (
            sibling.is_byte
            and sibling.disposition == Disposition.PLAIN
            and isinstance(sibling.size, int)
            and sibling.size <= WIDE_WIDTH
        ):
            raise SchemaResolutionError(f"size field {layout.size} of {_label(layout)} must be an integer")

    def _array_width(self, layout: FieldLayout, element_width: int | None) -> int | None:
        if layout.disposition != Disposition.ARRAY or not isinstance(layout.size, int):
            return None
        if element_width is None:
            return None
        return layout.size * size_with_padding(element_width, layout.element_alignment)

    def _shape(self, layout: FieldLayout) -> tuple[FieldKind, str | None, int | None, int | None, bool]:
        """Return (kind, type_name, width, element_width, is_array)."""
        d = layout.disposition

        if layout.is_byte:
            if d == Disposition.INLINE:
                raise SchemaResolutionError(f"byte field {_label(layout)} cannot be inlined")

            if d.is_array:
                if layout.element_alignment:
                    raise SchemaResolutionError(f"alignment applies to entity arrays only ({_label(layout)})")
                if layout.element_size is None:
                    return FieldKind.BYTES, None, self._array_width(layout, 1), 1, True
                if not 0 < layout.element_size <= WIDE_WIDTH:
                    raise SchemaResolutionError(f"element size of {_label(layout)} must be 1 to 8")
                kind = FieldKind.WIDE if layout.element_size == WIDE_WIDTH else FieldKind.INT
                return kind, None, self._array_width(layout, layout.element_size), layout.element_size, True

            if not isinstance(layout.size, int) or layout.size <= 0:
                raise SchemaResolutionError(f"byte field {_label(layout)} needs a positive integer size")
            if layout.size < WIDE_WIDTH:
                return FieldKind.INT, None, layout.size, None, False
            if layout.size == WIDE_WIDTH:
                return FieldKind.WIDE, None, layout.size, None, False
            return FieldKind.BYTES, None, layout.size, None, False

        entity = self.table.lookup(layout.type)

        if entity.is_enum:
            if d == Disposition.INLINE:
                raise SchemaResolutionError(f"enum field {_label(layout)} cannot be inlined")
            if d.is_array:
                if entity.flags:
                    raise SchemaResolutionError(f"arrays of flag sets are not supported ({_label(layout)})")
                return FieldKind.ENUM, entity.name, self._array_width(layout, entity.size), entity.size, True
            kind = FieldKind.FLAGS if entity.flags else FieldKind.ENUM
            return kind, entity.name, entity.size, None, False

        if d == Disposition.INLINE and not entity.is_struct:
            raise SchemaResolutionError(f"{entity.kind} entity {entity.name} cannot be inlined")
        if d in (Disposition.CONST, Disposition.RESERVED):
            raise SchemaResolutionError(f"{d} field {_label(layout)} must be a byte or enum")

        element_width = self.sizes.fixed_size(entity.name)
        if d.is_array:
            return FieldKind.STRUCT, entity.name, self._array_width(layout, element_width), element_width, True
        return FieldKind.STRUCT, entity.name, element_width, None, False

    def _annotation(self, kind: FieldKind, type_name: str | None, is_array: bool, conditional: bool) -> str:
        annotation = _ANNOTATIONS.get(kind) or str(type_name)
        if kind == FieldKind.FLAGS:
            annotation = f"set[{type_name}]"
        if is_array and kind != FieldKind.BYTES:
            annotation = f"list[{annotation}]"
        if conditional:
            annotation += " | None"
        return annotation

    def _int_value(self, value: Any, owner: str) -> int:
        if isinstance(value, bool):
            raise SchemaResolutionError(f"{owner}: {value!r} is not an integer")
        if isinstance(value, int):
            return value
        try:
            return int(str(value), 0)
        except ValueError:
            raise SchemaResolutionError(f"{owner}: {value!r} is not an integer") from None

    def _enum_literal(self, enum_name: str, value: Any) -> str:
        enum = self.table.lookup(enum_name)
        for member in enum.values:
            if member.name == value:
                return f"{enum.name}.{member.name}"
            if isinstance(value, int) and not isinstance(value, bool) and member.value == value:
                return f"{enum.name}.{member.name}"
        raise SchemaResolutionError(f"{value!r} is not a constant of {enum.name}")

    def _literal(self, layout: FieldLayout, kind: FieldKind, type_name: str | None) -> str:
        if kind == FieldKind.ENUM and type_name is not None and not layout.disposition.is_array:
            return self._enum_literal(type_name, layout.value)
        if kind in (FieldKind.INT, FieldKind.WIDE) and not layout.disposition.is_array:
            return repr(self._int_value(layout.value, _label(layout)))
        raise SchemaResolutionError(f"{layout.disposition} field {_label(layout)} must be a scalar integer or enum")

    def _condition(self, layout: FieldLayout, scope: Sequence[FieldLayout]) -> ResolvedCondition | None:
        condition = layout.condition
        if condition is None:
            return None

        owner = _label(layout)
        if layout.disposition in (Disposition.CONST, Disposition.RESERVED):
            raise SchemaResolutionError(f"{layout.disposition} field {owner} cannot be conditional")

        discriminant = next((s for s in scope if s.name == condition.field), None)
        if discriminant is None:
            raise SchemaResolutionError(f"{owner} is conditional on unknown field {condition.field}")
        if discriminant.condition is not None:
            raise SchemaResolutionError(f"{owner} is conditional on conditional field {condition.field}")
        if discriminant.disposition.is_array or discriminant.disposition == Disposition.INLINE:
            raise SchemaResolutionError(f"discriminant {condition.field} of {owner} must be a scalar")

        values = condition.value
        if condition.operation == ConditionOperation.IN:
            if not isinstance(values, list):
                values = [values]
        elif isinstance(values, list):
            raise SchemaResolutionError(f"{condition.operation} condition of {owner} takes a single value")
        else:
            values = [values]

        if discriminant.is_byte:
            if not isinstance(discriminant.size, int) or discriminant.size > WIDE_WIDTH:
                raise SchemaResolutionError(f"discriminant {condition.field} of {owner} must be an integer")
            literals = tuple(repr(self._int_value(value, owner)) for value in values)
            return ResolvedCondition(condition.field, condition.operation, literals)

        entity = self.table.lookup(discriminant.type)
        if not entity.is_enum:
            raise SchemaResolutionError(f"discriminant {condition.field} of {owner} must be an integer or enum")

        literals = tuple(self._enum_literal(entity.name, value) for value in values)
        if entity.flags:
            if condition.operation != ConditionOperation.IN or len(literals) != 1:
                raise SchemaResolutionError(f"flag condition of {owner} must test a single constant with 'in'")
            return ResolvedCondition(condition.field, condition.operation, literals, membership=True)

        return ResolvedCondition(condition.field, condition.operation, literals)
