"""Shared helpers for the size, serialize and deserialize passes.

Each pass walks an entity as a list of steps. A step is either a single
field or a Slot: a run of adjacent conditional fields whose discriminant
follows them on the wire. A slot always occupies its width; the member
whose condition holds is decoded once the discriminant is known.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from binlayout.proto.codec import format_char

from .types import (
    ConditionOperation,
    Disposition,
    FieldKind,
    FieldRole,
    ResolvedCondition,
    ResolvedEntity,
    ResolvedField,
    SchemaResolutionError,
)

INDENT = "    "


@dataclass(frozen=True)
class Slot:
    """Forward referenced conditional fields sharing one discriminant."""

    discriminant: str
    members: tuple[ResolvedField, ...]
    width: int

    @property
    def names(self) -> str:
        return ", ".join(m.generated_name for m in self.members)


Step = ResolvedField | Slot


def indent(lines: Sequence[str], depth: int = 1) -> list[str]:
    return [INDENT * depth + line if line else line for line in lines]


def position(entity: ResolvedEntity, f: ResolvedField) -> int:
    """Return the wire position of an own field of entity."""
    for i, own in enumerate(entity.fields):
        if own is f:
            return i
    raise ValueError(f"{f.generated_name} is not a field of {entity.name}")


def discriminant(entity: ResolvedEntity, f: ResolvedField) -> ResolvedField:
    assert f.condition is not None
    result = entity.find(f.condition.field)
    if result is None:
        raise SchemaResolutionError(f"{entity.name}: unknown discriminant {f.condition.field}")
    return result


def is_forward(entity: ResolvedEntity, f: ResolvedField) -> bool:
    """True when f is conditional on a field that comes later on the wire."""
    if f.condition is None:
        return False
    disc = discriminant(entity, f)
    if entity.is_inherited(disc):
        return False
    return position(entity, disc) > position(entity, f)


def exclusive(a: ResolvedCondition, b: ResolvedCondition) -> bool:
    """Return True when no discriminant value satisfies both conditions."""
    if a.membership or b.membership:
        return False
    if a.operation == ConditionOperation.NOT_EQUALS:
        a, b = b, a
    if b.operation == ConditionOperation.NOT_EQUALS:
        return a.operation != ConditionOperation.NOT_EQUALS and set(a.literals) == {b.literals[0]}
    return not set(a.literals) & set(b.literals)


def _slot(entity: ResolvedEntity, members: list[ResolvedField]) -> Slot:
    names = ", ".join(m.generated_name for m in members)
    widths = {m.width for m in members}
    if None in widths or len(widths) != 1:
        raise SchemaResolutionError(
            f"{entity.name}: fields conditional on a later field need one static width ({names})"
        )

    # one set of slot bytes decodes into every member whose condition holds
    conditions = [m.condition for m in members if m.condition is not None]
    for i, a in enumerate(conditions):
        if not all(exclusive(a, b) for b in conditions[i + 1 :]):
            raise SchemaResolutionError(f"{entity.name}: conditions of {names} may hold together")

    return Slot(conditions[0].field, tuple(members), widths.pop())


def steps(entity: ResolvedEntity) -> list[Step]:
    """Return the wire steps of an entity's own fields. Consts are skipped."""
    result: list[Step] = []
    current: list[ResolvedField] = []

    for f in entity.fields:
        if f.role == FieldRole.CONST:
            continue

        if is_forward(entity, f):
            assert f.condition is not None
            if current and current[0].condition is not None and current[0].condition.field != f.condition.field:
                result.append(_slot(entity, current))
                current = []
            current.append(f)
            continue

        if current:
            result.append(_slot(entity, current))
            current = []
        result.append(f)

    if current:
        result.append(_slot(entity, current))

    return result


def condition_expr(condition: ResolvedCondition, subject: str) -> str:
    if condition.membership:
        return f"{condition.literals[0]} in {subject}"
    if condition.operation == ConditionOperation.EQUALS:
        return f"{subject} == {condition.literals[0]}"
    if condition.operation == ConditionOperation.NOT_EQUALS:
        return f"{subject} != {condition.literals[0]}"
    return f"{subject} in ({', '.join(condition.literals)},)"


def measure_expr(entity: ResolvedEntity, count: ResolvedField) -> str:
    """Return the value a derived count or byte size field encodes."""
    array = entity.find(count.count_of or "")
    if array is None:
        raise SchemaResolutionError(f"{entity.name}: {count.generated_name} measures an unknown field")

    subject = f"self.{array.generated_name}"
    if array.disposition != Disposition.ARRAY_SIZED or array.kind == FieldKind.BYTES:
        expr = f"len({subject})"
    elif array.kind in (FieldKind.INT, FieldKind.WIDE):
        expr = f"len({subject}) * {array.element_width}"
    else:
        expr = f"_codec.list_size({subject}, {array.alignment})"

    if array.is_conditional:
        return f"(0 if {subject} is None else {expr})"
    return expr


def value_expr(entity: ResolvedEntity, f: ResolvedField) -> str:
    """Return the expression serialized for a field."""
    if f.role == FieldRole.CONST:
        return f"self.{f.generated_name}"
    if f.role == FieldRole.RESERVED:
        return str(f.literal)
    if f.role == FieldRole.SIZE_PREFIX:
        return "self.size()"
    if f.role == FieldRole.COUNT:
        return measure_expr(entity, f)
    return f"self.{f.generated_name}"


def serialize_condition(entity: ResolvedEntity, f: ResolvedField) -> str:
    assert f.condition is not None
    return condition_expr(f.condition, value_expr(entity, discriminant(entity, f)))


def local_name(f: ResolvedField) -> str:
    """Return the local a field is decoded into."""
    if f.role in (FieldRole.RESERVED, FieldRole.SIZE_PREFIX) or not f.generated_name:
        return "_"
    return f.generated_name


def decoded_expr(entity: ResolvedEntity, f: ResolvedField) -> str:
    """Return the expression holding a decoded field inside deserialize()."""
    if f.role == FieldRole.CONST:
        return f"cls.{f.generated_name}"
    if entity.is_inherited(f):
        return f"_super.{f.generated_name}"
    name = local_name(f)
    if name == "_":
        raise SchemaResolutionError(f"{entity.name}: {f.role} field {f.name} cannot be referenced")
    return name


def deserialize_condition(entity: ResolvedEntity, f: ResolvedField) -> str:
    assert f.condition is not None
    return condition_expr(f.condition, decoded_expr(entity, discriminant(entity, f)))


def can_batch(step: Step) -> bool:
    """Check if a step can be packed with other fixed width integers."""
    if isinstance(step, Slot):
        return False
    if step.is_array or step.is_conditional or step.width is None:
        return False
    if step.kind not in (FieldKind.INT, FieldKind.WIDE):
        return False
    return format_char(step.width, step.signed) is not None


def batch_steps(items: list[Step]) -> list[tuple[str, list[Step]]]:
    """Group steps into batches for pack/unpack optimization.

    Returns list of (batch_type, steps) where batch_type is "primitive" or "single".
    """
    batches: list[tuple[str, list[Step]]] = []
    current: list[Step] = []

    for step in items:
        if can_batch(step):
            current.append(step)
        else:
            if current:
                batches.append(("primitive", current))
                current = []
            batches.append(("single", [step]))

    if current:
        batches.append(("primitive", current))

    return batches


def batch_format(fields: Sequence[Step]) -> str:
    chars = []
    for f in fields:
        assert isinstance(f, ResolvedField) and f.width is not None
        chars.append(format_char(f.width, f.signed))
    return "<" + "".join(str(c) for c in chars)
