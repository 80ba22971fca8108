"""Generation of serialize() bodies."""

from .codegen import Slot, batch_format, batch_steps, indent, serialize_condition, steps, value_expr
from .types import Disposition, FieldKind, ResolvedEntity, ResolvedField


def _count_arg(f: ResolvedField) -> str:
    if f.disposition == Disposition.ARRAY and isinstance(f.layout.size, int):
        return f", count={f.layout.size}"
    return ""


def _gen_write_array(f: ResolvedField, subject: str) -> list[str]:
    if f.kind == FieldKind.BYTES:
        if f.width is not None:
            return [f"_buf.extend(_codec.write_bytes({subject}, {f.width}))"]
        return [f"_buf.extend({subject})"]

    if f.kind in (FieldKind.INT, FieldKind.WIDE):
        signed = ", signed=True" if f.signed else ""
        return [f"_buf.extend(_codec.write_int_list({subject}, {f.element_width}{signed}{_count_arg(f)}))"]

    return [f"_buf.extend(_codec.write_list({subject}, {f.alignment}{_count_arg(f)}))"]


def gen_write_value(f: ResolvedField, subject: str) -> list[str]:
    """Generate the statements writing one field value to _buf."""
    if f.is_array:
        return _gen_write_array(f, subject)

    if f.kind == FieldKind.INT:
        writer = "write_int" if f.signed else "write_uint"
        return [f"_buf.extend(_codec.{writer}({subject}, {f.width}))"]
    if f.kind == FieldKind.WIDE:
        if f.signed:
            return [f"_buf.extend(_codec.write_int({subject}, 8))"]
        return [f"_buf.extend(_codec.write_wide({subject}))"]
    if f.kind == FieldKind.BYTES:
        return [f"_buf.extend(_codec.write_bytes({subject}, {f.width}))"]
    if f.kind == FieldKind.ENUM:
        return [f"_buf.extend(_codec.write_uint({subject}, {f.width}))"]
    if f.kind == FieldKind.FLAGS:
        return [f"_buf.extend(_codec.write_uint(_codec.from_flags({f.type_name}, {subject}), {f.width}))"]
    return [f"_buf.extend({subject}.serialize())"]


def _gen_pack_batch(entity: ResolvedEntity, fields: list) -> str:
    """Generate pack code for a batch of fixed width integers."""
    args = ", ".join(value_expr(entity, f) for f in fields)
    return f'_buf.extend(_codec.pack("{batch_format(fields)}", {args}))'


def _gen_slot(entity: ResolvedEntity, slot: Slot) -> list[str]:
    lines: list[str] = []
    for i, member in enumerate(slot.members):
        keyword = "if" if i == 0 else "elif"
        lines.append(f"{keyword} {serialize_condition(entity, member)}:")
        lines.extend(indent(gen_write_value(member, value_expr(entity, member))))
    lines.append("else:")
    lines.extend(indent([f"_buf.extend(bytes({slot.width}))"]))
    return lines


def _gen_write_field(entity: ResolvedEntity, f: ResolvedField) -> list[str]:
    body = gen_write_value(f, value_expr(entity, f))
    if not f.is_conditional:
        return body
    return [f"if {serialize_condition(entity, f)}:"] + indent(body)


def gen_serialize(entity: ResolvedEntity) -> str:
    """Generate the body of serialize() for an entity."""
    lines = ["_buf = bytearray()"]
    if entity.superclass:
        lines.append("_buf.extend(super().serialize())")

    for batch_type, items in batch_steps(steps(entity)):
        if batch_type == "primitive":
            lines.append(_gen_pack_batch(entity, items))
            continue

        step = items[0]
        if isinstance(step, Slot):
            lines.extend(_gen_slot(entity, step))
        else:
            lines.extend(_gen_write_field(entity, step))

    lines.append("return bytes(_buf)")
    return "\n".join(lines)
