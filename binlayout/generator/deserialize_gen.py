"""Generation of deserialize() bodies."""

from collections.abc import Mapping

from .codegen import (
    Slot,
    batch_format,
    batch_steps,
    decoded_expr,
    deserialize_condition,
    indent,
    local_name,
    position,
    steps,
)
from .types import Disposition, FieldKind, ResolvedEntity, ResolvedField, SchemaResolutionError


def _size_source(entity: ResolvedEntity, f: ResolvedField) -> str:
    """Return the expression holding an array's count or byte budget."""
    size = f.layout.size
    if isinstance(size, int):
        return str(size)

    source = entity.find(str(size))
    if source is None:
        raise SchemaResolutionError(f"{entity.name}: unknown size field {size}")
    if not entity.is_inherited(source) and position(entity, source) > position(entity, f):
        raise SchemaResolutionError(f"{entity.name}: size field {size} must precede {f.generated_name} to be decoded")
    return decoded_expr(entity, source)


def _decoder(f: ResolvedField, dispatchers: Mapping[str, str]) -> str:
    owner = dispatchers.get(str(f.type_name), f.type_name)
    return f"{owner}.deserialize"


def _gen_read_array(
    entity: ResolvedEntity, f: ResolvedField, dispatchers: Mapping[str, str], data: str, offset: str
) -> tuple[list[str], str]:
    name = local_name(f)

    if f.disposition == Disposition.ARRAY_FILL:
        amount = f"len({data}) - {offset}"
    else:
        amount = _size_source(entity, f)
    by_budget = f.disposition != Disposition.ARRAY

    if f.kind == FieldKind.BYTES:
        return [f"{name} = _codec.read_bytes({data}, {offset}, {amount})"], f"len({name})"

    if f.kind in (FieldKind.INT, FieldKind.WIDE):
        count = f"({amount}) // {f.element_width}" if by_budget else amount
        signed = ", signed=True" if f.signed else ""
        return (
            [f"{name} = _codec.read_int_list({data}, {offset}, {count}, {f.element_width}{signed})"],
            f"len({name}) * {f.element_width}",
        )

    reader = "read_list_until" if by_budget else "read_list"
    decoder = _decoder(f, dispatchers)
    return [f"{name}, _n = _codec.{reader}({decoder}, {data}, {offset}, {amount}, {f.alignment})"], "_n"


def gen_read_value(
    entity: ResolvedEntity,
    f: ResolvedField,
    dispatchers: Mapping[str, str],
    data: str = "_data",
    offset: str = "_o",
    advance: bool = True,
) -> list[str]:
    """Generate the statements decoding one field into its local."""
    name = local_name(f)

    if f.is_array:
        lines, consumed = _gen_read_array(entity, f, dispatchers, data, offset)
    elif f.kind == FieldKind.INT:
        reader = "read_int" if f.signed else "read_uint"
        lines, consumed = [f"{name} = _codec.{reader}({data}, {offset}, {f.width})"], str(f.width)
    elif f.kind == FieldKind.WIDE:
        if f.signed:
            lines = [f"{name} = _codec.read_int({data}, {offset}, 8)"]
        else:
            lines = [f"{name} = _codec.read_wide({data}, {offset})"]
        consumed = "8"
    elif f.kind == FieldKind.BYTES:
        lines, consumed = [f"{name} = _codec.read_bytes({data}, {offset}, {f.width})"], str(f.width)
    elif f.kind == FieldKind.ENUM:
        lines = [f"{name} = _codec.read_enum({f.type_name}, {data}, {offset}, {f.width})"]
        consumed = str(f.width)
    elif f.kind == FieldKind.FLAGS:
        lines = [f"{name} = _codec.to_flags({f.type_name}, _codec.read_uint({data}, {offset}, {f.width}))"]
        consumed = str(f.width)
    else:
        lines, consumed = [f"{name}, _n = {_decoder(f, dispatchers)}({data}, {offset})"], "_n"

    if advance:
        lines.append(f"_o += {consumed}")
    return lines


def _gen_unpack_batch(fields: list) -> str:
    """Generate unpack code for a batch of fixed width integers."""
    size = sum(f.width for f in fields)
    names = ", ".join(local_name(f) for f in fields)
    # Add trailing comma for single values so tuple unpacking works: val, = (1,)
    if len(fields) == 1:
        names += ","
    return f'{names} = _codec.unpack("{batch_format(fields)}", _data, _o)\n_o += {size}'


def _gen_read_field(entity: ResolvedEntity, f: ResolvedField, dispatchers: Mapping[str, str]) -> list[str]:
    body = gen_read_value(entity, f, dispatchers)
    if not f.is_conditional:
        return body
    return [f"{f.generated_name} = None", f"if {deserialize_condition(entity, f)}:"] + indent(body)


def _gen_construct(entity: ResolvedEntity) -> str:
    fields = entity.constructor_fields
    if len(fields) == 1:
        return f"cls({decoded_expr(entity, fields[0])})"
    args = ", ".join(f"{f.generated_name}={decoded_expr(entity, f)}" for f in fields)
    return f"cls({args})"


def gen_deserialize(entity: ResolvedEntity, dispatchers: Mapping[str, str]) -> str:
    """Generate the body of deserialize() for an entity.

    Args:
        entity: The flattened entity.
        dispatchers: Envelope header name -> dispatcher instance used to
            decode fields and arrays of that header type.
    """
    lines = ["_o = offset"]
    if entity.superclass:
        lines.append(f"_super, _n = {entity.superclass}.deserialize(_data, _o)")
        lines.append("_o += _n")

    deferred: list[tuple[ResolvedField, str]] = []
    for batch_type, items in batch_steps(steps(entity)):
        if batch_type == "primitive":
            lines.append(_gen_unpack_batch(items))
            continue

        step = items[0]
        if isinstance(step, Slot):
            # Keep the slot bytes until the discriminant has been read
            var = f"_slot_{len(deferred)}"
            lines.append(f"{var} = _codec.read_bytes(_data, _o, {step.width})")
            lines.append(f"_o += {step.width}")
            deferred.extend((member, var) for member in step.members)
        else:
            lines.extend(_gen_read_field(entity, step, dispatchers))

    for f, var in deferred:
        lines.append(f"{f.generated_name} = None")
        lines.append(f"if {deserialize_condition(entity, f)}:")
        lines.extend(indent(gen_read_value(entity, f, dispatchers, data=var, offset="0", advance=False)))

    lines.append(f"return {_gen_construct(entity)}, _o - offset")
    return "\n".join(lines)
