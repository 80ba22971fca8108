"""Generation of size() bodies."""

from .codegen import Slot, indent, serialize_condition, steps
from .types import FieldKind, ResolvedEntity, ResolvedField


def _size_expr(f: ResolvedField, subject: str) -> str:
    if f.width is not None:
        return str(f.width)
    if f.kind == FieldKind.BYTES:
        return f"len({subject})"
    if f.is_array and f.kind in (FieldKind.INT, FieldKind.WIDE):
        return f"len({subject}) * {f.element_width}"
    if f.is_array:
        return f"_codec.list_size({subject}, {f.alignment})"
    return f"{subject}.size()"


def _is_static(step: ResolvedField | Slot) -> bool:
    if isinstance(step, Slot):
        return True
    return step.width is not None and not step.is_conditional


def _static_width(step: ResolvedField | Slot) -> int:
    return step.width or 0


def gen_size(entity: ResolvedEntity) -> str:
    """Generate the body of size() for an entity."""
    items = steps(entity)

    if entity.superclass is None and all(_is_static(step) for step in items):
        return f"return {sum(_static_width(step) for step in items)}"

    lines = ["_size = super().size()" if entity.superclass else "_size = 0"]
    for step in items:
        if isinstance(step, Slot):
            lines.append(f"_size += {step.width}  # {step.names}")
            continue

        expr = _size_expr(step, f"self.{step.generated_name}")
        if step.is_conditional:
            lines.append(f"if {serialize_condition(entity, step)}:")
            lines.extend(indent([f"_size += {expr}"]))
        else:
            lines.append(f"_size += {expr}  # {step.generated_name or 'reserved'}")

    lines.append("return _size")
    return "\n".join(lines)
