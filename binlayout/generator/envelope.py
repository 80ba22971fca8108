"""Envelope dispatcher emission context."""

from dataclasses import dataclass

from .config import EnvelopeFamily
from .inline import InlineFlattener
from .types import FieldRole, ResolvedEntity, SchemaResolutionError
from .util import to_snake_case


@dataclass(frozen=True)
class EnvelopeContext:
    """Everything the template needs to emit one dispatcher."""

    name: str  # dispatcher class
    instance: str  # module level dispatcher instance
    header: str
    discriminants: tuple[str, ...]
    members: tuple[tuple[str, str], ...]  # (key literal, entity name)


def _superclasses(flattener: InlineFlattener, resolved: ResolvedEntity) -> list[str]:
    chain = []
    while resolved.superclass is not None:
        chain.append(resolved.superclass)
        resolved = flattener.flatten(flattener.table[resolved.superclass])
    return chain


def envelope_context(flattener: InlineFlattener, family: EnvelopeFamily) -> EnvelopeContext:
    """Collect the members of an envelope family.

    A member is any struct whose superclass chain reaches the family header
    and that declares a const for every discriminant.
    """
    header_entity = flattener.table.lookup(family.header)
    if not header_entity.is_struct or header_entity.mixin:
        raise SchemaResolutionError(f"envelope header {family.header} must be a non-mixin struct")

    header = flattener.flatten(header_entity)
    header_fields = {f.name: f for f in header.constructor_fields}
    for field_name in family.discriminants:
        if field_name not in header_fields:
            raise SchemaResolutionError(f"envelope header {family.header} has no field {field_name}")

    members: list[tuple[str, str]] = []
    seen: dict[str, str] = {}
    for entity in flattener.table.structs:
        if not entity.is_struct or entity.mixin or entity.name == family.header:
            continue

        resolved = flattener.flatten(entity)
        if family.header not in _superclasses(flattener, resolved):
            continue

        constants = {f.name: f for f in resolved.fields + resolved.inherited if f.role == FieldRole.CONST}
        if not all(const in constants for const in family.discriminants.values()):
            continue

        literals = [str(constants[const].literal) for const in family.discriminants.values()]
        key = f"({', '.join(literals)},)"
        if key in seen:
            raise SchemaResolutionError(f"{entity.name} and {seen[key]} share the discriminant {key}")
        seen[key] = entity.name
        members.append((key, entity.name))

    generated = tuple(header_fields[name].generated_name for name in family.discriminants)
    return EnvelopeContext(
        name=f"{family.header}Dispatcher",
        instance=f"_{to_snake_case(family.header)}_dispatcher",
        header=family.header,
        discriminants=generated,
        members=tuple(members),
    )
