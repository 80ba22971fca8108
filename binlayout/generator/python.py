"""Python code generator for binlayout schemas."""

from dataclasses import dataclass
from importlib import resources

from jinja2 import Environment, PackageLoader
from structlog import get_logger

from .config import GeneratorConfig
from .deserialize_gen import gen_deserialize
from .enums import EnumContext, enum_context
from .envelope import EnvelopeContext, envelope_context
from .inline import InlineFlattener
from .layout import LayoutResolver
from .serialize_gen import gen_serialize
from .size_gen import gen_size
from .types import EntityTable, FieldKind, ResolvedEntity, ResolvedField, SchemaEntity
from .util import docstring

logger = get_logger()

RUNTIME_FILES = [
    "__init__.py",
    "codec.py",
    "serialization.py",
    "runtime.py",
]

env = Environment(
    loader=PackageLoader("binlayout.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")


@dataclass(frozen=True)
class PropertyContext:
    name: str
    type: str
    expr: str


@dataclass(frozen=True)
class ComposeContext:
    params: str
    expr: str


@dataclass(frozen=True)
class StructContext:
    """Everything the template needs to emit one Struct subclass."""

    name: str
    doc: str
    decorator: str
    base: str
    constants: tuple[str, ...]
    fields: tuple[str, ...]
    properties: tuple[PropertyContext, ...]
    compose: ComposeContext | None
    size_body: str
    serialize_body: str
    deserialize_body: str


def _field_args(f: ResolvedField) -> str:
    """Generate the arguments for layout_field()."""
    args = [f'"{f.kind}"']
    if f.type_name is not None:
        args.append(f'type_name="{f.type_name}"')
    if f.width is not None:
        args.append(f"width={f.width}")
    if f.is_array:
        args.append("array=True")
    if f.alignment:
        args.append(f"alignment={f.alignment}")
    if f.inline_group is not None:
        args.append(f'group="{f.inline_group}"')
    if f.is_conditional:
        args.append("default=None")
    return ", ".join(args)


def _gen_field(f: ResolvedField) -> str:
    return f"{f.generated_name}: {f.annotation} = layout_field({_field_args(f)})"


def _gen_constant(f: ResolvedField) -> str:
    annotation = f.type_name if f.kind == FieldKind.ENUM else "int"
    return f"{f.generated_name}: ClassVar[{annotation}] = {f.literal}"


def _call(target: str, fields: tuple[ResolvedField, ...], values: list[str]) -> str:
    """Render a constructor call, positional for single field classes."""
    if len(fields) == 1:
        return f"{target}({values[0]})"
    args = ", ".join(f"{f.generated_name}={value}" for f, value in zip(fields, values))
    return f"{target}({args})"


def _param(f: ResolvedField) -> str:
    if f.is_conditional:
        return f"{f.generated_name}: {f.annotation} = None"
    return f"{f.generated_name}: {f.annotation}"


class PythonBackend:
    """Build template contexts for an entity table."""

    def __init__(self, table: EntityTable, config: GeneratorConfig):
        self.table = table
        self.config = config
        self.flattener = InlineFlattener(LayoutResolver(table))
        self.log = logger.new(runtime_import=config.runtime_import)

    def _mixin_fields(self, mixin: str) -> tuple[ResolvedField, ...]:
        return self.flattener.flatten(self.table.lookup(mixin)).constructor_fields

    def _properties(self, resolved: ResolvedEntity) -> tuple[PropertyContext, ...]:
        properties = []
        for group, mixin in resolved.inline_groups.items():
            fields = self._mixin_fields(mixin)
            expr = _call(mixin, fields, [f"self.{f.generated_name}" for f in fields])
            properties.append(PropertyContext(group, mixin, expr))
        return tuple(properties)

    def _compose(self, resolved: ResolvedEntity) -> ComposeContext | None:
        if not resolved.inline_groups:
            return None

        params: list[str] = []
        values: list[str] = []
        for f in resolved.constructor_fields:
            group = None if resolved.is_inherited(f) else f.inline_group
            if group is None:
                params.append(_param(f))
                values.append(f.generated_name)
                continue

            param = f"{group}: {resolved.inline_groups[group]}"
            if param not in params:
                params.append(param)
            values.append(f"{group}.{f.generated_name}")

        return ComposeContext(", ".join(params), _call("cls", resolved.constructor_fields, values))

    def struct_context(self, entity: SchemaEntity, dispatchers: dict[str, str]) -> StructContext:
        resolved = self.flattener.flatten(entity)
        self.log.debug("rendering entity", entity=entity.name, superclass=resolved.superclass)

        if entity.is_byte:
            fallback = f"{entity.size} byte scalar."
        else:
            fallback = f"Binary layout of {entity.name}."

        decorator = "@dataclass(kw_only=True)" if len(resolved.constructor_fields) > 1 else "@dataclass"
        return StructContext(
            name=entity.name,
            doc=docstring(entity.comment, fallback),
            decorator=decorator,
            base=resolved.superclass or "Struct",
            constants=tuple(_gen_constant(f) for f in resolved.constants),
            fields=tuple(_gen_field(f) for f in resolved.declarable),
            properties=self._properties(resolved),
            compose=self._compose(resolved),
            size_body=gen_size(resolved),
            serialize_body=gen_serialize(resolved),
            deserialize_body=gen_deserialize(resolved, dispatchers),
        )

    def emission_order(self) -> list[SchemaEntity]:
        """Return struct entities with every referenced struct first."""
        order: list[SchemaEntity] = []
        done: set[str] = set()

        def visit(entity: SchemaEntity) -> None:
            if entity.name in done:
                return
            done.add(entity.name)
            references = self.flattener.flatten(entity).references
            for name in self.table:
                if name in references and not self.table[name].is_enum:
                    visit(self.table[name])
            order.append(entity)

        for entity in self.table.structs:
            visit(entity)
        return order

    def enums(self) -> list[EnumContext]:
        return [enum_context(entity) for entity in self.table.enums]

    def envelopes(self) -> list[EnvelopeContext]:
        return [envelope_context(self.flattener, family) for family in self.config.envelopes]


def render(table: EntityTable, config: GeneratorConfig | None = None) -> str:
    """Render an entity table to Python source code."""
    config = config or GeneratorConfig()
    backend = PythonBackend(table, config)

    enums = backend.enums()
    envelopes = backend.envelopes()
    dispatchers = {envelope.header: envelope.instance for envelope in envelopes}
    structs = [backend.struct_context(entity, dispatchers) for entity in backend.emission_order()]

    return template.render(
        enums=enums,
        structs=structs,
        envelopes=envelopes,
        comments=config.comments,
        runtime_import=config.runtime_import,
    )


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("binlayout.proto").joinpath(filename).read_text()
        result[filename] = content
    return result
