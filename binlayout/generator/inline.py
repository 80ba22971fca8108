"""Inline flattening of struct entities."""

from structlog import get_logger

from .layout import LayoutResolver
from .types import Disposition, FieldLayout, ResolvedEntity, SchemaEntity, SchemaResolutionError
from .util import RESERVED_NAMES, python_name

logger = get_logger()


class InlineFlattener:
    """Flatten struct entities into their wire order field lists.

    Inlining a mixin splices the mixin's fields in place, recursively, each
    tagged with the outermost mixin it came from. The first inline of a
    non-mixin struct that precedes every other non-const field becomes the
    superclass. Any other inline of a non-mixin struct is a nested field.
    """

    def __init__(self, resolver: LayoutResolver):
        self.resolver = resolver
        self.table = resolver.table
        self._cache: dict[str, ResolvedEntity] = {}
        self.log = logger.new()

    def flatten(self, entity: SchemaEntity) -> ResolvedEntity:
        """Flatten an entity (cached; the result depends only on the table)."""
        if entity.name in self._cache:
            return self._cache[entity.name]

        if entity.is_enum:
            raise SchemaResolutionError(f"enum {entity.name} has no fields to flatten")

        layouts = self._own_layouts(entity)
        superclass_layout = self._find_superclass(entity, layouts)

        inherited = ()
        superclass = None
        if superclass_layout is not None:
            parent = self.flatten(self.table.lookup(superclass_layout.type))
            superclass = parent.name
            inherited = parent.inherited + parent.fields

        expanded: list[tuple[FieldLayout, str | None]] = []
        groups: dict[str, str] = {}
        self._expand(layouts, None, expanded, groups, (entity.name,), skip=superclass_layout)

        siblings = [layout for layout, _ in expanded]
        scope = [f.layout for f in inherited] + siblings
        fields = tuple(
            self.resolver.resolve(layout, siblings, scope=scope, inline_group=group) for layout, group in expanded
        )

        self._check_names(entity, fields, inherited, groups)

        references = {f.type_name for f in fields if f.type_name is not None}
        references.update(groups.values())
        if superclass is not None:
            references.add(superclass)

        resolved = ResolvedEntity(
            entity=entity,
            fields=fields,
            superclass=superclass,
            inherited=inherited,
            inline_groups=groups,
            references=frozenset(references),
        )
        self._cache[entity.name] = resolved

        self.log.debug("entity flattened", entity=entity.name, fields=len(fields), superclass=superclass)
        return resolved

    def _own_layouts(self, entity: SchemaEntity) -> list[FieldLayout]:
        if entity.is_byte:
            # A scalar alias is a struct with one field of the declared width
            return [FieldLayout(type="byte", name=python_name(entity.name), size=entity.size, signedness=entity.signedness)]
        return list(entity.fields)

    def _find_superclass(self, entity: SchemaEntity, layouts: list[FieldLayout]) -> FieldLayout | None:
        for layout in layouts:
            if layout.disposition == Disposition.CONST:
                continue
            if layout.disposition != Disposition.INLINE:
                return None

            target = self.table.lookup(layout.type)
            if not target.is_struct or target.mixin:
                return None
            if entity.mixin:
                raise SchemaResolutionError(f"mixin {entity.name} cannot inline non-mixin struct {target.name} first")
            return layout
        return None

    def _expand(
        self,
        layouts: list[FieldLayout],
        group: str | None,
        out: list[tuple[FieldLayout, str | None]],
        groups: dict[str, str],
        path: tuple[str, ...],
        skip: FieldLayout | None = None,
    ) -> None:
        for layout in layouts:
            if layout is skip:
                continue

            if layout.disposition == Disposition.INLINE:
                target = self.table.lookup(layout.type)
                if target.is_struct and target.mixin:
                    owner = group
                    if owner is None:
                        owner = python_name(layout.name or target.name)
                        if owner in groups:
                            raise SchemaResolutionError(f"mixin {target.name} is inlined twice into {path[0]}")
                        groups[owner] = target.name

                    self._expand(target.fields, owner, out, groups, path + (target.name,))
                    continue

            out.append((layout, group))

    def _check_names(self, entity, fields, inherited, groups) -> None:
        seen: set[str] = set()
        for f in inherited + fields:
            name = f.generated_name
            if not name:
                continue
            if name in seen:
                raise SchemaResolutionError(f"Duplicate field name {name} in {entity.name}")
            seen.add(name)

        for group in groups:
            if group in seen or group in RESERVED_NAMES:
                raise SchemaResolutionError(f"Mixin property {group} collides with a field of {entity.name}")
