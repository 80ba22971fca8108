"""Schema loading.

Entity tables are read from YAML or JSON documents holding a list of
entities (either at the top level or under an ``entities`` key). Both the
native field names of the model and the catbuffer style dump are accepted:

    - name: Mosaic
      type: struct
      layout:
        - name: mosaic_id
          type: MosaicId
        - name: amount
          type: Amount
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from structlog import get_logger

from .types import EntityTable, SchemaEntity, SchemaResolutionError

logger = get_logger()

_DISPOSITIONS = {
    "array fill": "array-fill",
    "array sized": "array-sized",
}

_OPERATIONS = {
    "not equals": "not-equals",
    "==": "equals",
    "!=": "not-equals",
}


def _normalize_condition(item: Mapping[str, Any]) -> dict[str, Any] | None:
    condition = item.get("condition")
    if condition is None:
        return None

    if isinstance(condition, Mapping):
        raw = dict(condition)
    else:
        raw = {
            "field": condition,
            "operation": item.get("condition_operation", "equals"),
            "value": item.get("condition_value"),
        }

    operation = str(raw.get("operation", "equals"))
    raw["operation"] = _OPERATIONS.get(operation, operation)
    return {key: raw.get(key) for key in ("field", "operation", "value")}


def _normalize_field(item: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {"type": item["type"]}

    for key in ("name", "size", "signedness", "value", "element_size", "element_alignment"):
        if item.get(key) is not None:
            result[key] = item[key]

    disposition = item.get("disposition")
    if disposition is not None:
        result["disposition"] = _DISPOSITIONS.get(disposition, disposition)

    element = item.get("element_disposition")
    if isinstance(element, Mapping):
        result["element_size"] = element.get("size")
        if "signedness" in element:
            result["signedness"] = element["signedness"]

    if item.get("alignment") is not None:
        result["element_alignment"] = item["alignment"]

    condition = _normalize_condition(item)
    if condition is not None:
        result["condition"] = condition

    comment = item.get("comment", item.get("comments"))
    if comment:
        result["comment"] = comment

    return result


def _normalize_entity(item: Mapping[str, Any]) -> dict[str, Any]:
    if "name" not in item:
        raise SchemaResolutionError(f"Entity without a name: {dict(item)}")

    kind = item.get("kind", item.get("type"))
    if kind is None:
        raise SchemaResolutionError(f"Entity {item['name']} has no kind")

    result: dict[str, Any] = {"name": item["name"], "kind": kind}

    for key in ("size", "signedness", "flags", "mixin"):
        if item.get(key) is not None:
            result[key] = item[key]

    if item.get("is_bitwise") is not None:
        result["flags"] = item["is_bitwise"]
    elif kind == "enum" and "flags" not in result:
        result["flags"] = item["name"].endswith("Flags")

    if item.get("disposition") == "inline":
        result["mixin"] = True

    layouts = item.get("fields", item.get("layout")) or []
    result["fields"] = [_normalize_field(layout) for layout in layouts]

    values = item.get("values") or []
    result["values"] = [
        {
            "name": value["name"],
            "value": value["value"],
            "comment": value.get("comment", value.get("comments")) or None,
        }
        for value in values
    ]

    comment = item.get("comment", item.get("comments"))
    if comment:
        result["comment"] = comment

    return result


def parse_entities(items: Iterable[Mapping[str, Any]]) -> EntityTable:
    """Build and validate an entity table from plain mappings."""
    try:
        entities = [SchemaEntity.from_dict(_normalize_entity(item)) for item in items]
    except SchemaResolutionError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaResolutionError(f"Malformed entity: {e}") from e

    table = EntityTable(entities)

    logger.new().debug("entity table loaded", entities=len(table))
    return table


def load_schema(path: str | Path) -> EntityTable:
    """Load an entity table from a YAML or JSON file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if isinstance(data, Mapping):
        data = data.get("entities")
    if data is None:
        data = []
    if not isinstance(data, list):
        raise SchemaResolutionError(f"{path}: expected a list of entities")

    return parse_entities(data)
