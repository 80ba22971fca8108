"""Generator configuration."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dataclasses_json import DataClassJsonMixin

DEFAULT_RUNTIME_IMPORT = "binlayout_runtime"


def _default_discriminants() -> dict[str, str]:
    return {"type": "TRANSACTION_TYPE", "version": "TRANSACTION_VERSION"}


@dataclass
class EnvelopeFamily(DataClassJsonMixin):
    """A header struct whose concrete entities are selected by const fields.

    discriminants maps header field names to the const each concrete
    entity declares for that field.
    """

    header: str
    discriminants: dict[str, str] = field(default_factory=_default_discriminants)


@dataclass
class GeneratorConfig(DataClassJsonMixin):
    """Options for the Python backend."""

    runtime_import: str = DEFAULT_RUNTIME_IMPORT
    envelopes: list[EnvelopeFamily] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


def load_config(path: str | Path) -> GeneratorConfig:
    """Load a generator configuration from a YAML file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return GeneratorConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: configuration must be a mapping")

    return GeneratorConfig.from_dict(data)
