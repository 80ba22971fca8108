"""Command-line interface for binlayout code generation."""

from __future__ import annotations

import json
import logging.config
from dataclasses import replace
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.table import Table
from structlog.dev import ConsoleRenderer

from binlayout.generator import python
from binlayout.generator.config import GeneratorConfig, load_config
from binlayout.generator.loader import load_schema
from binlayout.generator.sizes import EntitySizeInfo, calculate_sizes
from binlayout.generator.types import EntityTable, SchemaResolutionError


def _load(input_file: str) -> EntityTable:
    try:
        return load_schema(input_file)
    except SchemaResolutionError as e:
        raise click.ClickException(f"{input_file}: {e}") from e


def setup_logging(debug: bool = False) -> None:
    """Route structlog events through stdlib logging on stderr."""
    timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "colored": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": ConsoleRenderer(colors=True),
                    "foreign_pre_chain": [structlog.stdlib.add_log_level, timestamper],
                },
            },
            "handlers": {
                "pretty": {
                    "level": "DEBUG",
                    "class": "logging.StreamHandler",
                    "formatter": "colored",
                },
            },
            "loggers": {
                "": {
                    "handlers": ["pretty"],
                    "level": "DEBUG" if debug else "WARNING",
                },
            },
        }
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


@click.group()
@click.option("--debug", is_flag=True, help="Log generator internals")
def cli(debug: bool) -> None:
    """binlayout codec generator."""
    setup_logging(debug)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input entity table (YAML or JSON)")
@click.option("--output", "-o", "output_file", required=True, help="Output file")
@click.option("--config", "-c", "config_file", default=None, help="Generator configuration (YAML)")
@click.option(
    "--runtime-import",
    "runtime_import",
    is_flag=False,
    flag_value="binlayout.proto",
    default=None,
    help="Import path for runtime. No value=binlayout.proto, omit=config or binlayout_runtime",
)
def gen(input_file: str, output_file: str, config_file: str | None, runtime_import: str | None) -> None:
    """Generate Python codecs from an entity table."""
    table = _load(input_file)

    try:
        config = load_config(config_file) if config_file else GeneratorConfig()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if runtime_import is not None:
        config = replace(config, runtime_import=runtime_import)

    try:
        generated_file = python.render(table, config)
    except SchemaResolutionError as e:
        raise click.ClickException(str(e)) from e

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)


@cli.command()
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="binlayout_runtime", help="Runtime folder name")
def runtime(output_path: str, name: str) -> None:
    """Generate runtime support code."""
    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content)
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input entity table (YAML or JSON)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display entities and their static sizes."""
    table = _load(input_file)

    try:
        size_info = calculate_sizes(table)
    except SchemaResolutionError as e:
        raise click.ClickException(str(e)) from e

    if output_json:
        _output_json(table, size_info)
    else:
        _output_plain(table, size_info)


def _format_size(size: int | None) -> str:
    """Format a size value, handling None for unbounded."""
    return "unbounded" if size is None else str(size)


def _output_json(table: EntityTable, size_info: dict[str, EntitySizeInfo]) -> None:
    """Output entity info as JSON."""
    data: dict = {"entities": {}}

    for name, entity_info in size_info.items():
        entity = table[name]
        data["entities"][name] = {
            "kind": entity.kind.value,
            "min_size": entity_info.size.min_size,
            "max_size": entity_info.size.max_size,
            "size_kind": entity_info.size.kind.value,
            "mixin": entity.mixin,
        }

    print(json.dumps(data, indent=2))


def _output_plain(table: EntityTable, size_info: dict[str, EntitySizeInfo]) -> None:
    """Output entity info using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Entities[/bold cyan]")
    entity_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    entity_table.add_column("Name", style="white")
    entity_table.add_column("Kind", style="dim")
    entity_table.add_column("Size", style="yellow", justify="right")
    entity_table.add_column("Layout", style="dim")

    for name, entity_info in size_info.items():
        entity = table[name]
        min_size = entity_info.size.min_size
        max_size = entity_info.size.max_size

        if min_size == max_size:
            size_str = f"{min_size} bytes"
        else:
            size_str = f"{min_size}-{_format_size(max_size)} bytes"

        kind = f"{entity.kind.value} (mixin)" if entity.mixin else entity.kind.value
        entity_table.add_row(name, kind, size_str, entity_info.size.kind.value)

    console.print(entity_table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
