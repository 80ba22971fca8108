"""Unit tests configuration file."""

import os

import pytest

from binlayout.generator import EnvelopeFamily, GeneratorConfig, load_schema
from binlayout.generator.python import render

SCHEMA_DIR = os.path.join(os.path.dirname(os.path.realpath(__file__)), "schemas")


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


def gen_code(file_name, config=None):
    """Render a schema file and execute the generated module."""
    gbl = globals().copy()
    generated_code = render(load_schema(file_name), config or GeneratorConfig(runtime_import="binlayout.proto"))
    exec(generated_code, gbl)
    return gbl


@pytest.fixture(scope="session")
def ledger():
    """Names defined by the module generated from schemas/ledger.yaml."""
    config = GeneratorConfig(
        runtime_import="binlayout.proto",
        envelopes=[EnvelopeFamily("Transaction"), EnvelopeFamily("EmbeddedTransaction")],
    )
    return gen_code(f"{SCHEMA_DIR}/ledger.yaml", config)
