"""Tests for CLI interface."""

import json
import os

from click.testing import CliRunner

from binlayout.generator.cli import cli

SCHEMA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.realpath(__file__))), "schemas")


def describe_gen_command():
    def generates_python_code(expect, tmp_path):
        output_file = tmp_path / "ledger.py"

        result = CliRunner().invoke(cli, ["gen", "-i", f"{SCHEMA_DIR}/ledger.yaml", "-o", str(output_file)])
        expect(result.exit_code) == 0

        content = output_file.read_text()
        expect("class TransferTransaction(Transaction):" in content) == True
        expect("from binlayout_runtime import codec as _codec" in content) == True
        expect("class TransactionDispatcher" in content) == False

    def applies_config_file(expect, tmp_path):
        output_file = tmp_path / "ledger.py"

        result = CliRunner().invoke(
            cli,
            [
                "gen",
                "-i",
                f"{SCHEMA_DIR}/ledger.yaml",
                "-o",
                str(output_file),
                "-c",
                f"{SCHEMA_DIR}/ledger_config.yaml",
            ],
        )
        expect(result.exit_code) == 0

        content = output_file.read_text()
        expect("# Ledger test codecs" in content) == True
        expect("from ledger_runtime import codec as _codec" in content) == True
        expect("class TransactionDispatcher(EnvelopeDispatcher):" in content) == True
        expect("class EmbeddedTransactionDispatcher(EnvelopeDispatcher):" in content) == True

    def overrides_runtime_import(expect, tmp_path):
        output_file = tmp_path / "ledger.py"

        result = CliRunner().invoke(
            cli,
            [
                "gen",
                "-i",
                f"{SCHEMA_DIR}/ledger.yaml",
                "-o",
                str(output_file),
                "-c",
                f"{SCHEMA_DIR}/ledger_config.yaml",
                "--runtime-import",
                "custom.runtime",
            ],
        )
        expect(result.exit_code) == 0
        expect("from custom.runtime import codec as _codec" in output_file.read_text()) == True

    def fails_with_invalid_schema(expect, tmp_path):
        schema = tmp_path / "broken.yaml"
        schema.write_text("- {name: Broken, kind: struct, fields: [{name: value, type: Missing}]}\n")

        result = CliRunner().invoke(cli, ["gen", "-i", str(schema), "-o", str(tmp_path / "out.py")])
        expect(result.exit_code) == 1
        expect("Unknown type: Missing" in result.output) == True

    def fails_with_unresolvable_layout(expect, tmp_path):
        schema = tmp_path / "unresolvable.yaml"
        schema.write_text("- {name: Broken, kind: struct, fields: [{name: value, type: byte}]}\n")

        result = CliRunner().invoke(cli, ["gen", "-i", str(schema), "-o", str(tmp_path / "out.py")])
        expect(result.exit_code) == 1
        expect((tmp_path / "out.py").exists()) == False


def describe_runtime_command():
    def writes_runtime_package(expect, tmp_path):
        result = CliRunner().invoke(cli, ["runtime", "-o", str(tmp_path), "--name", "ledger_runtime"])
        expect(result.exit_code) == 0

        runtime_dir = tmp_path / "ledger_runtime"
        expect(sorted(p.name for p in runtime_dir.iterdir())) == [
            "__init__.py",
            "codec.py",
            "runtime.py",
            "serialization.py",
        ]


def describe_info_command():
    def outputs_json(expect):
        result = CliRunner().invoke(cli, ["info", "-i", f"{SCHEMA_DIR}/ledger.yaml", "--json"])
        expect(result.exit_code) == 0

        data = json.loads(result.output)
        expect(data["entities"]["Transaction"]) == {
            "kind": "struct",
            "min_size": 24,
            "max_size": 24,
            "size_kind": "fixed",
            "mixin": False,
        }
        expect(data["entities"]["Note"]["max_size"]) == None
        expect(data["entities"]["EntityHeader"]["mixin"]) == True
        expect(data["entities"]["MessageType"]["kind"]) == "enum"

    def outputs_table(expect):
        result = CliRunner().invoke(cli, ["info", "-i", f"{SCHEMA_DIR}/ledger.yaml"])
        expect(result.exit_code) == 0
        expect("Entities" in result.output) == True
        expect("Transaction" in result.output) == True
