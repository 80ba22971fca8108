"""Tests for the Python backend."""

import pytest

from binlayout.generator import EnvelopeFamily, GeneratorConfig, parse_entities
from binlayout.generator.python import RUNTIME_FILES, PythonBackend, render, runtime
from binlayout.generator.types import Disposition, EntityKind, EntityTable, FieldLayout, SchemaEntity, SchemaResolutionError

POINT = {
    "name": "Point",
    "kind": "struct",
    "comment": "A point on the grid.",
    "fields": [{"name": "x", "type": "byte", "size": 4}, {"name": "y", "type": "byte", "size": 3}],
}

HEADER = {
    "name": "Header",
    "kind": "struct",
    "fields": [{"name": "size", "type": "byte", "size": 2}, {"name": "type", "type": "byte", "size": 1}],
}


def execute(code):
    gbl = globals().copy()
    exec(code, gbl)
    return gbl


def local_config(**kwargs):
    return GeneratorConfig(runtime_import="binlayout.proto", **kwargs)


def describe_render():
    def renders_structs(expect):
        code = render(parse_entities([POINT]))

        expect("@dataclass(kw_only=True)\nclass Point(Struct):" in code) == True
        expect('    """A point on the grid."""' in code) == True
        expect('    x: int = layout_field("int", width=4)' in code) == True
        expect("        return 7\n" in code) == True

    def renders_single_field_structs_positionally(expect):
        code = render(parse_entities([{"name": "Amount", "kind": "byte", "size": 8}]))

        expect("@dataclass\nclass Amount(Struct):" in code) == True
        expect('    """8 byte scalar."""' in code) == True

    def renders_enums(expect):
        code = render(
            parse_entities(
                [
                    {
                        "name": "Access",
                        "kind": "enum",
                        "size": 2,
                        "flags": True,
                        "values": [{"name": "READ", "value": 1, "comment": "Read access."}, {"name": "WRITE", "value": 2}],
                    }
                ]
            )
        )

        expect("class Access(LayoutEnum):" in code) == True
        expect("    layout_size = nonmember(2)" in code) == True
        expect("    # Read access.\n    READ = 0x1\n" in code) == True

    def uses_runtime_import(expect):
        table = parse_entities([POINT])

        expect("from binlayout_runtime import codec as _codec" in render(table)) == True
        expect("from binlayout.proto import codec as _codec" in render(table, local_config())) == True

    def adds_comments(expect):
        code = render(parse_entities([POINT]), local_config(comments=["Generated for the test suite"]))

        expect("# Generated for the test suite\n" in code) == True

    def orders_referenced_structs_first(expect):
        table = parse_entities(
            [
                {"name": "Segment", "kind": "struct", "fields": [{"name": "start", "type": "Point"}, {"name": "end", "type": "Point"}]},
                POINT,
            ]
        )

        code = render(table)
        expect(code.index("class Point(") < code.index("class Segment(")) == True
        expect([e.name for e in PythonBackend(table, local_config()).emission_order()]) == ["Point", "Segment"]

    def executes_generated_code(expect):
        gbl = execute(render(parse_entities([POINT]), local_config()))
        Point = gbl["Point"]

        expect(Point(x=1, y=2).serialize()) == bytes.fromhex("01000000020000")
        expect(Point.deserialize(bytes.fromhex("01000000020000"))) == (Point(x=1, y=2), 7)


def describe_resolution_errors():
    def rejects_slots_of_different_widths(expect):
        table = parse_entities(
            [
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"name": "a", "type": "byte", "size": 2, "condition": {"field": "k", "operation": "equals", "value": 1}},
                        {"name": "b", "type": "byte", "size": 4, "condition": {"field": "k", "operation": "equals", "value": 2}},
                        {"name": "k", "type": "byte", "size": 1},
                    ],
                }
            ]
        )

        with pytest.raises(SchemaResolutionError):
            render(table)

    def rejects_size_fields_after_their_array(expect):
        table = parse_entities(
            [
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"name": "data", "type": "byte", "disposition": "array", "size": "data_size"},
                        {"name": "data_size", "type": "byte", "size": 1},
                    ],
                }
            ]
        )

        with pytest.raises(SchemaResolutionError):
            render(table)

    def rejects_slots_whose_conditions_overlap(expect):
        table = parse_entities(
            [
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"name": "a", "type": "byte", "size": 4, "condition": {"field": "k", "operation": "not-equals", "value": 0}},
                        {"name": "b", "type": "byte", "size": 4, "condition": {"field": "k", "operation": "equals", "value": 1}},
                        {"name": "k", "type": "byte", "size": 1},
                    ],
                }
            ]
        )

        with pytest.raises(SchemaResolutionError) as exinfo:
            render(table)
        expect("may hold together" in str(exinfo.value)) == True

    def accepts_slots_with_exclusive_conditions(expect):
        table = parse_entities(
            [
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"name": "a", "type": "byte", "size": 4, "condition": {"field": "k", "operation": "not-equals", "value": 1}},
                        {"name": "b", "type": "byte", "size": 4, "condition": {"field": "k", "operation": "equals", "value": 1}},
                        {"name": "k", "type": "byte", "size": 1},
                    ],
                }
            ]
        )
        Subject = execute(render(table, local_config()))["Subject"]

        payload = bytes.fromhex("0700000001")
        expect(Subject(b=7, k=1).serialize()) == payload
        expect(Subject.deserialize(payload)) == (Subject(b=7, k=1), 5)

    def rejects_struct_cycles_in_tables_built_directly(expect):
        with pytest.raises(SchemaResolutionError) as exinfo:
            EntityTable(
                [
                    SchemaEntity("A", EntityKind.STRUCT, fields=[FieldLayout("B", name="b")]),
                    SchemaEntity("B", EntityKind.STRUCT, fields=[FieldLayout("A", name="a")]),
                ]
            )
        expect("A -> B -> A" in str(exinfo.value)) == True

    def rejects_superclass_cycles_in_tables_built_directly(expect):
        with pytest.raises(SchemaResolutionError) as exinfo:
            EntityTable(
                [
                    SchemaEntity("A", EntityKind.STRUCT, fields=[FieldLayout("B", disposition=Disposition.INLINE)]),
                    SchemaEntity("B", EntityKind.STRUCT, fields=[FieldLayout("A", disposition=Disposition.INLINE)]),
                ]
            )
        expect("Reference cycle" in str(exinfo.value)) == True

    def renders_tables_built_directly(expect):
        table = EntityTable(
            [
                SchemaEntity("Amount", EntityKind.BYTE, size=8),
                SchemaEntity("Payment", EntityKind.STRUCT, fields=[FieldLayout("Amount", name="amount")]),
            ]
        )
        gbl = execute(render(table, local_config()))

        expect(gbl["Payment"].deserialize(bytes(8))) == (gbl["Payment"](gbl["Amount"](0)), 8)

    def rejects_envelope_without_discriminant_field(expect):
        table = parse_entities([POINT])

        with pytest.raises(SchemaResolutionError):
            render(table, local_config(envelopes=[EnvelopeFamily("Point")]))

    def rejects_envelope_members_sharing_a_key(expect):
        members = [
            {
                "name": name,
                "kind": "struct",
                "fields": [
                    {"name": "KIND", "type": "byte", "size": 1, "disposition": "const", "value": 7},
                    {"type": "Header", "disposition": "inline"},
                ],
            }
            for name in ("First", "Second")
        ]
        table = parse_entities([HEADER] + members)

        with pytest.raises(SchemaResolutionError):
            render(table, local_config(envelopes=[EnvelopeFamily("Header", {"type": "KIND"})]))


def describe_envelopes():
    def renders_dispatcher(expect):
        table = parse_entities(
            [
                HEADER,
                {
                    "name": "Ping",
                    "kind": "struct",
                    "fields": [
                        {"name": "KIND", "type": "byte", "size": 1, "disposition": "const", "value": 7},
                        {"type": "Header", "disposition": "inline"},
                        {"name": "nonce", "type": "byte", "size": 4},
                    ],
                },
            ]
        )
        config = local_config(envelopes=[EnvelopeFamily("Header", {"type": "KIND"})])

        code = render(table, config)
        expect("class HeaderDispatcher(EnvelopeDispatcher):" in code) == True
        expect("        (7,): Ping,\n" in code) == True
        expect("_header_dispatcher = HeaderDispatcher()" in code) == True

        gbl = execute(code)
        ping = gbl["Ping"](type=7, nonce=3)
        decoded, consumed = gbl["_header_dispatcher"].deserialize(ping.serialize())
        expect(decoded) == ping
        expect(consumed) == 7


def describe_runtime():
    def returns_runtime_files(expect):
        files = runtime()

        expect(sorted(files)) == sorted(RUNTIME_FILES)
        expect("class EnvelopeDispatcher" in files["runtime.py"]) == True
        expect("def read_list_until" in files["codec.py"]) == True
