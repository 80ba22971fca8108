"""Tests for inline flattening."""

import os

import pytest

from binlayout.generator import InlineFlattener, LayoutResolver, load_schema, parse_entities
from binlayout.generator.types import FieldKind, FieldRole, SchemaResolutionError

LEDGER = os.path.join(os.path.dirname(os.path.dirname(os.path.realpath(__file__))), "schemas", "ledger.yaml")


@pytest.fixture(scope="module")
def flattener():
    table = load_schema(LEDGER)
    return InlineFlattener(LayoutResolver(table))


def flatten(flattener, name):
    return flattener.flatten(flattener.table[name])


def names(fields):
    return [f.generated_name for f in fields]


def flatten_entities(*entities, name="Subject"):
    table = parse_entities(list(entities))
    return InlineFlattener(LayoutResolver(table)).flatten(table[name])


def describe_superclass():
    def detects_leading_struct_inline(expect, flattener):
        transfer = flatten(flattener, "TransferTransaction")

        expect(transfer.superclass) == "Transaction"
        expect(names(transfer.inherited)) == [
            "size_",
            "verifiable_entity_header_reserved_1",
            "signature",
            "version",
            "network",
            "type",
            "fee",
        ]
        expect(names(transfer.fields)) == [
            "TRANSACTION_VERSION",
            "TRANSACTION_TYPE",
            "recipient",
            "message_size",
            "mosaics_count",
            "",
            "mosaics",
            "message",
        ]

    def orders_constructor_fields(expect, flattener):
        transfer = flatten(flattener, "TransferTransaction")

        expect(names(transfer.constructor_fields)) == [
            "signature",
            "version",
            "network",
            "type",
            "fee",
            "recipient",
            "mosaics",
            "message",
        ]
        expect(names(transfer.constants)) == ["TRANSACTION_VERSION", "TRANSACTION_TYPE"]

    def finds_inherited_fields(expect, flattener):
        transfer = flatten(flattener, "TransferTransaction")

        fee = transfer.find("fee")
        expect(fee.type_name) == "Amount"
        expect(transfer.is_inherited(fee)) == True
        expect(transfer.is_inherited(transfer.find("message"))) == False
        expect(transfer.find("missing")) == None

    def keeps_roles_of_inherited_fields(expect, flattener):
        transaction = flatten(flattener, "Transaction")

        expect(transaction.superclass) == None
        expect(transaction.find("size").role) == FieldRole.SIZE_PREFIX
        expect(transaction.find("verifiable_entity_header_reserved_1").role) == FieldRole.RESERVED

    def nests_later_struct_inlines(expect, flattener):
        receipt = flatten(flattener, "Receipt")

        expect(receipt.superclass) == None
        expect(names(receipt.fields)) == ["receipt_type", "mosaic"]
        expect(receipt.fields[1].kind) == FieldKind.STRUCT
        expect(receipt.fields[1].width) == 16


def describe_mixins():
    def tags_fields_with_outermost_mixin(expect, flattener):
        composite = flatten(flattener, "Composite")

        expect([f.inline_group for f in composite.fields]) == ["entity_header", "entity_header", "stamp", "stamp", None]
        expect(dict(composite.inline_groups)) == {"entity_header": "EntityHeader", "stamp": "Stamp"}

    def collects_groups_of_mixins(expect, flattener):
        transaction = flatten(flattener, "Transaction")

        expect(list(transaction.inline_groups)) == ["size_prefixed_entity", "verifiable_entity", "entity_header"]

    def collects_references(expect, flattener):
        transfer = flatten(flattener, "TransferTransaction")

        expect(sorted(transfer.references)) == ["MessageType", "Mosaic", "Transaction", "TransferTransactionBody"]

    def flattens_byte_aliases(expect, flattener):
        amount = flatten(flattener, "Amount")

        expect(names(amount.fields)) == ["amount"]
        expect(amount.fields[0].kind) == FieldKind.WIDE
        expect(amount.fields[0].width) == 8

    def caches_results(expect, flattener):
        expect(flatten(flattener, "Stamp") is flatten(flattener, "Stamp")) == True

    def rejects_enums(expect, flattener):
        with pytest.raises(SchemaResolutionError):
            flatten(flattener, "Letter")

    def rejects_duplicate_field_names(expect):
        with pytest.raises(SchemaResolutionError):
            flatten_entities(
                {"name": "Header", "kind": "struct", "mixin": True, "fields": [{"name": "id", "type": "byte", "size": 2}]},
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [{"type": "Header", "disposition": "inline"}, {"name": "id", "type": "byte", "size": 4}],
                },
            )

    def rejects_mixin_inlined_twice(expect):
        with pytest.raises(SchemaResolutionError):
            flatten_entities(
                {"name": "Header", "kind": "struct", "mixin": True, "fields": [{"name": "id", "type": "byte", "size": 2}]},
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"type": "Header", "disposition": "inline"},
                        {"type": "Header", "disposition": "inline"},
                    ],
                },
            )

    def rejects_group_name_collisions(expect):
        with pytest.raises(SchemaResolutionError):
            flatten_entities(
                {"name": "Header", "kind": "struct", "mixin": True, "fields": [{"name": "id", "type": "byte", "size": 2}]},
                {
                    "name": "Subject",
                    "kind": "struct",
                    "fields": [
                        {"type": "Header", "disposition": "inline"},
                        {"name": "header", "type": "byte", "size": 1},
                    ],
                },
            )

    def rejects_mixins_extending_structs(expect):
        with pytest.raises(SchemaResolutionError):
            flatten_entities(
                {"name": "Base", "kind": "struct", "fields": [{"name": "id", "type": "byte", "size": 2}]},
                {
                    "name": "Subject",
                    "kind": "struct",
                    "mixin": True,
                    "fields": [
                        {"type": "Base", "disposition": "inline"},
                        {"name": "extra", "type": "byte", "size": 1},
                    ],
                },
            )
