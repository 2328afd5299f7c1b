"""
Tests for constraint parsing and value synthesis.
"""
import re

import pytest

from routefuzz.services.constraints import Regex, parse_constraints, schema_type
from routefuzz.services.synthesizer import JsonSchemaAdapter, ValueSynthesizer


def test_exact_length_constraint():
    constraints = parse_constraints({"type": "string", "minLength": 15, "maxLength": 15})

    assert constraints.type == "string"
    assert constraints.length == 15
    assert (constraints.min, constraints.max) == (15, 15)


def test_length_window_constraint():
    constraints = parse_constraints({"type": "string", "minLength": 2, "maxLength": 9})

    assert constraints.length is None
    assert (constraints.min, constraints.max) == (2, 9)


def test_format_flags():
    constraints = parse_constraints({"type": "string", "format": "email"})

    assert constraints.has_format("email")
    assert constraints.blocks_substitution
    assert parse_constraints({"type": "string", "format": "data-uri"}).has_format("dataUri")
    assert parse_constraints({"type": "string", "format": "date-time"}).has_format("isoDate")
    assert not parse_constraints({"type": "string"}).blocks_substitution


def test_binary_type():
    assert parse_constraints({"type": "string", "format": "binary"}).type == "binary"


def test_regex_constraints():
    assert parse_constraints({"type": "string", "pattern": r"\d+"}).regex == Regex(r"\d+")
    assert parse_constraints({"type": "string", "not": {"pattern": "secret"}}).regex == Regex("secret", invert=True)


def test_valids():
    assert parse_constraints({"enum": ["a", "b"]}).valids == ("a", "b")
    assert parse_constraints({"const": 3}).valids == (3,)
    assert parse_constraints({"type": "string"}).valids is None


def test_schema_type_inference():
    assert schema_type({"properties": {}}) == "object"
    assert schema_type({"items": {}}) == "array"
    assert schema_type({"maxLength": 3}) == "string"
    assert schema_type({"type": ["null", "integer"]}) == "integer"
    assert schema_type({}) == "any"


SCHEMAS = [
    {"type": "string", "minLength": 3, "maxLength": 8},
    {"type": "string", "format": "email"},
    {"type": "string", "format": "uuid"},
    {"type": "string", "pattern": r"^[a-f]{4}$"},
    {"type": "integer", "minimum": 5, "maximum": 9},
    {"type": "integer", "exclusiveMinimum": 0, "exclusiveMaximum": 3},
    {"type": "number", "minimum": 0.5, "maximum": 1.5},
    {"type": "integer", "minimum": 0, "maximum": 100, "multipleOf": 5},
    {"type": "boolean"},
    {"enum": ["red", "green"]},
    {"type": "array", "items": {"type": "integer"}, "minItems": 1, "maxItems": 4},
    {"type": ["string", "null"], "maxLength": 4},
    {
        "type": "object",
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "tags": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["name", "tags"],
    },
    {"anyOf": [{"type": "integer", "minimum": 1}, {"type": "null"}]},
    {"allOf": [
        {"type": "object", "properties": {"a": {"type": "integer"}}, "required": ["a"]},
        {"properties": {"b": {"type": "string"}}, "required": ["b"]},
    ]},
]


@pytest.mark.parametrize("schema", SCHEMAS)
def test_synthesized_values_validate(schema):
    adapter = JsonSchemaAdapter(ValueSynthesizer(seed=11))

    for _ in range(10):
        value = adapter.synthesize(schema)
        assert adapter.validate(value, schema) is None, value


def test_pattern_values_fullmatch():
    adapter = JsonSchemaAdapter()

    for _ in range(10):
        assert re.fullmatch(r"\d{3}", adapter.synthesize({"type": "string", "pattern": r"\d{3}"}))


def test_binary_values_are_bytes():
    adapter = JsonSchemaAdapter()
    schema = {"type": "string", "format": "binary", "maxLength": 16}

    value = adapter.synthesize(schema)

    assert isinstance(value, bytes)
    assert adapter.validate(value, schema) is None


def test_seed_is_reproducible():
    schema = SCHEMAS[-3]

    first = [ValueSynthesizer(seed=5).synthesize(schema) for _ in range(3)]
    second = [ValueSynthesizer(seed=5).synthesize(schema) for _ in range(3)]

    assert first == second


def test_replace_hook_sees_every_node():
    seen = []

    def replace(value, schema, constraints):
        seen.append(constraints.type)
        return value

    ValueSynthesizer(seed=1).synthesize(
        {"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]},
        replace=replace,
    )

    assert seen == ["integer", "object"]


def test_validate_reports_location():
    adapter = JsonSchemaAdapter()
    schema = {"type": "object", "properties": {"name": {"type": "string"}}}

    error = adapter.validate({"name": 5}, schema)

    assert error.startswith('"name"')
    assert "'string'" in error
    assert adapter.validate({"name": "ok"}, schema) is None
    assert adapter.validate("anything", None) is None
