"""
Tests for record assembly.
"""
from urllib.parse import unquote

import pytest

from routefuzz.core.errors import SchemaMismatchError
from routefuzz.models import FuzzOptions, RouteSpec
from routefuzz.services.record_generator import WILDCARD_METHODS, RecordGenerator


USER_PAYLOAD = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 20},
        "age": {"type": "integer", "minimum": 0, "maximum": 120},
        "role": {"enum": ["admin", "user"]},
    },
    "required": ["name", "age", "role"],
}


def generator(corpus=None, **options):
    options.setdefault("automate", False)
    return RecordGenerator(FuzzOptions(**options), corpus)


def test_permutations_per_route():
    route = RouteSpec(method="post", path="/users/{id}", validate={"payload": USER_PAYLOAD}, params=["id"])

    records = generator(permutations=7).generate_route(route)

    assert len(records) == 7
    for record in records:
        assert record.method == "post"
        assert record.path == "/users/{id}"
        assert set(record.payload) == {"name", "age", "role"}
        assert record.params["id"]
        assert record.headers is None
        assert record.state is None


def test_get_records_have_no_payload():
    records = generator(permutations=3).generate_route(RouteSpec(method="get", path="/test"))

    for record in records:
        assert record.payload is None
        assert record.params is None
        assert record.query == {}
        assert set(record.to_dict()) == {"path", "method", "query"}


def test_undeclared_payload_is_permissive_object():
    records = generator(permutations=5).generate_route(RouteSpec(method="put", path="/things"))

    for record in records:
        assert isinstance(record.payload, dict)
        assert all(isinstance(value, str) for value in record.payload.values())


def test_wildcard_method_expands():
    records = generator(permutations=2).generate_route(RouteSpec(method="*", path="/any"))

    assert len(records) == 2 * len(WILDCARD_METHODS)
    assert {record.method for record in records} == set(WILDCARD_METHODS)


def test_seed_reproduces_records():
    payload = {
        **USER_PAYLOAD,
        "properties": {**USER_PAYLOAD["properties"], "code": {"type": "string", "pattern": "^[a-z]{8}$"}},
        "required": USER_PAYLOAD["required"] + ["code"],
    }
    route = RouteSpec(
        method="post",
        path="/users/{id}",
        validate={
            "payload": payload,
            "params": {"type": "object", "properties": {"id": {"type": "string", "pattern": r"^\d{3}$"}}},
        },
        params=["id"],
    )

    first = generator(permutations=4, synth_options={"seed": 9}).generate_route(route)
    second = generator(permutations=4, synth_options={"seed": 9}).generate_route(route)

    assert [record.to_dict() for record in first] == [record.to_dict() for record in second]
    assert all(len(record.payload["code"]) == 8 for record in first)
    assert len({record.payload["code"] for record in first}) > 1


def test_fixed_count_wildcard_params():
    route = RouteSpec(method="get", path="/pair/{name*2}", params=["name"])

    for record in generator(permutations=10).generate_route(route):
        parts = record.params["name"].split("/")
        assert len(parts) == 2
        assert all(parts)


def test_short_fixed_count_values_are_resynthesized():
    route = RouteSpec(
        method="get",
        path="/triple/{name*3}",
        validate={"params": {
            "type": "object",
            "properties": {"name": {"type": "string", "maxLength": 2}},
            "required": ["name"],
        }},
        params=["name"],
    )

    for record in generator(permutations=20).generate_route(route):
        parts = record.params["name"].split("/")
        assert len(parts) == 3
        assert all(parts)


def test_unbounded_wildcard_params_may_be_empty():
    route = RouteSpec(method="get", path="/files/{rest*}", params=["rest"])

    for record in generator(permutations=10).generate_route(route):
        assert isinstance(record.params["rest"], str)


def test_empty_required_param_is_resynthesized():
    route = RouteSpec(
        method="get",
        path="/users/{id}",
        validate={"params": {"type": "object", "properties": {"id": {"type": "string", "maxLength": 0}}}},
        params=["id"],
    )

    for record in generator(permutations=5).generate_route(route):
        assert record.params["id"]


def test_param_values_are_percent_encoded():
    route = RouteSpec(method="get", path="/users/{id}", params=["id"])
    options = {"replace": lambda value, schema, constraints: "a b/c" if constraints.type == "string" else value}

    records = generator(permutations=2, **options).generate_route(route)

    assert [record.params["id"] for record in records] == ["a%20b%2Fc", "a%20b%2Fc"]
    assert unquote(records[0].params["id"]) == "a b/c"


def test_headers_and_cookies_only_when_declared():
    state = {
        "type": "object",
        "properties": {
            "session": {"type": "string"},
            "loose": {"type": "string", "x-strict-header": False},
        },
        "required": ["session", "loose"],
    }
    headers = {"type": "object", "properties": {"x-api-key": {"type": "string"}}, "required": ["x-api-key"]}
    route = RouteSpec(method="get", path="/me", validate={"state": state, "headers": headers})
    options = {"replace": lambda value, schema, constraints: 'a b;"c,\x01d' if constraints.type == "string" else value}

    record = generator(permutations=1, **options).generate_route(route)[0]

    assert record.state == {"session": "abcd", "loose": "a bcd"}
    assert record.headers == {"x-api-key": 'a b;"c,\x01d'}


def test_corpus_substitution_in_payload(store):
    corpus = store.load(["string.generic"])
    payload = {
        "type": "object",
        "properties": {"q": {"type": "string", "minLength": 15, "maxLength": 15}},
        "required": ["q"],
    }
    route = RouteSpec(method="post", path="/search", validate={"payload": payload})

    for record in generator(corpus, permutations=10).generate_route(route):
        assert record.payload["q"] in corpus.string[15]


def test_validate_data_passes_for_generated_values():
    route = RouteSpec(
        method="post",
        path="/users/{id}",
        validate={
            "payload": USER_PAYLOAD,
            "params": {"type": "object", "properties": {"id": {"type": "string", "minLength": 2}}, "required": ["id"]},
            "query": {"type": "object", "properties": {"page": {"type": "integer", "minimum": 1}}},
        },
        params=["id"],
    )

    records = generator(permutations=10, validate_data=True).generate_route(route)

    assert len(records) == 10


def test_validate_data_raises_on_mismatch():
    route = RouteSpec(method="post", path="/users", validate={"payload": USER_PAYLOAD})
    options = {"replace": lambda value, schema, constraints: 12345 if constraints.type == "string" else value}

    with pytest.raises(SchemaMismatchError) as exc_info:
        generator(permutations=1, validate_data=True, **options).generate_route(route)

    message = str(exc_info.value)
    assert message.startswith("/users[post]:\n")
    assert "\npayload: {" in message
    assert "\nSchema: {" in message
    assert exc_info.value.details["field"] == "payload"
