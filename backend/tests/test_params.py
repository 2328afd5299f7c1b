"""
Tests for parameter classification and wildcard splitting.
"""
import random
from urllib.parse import unquote

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from routefuzz.services.params import (
    classify_params,
    decode_component,
    encode_param,
    fill_path,
    param_names,
    sanitize_cookie,
    split_segments,
)


def classify(path):
    names = param_names(path)
    return classify_params(path, names)[names[0]]


def test_required_param():
    spec = classify("/users/{id}")

    assert spec.required and not spec.optional and not spec.wildcard
    assert spec.fixed_count is None
    assert spec.validation == {"type": "string", "minLength": 1}
    assert not spec.allows_empty


def test_optional_param():
    spec = classify("/items/{id?}")

    assert spec.optional and not spec.wildcard and not spec.required
    assert spec.validation == {"type": "string"}
    assert spec.allows_empty


def test_unbounded_wildcard():
    spec = classify("/files/{rest*}")

    assert spec.wildcard and spec.fixed_count is None
    assert spec.validation == {"type": "string"}
    assert spec.allows_empty


def test_fixed_count_wildcard():
    spec = classify("/pair/{name*2}")

    assert spec.wildcard and spec.fixed_count == 2
    assert spec.validation == {"type": "string", "minLength": 6}
    assert not spec.allows_empty


def test_starlette_convertors():
    assert classify("/static/{file_path:path}").wildcard
    assert classify("/items/{item_id:int}").required


def test_exactly_one_kind():
    for path in ("/a/{x}", "/a/{x?}", "/a/{x*}", "/a/{x*3}", "/a/{x:path}"):
        spec = classify(path)
        assert [spec.required, spec.optional, spec.wildcard].count(True) == 1


def test_declared_validation_wins():
    specs = classify_params("/users/{id}", ["id"], {"properties": {"id": {"type": "integer"}}})

    assert specs["id"].validation == {"type": "integer"}


def test_missing_param_raises():
    with pytest.raises(ValueError):
        classify_params("/users/{id}", ["name"])


def test_param_names():
    assert param_names("/a/{x}/b/{y*2}/{x}") == ["x", "y"]


def test_split_into_two_segments():
    value = "abcdefg"

    encoded = split_segments(value, 2, random.Random(1))
    parts = encoded.split("/")

    assert len(parts) == 2
    assert all(parts)
    assert "".join(unquote(part) for part in parts) == value


@settings(max_examples=200, deadline=None)
@given(value=st.text(min_size=1, max_size=60), data=st.data(), seed=st.integers(0, 2 ** 32))
def test_split_preserves_value(value, data, seed):
    count = data.draw(st.integers(min_value=1, max_value=len(value)))

    parts = split_segments(value, count, random.Random(seed)).split("/")

    assert len(parts) == count
    assert all(parts)
    assert "".join(unquote(part) for part in parts) == value


@settings(max_examples=100, deadline=None)
@given(value=st.text(min_size=1, max_size=40), seed=st.integers(0, 2 ** 32))
def test_random_count_stays_in_range(value, seed):
    parts = split_segments(value, rng=random.Random(seed)).split("/")

    assert 1 <= len(parts) <= len(value)
    assert "".join(unquote(part) for part in parts) == value


def test_split_edge_cases():
    assert split_segments("") == ""
    assert split_segments("ab", 5, random.Random(0)) == "a/b"
    assert split_segments("a/b", 1) == "a%2Fb"


def test_decode_component():
    assert decode_component("a%20b") == "a b"
    assert decode_component("100%") == "100%"
    assert decode_component("%zz") == "%zz"
    assert decode_component("%ff") == "%ff"


def test_encode_param_single_segment():
    spec = classify("/users/{id}")

    assert encode_param("a b/c", spec) == "a%20b%2Fc"
    assert encode_param("a%20b", spec) == "a%20b"
    assert encode_param("100%", spec) == "100%25"
    assert encode_param(True, spec) == "true"
    assert encode_param(42, spec) == "42"
    assert encode_param("-_.!~*'()", spec) == "-_.!~*'()"


def test_encode_param_keeps_existing_segments():
    spec = classify("/pair/{name*2}")

    assert encode_param("ab/c d", spec) == "ab/c%20d"


def test_encode_param_splits_wildcards():
    spec = classify("/pair/{name*2}")

    parts = encode_param("abcdefg", spec, random.Random(3)).split("/")

    assert len(parts) == 2
    assert "".join(parts) == "abcdefg"


def test_fill_path():
    assert fill_path("/a/{x}/{y*2}", {"x": "1", "y": "p/q"}) == "/a/1/p/q"
    assert fill_path("/items/{id?}", {"id": ""}) == "/items/"
    assert fill_path("/files/{file_path:path}", {"file_path": "a/b"}) == "/files/a/b"
    assert fill_path("/u/{id}", {"id": r"\1"}) == r"/u/\1"


def test_sanitize_cookie_strict():
    assert sanitize_cookie("se ss;", 'a b"c;d,e\\f') == ("sess", "abcdef")


def test_sanitize_cookie_lenient():
    assert sanitize_cookie("id", 'a b"c;d,e\x01', strict=False) == ("id", "a bcde")
