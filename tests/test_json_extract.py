from __future__ import annotations

import pytest

from deepdive.errors import ParseFailure, ProviderUnavailable
from deepdive.services.json_extract import extract_json, strip_code_fences


def test_plain_object():
    assert extract_json('{"summary": "ok", "bullets": []}') == {"summary": "ok", "bullets": []}


def test_object_inside_code_fence():
    text = '```json\n{"score": 0.7, "label": "Mixed"}\n```'
    assert extract_json(text) == {"score": 0.7, "label": "Mixed"}


def test_object_surrounded_by_prose():
    text = 'Here is my assessment:\n{"score": 0.4, "label": "Low"}\nLet me know if you need more.'
    assert extract_json(text)["label"] == "Low"


def test_nested_braces_and_braces_inside_strings():
    text = 'Result: {"a": {"b": "a } brace"}, "c": "{not json"} trailing }'
    assert extract_json(text) == {"a": {"b": "a } brace"}, "c": "{not json"}


def test_skips_unparseable_spans_until_a_valid_one():
    text = "Template {like this} first, then {\"summary\": \"real\"}"
    assert extract_json(text) == {"summary": "real"}


def test_array_kind():
    text = 'Topics: ["transit", "city budget"] done'
    assert extract_json(text, kind="array") == ["transit", "city budget"]


def test_array_kind_ignores_objects_without_arrays():
    with pytest.raises(ParseFailure):
        extract_json('{"topics": "transit"}', kind="array")


@pytest.mark.parametrize("text", ["", "   ", None, "no json here at all", "{unterminated"])
def test_failure_raises_parse_failure(text):
    with pytest.raises(ParseFailure):
        extract_json(text)


def test_parse_failure_degrades_like_provider_unavailable():
    assert issubclass(ParseFailure, ProviderUnavailable)


def test_strip_code_fences_without_language_tag():
    assert strip_code_fences("```\n[1, 2]\n```") == "[1, 2]"
    assert strip_code_fences("no fences") == "no fences"
