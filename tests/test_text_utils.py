import json

import pytest

from docchat.src.utils.text_utils import VALID_KEY_RE, flatten_metadata, restore_metadata_keys, sanitize_key, sanitize_metadata_keys


@pytest.mark.parametrize(
    "key",
    [
        "og:description",
        "2nd-author",
        "pdf.info.Title",
        "名前",
        "",
        "x" * 400,
        "with space",
    ],
)
def test_sanitized_keys_are_valid_and_reversible(key):
    metadata = {key: "value", "source": "https://example.com"}

    sanitized, mappings = sanitize_metadata_keys(metadata)

    assert all(VALID_KEY_RE.fullmatch(k) for k in sanitized)
    assert key in mappings
    assert restore_metadata_keys(sanitized, mappings) == metadata


def test_valid_keys_are_left_alone():
    sanitized, mappings = sanitize_metadata_keys({"source": "a", "page_label": "1"})

    assert sanitized == {"source": "a", "page_label": "1"}
    assert mappings == {}


def test_renamed_key_never_shadows_an_existing_one():
    metadata = {"a-b": "renamed", "a_b": "original"}

    sanitized, mappings = sanitize_metadata_keys(metadata)

    assert sanitized["a_b"] == "original"
    assert mappings["a-b"] != "a_b"
    assert sanitized[mappings["a-b"]] == "renamed"
    assert restore_metadata_keys(sanitized, mappings) == metadata


def test_leading_digit_gets_underscore_prefix():
    assert sanitize_key("123abc") == "_123abc"
    assert len(sanitize_key("a" * 500)) == 231


def test_flatten_nested_and_non_string_values():
    flat = flatten_metadata({"pdf": {"info": {"Title": "T"}}, "page": 3, "tags": ["a", "b"], "missing": None})

    assert flat == {"pdf.info.Title": "T", "page": "3", "tags": '["a", "b"]', "missing": ""}


def test_restore_without_mappings_is_identity():
    assert restore_metadata_keys({"source": "x"}, None) == {"source": "x"}


def test_dotted_flat_key_and_nested_path_both_survive():
    metadata = {"a.b": "flat", "a": {"b": "nested"}}

    sanitized, mappings = sanitize_metadata_keys(metadata)
    restored = restore_metadata_keys(sanitized, mappings)

    assert restored["a.b"] == "flat"
    assert json.loads(restored["a"]) == {"b": "nested"}
    assert len(sanitized) == 2


def test_nested_path_listed_first_does_not_overwrite_later_flat_key():
    flat = flatten_metadata({"a": {"b": "nested"}, "a.b": "flat"})

    assert flat == {"a": '{"b": "nested"}', "a.b": "flat"}


def test_empty_mapping_is_kept():
    metadata = {"source": "x", "extra": {}}

    sanitized, mappings = sanitize_metadata_keys(metadata)

    assert restore_metadata_keys(sanitized, mappings) == {"source": "x", "extra": "{}"}
