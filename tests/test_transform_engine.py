"""Tests for field extraction and value transforms."""

import pytest

from catalog_autoconfig.runtime.transform_engine import (
    HEX_PREFIXED_DECODER,
    TransformEngine,
    decode_hex_prefixed,
    parse_path,
    resolve_path,
)
from catalog_autoconfig.types import FieldMapping, TransformRule, TransformType


@pytest.fixture
def engine():
    return TransformEngine()


class TestPaths:
    def test_parse_path(self):
        assert parse_path("$.data.items[0].id") == ("data", "items", 0, "id")
        assert parse_path("$") == ()
        assert parse_path(None) == ()

    def test_resolve_missing_segments(self):
        payload = {"data": {"items": [{"id": 1}]}}

        assert resolve_path(payload, "$.data.items[0].id") == 1
        assert resolve_path(payload, "$.data.items[3].id") is None
        assert resolve_path(payload, "$.data.nope") is None


class TestExtract:
    def test_extract_all(self, engine):
        payload = {"data": {"shows": {"edges": [{"_id": "abc", "name": "One Piece", "score": 9.1}]}}}
        mappings = [
            FieldMapping(source_path="$._id", target_field="Id"),
            FieldMapping(source_path="$.name", target_field="Title"),
            FieldMapping(source_path="$.score", target_field="Score"),
        ]

        assert engine.extract_all(payload, mappings, "$.data.shows.edges") == [
            {"Id": "abc", "Title": "One Piece", "Score": "9.1"}
        ]

    def test_single_object_target(self, engine):
        payload = {"data": {"show": {"_id": "abc"}}}
        result = engine.extract_all(payload, [FieldMapping(source_path="$._id", target_field="Id")], "$.data.show")
        assert result == [{"Id": "abc"}]

    def test_items_without_values_are_dropped(self, engine):
        payload = {"items": [{"id": 1}, {"other": 2}, None]}
        result = engine.extract_all(payload, [FieldMapping(source_path="$.id", target_field="Id")], "$.items")
        assert result == [{"Id": "1"}]

    def test_missing_array_path(self, engine):
        mappings = [FieldMapping(source_path="$.id", target_field="Id")]
        assert engine.extract_all({"data": None}, mappings, "$.data.items") == []


class TestTransforms:
    def test_base64(self, engine):
        assert engine.apply_transform("aGVsbG8", TransformType.DECODE_BASE64) == "hello"
        assert engine.apply_transform("not base64!", TransformType.DECODE_BASE64) == "not base64!"

    def test_hex_and_url_decode(self, engine):
        assert engine.apply_transform("68656c6c6f", TransformType.DECODE_HEX) == "hello"
        assert engine.apply_transform("a%20b+c", TransformType.URL_DECODE) == "a b c"

    def test_prepend_host(self, engine):
        assert engine.apply_transform("/img/1.jpg", TransformType.PREPEND_HOST, "https://cdn.x/") == "https://cdn.x/img/1.jpg"
        assert engine.apply_transform("https://a/b", TransformType.PREPEND_HOST, "https://cdn.x") == "https://a/b"

    def test_regex_extract(self, engine):
        assert engine.apply_transform("id=42;", TransformType.REGEX_EXTRACT, r"id=(\d+)") == "42"
        assert engine.apply_transform("nothing", TransformType.REGEX_EXTRACT, r"id=(\d+)") == "nothing"

    def test_none_passes_through(self, engine):
        assert engine.apply_transform(None, TransformType.DECODE_HEX) is None


class TestDecoders:
    def test_hex_prefixed(self):
        encoded = "-" + "https://example.com/v.m3u8".encode().hex()
        assert decode_hex_prefixed(encoded) == "https://example.com/v.m3u8"
        assert decode_hex_prefixed("https://plain") == "https://plain"

    def test_registered_by_default(self, engine):
        assert engine.has_decoder(HEX_PREFIXED_DECODER)
        assert engine.has_decoder("HEX-PREFIXED")

    def test_custom_decoder(self, engine):
        engine.register_decoder("reverse", lambda value: value[::-1])
        rule = TransformRule(name="reverse")
        assert engine.apply_rule("abc", rule) == "cba"

    def test_unknown_decoder_returns_value(self, engine):
        assert engine.apply_decoder("abc", "missing") == "abc"

    def test_regex_rule_with_replacement(self, engine):
        rule = TransformRule(name="https", type=TransformType.REGEX_EXTRACT, pattern=r"^//", replacement="https://")
        assert engine.apply_rule("//cdn.x/a.mp4", rule) == "https://cdn.x/a.mp4"
