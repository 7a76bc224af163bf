"""
Schema Normalization Tests
--------------------------
Tests cover:
- The four normalization rules
- Union flattening (enum merge, required intersection, first-seen wins)
- Gemini keyword scrubbing
"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.schema import (
    clean_schema_for_gemini,
    extract_enum_values,
    merge_property_schemas,
    normalize_parameters_schema,
    normalize_tool_parameters,
)


def _identity(schema):
    return schema


class TestNormalizationRules:

    def test_object_schema_scrubbed_only(self):
        schema = {
            "type": "object",
            "properties": {"path": {"type": "string", "minLength": 1}},
            "required": ["path"],
            "additionalProperties": False,
        }
        result = normalize_parameters_schema(schema)
        assert result == {
            "type": "object",
            "properties": {"path": {"type": "string"}},
            "required": ["path"],
        }

    def test_missing_type_synthesized(self):
        schema = {"properties": {"q": {"type": "string"}}}
        assert normalize_parameters_schema(schema, _identity) == {
            "properties": {"q": {"type": "string"}},
            "type": "object",
        }

    def test_required_only_is_object_shaped(self):
        result = normalize_parameters_schema({"required": ["q"]}, _identity)
        assert result["type"] == "object"

    def test_no_argument_schema_unchanged(self):
        assert normalize_parameters_schema({}, _identity) == {}
        assert normalize_parameters_schema({"type": "object"}) == {"type": "object"}

    def test_scrubber_always_applied(self):
        calls = []

        def scrub(schema):
            calls.append(schema)
            return schema

        for schema in ({}, {"type": "object", "properties": {}}, {"properties": {}}, {"anyOf": []}):
            normalize_parameters_schema(schema, scrub)
        assert len(calls) == 4

    def test_tool_wrapper(self, make_tool):
        tool, _ = make_tool("demo", parameters={"properties": {"a": {"type": "string"}}})
        normalized = normalize_tool_parameters(tool)
        assert normalized.parameters["type"] == "object"
        assert normalized.name == "demo"
        # Original tool untouched
        assert "type" not in tool.parameters


class TestUnionFlattening:

    def test_enum_union(self):
        schema = {
            "anyOf": [
                {"type": "object", "properties": {"action": {"type": "string", "enum": ["x", "y"]}}},
                {"type": "object", "properties": {"action": {"type": "string", "enum": ["y", "z"]}}},
            ]
        }
        result = normalize_parameters_schema(schema, _identity)
        assert result["type"] == "object"
        assert result["properties"]["action"] == {"type": "string", "enum": ["x", "y", "z"]}

    def test_const_counts_as_enum(self):
        schema = {
            "oneOf": [
                {"properties": {"action": {"const": "start"}, "cmd": {"type": "string"}}, "required": ["action", "cmd"]},
                {"properties": {"action": {"const": "stop"}, "id": {"type": "string"}}, "required": ["action"]},
            ]
        }
        result = normalize_parameters_schema(schema)
        assert result["properties"]["action"] == {"type": "string", "enum": ["start", "stop"]}
        assert result["required"] == ["action"]
        assert list(result["properties"]) == ["action", "cmd", "id"]

    def test_required_intersection(self):
        schema = {
            "anyOf": [
                {"properties": {"a": {}, "b": {}}, "required": ["a", "b"]},
                {"properties": {"a": {}}, "required": ["a"]},
            ]
        }
        assert normalize_parameters_schema(schema, _identity)["required"] == ["a"]

    def test_top_level_required_kept_verbatim(self):
        schema = {
            "required": ["b"],
            "anyOf": [
                {"properties": {"a": {}, "b": {}}, "required": ["a"]},
                {"properties": {"b": {}}},
            ],
        }
        assert normalize_parameters_schema(schema, _identity)["required"] == ["b"]

    def test_no_common_required_omitted(self):
        schema = {
            "anyOf": [
                {"properties": {"a": {}}, "required": ["a"]},
                {"properties": {"b": {}}, "required": ["b"]},
            ]
        }
        assert "required" not in normalize_parameters_schema(schema, _identity)

    def test_non_object_alternatives_ignored_for_required(self):
        schema = {
            "anyOf": [
                {"type": "string"},
                {"properties": {"a": {}}, "required": ["a"]},
            ]
        }
        assert normalize_parameters_schema(schema, _identity)["required"] == ["a"]

    def test_first_seen_wins_for_non_enum(self):
        schema = {
            "anyOf": [
                {"properties": {"n": {"type": "integer", "description": "first"}}},
                {"properties": {"n": {"type": "string", "description": "second"}}},
            ]
        }
        assert normalize_parameters_schema(schema, _identity)["properties"]["n"] == {
            "type": "integer",
            "description": "first",
        }

    def test_empty_schema_kept_as_first_seen(self):
        schema = {
            "anyOf": [
                {"properties": {"x": {}}},
                {"properties": {"x": {"type": "string"}}},
            ]
        }
        assert normalize_parameters_schema(schema, _identity)["properties"]["x"] == {}

    def test_ref_alternatives_resolved(self):
        """Unions of $ref alternatives, as emitted for Union[A, B] models."""
        schema = {
            "$defs": {
                "Read": {
                    "type": "object",
                    "properties": {"action": {"const": "read"}, "path": {"type": "string"}},
                    "required": ["action", "path"],
                },
                "List": {
                    "type": "object",
                    "properties": {"action": {"const": "list"}, "dir": {"type": "string"}},
                    "required": ["action"],
                },
            },
            "anyOf": [{"$ref": "#/$defs/Read"}, {"$ref": "#/$defs/List"}],
        }
        assert normalize_parameters_schema(schema) == {
            "type": "object",
            "properties": {
                "action": {"type": "string", "enum": ["read", "list"]},
                "path": {"type": "string"},
                "dir": {"type": "string"},
            },
            "required": ["action"],
        }

    def test_nested_refs_still_resolve(self):
        schema = {
            "definitions": {
                "Mode": {"enum": ["fast", "slow"]},
                "Run": {"properties": {"mode": {"$ref": "#/definitions/Mode"}}},
            },
            "oneOf": [{"$ref": "#/definitions/Run"}],
        }
        result = normalize_parameters_schema(schema)
        assert result["properties"]["mode"] == {"enum": ["fast", "slow"], "type": "string"}
        assert "definitions" not in result

    def test_union_title_and_description_kept(self):
        schema = {
            "title": "Browser",
            "description": "Control the browser",
            "anyOf": [{"properties": {"url": {"type": "string"}}}],
        }
        result = normalize_parameters_schema(schema, _identity)
        assert result["title"] == "Browser"
        assert result["description"] == "Control the browser"
        assert result["additionalProperties"] is True

    def test_top_level_type_and_union_flattened(self):
        schema = {"type": "object", "anyOf": [{"properties": {"a": {"type": "string"}}}]}
        result = normalize_parameters_schema(schema)
        assert "anyOf" not in result
        assert result["properties"] == {"a": {"type": "string"}}


class TestMergePropertySchemas:

    def test_metadata_carried_forward(self):
        merged = merge_property_schemas(
            {"enum": ["a"], "description": ""},
            {"enum": ["b"], "description": "mode", "title": "Mode", "default": "a"},
        )
        assert merged == {
            "description": "mode",
            "title": "Mode",
            "default": "a",
            "type": "string",
            "enum": ["a", "b"],
        }

    def test_mixed_types_have_no_type(self):
        merged = merge_property_schemas({"enum": ["a"]}, {"const": 1})
        assert merged == {"enum": ["a", 1]}

    def test_booleans_distinct_from_integers(self):
        merged = merge_property_schemas({"enum": [1, 2]}, {"enum": [True, False]})
        assert merged == {"enum": [1, 2, True, False]}

    def test_equal_literals_deduplicated(self):
        merged = merge_property_schemas({"enum": [True, "a"]}, {"enum": [True, "a", 0]})
        assert merged == {"enum": [True, "a", 0]}

    def test_one_side_enum(self):
        merged = merge_property_schemas({"type": "string"}, {"enum": ["a", "b"]})
        assert merged == {"type": "string", "enum": ["a", "b"]}

    def test_extract_from_nested_union(self):
        assert extract_enum_values({"anyOf": [{"const": "a"}, {"enum": ["b", "c"]}]}) == ["a", "b", "c"]
        assert extract_enum_values({"type": "string"}) is None


class TestCleanSchemaForGemini:

    def test_removes_unsupported_keywords_recursively(self):
        schema = {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "string", "format": "uri", "pattern": "^http"},
                },
            },
            "additionalProperties": False,
        }
        assert clean_schema_for_gemini(schema) == {
            "type": "object",
            "properties": {"items": {"type": "array", "items": {"type": "string"}}},
        }

    def test_property_named_like_keyword_kept(self):
        schema = {"type": "object", "properties": {"format": {"type": "string"}, "pattern": {"type": "string"}}}
        assert clean_schema_for_gemini(schema) == schema

    def test_const_to_enum(self):
        assert clean_schema_for_gemini({"const": "x"}) == {"enum": ["x"], "type": "string"}

    def test_literal_union_collapses(self):
        schema = {"anyOf": [{"const": "a"}, {"const": "b"}], "description": "mode"}
        assert clean_schema_for_gemini(schema) == {"description": "mode", "enum": ["a", "b"], "type": "string"}

    def test_nullable_union(self):
        schema = {"anyOf": [{"type": "string"}, {"type": "null"}]}
        assert clean_schema_for_gemini(schema) == {"type": "string", "nullable": True}

    def test_type_list_with_null(self):
        assert clean_schema_for_gemini({"type": ["integer", "null"]}) == {"type": "integer", "nullable": True}

    def test_refs_inlined(self):
        schema = {
            "type": "object",
            "properties": {"target": {"$ref": "#/$defs/Target", "description": "where"}},
            "$defs": {"Target": {"type": "string", "maxLength": 10}},
        }
        assert clean_schema_for_gemini(schema) == {
            "type": "object",
            "properties": {"target": {"type": "string", "description": "where"}},
        }

    def test_recursive_ref_does_not_loop(self):
        schema = {
            "type": "object",
            "properties": {"node": {"$ref": "#/definitions/Node"}},
            "definitions": {
                "Node": {"type": "object", "properties": {"child": {"$ref": "#/definitions/Node"}}},
            },
        }
        cleaned = clean_schema_for_gemini(schema)
        assert cleaned["properties"]["node"]["properties"]["child"] == {}

    def test_non_dict_passthrough(self):
        assert clean_schema_for_gemini(None) is None
        assert clean_schema_for_gemini([1]) == [1]
