"""
Tool Schema Normalization
-------------------------
Rewrites a tool's parameter schema into a form every provider accepts.

Provider quirks:
- OpenAI rejects function schemas whose top level is not `type: "object"`
  (root unions compile to `{"anyOf": [...]}` without a type).
- Gemini rejects a top-level `type` next to `anyOf`, and a long list of
  JSON Schema keywords (scrubbed by clean_schema_for_gemini).

Normalization rules, in order:
1. type + properties, no union        -> scrub only
2. no type, object-shaped, no union   -> add type: object, scrub
3. anyOf/oneOf union                  -> flatten into one object schema, scrub
4. anything else                      -> scrub only
"""

from typing import Any, Callable, Dict, List, Optional
import logging

from .registry import Tool

logger = logging.getLogger("toolgate.tools.schema")

SchemaScrubber = Callable[[Dict[str, Any]], Any]

UNION_KEYS = ("anyOf", "oneOf")
DEFINITION_KEYS = ("definitions", "$defs")

UNSUPPORTED_SCHEMA_KEYWORDS = frozenset({
    "$schema",
    "$id",
    "$defs",
    "definitions",
    "additionalProperties",
    "patternProperties",
    "examples",
    "format",
    "pattern",
    "minLength",
    "maxLength",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minItems",
    "maxItems",
    "uniqueItems",
    "minProperties",
    "maxProperties",
})

_NESTED_SCHEMA_KEYS = ("items", "additionalItems", "not", "allOf", "anyOf", "oneOf")


# =============================================================================
# Scrubbing
# =============================================================================

def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "null"
    if isinstance(value, list):
        return "array"
    return "object"


def infer_enum_type(values: List[Any]) -> Optional[str]:
    """Single primitive JSON type shared by every value, if any."""
    types = {_json_type(value) for value in values}
    if types == {"integer", "number"}:
        return "number"
    if len(types) == 1:
        (only,) = types
        if only in ("string", "integer", "number", "boolean"):
            return only
    return None


def _is_null_schema(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    if schema.get("type") == "null":
        return True
    if "const" in schema and schema["const"] is None:
        return True
    return isinstance(schema.get("enum"), list) and schema["enum"] == [None]


def _literal_values(schema: Any) -> Optional[List[Any]]:
    if not isinstance(schema, dict):
        return None
    if "const" in schema:
        return [schema["const"]]
    if isinstance(schema.get("enum"), list):
        return list(schema["enum"])
    return None


def _same_literal(left: Any, right: Any) -> bool:
    # True == 1 in Python; booleans never match numbers
    return isinstance(left, bool) == isinstance(right, bool) and left == right


def _unique(values: List[Any]) -> List[Any]:
    seen: List[Any] = []
    for value in values:
        if not any(_same_literal(value, existing) for existing in seen):
            seen.append(value)
    return seen


def _collect_defs(schema: Dict[str, Any]) -> Dict[str, Any]:
    defs: Dict[str, Any] = {}
    for key in DEFINITION_KEYS:
        if isinstance(schema.get(key), dict):
            defs.update(schema[key])
    return defs


def _deref(entry: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    """Inline a local $ref alternative (pydantic emits unions this way)."""
    seen = set()
    while isinstance(entry.get("$ref"), str) and entry["$ref"] not in seen:
        ref = entry["$ref"]
        seen.add(ref)
        target = _resolve_ref(ref, defs)
        if target is None:
            break
        rest = {key: value for key, value in entry.items() if key != "$ref"}
        entry = {**target, **rest}
    return entry


def _resolve_ref(ref: str, defs: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for prefix in ("#/$defs/", "#/definitions/"):
        if ref.startswith(prefix):
            target = defs.get(ref[len(prefix):])
            return target if isinstance(target, dict) else None
    return None


def _simplify_union(cleaned: Dict[str, Any], key: str) -> None:
    variants = cleaned.get(key)
    if not isinstance(variants, list):
        return
    non_null = [variant for variant in variants if not _is_null_schema(variant)]
    nullable = len(non_null) != len(variants)

    literals = [_literal_values(variant) for variant in non_null]
    if non_null and all(values is not None for values in literals):
        values = _unique([value for group in literals for value in group])
        cleaned.pop(key)
        cleaned["enum"] = values
        inferred = infer_enum_type(values)
        if inferred and "type" not in cleaned:
            cleaned["type"] = inferred
    elif nullable and len(non_null) == 1 and isinstance(non_null[0], dict):
        cleaned.pop(key)
        for sub_key, sub_value in non_null[0].items():
            cleaned.setdefault(sub_key, sub_value)
    elif nullable:
        cleaned[key] = non_null
    else:
        return
    if nullable:
        cleaned["nullable"] = True


def _clean(node: Any, defs: Dict[str, Any], ref_stack: frozenset) -> Any:
    if isinstance(node, list):
        return [_clean(item, defs, ref_stack) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str):
        target = _resolve_ref(ref, defs)
        rest = {key: value for key, value in node.items() if key != "$ref"}
        if target is not None and ref not in ref_stack:
            return _clean({**target, **rest}, defs, ref_stack | {ref})
        node = rest

    cleaned: Dict[str, Any] = {}
    for key, value in node.items():
        if key in UNSUPPORTED_SCHEMA_KEYWORDS:
            continue
        if key == "const":
            if "enum" not in node:
                cleaned["enum"] = [value]
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {
                name: _clean(sub_schema, defs, ref_stack)
                for name, sub_schema in value.items()
            }
        elif key in _NESTED_SCHEMA_KEYS:
            cleaned[key] = _clean(value, defs, ref_stack)
        else:
            cleaned[key] = value

    if "enum" in cleaned and "type" not in cleaned and isinstance(cleaned["enum"], list):
        inferred = infer_enum_type(cleaned["enum"])
        if inferred:
            cleaned["type"] = inferred

    for key in UNION_KEYS:
        _simplify_union(cleaned, key)

    schema_type = cleaned.get("type")
    if isinstance(schema_type, list):
        non_null_types = [entry for entry in schema_type if entry != "null"]
        if len(non_null_types) == 1:
            cleaned["type"] = non_null_types[0]
            if len(schema_type) > 1:
                cleaned["nullable"] = True

    return cleaned


def clean_schema_for_gemini(schema: Any) -> Any:
    """
    Strip keywords Gemini's function-declaration dialect rejects.

    Local $refs are inlined, const becomes a one-value enum, literal-only
    unions collapse into an enum and null variants become `nullable`.
    """
    if not isinstance(schema, dict):
        return schema
    return _clean(schema, _collect_defs(schema), frozenset())


# =============================================================================
# Union flattening
# =============================================================================

def extract_enum_values(schema: Any) -> Optional[List[Any]]:
    """Literal values of a schema: enum, const, or a union of those."""
    if not isinstance(schema, dict):
        return None
    if isinstance(schema.get("enum"), list):
        return list(schema["enum"])
    if "const" in schema:
        return [schema["const"]]
    variants = _union_variants(schema)
    if variants is not None:
        values: List[Any] = []
        for variant in variants:
            values.extend(extract_enum_values(variant) or [])
        return values or None
    return None


def merge_property_schemas(existing: Any, incoming: Any) -> Any:
    """
    Merge two alternatives' schemas for the same property.

    Enumerations merge into the union of their values; otherwise the
    first-seen schema wins.
    """
    if existing is None:
        return incoming
    if incoming is None:
        return existing

    existing_enum = extract_enum_values(existing)
    incoming_enum = extract_enum_values(incoming)
    if existing_enum is None and incoming_enum is None:
        return existing

    values = _unique((existing_enum or []) + (incoming_enum or []))
    merged: Dict[str, Any] = {}
    for source in (existing, incoming):
        if not isinstance(source, dict):
            continue
        for key in ("title", "description", "default"):
            if key not in merged and source.get(key) not in (None, ""):
                merged[key] = source[key]
    inferred = infer_enum_type(values)
    if inferred:
        merged["type"] = inferred
    merged["enum"] = values
    return merged


def _union_key(schema: Dict[str, Any]) -> Optional[str]:
    for key in UNION_KEYS:
        if isinstance(schema.get(key), list):
            return key
    return None


def _union_variants(schema: Dict[str, Any]) -> Optional[List[Any]]:
    key = _union_key(schema)
    return schema[key] if key else None


def flatten_union_schema(schema: Dict[str, Any], variant_key: str) -> Dict[str, Any]:
    """Collapse an anyOf/oneOf of object shapes into one object schema."""
    merged_properties: Dict[str, Any] = {}
    required_counts: Dict[str, int] = {}
    object_variants = 0
    defs = _collect_defs(schema)

    for entry in schema[variant_key]:
        if not isinstance(entry, dict):
            continue
        entry = _deref(entry, defs)
        props = entry.get("properties")
        if not isinstance(props, dict):
            continue
        object_variants += 1
        for key, value in props.items():
            if key not in merged_properties:
                merged_properties[key] = value
            else:
                merged_properties[key] = merge_property_schemas(merged_properties[key], value)
        required = entry.get("required") if isinstance(entry.get("required"), list) else []
        for key in _unique([key for key in required if isinstance(key, str)]):
            required_counts[key] = required_counts.get(key, 0) + 1

    base_required = None
    if isinstance(schema.get("required"), list):
        base_required = [key for key in schema["required"] if isinstance(key, str)]

    if base_required:
        merged_required = base_required
    elif object_variants > 0:
        merged_required = [
            key for key, count in required_counts.items() if count == object_variants
        ]
    else:
        merged_required = None

    flattened: Dict[str, Any] = {"type": "object"}
    if isinstance(schema.get("title"), str):
        flattened["title"] = schema["title"]
    if isinstance(schema.get("description"), str):
        flattened["description"] = schema["description"]
    flattened["properties"] = merged_properties or schema.get("properties") or {}
    if merged_required:
        flattened["required"] = merged_required
    flattened["additionalProperties"] = schema.get("additionalProperties", True)
    # Property schemas may still point into the definitions
    for key in DEFINITION_KEYS:
        if key in schema:
            flattened[key] = schema[key]
    return flattened


def normalize_parameters_schema(
    schema: Dict[str, Any],
    scrubber: SchemaScrubber = clean_schema_for_gemini,
) -> Any:
    variant_key = _union_key(schema)

    if "type" in schema and "properties" in schema and variant_key is None:
        return scrubber(schema)

    object_shaped = isinstance(schema.get("properties"), dict) or isinstance(schema.get("required"), list)
    if "type" not in schema and object_shaped and variant_key is None:
        return scrubber({**schema, "type": "object"})

    if variant_key is None:
        return scrubber(schema)

    return scrubber(flatten_union_schema(schema, variant_key))


def normalize_tool_parameters(
    tool: Tool,
    scrubber: SchemaScrubber = clean_schema_for_gemini,
) -> Tool:
    """Return the tool with a provider-portable parameter schema."""
    if not isinstance(tool.parameters, dict):
        return tool
    if _union_key(tool.parameters):
        logger.debug(f"Flattening union schema for {tool.name}", extra={"tool_name": tool.name})
    return tool.with_parameters(normalize_parameters_schema(tool.parameters, scrubber))
