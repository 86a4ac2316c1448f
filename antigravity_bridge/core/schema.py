"""JSON Schema sanitizing for Antigravity function declarations.

The backend accepts only a small JSON Schema dialect: six primitive types,
a handful of keywords and no references or unions. ``sanitize_schema``
rewrites arbitrary tool parameter schemas into that dialect:

- ``$ref`` becomes a described object placeholder (never resolved)
- ``anyOf``/``oneOf``/``allOf`` are merged into a single node
- ``const`` becomes a single-value ``enum``
- type arrays and unknown type names are narrowed to a known type
- unsupported keywords, invalid enum members, dangling ``required`` entries,
  unknown formats and non-finite bounds are dropped
- cycles are cut with a ``[Circular Reference]`` placeholder

Every returned node has a known ``type``; object nodes always carry
``properties`` and array nodes always carry ``items``.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Set

from ..constants import (
    CIRCULAR_REFERENCE_DESCRIPTION,
    REFERENCE_DESCRIPTION_PREFIX,
    SCHEMA_ALLOWED_FIELDS,
    SCHEMA_ALLOWED_FORMATS,
    SCHEMA_NUMERIC_FIELDS,
    SCHEMA_TYPE_SYNONYMS,
    SCHEMA_TYPES,
    SCHEMA_UNION_KEYS,
)

logger = logging.getLogger(__name__)


def is_valid_enum_value(value: Any) -> bool:
    """Enum members must be non-null and not blank strings."""
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    return True


def _enum_key(value: Any) -> Any:
    # True == 1 in Python; booleans must stay distinct from numbers
    return (isinstance(value, bool), value)


def infer_type(value: Any) -> str:
    """Infer the schema type of a literal value."""
    if value is None:
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def map_type_name(type_name: Any) -> str:
    """Map a type name onto a known type, via the synonym table if needed."""
    if not isinstance(type_name, str):
        return "string"
    lowered = type_name.strip().lower()
    if lowered in SCHEMA_TYPES:
        return lowered
    return SCHEMA_TYPE_SYNONYMS.get(lowered, "string")


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _description_of(schema: Dict[str, Any]) -> Optional[str]:
    value = schema.get("description")
    if not value:
        return None
    return value if isinstance(value, str) else str(value)


def _ensure_consistent(node: Dict[str, Any]) -> Dict[str, Any]:
    """Make a node's keywords agree with its type."""
    node_type = node.get("type")
    if node_type not in SCHEMA_TYPES:
        node_type = "string"
        node["type"] = node_type

    if node_type == "object":
        if not isinstance(node.get("properties"), dict):
            node["properties"] = {}
        node.pop("items", None)
        if "required" in node:
            required = [r for r in node["required"] if r in node["properties"]]
            if required:
                node["required"] = required
            else:
                del node["required"]
    else:
        node.pop("properties", None)
        node.pop("required", None)
        if node_type == "array":
            if not isinstance(node.get("items"), dict):
                node["items"] = {"type": "string"}
        else:
            node.pop("items", None)
    return node


class _SchemaSanitizer:
    """Single-use traversal state for one sanitize call."""

    def __init__(self) -> None:
        # ids of the nodes on the current traversal path
        self._path: Set[int] = set()

    def node(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        marker = id(schema)
        if marker in self._path:
            logger.debug("Cut circular schema reference")
            return _ensure_consistent(
                {"type": "object", "description": CIRCULAR_REFERENCE_DESCRIPTION}
            )
        self._path.add(marker)
        try:
            return _ensure_consistent(self._convert(schema))
        finally:
            self._path.discard(marker)

    def _convert(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        ref = schema.get("$ref")
        if ref:
            return {"type": "object", "description": f"{REFERENCE_DESCRIPTION_PREFIX}{ref}"}

        for union_key in SCHEMA_UNION_KEYS:
            if isinstance(schema.get(union_key), list):
                return self._merge_union(schema, union_key)

        if "const" in schema:
            return self._convert_const(schema)

        return self._convert_plain(schema)

    def _merge_union(self, schema: Dict[str, Any], union_key: str) -> Dict[str, Any]:
        options = [opt for opt in schema[union_key] if isinstance(opt, dict)]
        description = _description_of(schema)

        if not options:
            result: Dict[str, Any] = {"type": "string"}
            if description:
                result["description"] = description
            return result

        merged_properties: Dict[str, Any] = {}
        merged_required: List[str] = []
        merged_enum: List[Any] = []
        seen_enum_keys: List[Any] = []
        merged_types: List[str] = []
        has_properties = False

        for option in options:
            cleaned = self.node(option)

            option_type = cleaned.get("type")
            if option_type and option_type not in merged_types:
                merged_types.append(option_type)

            if isinstance(cleaned.get("properties"), dict):
                merged_properties.update(cleaned["properties"])
                has_properties = True

            if union_key == "allOf":
                for name in cleaned.get("required", []):
                    if name not in merged_required:
                        merged_required.append(name)

            for value in cleaned.get("enum", []):
                key = _enum_key(value)
                if is_valid_enum_value(value) and key not in seen_enum_keys:
                    seen_enum_keys.append(key)
                    merged_enum.append(value)

        result = {}
        if has_properties:
            result["type"] = "object"
            result["properties"] = merged_properties
            required = [name for name in merged_required if name in merged_properties]
            if required:
                result["required"] = required
        elif merged_enum:
            result["type"] = "string"
            result["enum"] = merged_enum
        elif len(merged_types) == 1:
            result["type"] = merged_types[0]
        elif merged_types:
            if "string" in merged_types:
                result["type"] = "string"
            elif "object" in merged_types:
                result["type"] = "object"
            else:
                result["type"] = merged_types[0]
        else:
            return self.node(options[0])

        if description:
            result["description"] = description
        return result

    def _convert_const(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        value = schema["const"]
        result: Dict[str, Any] = {"type": infer_type(value)}
        if is_valid_enum_value(value):
            result["enum"] = [value]
        description = _description_of(schema)
        if description:
            result["description"] = description
        return result

    def _convert_plain(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}

        raw_type = schema.get("type")
        if isinstance(raw_type, list):
            names = [t.strip().lower() for t in raw_type if isinstance(t, str)]
            known = [t for t in names if t in SCHEMA_TYPES]
            result["type"] = known[0] if known else "string"
            if "null" in names:
                result["nullable"] = True
        elif raw_type:
            result["type"] = map_type_name(raw_type)

        pending_required: Optional[List[str]] = None
        for key, value in schema.items():
            if key not in SCHEMA_ALLOWED_FIELDS or key == "type":
                continue

            if key == "properties":
                if isinstance(value, dict):
                    properties = self._convert_properties(value)
                    if properties:
                        result["properties"] = properties
            elif key == "items":
                items = value
                if isinstance(items, list):
                    items = next((item for item in items if isinstance(item, dict)), None)
                if isinstance(items, dict):
                    result["items"] = self.node(items)
            elif key == "enum":
                if isinstance(value, list):
                    members = [v for v in value if is_valid_enum_value(v)]
                    if members:
                        result["enum"] = members
            elif key == "required":
                if isinstance(value, list):
                    pending_required = [
                        r for r in value if isinstance(r, str) and r.strip() != ""
                    ]
            elif key == "description":
                description = _description_of(schema)
                if description:
                    result["description"] = description
            elif key == "nullable":
                if "nullable" not in result:
                    result["nullable"] = bool(value)
            elif key in SCHEMA_NUMERIC_FIELDS:
                if _is_finite_number(value):
                    result[key] = value
            elif key == "format":
                if isinstance(value, str) and value in SCHEMA_ALLOWED_FORMATS:
                    result["format"] = value

        if pending_required and isinstance(result.get("properties"), dict):
            required: List[str] = []
            for name in pending_required:
                if name in result["properties"] and name not in required:
                    required.append(name)
            if required:
                result["required"] = required

        if "type" not in result:
            if "properties" in result:
                result["type"] = "object"
            elif "items" in result:
                result["type"] = "array"
            elif "enum" in result:
                result["type"] = infer_type(result["enum"][0])
            else:
                result["type"] = "string"

        return result

    def _convert_properties(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        converted: Dict[str, Any] = {}
        for name, value in properties.items():
            if not name or not isinstance(name, str):
                continue
            if not isinstance(value, dict):
                continue
            converted[name] = self.node(value)
        return converted


def sanitize_schema(schema: Any) -> Any:
    """Sanitize a JSON Schema into the dialect accepted by the backend.

    Never raises on malformed input. Non-dict input is returned unchanged.

    Args:
        schema: Arbitrary JSON-like schema

    Returns:
        Sanitized schema node
    """
    if not isinstance(schema, dict):
        return schema
    return _SchemaSanitizer().node(schema)
