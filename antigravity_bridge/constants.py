"""Wire-format constants for the Antigravity request envelope.

Contains the fixed tokens, defaults and schema vocabularies the backend
expects in converted requests.
"""

from typing import Dict, FrozenSet, List

# User agent reported in every envelope
USER_AGENT = "antigravity"

# Request id prefix (ids look like agent-<uuid4>)
REQUEST_ID_PREFIX = "agent"

# ============================================================================
# System Instruction
# ============================================================================

FALLBACK_SYSTEM_INSTRUCTION = "You are a helpful assistant."
SYSTEM_INSTRUCTION_SEPARATOR = "\n\n"

# ============================================================================
# Generation Config
# ============================================================================

DEFAULT_STOP_SEQUENCES: List[str] = [
    "<|user|>",
    "<|bot|>",
    "<|context_request|>",
    "<|endoftext|>",
]
DEFAULT_THINKING_BUDGET = 1024
DEFAULT_TOP_P = 0.85
DEFAULT_TOP_K = 50
DEFAULT_TEMPERATURE = 1.0
DEFAULT_MAX_TOKENS = 8096
CANDIDATE_COUNT = 1

# Function calling mode sent in toolConfig
FUNCTION_CALLING_MODE = "VALIDATED"

# ============================================================================
# Model Policy Defaults
# ============================================================================

THINKING_MODEL_SUFFIXES: List[str] = ["-thinking"]
THINKING_MODELS: List[str] = ["gemini-2.5-pro", "rev19-uic3-1p", "gpt-oss-120b-medium"]
THINKING_MODEL_PREFIXES: List[str] = ["gemini-3-pro-"]
SIGNATURE_EXCLUDED_MARKERS: List[str] = ["claude"]
TEXT_SIGNATURE_MARKERS: List[str] = ["gemini-3"]

# ============================================================================
# Signature Cache
# ============================================================================

DEFAULT_SIGNATURE_CACHE_SIZE = 1000

# ============================================================================
# Schema Dialect
# ============================================================================

SCHEMA_TYPES: FrozenSet[str] = frozenset(
    {"string", "number", "integer", "boolean", "array", "object"}
)

SCHEMA_TYPE_SYNONYMS: Dict[str, str] = {
    "int": "integer",
    "float": "number",
    "double": "number",
    "bool": "boolean",
    "str": "string",
    "list": "array",
    "dict": "object",
    "map": "object",
    "any": "string",
    "null": "string",
}

SCHEMA_ALLOWED_FIELDS: FrozenSet[str] = frozenset(
    {
        "type",
        "properties",
        "items",
        "required",
        "description",
        "enum",
        "nullable",
        "format",
        "minimum",
        "maximum",
        "minItems",
        "maxItems",
    }
)

SCHEMA_NUMERIC_FIELDS = ("minimum", "maximum", "minItems", "maxItems")

SCHEMA_ALLOWED_FORMATS: FrozenSet[str] = frozenset(
    {"date-time", "date", "time", "email", "uri", "uuid"}
)

SCHEMA_UNION_KEYS = ("anyOf", "oneOf", "allOf")

CIRCULAR_REFERENCE_DESCRIPTION = "[Circular Reference]"
REFERENCE_DESCRIPTION_PREFIX = "Reference: "
