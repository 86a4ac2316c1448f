"""Request translation core: signature cache, schema sanitizer, converter, assembler."""

from .content import ExtractedContent, extract_content
from .converter import (
    MessageConverter,
    TurnSequence,
    extract_system_instruction,
    has_assistant_tool_calls,
)
from .policy import ModelPolicy
from .request import (
    RequestAssembler,
    SessionToken,
    generate_request_body,
    generate_request_body_from_gemini,
)
from .schema import sanitize_schema
from .signature_cache import (
    SignatureCache,
    SignatureEntry,
    clear_signature_cache,
    get_signature_cache,
    normalize_text_for_signature,
    record_response_signatures,
)
from .tools import convert_tools_to_antigravity

__all__ = [
    "ExtractedContent",
    "MessageConverter",
    "ModelPolicy",
    "RequestAssembler",
    "SessionToken",
    "SignatureCache",
    "SignatureEntry",
    "TurnSequence",
    "clear_signature_cache",
    "convert_tools_to_antigravity",
    "extract_content",
    "extract_system_instruction",
    "generate_request_body",
    "generate_request_body_from_gemini",
    "get_signature_cache",
    "has_assistant_tool_calls",
    "normalize_text_for_signature",
    "record_response_signatures",
    "sanitize_schema",
]
