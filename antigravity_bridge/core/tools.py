"""Tool declaration conversion for Antigravity.

OpenAI format:
    [{"type": "function", "function": {"name": "...", "description": "...", "parameters": {...}}}]

Antigravity format (one entry per tool):
    [{"functionDeclarations": [{"name": "...", "description": "...", "parameters": {...}}]}]
"""

import logging
from typing import Any, Dict, List, Optional

from openai.types.chat import ChatCompletionToolParam

from .schema import sanitize_schema

logger = logging.getLogger(__name__)

DEFAULT_FUNCTION_NAME = "unknown_function"


def _convert_parameters(parameters: Any) -> Dict[str, Any]:
    if not isinstance(parameters, dict) or not parameters:
        return {"type": "object", "properties": {}}
    return sanitize_schema(parameters)


def _declaration(name: Any, description: Any, parameters: Any) -> Dict[str, Any]:
    return {
        "name": name or DEFAULT_FUNCTION_NAME,
        "description": description or "",
        "parameters": _convert_parameters(parameters),
    }


def convert_tools_to_antigravity(
    tools: Optional[List[ChatCompletionToolParam]],
) -> List[Dict[str, Any]]:
    """Convert OpenAI-style tools to Antigravity functionDeclarations.

    Also accepts bare declarations (``name`` plus ``parameters`` or
    ``input_schema``) and tools already wrapped in ``functionDeclarations``.
    Parameter schemas are sanitized; the caller's objects are not modified.

    Args:
        tools: Tool definitions

    Returns:
        One ``{"functionDeclarations": [...]}`` entry per declaration
    """
    if not tools:
        return []

    converted = []
    for tool in tools:
        if not isinstance(tool, dict):
            logger.debug(f"Skipping non-dict tool definition: {type(tool).__name__}")
            continue

        if isinstance(tool.get("function"), dict):
            func = tool["function"]
            converted.append(
                _declaration(func.get("name"), func.get("description"), func.get("parameters"))
            )
        elif isinstance(tool.get("functionDeclarations"), list):
            for decl in tool["functionDeclarations"]:
                if not isinstance(decl, dict):
                    continue
                converted.append(
                    _declaration(decl.get("name"), decl.get("description"), decl.get("parameters"))
                )
        elif "name" in tool:
            params = tool.get("parameters") or tool.get("input_schema") or tool.get("inputSchema")
            converted.append(_declaration(tool.get("name"), tool.get("description"), params))
        else:
            logger.debug("Skipping tool definition without a function declaration")

    return [{"functionDeclarations": [decl]} for decl in converted]
