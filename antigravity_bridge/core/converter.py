"""OpenAI chat messages to Antigravity contents conversion.

Folds an OpenAI-style message history into backend turns:

- system messages are left out (see ``extract_system_instruction``)
- user messages become ``user`` turns with text and inline images
- assistant messages become ``model`` turns with text and functionCall parts
- tool results become functionResponse parts, batched into one ``user`` turn

Thought signatures are re-attached from the signature cache so follow-up
requests are accepted by the backend.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from openai.types.chat import ChatCompletionMessageParam

from ..constants import FALLBACK_SYSTEM_INSTRUCTION, SYSTEM_INSTRUCTION_SEPARATOR
from .content import (
    extract_assistant_text,
    extract_content,
    extract_system_text,
    normalize_tool_output,
)
from .policy import ModelPolicy
from .signature_cache import SignatureCache, get_signature_cache

logger = logging.getLogger(__name__)


def _valid_call_id(call_id: Any) -> Optional[str]:
    """Tool call ids are only usable as non-empty strings."""
    if isinstance(call_id, str) and call_id:
        return call_id
    return None


class TurnSequence:
    """Ordered backend turns under construction.

    Tracks function-call ids as parts are added so tool results can find
    the name of the call they answer.
    """

    def __init__(self) -> None:
        self._turns: List[Dict[str, Any]] = []
        self._call_names: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, role: str, parts: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Start a new turn."""
        turn = {"role": role, "parts": list(parts)}
        self._turns.append(turn)
        self._remember_calls(parts)
        return turn

    def last(self) -> Optional[Dict[str, Any]]:
        return self._turns[-1] if self._turns else None

    def extend_last(self, parts: List[Dict[str, Any]]) -> None:
        """Add parts to the most recent turn."""
        if not self._turns:
            raise IndexError("no turn to extend")
        self._turns[-1]["parts"].extend(parts)
        self._remember_calls(parts)

    def resolve_function_name(self, call_id: Optional[str]) -> str:
        """Name of the function call with this id, or "" if none was seen."""
        if not isinstance(call_id, str) or not call_id:
            return ""
        return self._call_names.get(call_id, "")

    def to_list(self) -> List[Dict[str, Any]]:
        return self._turns

    def _remember_calls(self, parts: Iterable[Dict[str, Any]]) -> None:
        for part in parts:
            func_call = part.get("functionCall")
            if isinstance(func_call, dict) and _valid_call_id(func_call.get("id")):
                self._call_names[func_call["id"]] = func_call.get("name", "")


def _last_turn_has_role(turns: TurnSequence, role: str) -> bool:
    last = turns.last()
    return last is not None and last.get("role") == role


def parse_tool_arguments(arguments: Any, call_id: Optional[str] = None) -> Dict[str, Any]:
    """Parse tool call arguments from a JSON string or mapping.

    Malformed JSON is logged and replaced with an empty object.
    """
    if isinstance(arguments, dict):
        return dict(arguments)
    if isinstance(arguments, str):
        if not arguments.strip():
            return {}
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse arguments for tool call {call_id!r}: {e}")
            return {}
        if isinstance(parsed, dict):
            return parsed
        logger.warning(f"Tool call {call_id!r} arguments are not a JSON object, using {{}}")
        return {}
    return {}


def _read_tool_call(call: Any) -> Dict[str, Any]:
    """Normalize a tool call given as a dict or an SDK object."""
    if isinstance(call, dict):
        func = call.get("function") or {}
        if isinstance(func, dict):
            name = func.get("name", call.get("name", ""))
            arguments = func.get("arguments", call.get("arguments"))
        else:
            name = getattr(func, "name", call.get("name", ""))
            arguments = getattr(func, "arguments", call.get("arguments"))
        signature = call.get("thought_signature") or call.get("thoughtSignature")
        call_id = call.get("id")
    else:
        func = getattr(call, "function", None)
        if func is not None:
            name = getattr(func, "name", "")
            arguments = getattr(func, "arguments", None)
        else:
            name = getattr(call, "name", "")
            arguments = getattr(call, "arguments", None)
        signature = getattr(call, "thought_signature", None) or getattr(
            call, "thoughtSignature", None
        )
        call_id = getattr(call, "id", None)

    return {
        "id": _valid_call_id(call_id),
        "name": name or "",
        "arguments": arguments,
        "signature": signature if isinstance(signature, str) else None,
    }


def _message_field(message: Any, key: str, default: Any = None) -> Any:
    if isinstance(message, dict):
        return message.get(key, default)
    return getattr(message, key, default)


def has_assistant_tool_calls(messages: Iterable[Any]) -> bool:
    """Whether any assistant message in the history carries tool calls."""
    for message in messages or []:
        if _message_field(message, "role") != "assistant":
            continue
        tool_calls = _message_field(message, "tool_calls")
        if isinstance(tool_calls, list) and tool_calls:
            return True
    return False


def extract_system_instruction(
    messages: Iterable[Any], default_instruction: Optional[str] = None
) -> str:
    """Build the system instruction text.

    The default instruction comes first, followed by the text of every
    system message, joined by blank lines. Falls back to a generic
    instruction when both are empty.
    """
    system_texts = []
    for message in messages or []:
        if _message_field(message, "role") != "system":
            continue
        text = extract_system_text(_message_field(message, "content"))
        if text:
            system_texts.append(text)

    system_content = SYSTEM_INSTRUCTION_SEPARATOR.join(system_texts)
    pieces = [p for p in (default_instruction, system_content) if p]
    return SYSTEM_INSTRUCTION_SEPARATOR.join(pieces) or FALLBACK_SYSTEM_INSTRUCTION


class MessageConverter:
    """Converts OpenAI chat messages into Antigravity contents."""

    def __init__(
        self,
        cache: Optional[SignatureCache] = None,
        policy: Optional[ModelPolicy] = None,
    ):
        self.cache = cache if cache is not None else get_signature_cache()
        self.policy = policy if policy is not None else ModelPolicy.from_config()

    def convert(
        self, messages: List[ChatCompletionMessageParam], model: str
    ) -> List[Dict[str, Any]]:
        """Convert a message history into backend turns.

        Args:
            messages: OpenAI-style chat messages (system messages are skipped)
            model: Target model name, used for signature policy

        Returns:
            List of ``{"role": "user"|"model", "parts": [...]}`` turns
        """
        turns = TurnSequence()
        for message in messages or []:
            role = _message_field(message, "role")
            if role == "system":
                continue
            if role == "user":
                self._handle_user(message, turns)
            elif role == "assistant":
                self._handle_assistant(message, turns, model)
            elif role == "tool":
                self._handle_tool(message, turns)
            else:
                logger.debug(f"Ignoring message with unsupported role {role!r}")
        return turns.to_list()

    def _handle_user(self, message: Any, turns: TurnSequence) -> None:
        extracted = extract_content(_message_field(message, "content"))
        turns.append("user", [{"text": extracted.text}, *extracted.images])

    def _handle_assistant(self, message: Any, turns: TurnSequence, model: str) -> None:
        text = extract_assistant_text(_message_field(message, "content"))
        has_text = text.strip() != ""
        tool_calls = _message_field(message, "tool_calls") or []
        if not isinstance(tool_calls, list):
            tool_calls = []

        call_parts = self._convert_tool_calls(tool_calls, model)

        # Continuation of a model turn that was split into text and tool calls
        if call_parts and not has_text and _last_turn_has_role(turns, "model"):
            turns.extend_last(call_parts)
            return

        parts: List[Dict[str, Any]] = []
        if has_text:
            parts.append(self._text_part(text, model))
        parts.extend(call_parts)

        if not parts:
            logger.debug("Skipping assistant message with no text or tool calls")
            return
        turns.append("model", parts)

    def _text_part(self, text: str, model: str) -> Dict[str, Any]:
        if not self.policy.allows_text_signatures(model):
            return {"text": text}
        entry = self.cache.get_for_text(text)
        if entry is None:
            return {"text": text}
        # Send the exact text the signature was issued for
        return {"text": entry.text, "thoughtSignature": entry.signature}

    def _convert_tool_calls(self, tool_calls: List[Any], model: str) -> List[Dict[str, Any]]:
        allow_signatures = self.policy.allows_signatures(model)
        parts = []
        for raw_call in tool_calls:
            call = _read_tool_call(raw_call)
            func_call: Dict[str, Any] = {
                "id": call["id"],
                "name": call["name"],
                "args": parse_tool_arguments(call["arguments"], call["id"]),
            }
            part: Dict[str, Any] = {"functionCall": func_call}

            if allow_signatures:
                signature = call["signature"] or self.cache.get(call["id"])
                if signature:
                    part["thoughtSignature"] = signature
            parts.append(part)
        return parts

    def _handle_tool(self, message: Any, turns: TurnSequence) -> None:
        call_id = _valid_call_id(_message_field(message, "tool_call_id"))
        response_part = {
            "functionResponse": {
                "id": call_id,
                "name": turns.resolve_function_name(call_id),
                "response": {"output": normalize_tool_output(_message_field(message, "content"))},
            }
        }

        last = turns.last()
        if (
            last is not None
            and last.get("role") == "user"
            and any("functionResponse" in part for part in last["parts"])
        ):
            turns.extend_last([response_part])
        else:
            turns.append("user", [response_part])
