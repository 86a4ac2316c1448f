"""Antigravity request envelope assembly.

Combines converted contents, sanitized tool declarations, generation config
and session identifiers into the body posted to the backend:

    {
        "project": ..., "requestId": ..., "model": ..., "userAgent": "antigravity",
        "request": {
            "contents": [...], "systemInstruction": {...}, "tools": [...],
            "toolConfig": {...}, "generationConfig": {...}, "sessionId": ...
        }
    }
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

from ..config import BridgeConfig, get_config
from ..constants import (
    CANDIDATE_COUNT,
    FALLBACK_SYSTEM_INSTRUCTION,
    FUNCTION_CALLING_MODE,
    REQUEST_ID_PREFIX,
    USER_AGENT,
)
from .converter import MessageConverter, extract_system_instruction, has_assistant_tool_calls
from .policy import ModelPolicy
from .signature_cache import SignatureCache, get_signature_cache
from .tools import convert_tools_to_antigravity

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}-{uuid.uuid4()}"


@dataclass(frozen=True)
class SessionToken:
    """Project and session identifiers supplied by the token provider."""

    project_id: Optional[str]
    session_id: Optional[str]

    @classmethod
    def from_value(cls, value: Any) -> "SessionToken":
        """Accept a SessionToken, a mapping, or an object with id attributes.

        Mappings may use camelCase (projectId/sessionId) or snake_case keys.
        """
        if isinstance(value, SessionToken):
            return value
        if value is None:
            return cls(project_id=None, session_id=None)
        if isinstance(value, Mapping):
            project_id = value.get("projectId", value.get("project_id"))
            session_id = value.get("sessionId", value.get("session_id"))
        else:
            project_id = getattr(value, "project_id", None) or getattr(value, "projectId", None)
            session_id = getattr(value, "session_id", None) or getattr(value, "sessionId", None)
        return cls(project_id=project_id, session_id=session_id)


def _system_instruction(text: str) -> Dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


class RequestAssembler:
    """Builds Antigravity request envelopes."""

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        cache: Optional[SignatureCache] = None,
        policy: Optional[ModelPolicy] = None,
        request_id_factory: Optional[Callable[[], str]] = None,
    ):
        self.config = config if config is not None else get_config()
        self.cache = cache if cache is not None else get_signature_cache()
        self.policy = policy if policy is not None else ModelPolicy.from_config(self.config.policy)
        self.request_id_factory = request_id_factory or generate_request_id
        self.converter = MessageConverter(cache=self.cache, policy=self.policy)

    def build_generation_config(
        self,
        parameters: Optional[Mapping[str, Any]],
        enable_thinking: bool,
        model: str,
    ) -> Dict[str, Any]:
        """Build generationConfig from request parameters and configured defaults.

        Args:
            parameters: Per-request sampling parameters (OpenAI names)
            enable_thinking: Whether extended thinking is requested
            model: Target model name

        Returns:
            generationConfig dict
        """
        parameters = parameters or {}
        defaults = self.config.defaults

        def pick(*keys: str, default: Any) -> Any:
            for key in keys:
                value = parameters.get(key)
                if value is not None:
                    return value
            return default

        generation_config: Dict[str, Any] = {
            "topP": pick("top_p", default=defaults.top_p),
            "topK": pick("top_k", default=defaults.top_k),
            "temperature": pick("temperature", default=defaults.temperature),
            "candidateCount": CANDIDATE_COUNT,
            "maxOutputTokens": pick(
                "max_tokens", "max_completion_tokens", default=defaults.max_tokens
            ),
            "stopSequences": list(self.config.stop_sequences),
            "thinkingConfig": {
                "includeThoughts": enable_thinking,
                "thinkingBudget": self.config.thinking_budget if enable_thinking else 0,
            },
        }
        # topP together with thinking is rejected for these models
        if enable_thinking and self.policy.is_signature_excluded(model):
            del generation_config["topP"]
        return generation_config

    def assemble(
        self,
        messages: List[ChatCompletionMessageParam],
        model: str,
        parameters: Optional[Mapping[str, Any]] = None,
        tools: Optional[List[ChatCompletionToolParam]] = None,
        token: Any = None,
    ) -> Dict[str, Any]:
        """Assemble an envelope from an OpenAI-style chat request.

        Args:
            messages: Chat history including system messages
            model: Target model name
            parameters: Sampling parameters (top_p, top_k, temperature, max_tokens)
            tools: OpenAI-style tool definitions
            token: Project/session identifiers (SessionToken or mapping)

        Returns:
            Request envelope dict
        """
        messages = list(messages or [])
        session = SessionToken.from_value(token)

        enable_thinking = self.policy.should_enable_thinking(
            model, has_assistant_tool_calls(messages)
        )
        system_text = extract_system_instruction(messages, self.config.system_instruction)

        request = {
            "contents": self.converter.convert(messages, model),
            "systemInstruction": _system_instruction(system_text),
            "tools": convert_tools_to_antigravity(tools),
            "toolConfig": {"functionCallingConfig": {"mode": FUNCTION_CALLING_MODE}},
            "generationConfig": self.build_generation_config(parameters, enable_thinking, model),
            "sessionId": session.session_id,
        }
        logger.debug(
            f"Assembled request for {model}: {len(request['contents'])} turns, "
            f"{len(request['tools'])} tools, thinking={enable_thinking}"
        )
        return self._envelope(request, model, session)

    def assemble_from_gemini(
        self,
        gemini_request: Optional[Mapping[str, Any]],
        model: str,
        token: Any = None,
    ) -> Dict[str, Any]:
        """Wrap an already native (Gemini-shaped) request in an envelope.

        Contents, tools, toolConfig and safetySettings pass through unchanged;
        a default systemInstruction and generationConfig are filled in when
        absent.
        """
        gemini_request = gemini_request if isinstance(gemini_request, Mapping) else {}
        session = SessionToken.from_value(token)

        contents = gemini_request.get("contents")
        system_instruction = gemini_request.get("systemInstruction")
        if not isinstance(system_instruction, dict):
            system_instruction = _system_instruction(
                self.config.system_instruction or FALLBACK_SYSTEM_INSTRUCTION
            )

        generation_config = gemini_request.get("generationConfig")
        if not generation_config:
            # Native histories are opaque, so assume they may hold tool calls
            enable_thinking = self.policy.should_enable_thinking(model, has_tool_calls=True)
            generation_config = self.build_generation_config({}, enable_thinking, model)

        request: Dict[str, Any] = {
            "contents": contents if isinstance(contents, list) else [],
            "systemInstruction": system_instruction,
        }
        tools = gemini_request.get("tools")
        if isinstance(tools, list):
            request["tools"] = tools
        for key in ("toolConfig", "safetySettings"):
            if gemini_request.get(key) is not None:
                request[key] = gemini_request[key]
        request["generationConfig"] = generation_config
        request["sessionId"] = session.session_id

        return self._envelope(request, model, session)

    def _envelope(
        self, request: Dict[str, Any], model: str, session: SessionToken
    ) -> Dict[str, Any]:
        return {
            "project": session.project_id,
            "requestId": self.request_id_factory(),
            "request": request,
            "model": model,
            "userAgent": USER_AGENT,
        }


def generate_request_body(
    messages: List[ChatCompletionMessageParam],
    model: str,
    parameters: Optional[Mapping[str, Any]] = None,
    tools: Optional[List[ChatCompletionToolParam]] = None,
    token: Any = None,
) -> Dict[str, Any]:
    """Assemble an envelope with the configured defaults and shared cache."""
    return RequestAssembler().assemble(messages, model, parameters, tools, token)


def generate_request_body_from_gemini(
    gemini_request: Optional[Mapping[str, Any]], model: str, token: Any = None
) -> Dict[str, Any]:
    """Wrap a native request with the configured defaults and shared cache."""
    return RequestAssembler().assemble_from_gemini(gemini_request, model, token)
