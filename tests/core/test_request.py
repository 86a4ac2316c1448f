"""Unit tests for request envelope assembly."""

import re

import pytest
import yaml

from antigravity_bridge.config import BridgeConfig, GenerationDefaults
from antigravity_bridge.core.request import (
    RequestAssembler,
    SessionToken,
    generate_request_body,
    generate_request_body_from_gemini,
    generate_request_id,
)
from antigravity_bridge.core.signature_cache import get_signature_cache

TOKEN = {"projectId": "proj-1", "sessionId": "sess-1"}
STOP_SEQUENCES = ["<|user|>", "<|bot|>", "<|context_request|>", "<|endoftext|>"]


@pytest.fixture
def assembler(cache):
    config = BridgeConfig(system_instruction="You are Antigravity.")
    return RequestAssembler(config=config, cache=cache, request_id_factory=lambda: "req-1")


class TestSessionToken:
    """Tests for SessionToken.from_value."""

    def test_camel_case_mapping(self):
        """Should read camelCase token keys."""
        assert SessionToken.from_value(TOKEN) == SessionToken("proj-1", "sess-1")

    def test_snake_case_mapping(self):
        """Should read snake_case token keys."""
        token = SessionToken.from_value({"project_id": "p", "session_id": "s"})
        assert token == SessionToken("p", "s")

    def test_object_and_none(self):
        """Should read token objects and accept None."""
        class Token:
            project_id = "p"
            session_id = "s"

        assert SessionToken.from_value(Token()) == SessionToken("p", "s")
        assert SessionToken.from_value(None) == SessionToken(None, None)


class TestAssemble:
    """Tests for RequestAssembler.assemble."""

    def test_end_to_end(self, assembler):
        """Should build the full envelope."""
        messages = [
            {"role": "system", "content": "Be concise."},
            {"role": "user", "content": "Hi"},
        ]
        envelope = assembler.assemble(messages, "gemini-2.5-flash", token=TOKEN)

        assert envelope["project"] == "proj-1"
        assert envelope["requestId"] == "req-1"
        assert envelope["model"] == "gemini-2.5-flash"
        assert envelope["userAgent"] == "antigravity"

        request = envelope["request"]
        system_text = request["systemInstruction"]["parts"][0]["text"]
        assert request["systemInstruction"]["role"] == "user"
        assert system_text == "You are Antigravity.\n\nBe concise."
        assert request["contents"] == [{"role": "user", "parts": [{"text": "Hi"}]}]
        assert request["tools"] == []
        assert request["toolConfig"] == {"functionCallingConfig": {"mode": "VALIDATED"}}
        assert request["sessionId"] == "sess-1"

    def test_generation_defaults(self, assembler):
        """Should fill generation defaults."""
        envelope = assembler.assemble([{"role": "user", "content": "Hi"}], "gemini-2.5-flash")
        assert envelope["request"]["generationConfig"] == {
            "topP": 0.85,
            "topK": 50,
            "temperature": 1.0,
            "candidateCount": 1,
            "maxOutputTokens": 8096,
            "stopSequences": STOP_SEQUENCES,
            "thinkingConfig": {"includeThoughts": False, "thinkingBudget": 0},
        }

    def test_request_parameters_override_defaults(self, assembler):
        """Should let request parameters override defaults."""
        parameters = {"top_p": 0.5, "top_k": 10, "temperature": 0.0, "max_tokens": 100}
        envelope = assembler.assemble([], "gemini-2.5-flash", parameters=parameters)
        config = envelope["request"]["generationConfig"]
        assert config["topP"] == 0.5
        assert config["topK"] == 10
        assert config["temperature"] == 0.0
        assert config["maxOutputTokens"] == 100

    def test_none_parameters_fall_back(self, assembler):
        """Should treat None parameters as absent."""
        parameters = {"temperature": None, "max_tokens": None, "max_completion_tokens": 256}
        config = assembler.build_generation_config(parameters, False, "gemini-2.5-flash")
        assert config["temperature"] == 1.0
        assert config["maxOutputTokens"] == 256

    def test_thinking_model(self, assembler):
        """Should enable thinking for thinking models."""
        envelope = assembler.assemble([{"role": "user", "content": "Hi"}], "gemini-3-pro-high")
        config = envelope["request"]["generationConfig"]
        assert config["thinkingConfig"] == {"includeThoughts": True, "thinkingBudget": 1024}
        assert config["topP"] == 0.85

    def test_excluded_vendor_thinking_drops_top_p(self, assembler):
        """Should drop topP for excluded models while thinking."""
        envelope = assembler.assemble(
            [{"role": "user", "content": "Hi"}], "claude-sonnet-4-5-thinking"
        )
        config = envelope["request"]["generationConfig"]
        assert config["thinkingConfig"]["includeThoughts"] is True
        assert "topP" not in config

    def test_excluded_vendor_with_tool_history_disables_thinking(self, assembler):
        """Should disable thinking for excluded models with tool history."""
        messages = [
            {"role": "user", "content": "ls"},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {"id": "c1", "type": "function", "function": {"name": "ls", "arguments": "{}"}}
                ],
            },
            {"role": "tool", "tool_call_id": "c1", "content": "a.txt"},
        ]
        envelope = assembler.assemble(messages, "claude-sonnet-4-5-thinking")
        config = envelope["request"]["generationConfig"]
        assert config["thinkingConfig"] == {"includeThoughts": False, "thinkingBudget": 0}
        assert config["topP"] == 0.85

    def test_tools_are_converted(self, assembler):
        """Should convert and sanitize tools."""
        tools = [
            {
                "type": "function",
                "function": {
                    "name": "ls",
                    "parameters": {
                        "type": "object",
                        "properties": {"dir": {"type": ["string", "null"]}},
                    },
                },
            }
        ]
        envelope = assembler.assemble([], "gemini-2.5-flash", tools=tools)
        assert envelope["request"]["tools"] == [
            {
                "functionDeclarations": [
                    {
                        "name": "ls",
                        "description": "",
                        "parameters": {
                            "type": "object",
                            "properties": {"dir": {"type": "string", "nullable": True}},
                        },
                    }
                ]
            }
        ]

    def test_uses_injected_cache(self, assembler, cache):
        """Should read signatures from the injected cache."""
        cache.put("c1", "sig-1")
        messages = [
            {
                "role": "assistant",
                "tool_calls": [{"id": "c1", "function": {"name": "f", "arguments": "{}"}}],
            }
        ]
        envelope = assembler.assemble(messages, "gemini-3-pro-high")
        assert envelope["request"]["contents"][0]["parts"][0]["thoughtSignature"] == "sig-1"

    def test_configured_budget_and_stop_sequences(self, cache):
        """Should use configured budget, stop sequences and defaults."""
        config = BridgeConfig(
            thinking_budget=2048,
            stop_sequences=["<|stop|>"],
            defaults=GenerationDefaults(top_k=40),
        )
        assembler = RequestAssembler(config=config, cache=cache)
        generation = assembler.build_generation_config({}, True, "gemini-2.5-pro")
        assert generation["thinkingConfig"]["thinkingBudget"] == 2048
        assert generation["stopSequences"] == ["<|stop|>"]
        assert generation["topK"] == 40

    def test_fallback_system_instruction(self, cache):
        """Should fall back to the generic system instruction."""
        assembler = RequestAssembler(config=BridgeConfig(), cache=cache)
        envelope = assembler.assemble([{"role": "user", "content": "Hi"}], "gemini-2.5-flash")
        parts = envelope["request"]["systemInstruction"]["parts"]
        assert parts == [{"text": "You are a helpful assistant."}]


class TestAssembleFromGemini:
    """Tests for the native pass-through."""

    def test_passes_fields_through(self, assembler):
        """Should pass native fields through unchanged."""
        native = {
            "contents": [{"role": "user", "parts": [{"text": "Hi"}]}],
            "systemInstruction": {"parts": [{"text": "native system"}]},
            "tools": [{"functionDeclarations": [{"name": "f"}]}],
            "toolConfig": {"functionCallingConfig": {"mode": "AUTO"}},
            "safetySettings": [{"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "OFF"}],
            "generationConfig": {"temperature": 0.2},
        }
        envelope = assembler.assemble_from_gemini(native, "gemini-2.5-pro", TOKEN)

        assert envelope["project"] == "proj-1"
        assert envelope["requestId"] == "req-1"
        assert envelope["userAgent"] == "antigravity"
        request = envelope["request"]
        assert request["contents"] == native["contents"]
        assert request["systemInstruction"] == native["systemInstruction"]
        assert request["tools"] == native["tools"]
        assert request["toolConfig"] == native["toolConfig"]
        assert request["safetySettings"] == native["safetySettings"]
        assert request["generationConfig"] == {"temperature": 0.2}
        assert request["sessionId"] == "sess-1"

    def test_fills_defaults(self, assembler):
        """Should fill defaults for a bare native request."""
        envelope = assembler.assemble_from_gemini({}, "gemini-2.5-pro", TOKEN)
        request = envelope["request"]

        assert request["contents"] == []
        assert request["systemInstruction"] == {
            "role": "user",
            "parts": [{"text": "You are Antigravity."}],
        }
        assert "tools" not in request
        assert "toolConfig" not in request
        assert "safetySettings" not in request
        assert request["generationConfig"]["thinkingConfig"] == {
            "includeThoughts": True,
            "thinkingBudget": 1024,
        }

    def test_excluded_vendor_without_thinking(self, assembler):
        """Should disable thinking for excluded models."""
        envelope = assembler.assemble_from_gemini(None, "claude-opus-4-5-thinking", TOKEN)
        config = envelope["request"]["generationConfig"]
        assert config["thinkingConfig"]["includeThoughts"] is False
        assert config["topP"] == 0.85

    def test_invalid_contents_replaced(self, assembler):
        """Should replace non-list contents with []."""
        envelope = assembler.assemble_from_gemini({"contents": "bad"}, "gemini-2.5-pro")
        assert envelope["request"]["contents"] == []


class TestModuleHelpers:
    """Tests for the default-assembler helpers."""

    def test_request_id_format(self):
        """Should generate agent-prefixed UUID request ids."""
        assert re.fullmatch(r"agent-[0-9a-f-]{36}", generate_request_id())

    def test_unique_request_ids(self):
        """Should generate a fresh id per request."""
        envelope_a = generate_request_body([{"role": "user", "content": "a"}], "m", token=TOKEN)
        envelope_b = generate_request_body([{"role": "user", "content": "a"}], "m", token=TOKEN)
        assert envelope_a["requestId"] != envelope_b["requestId"]

    def test_uses_config_file(self, tmp_path):
        """Should apply settings from the config file."""
        config_dir = tmp_path / ".antigravity_bridge"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text(
            yaml.safe_dump(
                {"system_instruction": "From file.", "defaults": {"temperature": 0.3}}
            ),
            encoding="utf-8",
        )
        envelope = generate_request_body([{"role": "user", "content": "Hi"}], "gemini-2.5-flash")
        request = envelope["request"]
        assert request["systemInstruction"]["parts"][0]["text"] == "From file."
        assert request["generationConfig"]["temperature"] == 0.3

    def test_uses_shared_cache(self):
        """Should read signatures from the shared cache."""
        get_signature_cache().put("c1", "shared-sig")
        messages = [
            {
                "role": "assistant",
                "tool_calls": [{"id": "c1", "function": {"name": "f", "arguments": "{}"}}],
            }
        ]
        envelope = generate_request_body(messages, "gemini-3-pro-high", token=TOKEN)
        assert envelope["request"]["contents"][0]["parts"][0]["thoughtSignature"] == "shared-sig"

    def test_gemini_helper(self):
        """Should wrap a native request with the default assembler."""
        envelope = generate_request_body_from_gemini({"contents": []}, "gemini-2.5-flash", TOKEN)
        assert envelope["request"]["systemInstruction"]["parts"][0]["text"] == (
            "You are a helpful assistant."
        )
        assert envelope["model"] == "gemini-2.5-flash"
