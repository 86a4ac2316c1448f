"""Model name policy.

Decides, from configurable name patterns, which models get extended
thinking and which may receive thought signatures.
"""

from typing import Iterable, List, Optional

from ..config import ModelPolicyConfig, get_config


def _contains_any(model: str, markers: Iterable[str]) -> bool:
    return any(marker and marker in model for marker in markers)


class ModelPolicy:
    """Pattern-based feature gates for target models."""

    def __init__(
        self,
        thinking_suffixes: List[str],
        thinking_models: List[str],
        thinking_prefixes: List[str],
        signature_excluded_markers: List[str],
        text_signature_markers: List[str],
    ):
        self.thinking_suffixes = list(thinking_suffixes)
        self.thinking_models = set(thinking_models)
        self.thinking_prefixes = list(thinking_prefixes)
        self.signature_excluded_markers = list(signature_excluded_markers)
        self.text_signature_markers = list(text_signature_markers)

    @classmethod
    def from_config(cls, config: Optional[ModelPolicyConfig] = None) -> "ModelPolicy":
        if config is None:
            config = get_config().policy
        return cls(
            thinking_suffixes=config.thinking_suffixes,
            thinking_models=config.thinking_models,
            thinking_prefixes=config.thinking_prefixes,
            signature_excluded_markers=config.signature_excluded_markers,
            text_signature_markers=config.text_signature_markers,
        )

    def is_thinking_model(self, model: str) -> bool:
        """Whether the model name asks for extended thinking output."""
        if not model:
            return False
        return (
            any(suffix and model.endswith(suffix) for suffix in self.thinking_suffixes)
            or model in self.thinking_models
            or any(prefix and model.startswith(prefix) for prefix in self.thinking_prefixes)
        )

    def is_signature_excluded(self, model: str) -> bool:
        """Whether the model's backend rejects thought signatures."""
        return bool(model) and _contains_any(model, self.signature_excluded_markers)

    def should_enable_thinking(self, model: str, has_tool_calls: bool = False) -> bool:
        """Thinking is on for thinking models, except signature-excluded ones
        whose history already holds tool calls."""
        if not self.is_thinking_model(model):
            return False
        return not (self.is_signature_excluded(model) and has_tool_calls)

    def allows_signatures(self, model: str) -> bool:
        return not self.is_signature_excluded(model)

    def allows_text_signatures(self, model: str) -> bool:
        """Text parts only carry signatures for eligible model families."""
        if not self.allows_signatures(model):
            return False
        return bool(model) and _contains_any(model, self.text_signature_markers)
