"""Configuration models and manager for Antigravity Bridge.

Configuration is read from ``~/.antigravity_bridge/config.yaml`` when present.
Values are resolved with the priority ENV > Config > Default.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_SIGNATURE_CACHE_SIZE,
    DEFAULT_STOP_SEQUENCES,
    DEFAULT_TEMPERATURE,
    DEFAULT_THINKING_BUDGET,
    DEFAULT_TOP_K,
    DEFAULT_TOP_P,
    SIGNATURE_EXCLUDED_MARKERS,
    TEXT_SIGNATURE_MARKERS,
    THINKING_MODEL_PREFIXES,
    THINKING_MODEL_SUFFIXES,
    THINKING_MODELS,
)

logger = logging.getLogger(__name__)


class GenerationDefaults(BaseModel):
    """Sampling defaults used when a request does not supply its own."""

    top_p: float = DEFAULT_TOP_P
    top_k: int = DEFAULT_TOP_K
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


class ModelPolicyConfig(BaseModel):
    """Model name patterns that gate thinking and signature handling."""

    thinking_suffixes: List[str] = Field(default_factory=lambda: list(THINKING_MODEL_SUFFIXES))
    thinking_models: List[str] = Field(default_factory=lambda: list(THINKING_MODELS))
    thinking_prefixes: List[str] = Field(default_factory=lambda: list(THINKING_MODEL_PREFIXES))
    signature_excluded_markers: List[str] = Field(
        default_factory=lambda: list(SIGNATURE_EXCLUDED_MARKERS)
    )
    text_signature_markers: List[str] = Field(
        default_factory=lambda: list(TEXT_SIGNATURE_MARKERS)
    )


class CacheConfig(BaseModel):
    max_entries: int = Field(default=DEFAULT_SIGNATURE_CACHE_SIZE, gt=0)


class BridgeConfig(BaseModel):
    """Top-level configuration."""

    system_instruction: str = ""
    thinking_budget: int = Field(default=DEFAULT_THINKING_BUDGET, ge=0)
    stop_sequences: List[str] = Field(default_factory=lambda: list(DEFAULT_STOP_SEQUENCES))
    defaults: GenerationDefaults = Field(default_factory=GenerationDefaults)
    policy: ModelPolicyConfig = Field(default_factory=ModelPolicyConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


# Environment overrides: (env var, section, field, converter)
ENV_OVERRIDES = [
    ("ANTIGRAVITY_SYSTEM_INSTRUCTION", None, "system_instruction", str),
    ("ANTIGRAVITY_TOP_P", "defaults", "top_p", float),
    ("ANTIGRAVITY_TOP_K", "defaults", "top_k", int),
    ("ANTIGRAVITY_TEMPERATURE", "defaults", "temperature", float),
    ("ANTIGRAVITY_MAX_TOKENS", "defaults", "max_tokens", int),
]


class ConfigManager:
    """Loads the YAML config file and applies environment overrides."""

    DEFAULT_CONFIG_PATH = Path.home() / ".antigravity_bridge" / "config.yaml"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._config: Optional[BridgeConfig] = None

    def load(self) -> BridgeConfig:
        """Load configuration from disk, falling back to defaults.

        Raises:
            ValueError: If the file is not valid YAML or holds invalid values
        """
        data: dict = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {self.config_path}: {e}") from e
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Config file {self.config_path} must contain a mapping")
            data = loaded
            logger.debug(f"Loaded config from {self.config_path}")

        try:
            config = BridgeConfig(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration in {self.config_path}: {e}") from e

        self._apply_env_overrides(config)
        self._config = config
        return config

    @property
    def config(self) -> BridgeConfig:
        if self._config is None:
            return self.load()
        return self._config

    def get_effective_value(
        self,
        config_value: Any,
        env_var: str,
        default: Any = None,
        converter: Callable[[str], Any] = str,
    ) -> Any:
        """Resolve a value with priority ENV > Config > Default.

        Args:
            config_value: Value from the config file (may be None)
            env_var: Environment variable name to check first
            default: Value used when neither source provides one
            converter: Callable that parses the environment string

        Returns:
            The resolved value

        Raises:
            ValueError: If the environment value cannot be converted
        """
        env_value = os.environ.get(env_var)
        if env_value is not None and env_value != "":
            try:
                return converter(env_value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value for {env_var}: {env_value!r}") from e
        if config_value is not None:
            return config_value
        return default

    def _apply_env_overrides(self, config: BridgeConfig) -> None:
        for env_var, section, field, converter in ENV_OVERRIDES:
            target = getattr(config, section) if section else config
            value = self.get_effective_value(getattr(target, field), env_var, converter=converter)
            setattr(target, field, value)


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the process-wide config manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> BridgeConfig:
    """Get the current configuration."""
    return get_config_manager().config


def reset_config_manager() -> None:
    """Drop the cached config manager (used by tests and the CLI)."""
    global _config_manager
    _config_manager = None
