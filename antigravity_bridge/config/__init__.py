"""Configuration for Antigravity Bridge."""

from .manager import (
    BridgeConfig,
    CacheConfig,
    ConfigManager,
    GenerationDefaults,
    ModelPolicyConfig,
    get_config,
    get_config_manager,
    reset_config_manager,
)

__all__ = [
    "BridgeConfig",
    "CacheConfig",
    "ConfigManager",
    "GenerationDefaults",
    "ModelPolicyConfig",
    "get_config",
    "get_config_manager",
    "reset_config_manager",
]
