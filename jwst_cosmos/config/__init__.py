# jwst_cosmos/config/__init__.py
"""Configuration system for jwst-cosmos."""

from .loader import get_config_path, load_config
from .schema import (
    CosmosConfig,
    GenerationConfig,
    OllamaConfig,
    RemoteConfig,
)

__all__ = [
    "CosmosConfig",
    "RemoteConfig",
    "GenerationConfig",
    "OllamaConfig",
    "load_config",
    "get_config_path",
]
