# jwst_cosmos/llm/__init__.py
"""Ollama integration: vision description, model management, and retry logic."""

from .client import OllamaService
from .retry import ollama_retry
from .types import ModelDetails, OllamaModel, PullProgress

__all__ = [
    "OllamaService",
    "OllamaModel",
    "ModelDetails",
    "PullProgress",
    "ollama_retry",
]
