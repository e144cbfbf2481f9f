"""
LLM module for chat model access.

Contains:
- LiteLLMProvider: litellm-backed chat completion with model aliases and retries
"""

from jubilee.infrastructure.llm.litellm_provider import LiteLLMProvider

__all__ = ["LiteLLMProvider"]
