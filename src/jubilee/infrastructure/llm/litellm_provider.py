"""
LiteLLM Provider for chat completions with native tool calling.

Implements LLMProviderProtocol on top of ``litellm.acompletion`` with
model-alias resolution, per-model parameter mapping, retry with backoff and
per-provider credentials. Provider errors never raise: they come back as
``{"success": False, "error": ..., "error_type": ...}``.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import litellm
import structlog
import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "default_model": "main",
    "models": {"main": "gpt-4.1", "fast": "gpt-4.1-mini", "guard": "gpt-4.1-mini"},
    "default_params": {"temperature": 0.2, "max_tokens": 4000},
    "retry_policy": {
        "max_attempts": 3,
        "backoff_multiplier": 2.0,
        "timeout": 60,
        "retry_on_errors": ["RateLimitError", "APIConnectionError", "ServiceUnavailableError"],
    },
    "providers": {"openai": {"api_key_env": "OPENAI_API_KEY"}},
}

PASSTHROUGH_PARAMS = ("temperature", "top_p", "max_tokens", "frequency_penalty", "presence_penalty")


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: List[str] = field(default_factory=list)


def tool_calls_to_dicts(tool_calls: Any) -> Optional[List[Dict[str, Any]]]:
    """Normalize LiteLLM tool call objects to OpenAI-format dicts."""
    if not tool_calls:
        return None

    normalized = []
    for tc in tool_calls:
        if isinstance(tc, dict):
            function = tc.get("function") or {}
            normalized.append({
                "id": tc.get("id", ""),
                "type": "function",
                "function": {"name": function.get("name", ""), "arguments": function.get("arguments") or "{}"},
            })
        else:
            normalized.append({
                "id": getattr(tc, "id", ""),
                "type": "function",
                "function": {
                    "name": tc.function.name,
                    "arguments": tc.function.arguments or "{}",
                },
            })
    return normalized


class LiteLLMProvider:
    """
    Centralized LLM access through LiteLLM.

    Configuration (YAML or dict):
        default_model: alias used when no model is given
        models: alias → provider model name
        default_params / model_params: completion parameters
        retry_policy: max_attempts, backoff_multiplier, timeout, retry_on_errors
        providers: per-provider ``api_key_env``
    """

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        self.logger = structlog.get_logger().bind(component="litellm_provider")
        if config is None:
            config = self._load_config(config_path) if config_path else DEFAULT_CONFIG
        self._apply_config(config)

        self.logger.info(
            "llm_provider_initialized",
            default_model=self.default_model,
            model_aliases=list(self.models.keys()),
        )

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is empty
        """
        config_file = Path(config_path).expanduser()
        if not config_file.exists():
            raise FileNotFoundError(f"LLM config not found: {config_path}")

        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if not config:
            raise ValueError(f"Config file is empty or invalid: {config_path}")
        return config

    def _apply_config(self, config: Dict[str, Any]) -> None:
        self.default_model = config.get("default_model", "main")
        self.models: Dict[str, str] = config.get("models", {})
        self.model_params: Dict[str, Dict[str, Any]] = config.get("model_params", {})
        self.default_params: Dict[str, Any] = config.get("default_params", {})
        self.provider_config: Dict[str, Any] = config.get("providers", {})

        if not self.models:
            raise ValueError("Config must define at least one model in 'models' section")

        retry_config = config.get("retry_policy", {})
        self.retry_policy = RetryPolicy(
            max_attempts=retry_config.get("max_attempts", 3),
            backoff_multiplier=retry_config.get("backoff_multiplier", 2.0),
            timeout=retry_config.get("timeout", 60),
            retry_on_errors=retry_config.get("retry_on_errors", []),
        )

    def resolve_model(self, model_alias: Optional[str]) -> str:
        """Resolve an alias to the provider model name; unknown names pass through."""
        alias = model_alias or self.default_model
        return self.models.get(alias, alias)

    def _get_model_parameters(self, model: str) -> Dict[str, Any]:
        if model in self.model_params:
            return self.model_params[model].copy()
        for model_key, params in self.model_params.items():
            if model.startswith(model_key):
                return params.copy()
        return self.default_params.copy()

    def _provider_of(self, model: str) -> str:
        return model.split("/", 1)[0] if "/" in model else "openai"

    def _resolve_api_key(self, model: str, api_keys: Optional[Dict[str, str]]) -> Optional[str]:
        """Explicit per-provider key first, then the provider's configured env var."""
        provider = self._provider_of(model)
        if api_keys and api_keys.get(provider):
            return api_keys[provider]
        env_var = self.provider_config.get(provider, {}).get("api_key_env")
        return os.getenv(env_var) if env_var else None

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Perform a chat completion, optionally with native tool calling.

        Returns:
            Dict with success, content, tool_calls, usage, model, latency_ms,
            or success=False with error and error_type.
        """
        actual_model = self.resolve_model(model)
        api_keys = kwargs.pop("api_keys", None)

        params = self._get_model_parameters(actual_model)
        params.update({k: v for k, v in kwargs.items() if k in PASSTHROUGH_PARAMS})
        if tools:
            params["tools"] = tools
            params["tool_choice"] = tool_choice or "auto"
        api_key = self._resolve_api_key(actual_model, api_keys)
        if api_key:
            params["api_key"] = api_key

        for attempt in range(self.retry_policy.max_attempts):
            try:
                start_time = time.time()
                self.logger.info(
                    "llm_completion_started",
                    model=actual_model,
                    attempt=attempt + 1,
                    message_count=len(messages),
                    tools=len(tools or []),
                )

                response = await litellm.acompletion(
                    model=actual_model,
                    messages=messages,
                    timeout=self.retry_policy.timeout,
                    **params,
                )

                message = response.choices[0].message
                usage = getattr(response, "usage", {}) or {}
                if isinstance(usage, dict):
                    token_stats = usage
                else:
                    token_stats = {
                        "total_tokens": getattr(usage, "total_tokens", 0),
                        "prompt_tokens": getattr(usage, "prompt_tokens", 0),
                        "completion_tokens": getattr(usage, "completion_tokens", 0),
                    }

                latency_ms = int((time.time() - start_time) * 1000)
                tool_calls = tool_calls_to_dicts(getattr(message, "tool_calls", None))
                self.logger.info(
                    "llm_completion_success",
                    model=actual_model,
                    tokens=token_stats.get("total_tokens", 0),
                    tool_calls=len(tool_calls or []),
                    latency_ms=latency_ms,
                )

                return {
                    "success": True,
                    "content": message.content,
                    "tool_calls": tool_calls,
                    "usage": token_stats,
                    "model": actual_model,
                    "latency_ms": latency_ms,
                }

            except Exception as e:
                error_type = type(e).__name__
                error_msg = str(e)

                should_retry = attempt < self.retry_policy.max_attempts - 1 and any(
                    err_type in error_type or err_type in error_msg
                    for err_type in self.retry_policy.retry_on_errors
                )

                if should_retry:
                    backoff_time = self.retry_policy.backoff_multiplier**attempt
                    self.logger.warning(
                        "llm_completion_retry",
                        model=actual_model,
                        error_type=error_type,
                        attempt=attempt + 1,
                        backoff_seconds=backoff_time,
                    )
                    await asyncio.sleep(backoff_time)
                else:
                    self.logger.error(
                        "llm_completion_failed",
                        model=actual_model,
                        error_type=error_type,
                        error=error_msg[:200],
                        attempts=attempt + 1,
                    )
                    return {
                        "success": False,
                        "error": error_msg,
                        "error_type": error_type,
                        "model": actual_model,
                    }

        return {
            "success": False,
            "error": "Max retries exceeded",
            "error_type": "RetryExhausted",
            "model": actual_model,
        }
