"""LLM provider abstraction supporting OpenAI and OLLAMA.

Providers take a system prompt and a user prompt and return raw text.
Sentiment scoring parses that text as JSON with parse_json_response.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from openai import OpenAI

from forecast_api.core.config import (
    get_llm_provider_name,
    get_ollama_base_url,
    get_ollama_model,
    get_openai_api_key,
    get_openai_model,
)
from forecast_api.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Response Model
# =============================================================================


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    tokens_used: int | None  # None for providers that don't report tokens


# =============================================================================
# Provider Interface
# =============================================================================


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openai', 'ollama')."""
        ...

    @abstractmethod
    def generate(self, prompt: str, system: str | None = None) -> LLMResponse:
        """Generate a response from the LLM."""
        ...


# =============================================================================
# OpenAI Provider
# =============================================================================


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions via the official SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        if not api_key:
            raise ConfigurationError("OpenAI API key is required", setting="OPENAI_API_KEY")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = OpenAI(api_key=api_key)

    @property
    def name(self) -> str:
        return "openai"

    def generate(self, prompt: str, system: str | None = None) -> LLMResponse:
        logger.debug(f"Calling OpenAI API with model={self.model}")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        content = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else None
        logger.debug(f"OpenAI response received, tokens_used={tokens_used}")

        return LLMResponse(content=content, model=self.model, tokens_used=tokens_used)


# =============================================================================
# OLLAMA Provider
# =============================================================================


class OllamaProvider(LLMProvider):
    """OLLAMA LLM provider using its REST API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        temperature: float = 0.1,
        timeout: float = 300.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "ollama"

    def generate(self, prompt: str, system: str | None = None) -> LLMResponse:
        logger.debug(f"Calling OLLAMA API at {self.base_url} with model={self.model}")

        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.temperature},
        }
        if system:
            payload["system"] = system

        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()

        # OLLAMA reports generated tokens as eval_count
        return LLMResponse(content=data.get("response", ""), model=self.model, tokens_used=data.get("eval_count"))


# =============================================================================
# Provider Factory
# =============================================================================


def get_llm_provider() -> LLMProvider:
    """Build the provider named by LLM_PROVIDER.

    Raises:
        ConfigurationError: openai selected without OPENAI_API_KEY
        InvalidInputError: LLM_PROVIDER is not recognized
    """
    if get_llm_provider_name() == "ollama":
        return OllamaProvider(base_url=get_ollama_base_url(), model=get_ollama_model())

    api_key = get_openai_api_key()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set", setting="OPENAI_API_KEY")
    return OpenAIProvider(api_key=api_key, model=get_openai_model())


def parse_json_response(content: str) -> dict:
    """Parse JSON from an LLM response, handling markdown code blocks.

    Raises:
        ValueError: content is not a JSON object
    """
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON from LLM response: {e}; raw: {content[:200]}")
        raise ValueError(f"Failed to parse JSON from LLM response: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
