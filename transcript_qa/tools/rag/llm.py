"""Generative model providers.

Every provider implements ``generate(prompt) -> str``. The active provider
is chosen by name from configuration; adding a backend means adding a class
to ``PROVIDERS``.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import requests
from google import genai
from google.genai import types

from transcript_qa.tools.rag.errors import (
    MalformedUpstreamResponse,
    UpstreamTimeout,
    UpstreamUnavailable,
)

if TYPE_CHECKING:
    from transcript_qa.tools.rag.config import RAGConfig

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Base class for generative model backends."""

    name: str = "base"

    def __init__(
        self,
        api_key: str | None,
        model: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2048,
        timeout: float = 90.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    @classmethod
    @abstractmethod
    def from_config(cls, config: RAGConfig) -> LLMProvider:
        """Build the provider from configuration."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Send the prompt and return the raw completion text.

        Raises:
            UpstreamUnavailable: No API key, network or API failure.
            MalformedUpstreamResponse: The provider answered without text.
        """

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise UpstreamUnavailable(f"{self.name} API key is not configured")
        return self.api_key


class GemmaProvider(LLMProvider):
    """Gemma models served by Google AI Studio."""

    name = "gemma"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: genai.Client | None = None

    @classmethod
    def from_config(cls, config: RAGConfig) -> GemmaProvider:
        return cls(
            api_key=config.gemma_api_key,
            model=config.gemma_model,
            temperature=config.llm_temperature,
            max_output_tokens=config.llm_max_output_tokens,
            timeout=config.llm_timeout_seconds,
        )

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self._require_api_key(),
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def generate(self, prompt: str) -> str:
        client = self.client
        start = time.time()
        logger.info(f"Calling Google AI Studio model={self.model}")
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    top_k=1,
                    top_p=1,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
        except Exception as e:
            logger.error(f"Google AI Studio call failed: {e}")
            raise UpstreamUnavailable("Gemma request failed") from e

        text = response.text
        logger.info(f"Google AI Studio answered in {time.time() - start:.2f}s")
        if not text:
            raise MalformedUpstreamResponse("Gemma returned an empty response")
        return text


class OpenRouterProvider(LLMProvider):
    """Models served through the OpenRouter chat completions API."""

    name = "openrouter"

    def __init__(self, *args: Any, api_url: str, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.api_url = api_url

    @classmethod
    def from_config(cls, config: RAGConfig) -> OpenRouterProvider:
        return cls(
            api_key=config.openrouter_api_key,
            model=config.openrouter_model,
            temperature=config.llm_temperature,
            max_output_tokens=config.llm_max_output_tokens,
            timeout=config.llm_timeout_seconds,
            api_url=config.openrouter_api_url,
        )

    def generate(self, prompt: str) -> str:
        api_key = self._require_api_key()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        data = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
        }

        start = time.time()
        logger.info(f"Calling OpenRouter model={self.model}")
        try:
            response = requests.post(
                self.api_url,
                headers=headers,
                json=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            logger.error(f"OpenRouter call timed out after {self.timeout:g}s")
            raise UpstreamTimeout("llm", self.timeout) from e
        except requests.RequestException as e:
            logger.error(f"OpenRouter call failed: {e}")
            raise UpstreamUnavailable("OpenRouter request failed") from e

        logger.info(f"OpenRouter answered in {time.time() - start:.2f}s")
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected OpenRouter payload: {response.text[:1000]}")
            raise MalformedUpstreamResponse("OpenRouter response has no message content") from e

        if not content:
            raise MalformedUpstreamResponse("OpenRouter returned an empty response")
        return content


PROVIDERS: dict[str, type[LLMProvider]] = {
    GemmaProvider.name: GemmaProvider,
    OpenRouterProvider.name: OpenRouterProvider,
}


def create_llm_provider(config: RAGConfig) -> LLMProvider:
    """Create the provider named by ``config.llm_provider``.

    Raises:
        ValueError: If the provider name is unknown.
    """
    provider_name = config.llm_provider.lower()
    if provider_name not in PROVIDERS:
        raise ValueError(
            f"LLM provider '{provider_name}' not supported. "
            f"Available providers: {', '.join(PROVIDERS)}"
        )
    provider = PROVIDERS[provider_name].from_config(config)
    if not provider.api_key:
        logger.warning(f"No API key configured for LLM provider '{provider_name}'")
    return provider
