from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence

import openai
import structlog
from openai import OpenAI

from studybuddy import config

logger = structlog.get_logger()


class CompletionOptions(NamedTuple):
    temperature: float = 0.7
    max_tokens: int = 800
    stop: Optional[List[str]] = None
    timeout: float = config.LLM_TIMEOUT_SECONDS


class LLMProviderError(RuntimeError):
    pass


class OpenAICompatibleProvider:
    """
    Chat-completions client for any OpenAI-compatible endpoint.

    The local model is an Ollama server reached through its ``/v1`` endpoint;
    the cloud model is the OpenAI API itself.
    """

    def __init__(self, name: str, model: str, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.name = name
        self.model = model
        self.base_url = base_url
        self._api_key = api_key
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            # Ollama ignores the key but the client requires one
            self._client = OpenAI(base_url=self.base_url, api_key=self._api_key or "ollama", max_retries=0)
        return self._client

    def complete(self, prompt: str, options: CompletionOptions) -> str:
        try:
            # Timeouts are set per request via with_options()
            client = self._get_client().with_options(timeout=options.timeout)
            rsp = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                stop=options.stop or None,
            )
        except openai.OpenAIError as e:
            raise LLMProviderError(f"{self.name} completion failed: {e}") from e
        if not rsp.choices:
            return ""
        return rsp.choices[0].message.content or ""


class FallbackProvider:
    """Tries each provider in order and returns the first completion."""

    def __init__(self, providers: Sequence[OpenAICompatibleProvider]):
        self.providers = list(providers)

    @property
    def name(self) -> str:
        return "+".join(p.name for p in self.providers)

    def complete(self, prompt: str, options: CompletionOptions) -> str:
        last_error = LLMProviderError("No LLM provider configured")
        for provider in self.providers:
            try:
                return provider.complete(prompt, options)
            except LLMProviderError as e:
                logger.warning("provider_failed", provider=provider.name, error=str(e))
                last_error = e
        raise last_error


def build_default_provider() -> FallbackProvider:
    providers: List[OpenAICompatibleProvider] = []
    if config.LOCAL_LLM_ENABLED:
        providers.append(
            OpenAICompatibleProvider("ollama", config.LOCAL_LLM_MODEL, base_url=config.LOCAL_LLM_BASE_URL)
        )
    if config.OPENAI_API_KEY:
        providers.append(OpenAICompatibleProvider("openai", config.OPENAI_MODEL, api_key=config.OPENAI_API_KEY))
    if not providers:
        logger.warning("llm_unconfigured", message="Only basic extraction will produce questions")
    logger.info("llm_providers_configured", providers=[p.name for p in providers])
    return FallbackProvider(providers)
