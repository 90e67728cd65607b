"""Abstract base for the model providers that voice participants."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any

from config.config_loader import ModelConfig
from roundtable.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """A configured model that can generate one conversation turn."""

    @abstractmethod
    def name(self) -> str:
        """Return the configured model key (e.g. 'claude', 'gemini')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        turn_number: int,
        system: str | None = None,
    ) -> ModelResponse:
        """Generate a single message for the given prompt.

        Args:
            prompt: The turn prompt (topic, transcript and instructions).
            turn_number: 1-indexed position of the message in the conversation.
            system: Optional system instruction (the participant persona).

        Raises:
            ProviderError: On API failure, timeout, or empty output.
        """
        ...


class SDKProvider(AIProvider):
    """Provider backed by a vendor SDK client built from a ModelConfig.

    Subclasses create self._client in _make_client and call _request and
    _response from generate.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    @abstractmethod
    def _make_client(self, api_key: str) -> Any:
        ...

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def _request(self, call: Awaitable[Any]) -> tuple[Any, float]:
        """Await an SDK call under the configured timeout. Returns (response, latency)."""
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(call, timeout=self._config.timeout_sec)
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
        return response, time.monotonic() - start

    def _response(
        self,
        turn_number: int,
        content: str,
        latency: float,
        token_count: int | None,
    ) -> ModelResponse:
        logger.info("%s turn %d: %.2fs, %s tokens", self._config.name, turn_number, latency, token_count)
        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            turn_number=turn_number,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
