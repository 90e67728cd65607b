"""Anthropic Claude provider; the persona goes in the top-level system field."""

import anthropic as anthropic_sdk

from roundtable.models import ModelResponse
from roundtable.providers.base import ProviderError, SDKProvider


class AnthropicProvider(SDKProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def _make_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        turn_number: int,
        system: str | None = None,
    ) -> ModelResponse:
        params: dict = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self._config.temperature is not None:
            params["temperature"] = self._config.temperature
        if system:
            params["system"] = system

        response, latency = await self._request(self._client.messages.create(**params))

        text_blocks = [b.text for b in (response.content or []) if b.type == "text"]
        content = "\n".join(text_blocks).strip()
        if not content:
            raise ProviderError(self._config.name, "No text in response")

        token_count = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens
        return self._response(turn_number, content, latency, token_count)
