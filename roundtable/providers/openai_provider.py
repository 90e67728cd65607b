"""OpenAI and OpenAI-compatible providers (xAI, DeepSeek, ...) using openai SDK."""

from openai import AsyncOpenAI

from roundtable.models import ModelResponse
from roundtable.providers.base import ProviderError, SDKProvider


class OpenAIProvider(SDKProvider):
    """Chat-completions provider; set base_url in config for compatible endpoints."""

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        if self._config.base_url:
            return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
        return AsyncOpenAI(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        turn_number: int,
        system: str | None = None,
    ) -> ModelResponse:
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        params: dict = {
            "model": self._config.model,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
        }
        if self._config.temperature is not None:
            params["temperature"] = self._config.temperature

        response, latency = await self._request(self._client.chat.completions.create(**params))

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        return self._response(turn_number, choice.message.content.strip(), latency, token_count)
