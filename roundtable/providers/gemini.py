"""Gemini provider; the persona is passed as system_instruction."""

from google import genai
from google.genai import types as genai_types

from roundtable.models import ModelResponse
from roundtable.providers.base import ProviderError, SDKProvider


class GeminiProvider(SDKProvider):
    """Google Gemini provider via google-genai SDK."""

    def _make_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        turn_number: int,
        system: str | None = None,
    ) -> ModelResponse:
        generation = genai_types.GenerateContentConfig(
            max_output_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            system_instruction=system or None,
        )
        response, latency = await self._request(
            self._client.aio.models.generate_content(
                model=self._config.model,
                contents=prompt,
                config=generation,
            )
        )

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        usage = response.usage_metadata
        token_count = usage.total_token_count if usage else None
        return self._response(turn_number, response.text.strip(), latency, token_count)
