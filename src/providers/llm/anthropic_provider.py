"""Anthropic vision provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`
for image descriptions.

Differences from the OpenAI adapter:
    - Uses the Messages API, not chat.completions
    - Images are "image" content blocks with a base64 source
    - The response is a list of blocks; text blocks are joined
"""

from __future__ import annotations

import base64

# Official Anthropic SDK, async client.
import anthropic
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
# Shared with the OpenAI adapter: both APIs need an explicit MIME type.
from src.providers.llm.openai_provider import detect_media_type
from src.utils.errors import ExtractionFailedError

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(ILLMProvider):
    """Vision provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        # Every call on AsyncAnthropic returns a coroutine.
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        # Claude models accept images natively; no separate vision model.
        self._model = settings.anthropic_model

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Describe an image; the image block goes before the prompt."""
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = detect_media_type(image_bytes)
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=2000,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            # Inline base64 source, not a URL as with OpenAI.
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": b64,
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except anthropic.APIError as exc:
            raise ExtractionFailedError(
                message=f"Anthropic vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # The response is a list of content blocks; only text blocks carry
        # the description.
        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise ExtractionFailedError(
                message="Anthropic vision returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_vision_extract",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    def supports_vision(self) -> bool:
        return True

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
