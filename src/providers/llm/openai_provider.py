"""OpenAI vision provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Only the vision path is used: image uploads are described by the model
and the description is ingested as the document's text.

With ``openai_base_url`` set, the same adapter talks to any
OpenAI-compatible server (Together, Fireworks, a local vLLM, ...).
"""

from __future__ import annotations

# The vision endpoint takes images as base64 data URIs.
import base64

# Official OpenAI SDK, async client.
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
# SDK errors are re-raised as ExtractionFailedError so the extractor can
# fall back to an "Image: <filename>" label.
from src.utils.errors import ExtractionFailedError

logger = structlog.get_logger(logger_name=__name__)


def detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes.

    Magic bytes are the first bytes of a file and identify its format
    regardless of the extension the upload arrived with.

    PNG starts with 89 50 4E 47 0D 0A 1A 0A, WEBP with RIFF....WEBP,
    GIF with GIF8, BMP with BM and JPEG with FF D8.  Anything else is
    sent as JPEG.
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:4] == b"GIF8":
        return "image/gif"
    if image_bytes[:2] == b"BM":
        return "image/bmp"
    return "image/jpeg"


class OpenAILLMProvider(ILLMProvider):
    """Vision provider backed by an OpenAI-compatible chat API.

    Uses ``gpt-4o-mini`` by default.  With a custom ``openai_base_url``
    vision is only assumed when ``openai_vision_model`` names a model.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # 60 s overall for a vision completion, 5 s to connect.
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._vision_model = settings.openai_vision_model or "gpt-4o-mini"
        # A compatible endpoint may not serve any vision model, so vision is
        # only assumed there when one is named explicitly.
        self._has_vision = bool(settings.openai_vision_model) or not settings.openai_base_url
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Describe an image with the configured vision model."""
        if not self._has_vision:
            raise ExtractionFailedError(
                message="Vision not supported by this provider configuration",
                provider_name=self.get_provider_name(),
            )
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = detect_media_type(image_bytes)
        try:
            response = await self._client.chat.completions.create(
                model=self._vision_model,
                messages=[
                    {
                        "role": "user",
                        # Text part first, then the image as a data URI.
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{b64}"},
                            },
                        ],
                    }
                ],
                max_tokens=2000,
            )
        except openai.APIError as exc:
            raise ExtractionFailedError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if not content:
            raise ExtractionFailedError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_vision_extract",
            model=self._vision_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def supports_vision(self) -> bool:
        return self._has_vision

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._provider_label
