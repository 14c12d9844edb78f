"""Abstract base class for vision-capable LLM providers.

Image uploads carry no text of their own; the extraction step asks a
vision model for a detailed description and ingests that instead.
Implementations may wrap OpenAI, an OpenAI-compatible server, or any
other multimodal backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAILLMProvider (src/providers/llm/)
class ILLMProvider(ABC):
    """Contract for the LLM used to describe images during extraction."""

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Analyse an image using the model's vision capability.

        Parameters
        ----------
        image_bytes:
            Raw bytes of the image to analyse.
        prompt:
            A natural-language instruction describing what to produce.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        src.utils.errors.ExtractionFailedError
            If the provider lacks vision support or the API call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
