"""Abstract base class for file-to-text extraction.

The ingestion pipeline never parses files itself; it asks an
:class:`ITextExtractor` for the raw text and treats any failure as fatal
for that run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ExtractedText(BaseModel):
    """Raw text pulled out of a source file."""

    model_config = ConfigDict(frozen=True)

    text: str
    file_type: str
    # "text", "pdf", "docx" or "vision"; vision extraction reports an
    # extra progress checkpoint.
    method: str


# Concrete implementation: TextExtractor (src/providers/extraction/)
class ITextExtractor(ABC):
    """Contract for turning an uploaded file into plain text."""

    @abstractmethod
    async def extract(self, path: str | Path, filename: str | None = None) -> ExtractedText:
        """Extract the text content of *path*.

        Parameters
        ----------
        path:
            Location of the file on disk.
        filename:
            Original upload name; its extension decides the extractor.
            Defaults to ``path``'s own name.

        Raises
        ------
        src.utils.errors.UnsupportedTypeError
            If no extractor handles the extension.
        src.utils.errors.ExtractionFailedError
            If the file is missing or its parser fails.
        """

    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Return lowercase extensions (with dot) this extractor accepts."""

    @abstractmethod
    def is_image(self, filename: str) -> bool:
        """Return ``True`` if *filename* goes through vision description."""
