"""File-to-text extraction for uploaded documents.

Dispatches on the (lowercased) file extension:

    .txt / .md          -> UTF-8 decode (undecodable bytes replaced)
    .pdf                -> PyMuPDF page text, pages joined by blank lines
    .docx               -> python-docx paragraphs joined by blank lines
    .jpg .png .gif ...  -> vision LLM description of the image

Parsers are synchronous, so they run in a worker thread via
``asyncio.to_thread`` to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

import docx
import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_extractor import ExtractedText, ITextExtractor
from src.utils.errors import ExtractionFailedError, UnsupportedTypeError

logger = structlog.get_logger(logger_name=__name__)

_TEXT_EXTENSIONS = frozenset({".txt", ".md"})
_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})
_PDF_EXTENSIONS = frozenset({".pdf"})
_DOCX_EXTENSIONS = frozenset({".docx"})
_ALL_EXTENSIONS = _TEXT_EXTENSIONS | _PDF_EXTENSIONS | _DOCX_EXTENSIONS | _IMAGE_EXTENSIONS

IMAGE_DESCRIPTION_PROMPT = """\
Please provide a detailed description of this image. Include:
1. What objects, people, text, or scenes are visible
2. Colors, composition, and visual elements
3. Any text that appears in the image (OCR)
4. Context and setting
5. Any other relevant details that would help someone understand the content

Be thorough and descriptive, as this will be used for searching and \
question answering about the image content."""


class TextExtractor(ITextExtractor):
    """Extracts raw text from text, PDF, DOCX and image files.

    Parameters
    ----------
    vision_provider:
        Optional vision LLM for image descriptions.  Without one (or when
        the call fails) an image is ingested as ``"Image: <filename>"``.
    extensions:
        Extensions to accept (e.g. ``uploads.extensions`` from
        ``config.yaml``).  Entries without a parser are ignored; ``None``
        accepts every type a parser exists for.
    """

    def __init__(
        self,
        vision_provider: ILLMProvider | None = None,
        extensions: Iterable[str] | None = None,
    ) -> None:
        self._vision = vision_provider
        if extensions is None:
            self._extensions = _ALL_EXTENSIONS
        else:
            requested = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
            self._extensions = frozenset(requested & _ALL_EXTENSIONS)

    # ------------------------------------------------------------------
    # ITextExtractor implementation
    # ------------------------------------------------------------------

    async def extract(self, path: str | Path, filename: str | None = None) -> ExtractedText:
        file_path = Path(path)
        name = filename or file_path.name
        ext = Path(name).suffix.lower()

        if ext not in self.supported_extensions():
            raise UnsupportedTypeError(message=f"Unsupported file type: {ext or name}")
        if not file_path.is_file():
            raise ExtractionFailedError(message=f"File not found: {file_path}")

        file_type = ext.lstrip(".")
        if ext in _IMAGE_EXTENSIONS:
            text = await self._describe_image(file_path, name)
            return ExtractedText(text=text, file_type=file_type, method="vision")

        try:
            if ext in _PDF_EXTENSIONS:
                text = await asyncio.to_thread(_read_pdf, file_path)
                method = "pdf"
            elif ext in _DOCX_EXTENSIONS:
                text = await asyncio.to_thread(_read_docx, file_path)
                method = "docx"
            else:
                text = await asyncio.to_thread(_read_text, file_path)
                method = "text"
        except Exception as exc:
            raise ExtractionFailedError(
                message=f"Failed to extract text from {name}: {exc}",
            ) from exc

        logger.info("text_extracted", filename=name, method=method, chars=len(text))
        return ExtractedText(text=text, file_type=file_type, method=method)

    def supported_extensions(self) -> frozenset[str]:
        return self._extensions

    def is_image(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in _IMAGE_EXTENSIONS

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _describe_image(self, file_path: Path, name: str) -> str:
        """Ask the vision model for a description, or fall back to a label."""
        fallback = f"Image: {name}"
        if self._vision is None or not self._vision.supports_vision():
            logger.info("image_description_skipped", filename=name, reason="no_vision_provider")
            return fallback

        try:
            image_bytes = await asyncio.to_thread(file_path.read_bytes)
        except OSError as exc:
            raise ExtractionFailedError(
                message=f"Failed to read image {name}: {exc}",
            ) from exc

        try:
            description = await self._vision.vision_extract(image_bytes, IMAGE_DESCRIPTION_PROMPT)
        except ExtractionFailedError as exc:
            logger.warning(
                "image_description_failed",
                filename=name,
                provider=exc.provider_name,
                error=exc.message,
            )
            return fallback
        return description.strip() or fallback


def _read_text(file_path: Path) -> str:
    return file_path.read_bytes().decode("utf-8", errors="replace")


def _read_pdf(file_path: Path) -> str:
    doc = fitz.open(str(file_path))
    try:
        pages = [page.get_text("text").strip() for page in doc]
    finally:
        doc.close()
    return "\n\n".join(p for p in pages if p)


def _read_docx(file_path: Path) -> str:
    document = docx.Document(str(file_path))
    return "\n\n".join(p.text for p in document.paragraphs if p.text.strip())
