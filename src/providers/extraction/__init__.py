"""Text extraction implementations (text, PDF, DOCX, image description)."""

from src.providers.extraction.text_extractor import TextExtractor

__all__ = ["TextExtractor"]
