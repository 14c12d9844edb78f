"""Text chunking for embedding: boundary-aware windows and a recursive fallback.

Two splitters live here:

1. :class:`BoundaryAwareChunker` -- a single left-to-right pass of
   overlapping windows.  Each window is cut at the best natural boundary
   near its end (paragraph, then sentence, then line, then word) so
   chunks rarely stop mid-sentence, and consecutive chunks share
   ``overlap`` characters of context.

2. :class:`RecursiveChunker` -- splits on a list of ever-narrower
   separators (``"\\n\\n"``, ``"\\n"``, ``". "``, ``" "``, ``""``) and
   greedily packs the pieces back together.  No overlap, but a hard
   ``max_size`` bound on every piece and predictable cost on very long
   documents.

:class:`DocumentChunker` picks one of them by document length and wraps
the result into :class:`~src.models.ingestion.Chunk` objects.
"""

from __future__ import annotations

import structlog

from src.models.ingestion import Chunk, ProcessingMethod

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_SIZE = 4000
DEFAULT_OVERLAP = 1000
DEFAULT_RECURSIVE_THRESHOLD = 10000

# A boundary further back than this fraction of the window is ignored,
# otherwise a stray early newline would produce a tiny chunk.
_MIN_WINDOW_FRACTION = 0.5

_SENTENCE_ENDINGS = (". ", ".\n", "! ", "!", "? ", "?\n")

RECURSIVE_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


def _validate_sizes(max_size: int, overlap: int) -> None:
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be >= 0, got {overlap}")
    if overlap >= max_size:
        raise ValueError(f"overlap ({overlap}) must be smaller than max_size ({max_size})")


class BoundaryAwareChunker:
    """Sliding-window splitter that prefers natural text boundaries.

    Parameters
    ----------
    max_size:
        Maximum characters per chunk (default 4000).
    overlap:
        Characters shared by consecutive chunks (default 1000).  Must be
        smaller than *max_size*.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, overlap: int = DEFAULT_OVERLAP) -> None:
        _validate_sizes(max_size, overlap)
        self._max_size = max_size
        self._overlap = overlap

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> list[str]:
        """Split *text* into stripped, non-empty pieces in document order.

        Parameters
        ----------
        text:
            The full document text.

        Returns
        -------
        list[str]
            Pieces of at most ``max_size`` characters.  Empty input
            returns an empty list.
        """
        pieces: list[str] = []
        length = len(text)
        start = 0

        while start < length:
            end = start + self._max_size
            if end < length:
                end = self._find_boundary(text, start, end)

            piece = text[start:end].strip()
            if piece:
                pieces.append(piece)

            if end >= length:
                break
            # Advance by at least max_size - overlap, but never past the cut:
            # a boundary pulled back further than the overlap would
            # otherwise leave text between the cut and the next window.
            start = min(end, max(start + self._max_size - self._overlap, end - self._overlap))

        return pieces

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find_boundary(self, text: str, start: int, end: int) -> int:
        """Return the cut position for the window ``text[start:end]``.

        Candidates are searched right-to-left inside the window in order
        of preference; the first one past the minimum acceptable position
        wins.  Without one the raw cut at *end* is kept.
        """
        min_acceptable = start + self._max_size * _MIN_WINDOW_FRACTION

        paragraph = text.rfind("\n\n", start, end)
        if paragraph > min_acceptable:
            return paragraph + 2

        sentence = max(text.rfind(mark, start, end) for mark in _SENTENCE_ENDINGS)
        if sentence > min_acceptable:
            return sentence + 1

        newline = text.rfind("\n", start, end)
        if newline > min_acceptable:
            return newline + 1

        space = text.rfind(" ", start, end)
        if space > min_acceptable:
            return space + 1

        return end


class RecursiveChunker:
    """Hierarchical separator splitter with a hard size bound.

    Parameters
    ----------
    max_size:
        Maximum characters per piece.
    separators:
        Separators tried in order; the final ``""`` means "slice by
        character count" and guarantees termination.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        separators: tuple[str, ...] = RECURSIVE_SEPARATORS,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = max_size
        self._separators = separators

    def split(self, text: str) -> list[str]:
        """Split *text* so that no piece exceeds ``max_size`` characters."""
        if len(text) <= self._max_size:
            return [text]
        return self._split(text, self._separators)

    def _split(self, text: str, separators: tuple[str, ...]) -> list[str]:
        if len(text) <= self._max_size:
            return [text]
        if not separators or separators[0] == "":
            return [
                text[i : i + self._max_size] for i in range(0, len(text), self._max_size)
            ]

        separator, narrower = separators[0], separators[1:]
        packed: list[str] = []
        current = ""
        for part in text.split(separator):
            candidate = f"{current}{separator}{part}" if current else part
            if len(candidate) > self._max_size:
                if current:
                    packed.append(current)
                current = part
            else:
                current = candidate
        if current:
            packed.append(current)

        result: list[str] = []
        for piece in packed:
            if len(piece) > self._max_size:
                result.extend(self._split(piece, narrower))
            else:
                result.append(piece)
        return result


class DocumentChunker:
    """Chooses a splitter by document length and produces :class:`Chunk` objects.

    Documents up to *recursive_threshold* characters use the
    boundary-aware chunker (overlap preserved); longer ones use the
    recursive chunker.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        recursive_threshold: int = DEFAULT_RECURSIVE_THRESHOLD,
        separators: tuple[str, ...] = RECURSIVE_SEPARATORS,
    ) -> None:
        self._boundary = BoundaryAwareChunker(max_size=max_size, overlap=overlap)
        self._recursive = RecursiveChunker(max_size=max_size, separators=separators)
        self._recursive_threshold = recursive_threshold

    def select_method(self, text: str) -> ProcessingMethod:
        if len(text) > self._recursive_threshold:
            return ProcessingMethod.RECURSIVE
        return ProcessingMethod.STANDARD

    def chunk(self, text: str) -> tuple[list[Chunk], ProcessingMethod]:
        """Split *text* and return the chunks plus the method used.

        Pieces are stripped and empty ones dropped before indices are
        assigned, so indices are always contiguous from 0.
        """
        method = self.select_method(text)
        if method is ProcessingMethod.RECURSIVE:
            raw = self._recursive.split(text)
        else:
            raw = self._boundary.split(text)

        pieces = [p.strip() for p in raw]
        pieces = [p for p in pieces if p]
        total = len(pieces)
        chunks = [
            Chunk(index=i, total=total, text=piece, size_chars=len(piece))
            for i, piece in enumerate(pieces)
        ]

        logger.debug(
            "chunking_complete",
            method=method.value,
            num_chunks=total,
            text_length=len(text),
        )
        return chunks, method
