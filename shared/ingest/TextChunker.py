"""Recursive character splitter producing overlapping chunks."""

from typing import Iterator

CHUNK_SIZE = 1000       # characters per text chunk
CHUNK_OVERLAP = 200     # character overlap between consecutive chunks
SEPARATORS = ("\n\n", "\n", ". ", " ")


class ChunkSequence:
    """Lazy, finite and restartable sequence of chunks over one text.

    Every iteration walks the text again from the start, so the same sequence
    can be consumed more than once.
    """

    def __init__(self, text: str, chunk_size: int, overlap: int, separators: tuple[str, ...]):
        self._text = text
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._separators = separators

    def __iter__(self) -> Iterator[str]:
        return _walk(self._text, self._chunk_size, self._overlap, self._separators)

    def to_list(self) -> list[str]:
        return list(self)


def _find_cut(text: str, start: int, end: int, min_cut: int, separators: tuple[str, ...]) -> int:
    """Position right after the last preferred separator in ``text[start:end]``.

    Separators are tried in order (paragraph, line, sentence, word); a cut
    before ``min_cut`` is rejected. Falls back to a hard cut at ``end``.
    """
    for sep in separators:
        idx = text.rfind(sep, start, end)
        if idx == -1:
            continue
        cut = idx + len(sep)
        if min_cut <= cut <= end:
            return cut
    return end


def _walk(text: str, chunk_size: int, overlap: int, separators: tuple[str, ...]) -> Iterator[str]:
    n = len(text)
    start = 0
    while start < n:
        end = start + chunk_size
        if end >= n:
            yield text[start:]
            return
        # the next chunk must start after this one, and chunks stay at least half full
        min_cut = start + max(overlap + 1, chunk_size // 2)
        cut = _find_cut(text, start, end, min_cut, separators)
        yield text[start:cut]
        start = cut - overlap


class TextChunker:
    """Splits text into chunks of at most ``chunk_size`` characters.

    Consecutive chunks share exactly ``overlap`` characters, so
    ``chunks[0] + "".join(c[overlap:] for c in chunks[1:])`` rebuilds the text.

    Raises:
        ValueError: If the sizes are not positive or ``overlap >= chunk_size``.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP, separators: tuple[str, ...] = SEPARATORS):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must not be negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValueError(f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.separators = separators

    def split(self, text: str) -> ChunkSequence:
        return ChunkSequence(text or "", self.chunk_size, self.overlap, self.separators)
