"""Token-aware chunking of extracted text into embedding-friendly units."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional

from .models import ChunkingOptions, ChunkingStats, PageContent, TextChunk
from .tokens import count_tokens

LOGGER = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_SENTENCE_BREAK_RE = re.compile(r"[.!?]+\s+")
_WORD_RE = re.compile(r"\S+")

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "


@dataclass(slots=True)
class _Piece:
    """A stripped span of the source text plus the joiner placed before it."""

    text: str
    start: int
    end: int
    separator: str


def _append_stripped(
    pieces: List[_Piece], text: str, start: int, end: int, separator: str, offset: int
) -> None:
    raw = text[start:end]
    stripped = raw.strip()
    if not stripped:
        return
    begin = start + len(raw) - len(raw.lstrip())
    pieces.append(_Piece(stripped, offset + begin, offset + begin + len(stripped), separator))


def split_paragraphs(text: str, offset: int = 0) -> List[_Piece]:
    pieces: List[_Piece] = []
    cursor = 0
    for match in _PARAGRAPH_BREAK_RE.finditer(text):
        _append_stripped(pieces, text, cursor, match.start(), PARAGRAPH_SEPARATOR, offset)
        cursor = match.end()
    _append_stripped(pieces, text, cursor, len(text), PARAGRAPH_SEPARATOR, offset)
    return pieces


def split_sentences(text: str, offset: int = 0) -> List[_Piece]:
    """Split on terminal punctuation followed by whitespace, keeping the punctuation."""

    pieces: List[_Piece] = []
    cursor = 0
    for match in _SENTENCE_BREAK_RE.finditer(text):
        punctuation_end = match.start() + len(match.group().rstrip())
        _append_stripped(pieces, text, cursor, punctuation_end, SENTENCE_SEPARATOR, offset)
        cursor = match.end()
    _append_stripped(pieces, text, cursor, len(text), SENTENCE_SEPARATOR, offset)
    return pieces


def _split_words(text: str, offset: int = 0) -> List[_Piece]:
    return [
        _Piece(match.group(), offset + match.start(), offset + match.end(), SENTENCE_SEPARATOR)
        for match in _WORD_RE.finditer(text)
    ]


def _join(pieces: Iterable[_Piece]) -> str:
    parts: List[str] = []
    for piece in pieces:
        if parts:
            parts.append(piece.separator)
        parts.append(piece.text)
    return "".join(parts)


class _ChunkBuilder:
    """Accumulates pieces into chunks, seeding each new chunk with an overlap tail."""

    def __init__(self, options: ChunkingOptions, counter: TokenCounter) -> None:
        self.options = options
        self.count = counter
        self.buffer: List[_Piece] = []
        self.chunks: List[TextChunk] = []

    def add(self, piece: _Piece) -> None:
        if not self.buffer:
            self.buffer = [piece]
            return
        candidate = self.buffer + [piece]
        if self.count(_join(candidate)) <= self.options.max_tokens:
            self.buffer = candidate
            return

        emitted = self._emit()
        overlap = self._overlap_tail(emitted) if self.options.overlap_tokens > 0 else []
        # Shed leading overlap sentences until the next piece fits beside them.
        while overlap and self.count(_join(overlap + [piece])) > self.options.max_tokens:
            overlap = overlap[1:]
        self.buffer = overlap + [piece]

    def finish(self) -> List[TextChunk]:
        if self.buffer:
            self._emit()
            self.buffer = []
        return self.chunks

    def _emit(self) -> List[_Piece]:
        pieces = self.buffer
        text = _join(pieces)
        chunk = TextChunk(
            text=text,
            index=len(self.chunks),
            token_count=self.count(text),
            start_char=pieces[0].start,
            end_char=pieces[-1].end,
        )
        LOGGER.debug(
            "Chunk %s tokens=%s offsets %s-%s",
            chunk.index,
            chunk.token_count,
            chunk.start_char,
            chunk.end_char,
        )
        self.chunks.append(chunk)
        return pieces

    def _overlap_tail(self, pieces: List[_Piece]) -> List[_Piece]:
        # Whole trailing sentences only; an empty tail beats a truncated one.
        sentences: List[_Piece] = []
        for piece in pieces:
            sentences.extend(split_sentences(piece.text, piece.start))

        tail: List[_Piece] = []
        for sentence in reversed(sentences):
            candidate = [sentence] + tail
            if self.count(_join(candidate)) > self.options.overlap_tokens:
                break
            tail = candidate
        return tail


class TokenAwareChunker:
    """Split text into overlapping, token-bounded chunks on natural boundaries."""

    def __init__(
        self,
        options: Optional[ChunkingOptions] = None,
        token_counter: TokenCounter = count_tokens,
    ) -> None:
        self.options = options or ChunkingOptions()
        self.count_tokens = token_counter

    def chunk(self, text: str, options: Optional[ChunkingOptions] = None) -> List[TextChunk]:
        """Chunk *text*, preferring paragraph and then sentence boundaries."""

        opts = options or self.options
        if not text or not text.strip():
            return []

        if opts.respect_paragraphs:
            paragraphs = split_paragraphs(text)
        else:
            paragraphs = []
            _append_stripped(paragraphs, text, 0, len(text), PARAGRAPH_SEPARATOR, 0)

        builder = _ChunkBuilder(opts, self.count_tokens)
        for paragraph in paragraphs:
            if self.count_tokens(paragraph.text) <= opts.max_tokens:
                builder.add(paragraph)
                continue
            for piece in self._split_oversized(paragraph, opts):
                builder.add(piece)
        return builder.finish()

    def chunk_pdf(
        self, pages: Iterable[PageContent], options: Optional[ChunkingOptions] = None
    ) -> List[TextChunk]:
        """Chunk page by page, renumbering indices globally and tagging page numbers."""

        chunks: List[TextChunk] = []
        for page in pages:
            if not page.text.strip():
                continue
            for chunk in self.chunk(page.text, options):
                chunks.append(
                    replace(
                        chunk,
                        index=len(chunks),
                        page_number=page.page_number,
                        start_char=chunk.start_char + page.char_offset,
                        end_char=chunk.end_char + page.char_offset,
                    )
                )
        return chunks

    def estimate_chunk_count(self, text: str, options: Optional[ChunkingOptions] = None) -> int:
        opts = options or self.options
        total_tokens = self.count_tokens(text)
        if total_tokens == 0:
            return 0
        effective = opts.max_tokens - opts.overlap_tokens
        if effective <= 0:
            effective = opts.max_tokens
        return math.ceil(total_tokens / effective)

    @staticmethod
    def get_chunking_stats(chunks: List[TextChunk]) -> ChunkingStats:
        if not chunks:
            return ChunkingStats()
        counts = [chunk.token_count for chunk in chunks]
        total = sum(counts)
        return ChunkingStats(
            total_chunks=len(chunks),
            total_tokens=total,
            avg_tokens_per_chunk=round(total / len(chunks)),
            min_tokens=min(counts),
            max_tokens=max(counts),
        )

    def _split_oversized(self, paragraph: _Piece, opts: ChunkingOptions) -> List[_Piece]:
        if opts.respect_sentences:
            pieces = split_sentences(paragraph.text, paragraph.start)
        else:
            pieces = _split_words(paragraph.text, paragraph.start)
        if pieces:
            pieces[0].separator = paragraph.separator
        return pieces
