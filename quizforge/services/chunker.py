"""
Text chunking: split long document text into bounded, overlapping segments
that try to end on sentence or paragraph boundaries.
"""
import re
import uuid
from typing import List, Optional, Sequence

import structlog

from quizforge.models import ChunkAnalysis, ChunkingOptions, TextChunk

logger = structlog.get_logger()

MAX_CHUNKS = 100
SENTENCE_SNAP_RATIO = 0.7
PARAGRAPH_SNAP_RATIO = 0.6
MAX_OVERLAP_RATIO = 0.3
DUPLICATE_SIMILARITY = 0.7

WHITESPACE_RE = re.compile(r"\s+")
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
SENTENCE_END_RE = re.compile(r"[.!?]+\s")
WORD_RE = re.compile(r"\S+")


def normalize_text(text: str) -> str:
    text = WHITESPACE_RE.sub(" ", text or "")
    text = EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def count_words(text: str) -> int:
    return len(text.split())


def find_last_sentence_end(text: str) -> int:
    """Offset just past the last sentence terminator and its whitespace, or len(text)"""
    last = -1
    for m in SENTENCE_END_RE.finditer(text):
        last = m.end()
    return last if last > 0 else len(text)


def find_last_paragraph_end(text: str) -> int:
    idx = text.rfind("\n\n")
    return idx + 2 if idx > 0 else len(text)


def trim_to_word_limit(text: str, word_limit: int) -> str:
    """Cut text after its word_limit-th word, keeping offsets intact"""
    for i, m in enumerate(WORD_RE.finditer(text), start=1):
        if i == word_limit:
            return text[:m.end()]
    return text


def chunk_text(text: str, options: Optional[ChunkingOptions] = None, **overrides) -> List[TextChunk]:
    """Split text into chunks.

    All offsets refer to the normalized text. Consecutive chunks overlap by at
    most ``overlap_chars`` (less when a boundary snap or the 30% cap kicks in)
    and never leave a gap. Output is capped at 100 chunks.
    """
    opts = options or ChunkingOptions()
    if overrides:
        opts = ChunkingOptions.model_validate({**opts.model_dump(), **overrides})

    clean = normalize_text(text)
    if not clean:
        return []

    run = uuid.uuid4().hex[:8]
    text_length = len(clean)
    total_words = count_words(clean)

    if total_words <= opts.max_words and text_length <= opts.max_chars:
        return [TextChunk(
            id=f"chunk_0_{run}",
            content=clean,
            start_index=0,
            end_index=text_length,
            word_count=total_words,
        )]

    chunks: List[TextChunk] = []
    cursor = 0

    while cursor < text_length and len(chunks) < MAX_CHUNKS:
        chunk_end = min(cursor + opts.max_chars, text_length)
        content = clean[cursor:chunk_end]

        if opts.preserve_sentences and chunk_end < text_length:
            boundary = find_last_sentence_end(content)
            if boundary > len(content) * SENTENCE_SNAP_RATIO:
                chunk_end = cursor + boundary
                content = clean[cursor:chunk_end]

        if opts.preserve_paragraphs and chunk_end < text_length:
            boundary = find_last_paragraph_end(content)
            if boundary > len(content) * PARAGRAPH_SNAP_RATIO:
                chunk_end = cursor + boundary
                content = clean[cursor:chunk_end]

        if count_words(content) > opts.max_words:
            content = trim_to_word_limit(content, opts.max_words)
            chunk_end = cursor + len(content)

        trimmed = content.strip()
        chunks.append(TextChunk(
            id=f"chunk_{len(chunks)}_{run}",
            content=trimmed,
            start_index=cursor,
            end_index=chunk_end,
            word_count=count_words(trimmed),
        ))

        if chunk_end >= text_length:
            break

        overlap = min(opts.overlap_chars, int(len(content) * MAX_OVERLAP_RATIO))
        next_cursor = chunk_end - max(overlap, 0)
        if next_cursor <= cursor:
            next_cursor = max(chunk_end, cursor + 1)
        cursor = next_cursor

    if len(chunks) >= MAX_CHUNKS and chunks[-1].end_index < text_length:
        logger.warning("chunk_limit_reached", limit=MAX_CHUNKS, covered=chunks[-1].end_index, text_length=text_length)

    return chunks


def jaccard_similarity(a: str, b: str) -> float:
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def deduplicate_chunks(chunks: Sequence[TextChunk]) -> List[TextChunk]:
    """Drop chunks that are near-duplicates of the last kept chunk"""
    if len(chunks) <= 1:
        return list(chunks)

    kept = [chunks[0]]
    for chunk in chunks[1:]:
        if jaccard_similarity(chunk.content, kept[-1].content) < DUPLICATE_SIMILARITY:
            kept.append(chunk)
    return kept


def analyze_chunks(chunks: Sequence[TextChunk]) -> ChunkAnalysis:
    if not chunks:
        raise ValueError("analyze_chunks needs at least one chunk")

    word_counts = [c.word_count for c in chunks]
    char_counts = [len(c.content) for c in chunks]
    return ChunkAnalysis(
        total_chunks=len(chunks),
        avg_word_count=sum(word_counts) / len(chunks),
        min_word_count=min(word_counts),
        max_word_count=max(word_counts),
        avg_char_count=sum(char_counts) / len(chunks),
        min_char_count=min(char_counts),
        max_char_count=max(char_counts),
    )
