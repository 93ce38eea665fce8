"""
Sentence-aligned text chunking.

Text is split into sentences at '.', '!' or '?' followed by whitespace (or the
end of the text), then sentences are packed greedily into chunks of at most
`max_tokens` whitespace-delimited words.

Chunk boundaries always fall between sentences. A single sentence longer than
`max_tokens` is never cut: it becomes one oversized chunk on its own.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 500

# Split after terminal punctuation when followed by whitespace; "3.14" and "e.g.x" stay whole
_SENTENCE_BOUNDARY = re.compile(r'(?<=[.!?])\s+')


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentences, keeping their terminal punctuation.

    Trailing text without punctuation is returned as the last sentence.

    Example:
        >>> split_sentences("Hi there. How are you?  Fine")
        ['Hi there.', 'How are you?', 'Fine']
    """
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def count_tokens(text: str) -> int:
    """Whitespace-delimited word count"""
    return len(text.split())


def chunk_text(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> List[str]:
    """
    Pack sentences into chunks of at most `max_tokens` words.

    Args:
        text: Extracted document text
        max_tokens: Word budget per chunk (soft for single long sentences)

    Returns:
        Non-empty chunks in document order (list position = chunk_index)
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")

    chunks: List[str] = []
    current: List[str] = []
    current_tokens = 0

    for sentence in split_sentences(text):
        sentence_tokens = count_tokens(sentence)

        if current and current_tokens + sentence_tokens > max_tokens:
            chunks.append(" ".join(current))
            current = []
            current_tokens = 0

        current.append(sentence)
        current_tokens += sentence_tokens

    if current:
        chunks.append(" ".join(current))

    logger.debug(f"Chunked {len(text)} chars into {len(chunks)} chunks (max_tokens={max_tokens})")
    return chunks
