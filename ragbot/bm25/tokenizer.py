"""
Tokenizer for BM25 text processing.

Tokenization pipeline:
1. Lowercase conversion
2. Replace every character that is neither a word character nor whitespace with a space
3. Split on whitespace runs
4. Drop tokens of 2 characters or fewer ("is", "of", "a", ...)

The same function runs at ingestion (term maps stored per chunk) and at query
time. Any change here silently breaks matching against term maps that are
already persisted: re-ingest after changing it.

Word characters are ASCII letters, digits and underscore. Non-ASCII letters act
as separators.
"""

import re
from typing import List

# Anything that is not [A-Za-z0-9_] and not whitespace
_NON_WORD = re.compile(r'[^\w\s]', re.ASCII)

MIN_TERM_LENGTH = 3


def tokenize(text: str) -> List[str]:
    """
    Tokenize text into BM25 index terms.

    Args:
        text: Input text to tokenize

    Returns:
        Lowercase terms in input order, duplicates preserved

    Examples:
        >>> tokenize("Apple-pie recipes: the BEST!")
        ['apple', 'pie', 'recipes', 'the', 'best']

        >>> tokenize("It is on me")
        []

        >>> tokenize("snake_case stays joined")
        ['snake_case', 'stays', 'joined']
    """
    if not text:
        return []

    text = _NON_WORD.sub(' ', text.lower())
    return [term for term in text.split() if len(term) >= MIN_TERM_LENGTH]
