"""Word-frequency fallback summarizer for resume text."""

import re
from collections import Counter
from typing import Dict, Iterable, List

from stopwords import is_stop_word

MIN_WORD_LENGTH = 4  # tokens shorter than this never count

# Anything that is not a letter, digit or whitespace. \w also admits "_",
# which is folded into the punctuation class explicitly.
NON_WORD_RE = re.compile(r"[^\w\s]|_")
WHITESPACE_RE = re.compile(r"\s+")


def tokenize(text: str) -> List[str]:
    """Lowercase ``text``, blank out punctuation and split on whitespace."""
    if not text:
        return []
    normalized = NON_WORD_RE.sub(" ", text.lower())
    return [token for token in WHITESPACE_RE.split(normalized) if token]


def significant_words(tokens: Iterable[str]) -> List[str]:
    return [
        token
        for token in tokens
        if len(token) >= MIN_WORD_LENGTH and not is_stop_word(token)
    ]


def count_word_frequencies(text: str) -> Dict[str, int]:
    """Frequency of every significant word, keyed in first-seen order."""
    return dict(Counter(significant_words(tokenize(text))))


def top_frequent_words(text: str, count: int) -> List[str]:
    """Return up to ``count`` significant words, most frequent first.

    Ties keep the order in which the words first appeared in the text, so the
    result is the same for the same input on every call. Empty text or a
    non-positive ``count`` gives an empty list.
    """
    if count <= 0:
        return []
    frequencies = count_word_frequencies(text)
    # sorted() is stable and Counter preserves insertion order
    ranked = sorted(frequencies.items(), key=lambda item: item[1], reverse=True)
    return [word for word, _ in ranked[:count]]
