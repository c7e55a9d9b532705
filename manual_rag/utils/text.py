"""Small text helpers shared by the chunk store, mirror and indexer."""

from __future__ import annotations

import re

# Keeps oil grades and sizes such as "5w-30", "0w-20" and "2.5l" whole.
_TOKEN_RE = re.compile(r"[a-z0-9]+(?:[-./][a-z0-9]+)*")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

_STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does",
        "for", "from", "how", "i", "in", "is", "it", "my", "of", "on", "or",
        "should", "the", "to", "what", "when", "where", "which", "with",
    }
)


def tokenize(text: str) -> list[str]:
    """Lower-case *text* and split it into lexical tokens."""
    return _TOKEN_RE.findall(text.lower())


def query_terms(query: str) -> list[str]:
    """Return the distinct, non-stop-word terms of *query* in order."""
    seen: set[str] = set()
    terms: list[str] = []
    for token in tokenize(query):
        if token in _STOP_WORDS or token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms


def slugify(value: str) -> str:
    """Return a lower-case, hyphen-separated slug of *value*."""
    return _SLUG_RE.sub("-", value.lower()).strip("-")
