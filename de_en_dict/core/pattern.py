"""Search term cleaning and search pattern construction."""

import re
from typing import List, NamedTuple, Tuple

from .equiv import DEFAULT_TABLE, WILDCARD, EquivalenceTable

WILDCARD_PATTERN = ".*?"

_WHITESPACE_RE = re.compile(r"\s+")


class SearchPattern(NamedTuple):
    """Regex sources for a search term.

    ``strict`` only escapes the term, ``loose`` also expands equivalences and
    wildcards. Neither contains anchors or capturing groups, so callers can
    splice them into larger expressions.
    """

    strict: str
    loose: str


def clean_search_term(text: str) -> str:
    """Collapse whitespace runs to a single space and trim both ends.

    Calling this twice gives the same result as calling it once.
    """
    return _WHITESPACE_RE.sub(" ", text).strip()


def _tokens(term: str, table: EquivalenceTable) -> List[str]:
    tokens: List[str] = []
    for token in table.split(term):
        if token == WILDCARD and tokens and tokens[-1] == WILDCARD:
            continue
        tokens.append(token)
    # patterns are never anchored, so a wildcard at either end matches nothing extra
    if tokens and tokens[0] == WILDCARD:
        tokens.pop(0)
    if tokens and tokens[-1] == WILDCARD:
        tokens.pop()
    return tokens


def make_search_pattern(term: str, table: EquivalenceTable = DEFAULT_TABLE) -> SearchPattern:
    """
    Turn a cleaned search term into a strict and a loose regex source.

    Args:
        term: Search term, already passed through ``clean_search_term``
        table: Equivalence table used for the loose pattern

    Returns:
        SearchPattern; ``("", "")`` for an empty term
    """
    strict: List[str] = []
    loose: List[str] = []
    for token in _tokens(term, table):
        if token == WILDCARD:
            strict.append(WILDCARD_PATTERN)
            loose.append(WILDCARD_PATTERN)
        else:
            strict.append(re.escape(token))
            loose.append(table.replacement(token))
    return SearchPattern("".join(strict), "".join(loose))


def highlight(text: str, pattern: str) -> List[Tuple[str, bool]]:
    """
    Split text into segments, flagging those matched by a search pattern.

    Args:
        text: Text to split
        pattern: Loose pattern from ``make_search_pattern`` (capture-free)

    Returns:
        List of ``(segment, is_match)`` tuples that concatenate back to ``text``
    """
    if not pattern or not text:
        return [(text, False)] if text else []
    segments: List[Tuple[str, bool]] = []
    position = 0
    for match in re.finditer(pattern, text, re.IGNORECASE):
        start, end = match.span()
        if start == end:
            continue
        if start > position:
            segments.append((text[position:start], False))
        segments.append((text[start:end], True))
        position = end
    if position < len(text):
        segments.append((text[position:], False))
    return segments
