"""Dictionary line codec.

A dictionary line looks like ``German side :: English side``, and each side
holds one or more ``|``-separated sub-entries. Both sides always have the same
number of sub-entries, which pair up in order.
"""

import re
from typing import Iterable, List, NamedTuple, Optional, Tuple

import structlog

from ..exceptions import LineDecodeError

logger = structlog.get_logger(__name__)

SEPARATOR = "::"
SUB_SEPARATOR = "|"
COMMENT_MARKER = "#"

_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")
_STATS_RE = re.compile(
    r"Stats:\s*(?P<total>\d+)\s+entries\s*\(\s*(?P<main>\d+)\s+main\s*\+\s*(?P<additional>\d+)"
    r"\s+additional\s*,\s*(?P<one_to_one>\d+)\s+1:1\s+translations?\s*\)",
    re.IGNORECASE,
)
# stray CP1252 control characters left over from an old conversion to UTF-8
_CP1252_REPAIRS = str.maketrans({"\u0092": "’", "\u0096": "–"})


class TranslationPair(NamedTuple):
    """One German sub-entry and its English counterpart."""

    german: str
    english: str


class StatsComment(NamedTuple):
    """Counts announced by a ``# Stats: ...`` comment in the dictionary file."""

    total: int
    main: int
    additional: int
    one_to_one: int


def decode_line(line: str) -> List[TranslationPair]:
    """
    Decode one dictionary line into its translation pairs.

    Args:
        line: A trimmed, non-comment dictionary line

    Returns:
        List of TranslationPair, one per sub-entry

    Raises:
        LineDecodeError: If the line does not have exactly one ``::`` or the
            sides have different sub-entry counts
    """
    sides = line.split(SEPARATOR)
    if len(sides) != 2:
        raise LineDecodeError(line, f"expected one {SEPARATOR!r} separator, found {len(sides) - 1}")
    german = sides[0].split(SUB_SEPARATOR)
    english = sides[1].split(SUB_SEPARATOR)
    if len(german) != len(english):
        raise LineDecodeError(
            line, f"sub-entry count mismatch ({len(german)} German vs {len(english)} English)"
        )
    return [TranslationPair(de.strip(), en.strip()) for de, en in zip(german, english)]


def try_decode_line(line: str) -> Optional[List[TranslationPair]]:
    """Decode a line, logging and returning None when it is malformed."""
    try:
        return decode_line(line)
    except LineDecodeError as e:
        logger.warning("Skipping malformed dictionary line", reason=e.reason, line=e.line)
        return None


def count_entries(lines: Iterable[str]) -> Tuple[int, int]:
    """
    Count sub-entries over all decodable lines.

    Returns:
        Tuple of (entries, skipped_lines)
    """
    entries = 0
    skipped = 0
    for line in lines:
        pairs = try_decode_line(line)
        if pairs is None:
            skipped += 1
        else:
            entries += len(pairs)
    return entries, skipped


def repair_text(text: str) -> str:
    """Replace stray CP1252 characters with the punctuation they were meant to be."""
    return text.translate(_CP1252_REPAIRS)


def split_raw_lines(text: str) -> List[str]:
    """Split on CRLF, LF or CR line terminators."""
    return _LINE_BREAK_RE.split(text)


def clean_lines(raw_lines: Iterable[str]) -> List[str]:
    """Trim raw lines, dropping blank lines and comments."""
    lines = []
    for raw in raw_lines:
        line = raw.strip()
        if line and not line.startswith(COMMENT_MARKER):
            lines.append(line)
    return lines


def parse_stats_comment(raw_lines: Iterable[str]) -> Optional[StatsComment]:
    """Find a ``# Stats: N entries (M main + K additional, J 1:1 translations)`` comment."""
    for raw in raw_lines:
        line = raw.strip()
        if not line.startswith(COMMENT_MARKER):
            continue
        match = _STATS_RE.search(line)
        if match:
            return StatsComment(
                total=int(match.group("total")),
                main=int(match.group("main")),
                additional=int(match.group("additional")),
                one_to_one=int(match.group("one_to_one")),
            )
    return None
