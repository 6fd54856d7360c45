"""In-memory dictionary snapshots and the handle that swaps them."""

import re
import threading
from functools import cached_property
from typing import List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field

from ..exceptions import DictionaryLoadError
from .codec import (
    clean_lines,
    count_entries,
    parse_stats_comment,
    repair_text,
    split_raw_lines,
    try_decode_line,
)

logger = structlog.get_logger(__name__)

# annotations like {f}, [Br.] or (sth.) that are not part of the headword itself
_ANNOTATION_RE = re.compile(r"\{[^}]*\}|\[[^\]]*\]|\([^)]*\)|<[^>]*>")


class DictionaryStats(BaseModel):
    """Summary counts for a loaded dictionary."""

    lines: int = Field(0, ge=0, description="Number of dictionary lines")
    entries: int = Field(0, ge=0, description="Total sub-entries across all lines")
    one_to_one: Optional[int] = Field(
        None, ge=0, description="1:1 translations, if announced by a consistent stats comment"
    )


class DictionarySnapshot:
    """An immutable, fully parsed dictionary.

    Snapshots are never modified after construction; a refreshed dictionary
    is a new snapshot swapped in through ``DictionaryHandle``.
    """

    def __init__(self, lines: Sequence[str], stats: Optional[DictionaryStats] = None) -> None:
        self.lines: Tuple[str, ...] = tuple(lines)
        if stats is None:
            entries, _ = count_entries(self.lines)
            stats = DictionaryStats(lines=len(self.lines), entries=entries)
        self.stats = stats

    @classmethod
    def from_text(cls, text: str, stats_scan_lines: int = 50) -> "DictionarySnapshot":
        """
        Parse decompressed dictionary text.

        Args:
            text: The full dictionary text
            stats_scan_lines: How many leading raw lines to search for a stats comment

        Raises:
            DictionaryLoadError: If one line or fewer remain after parsing
        """
        raw_lines = split_raw_lines(repair_text(text))
        lines = clean_lines(raw_lines)
        if len(lines) <= 1:
            raise DictionaryLoadError(f"Dictionary data was empty? ({len(lines)} lines)")

        entries, skipped = count_entries(lines)
        if skipped:
            logger.warning("Dictionary contains malformed lines", skipped=skipped)

        one_to_one = None
        comment = parse_stats_comment(raw_lines[:stats_scan_lines])
        if comment is not None:
            if comment.total == len(lines) and comment.main + comment.additional == comment.total:
                one_to_one = comment.one_to_one
            else:
                logger.warning(
                    "Ignoring inconsistent stats comment",
                    announced_total=comment.total,
                    announced_main=comment.main,
                    announced_additional=comment.additional,
                    counted_lines=len(lines),
                )

        stats = DictionaryStats(lines=len(lines), entries=entries, one_to_one=one_to_one)
        logger.debug("Decoded dictionary lines", lines=stats.lines, entries=stats.entries)
        return cls(lines, stats)

    @cached_property
    def headwords(self) -> List[str]:
        """Distinct first sub-entries of both sides, annotations removed."""
        seen = set()
        words: List[str] = []
        for line in self.lines:
            pairs = try_decode_line(line)
            if not pairs:
                continue
            for side in pairs[0]:
                word = " ".join(_ANNOTATION_RE.sub(" ", side).split())
                if word and word not in seen:
                    seen.add(word)
                    words.append(word)
        return words

    def __len__(self) -> int:
        return len(self.lines)


EMPTY_SNAPSHOT = DictionarySnapshot((), DictionaryStats())


class DictionaryHandle:
    """Holds the current snapshot; replacing it is a single reference swap.

    Readers call ``current()`` once at the start of an operation and keep using
    that snapshot, so a concurrent swap is never observed half-done.
    """

    def __init__(self, snapshot: DictionarySnapshot = EMPTY_SNAPSHOT) -> None:
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self.generation = 0

    def current(self) -> DictionarySnapshot:
        return self._snapshot

    def swap(self, snapshot: DictionarySnapshot) -> DictionarySnapshot:
        """Install a new snapshot and return the previous one."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
            self.generation += 1
        return previous
