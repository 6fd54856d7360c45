"""Ranking search over dictionary lines."""

import random
import re
import time
from typing import Dict, List, NamedTuple, Optional, Pattern, Sequence, Tuple

import structlog
from rapidfuzz import fuzz, process

from .pattern import SearchPattern, make_search_pattern
from .progress import ProgressCallback, ProgressReporter

logger = structlog.get_logger(__name__)

# (regex prefix, weight): where the term starts
SCORE_PREFIXES: List[Tuple[str, int]] = [
    # very beginning of an entry: German at start of line, or English after "::"
    (r"(?:^|::\s*)", 2),
    # beginning of any sub-entry
    (r"(?:^|::\s*|\|\s*)", 1),
    # English infinitive ("to sprint") at the start of an entry or sub-entry
    (r"(?:^|::\s*|\|\s*)to\s+", 4),
    # beginning of a word
    (r"\b", 1),
]

# (regex suffix, weight): what follows the term
SCORE_SUFFIXES: List[Tuple[str, int]] = [
    ("", 1),
    # end of a word; together with a prefix above this means a whole word
    (r"\b", 2),
    # only annotations up to the end of the entry, sub-entry or list item
    (r"(?:\s*\{[^}|]*\}|\s*\[[^\]|]*\]|\s*\([^)|]*\))*\s*(?:$|::|\||;)", 1),
]


class SearchResult(NamedTuple):
    """Ranked matches and the loose pattern that produced them."""

    pattern: str
    matches: List[str]


class SearchEngine:
    """Scans dictionary lines for a search term and ranks the matches."""

    def __init__(
        self,
        check_interval_lines: int = 500,
        initial_report_ms: int = 500,
        report_interval_ms: int = 100,
        suggestion_threshold: float = 0.6,
    ) -> None:
        """
        Initialize the search engine.

        Args:
            check_interval_lines: Lines scanned between progress clock checks
            initial_report_ms: Delay before the first progress report
            report_interval_ms: Minimum time between progress reports
            suggestion_threshold: Minimum similarity (0-1) for suggestions
        """
        self.check_interval_lines = check_interval_lines
        self.initial_report_ms = initial_report_ms
        self.report_interval_ms = report_interval_ms
        self.suggestion_threshold = suggestion_threshold
        self._stats = {
            "total_searches": 0,
            "total_matches": 0,
            "total_execution_time": 0.0,
        }

    @staticmethod
    def build_scorers(pattern: SearchPattern) -> List[Tuple[Pattern[str], int]]:
        """
        Compile the weighted scoring battery for a search pattern.

        Every prefix/suffix combination is applied to both the loose and the
        strict pattern, each compiled case-sensitive and case-insensitive.
        When both patterns are the same, one set is compiled at double weight.
        """
        if pattern.strict == pattern.loose:
            terms = [(pattern.loose, 2)]
        else:
            terms = [(pattern.loose, 1), (pattern.strict, 1)]
        scorers: List[Tuple[Pattern[str], int]] = []
        for prefix, prefix_weight in SCORE_PREFIXES:
            for term, term_weight in terms:
                for suffix, suffix_weight in SCORE_SUFFIXES:
                    source = prefix + term + suffix
                    weight = prefix_weight * suffix_weight * term_weight
                    scorers.append((re.compile(source), weight))
                    scorers.append((re.compile(source, re.IGNORECASE), weight))
        return scorers

    @staticmethod
    def score_line(line: str, scorers: Sequence[Tuple[Pattern[str], int]]) -> int:
        """Sum the weights of all scoring regexes that match anywhere in the line."""
        return sum(weight for regex, weight in scorers if regex.search(line))

    def search(
        self,
        lines: Sequence[str],
        term: str,
        progress: Optional[ProgressCallback] = None,
    ) -> SearchResult:
        """
        Search the dictionary lines for a cleaned search term.

        Args:
            lines: All dictionary lines, in dictionary order
            term: Search term, already cleaned
            progress: Optional callback receiving the percent of lines scanned

        Returns:
            SearchResult with the loose pattern and matches sorted by score;
            lines with equal scores keep their dictionary order
        """
        if not term or not lines:
            return SearchResult("", [])

        pattern = make_search_pattern(term)
        if not pattern.loose:
            return SearchResult("", [])

        start_time = time.time()
        matcher = re.compile(pattern.loose, re.IGNORECASE)
        scorers = self.build_scorers(pattern)
        reporter = ProgressReporter(
            progress,
            interval_ms=self.report_interval_ms,
            initial_delay_ms=self.initial_report_ms,
        )

        total = len(lines)
        scored: List[Tuple[str, int]] = []
        lines_until_check = self.check_interval_lines
        for index, line in enumerate(lines):
            if matcher.search(line):
                scored.append((line, self.score_line(line, scorers)))
            lines_until_check -= 1
            if not lines_until_check:
                lines_until_check = self.check_interval_lines
                reporter.update(index + 1, total)

        # list.sort is stable, so ties keep dictionary order
        scored.sort(key=lambda item: item[1], reverse=True)
        matches = [line for line, _score in scored]
        reporter.finish(always=False)

        execution_time = (time.time() - start_time) * 1000
        self._stats["total_searches"] += 1
        self._stats["total_matches"] += len(matches)
        self._stats["total_execution_time"] += execution_time
        logger.debug(
            "Search finished",
            pattern=pattern.loose,
            matches=len(matches),
            execution_time_ms=round(execution_time, 2),
        )
        return SearchResult(pattern.loose, matches)

    def random_line(self, lines: Sequence[str]) -> Optional[str]:
        """Pick one dictionary line at random."""
        if not lines:
            return None
        return random.choice(lines)

    def suggest(self, headwords: Sequence[str], term: str, limit: int = 5) -> List[str]:
        """
        Suggest headwords close to a term that produced no matches.

        Args:
            headwords: Candidate words, usually ``DictionarySnapshot.headwords``
            term: The search term
            limit: Maximum number of suggestions

        Returns:
            List of suggested headwords, best first
        """
        if not term or not headwords:
            return []
        suggestions = process.extract(
            term,
            headwords,
            limit=limit,
            scorer=fuzz.WRatio,
            processor=str.lower,
            score_cutoff=self.suggestion_threshold * 100,
        )
        return [suggestion[0] for suggestion in suggestions]

    def get_stats(self) -> Dict[str, float]:
        """Get engine statistics."""
        stats = self._stats.copy()
        if stats["total_searches"] > 0:
            stats["average_execution_time_ms"] = (
                stats["total_execution_time"] / stats["total_searches"]
            )
        else:
            stats["average_execution_time_ms"] = 0.0
        return stats
