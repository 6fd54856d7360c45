"""Unit tests for the ranking search engine."""

import pytest

from de_en_dict.core.engine import SearchEngine
from de_en_dict.core.pattern import make_search_pattern


class TestSearchEngine:
    """Test cases for the SearchEngine class."""

    @pytest.fixture
    def engine(self):
        """Create a search engine that reports progress as often as possible."""
        return SearchEngine(check_interval_lines=1, initial_report_ms=0, report_interval_ms=0)

    @pytest.fixture
    def lines(self):
        return [
            "Hund {m}|Köter {m}::dog|mutt",
            "Straße {f}::street",
            "Strasse {f} [Schw.]::street [Swiss]",
            "run::rennen",
            "to run::laufen",
            "Apfel {m}::apple",
        ]

    def test_engine_initialization(self, engine):
        stats = engine.get_stats()
        assert stats["total_searches"] == 0
        assert stats["average_execution_time_ms"] == 0.0

    def test_infinitive_outranks_plain_entry(self, engine):
        result = engine.search(["run::rennen", "to run::laufen"], "run")
        assert result.matches == ["to run::laufen", "run::rennen"]

    def test_infinitive_scores_strictly_higher(self):
        scorers = SearchEngine.build_scorers(make_search_pattern("run"))
        assert SearchEngine.score_line("to run::laufen", scorers) > SearchEngine.score_line(
            "run::rennen", scorers
        )

    def test_equivalent_spellings_match(self, engine, lines):
        result = engine.search(lines, "Strasse")
        assert set(result.matches) == {"Straße {f}::street", "Strasse {f} [Schw.]::street [Swiss]"}

    def test_search_is_case_insensitive(self, engine, lines):
        assert engine.search(lines, "APFEL").matches == ["Apfel {m}::apple"]

    def test_exact_case_scores_higher(self):
        scorers = SearchEngine.build_scorers(make_search_pattern("Hund"))
        assert SearchEngine.score_line("Hund::dog", scorers) > SearchEngine.score_line("hund::dog", scorers)

    def test_whole_word_beats_word_prefix(self):
        scorers = SearchEngine.build_scorers(make_search_pattern("Hund"))
        assert SearchEngine.score_line("Hund::dog", scorers) > SearchEngine.score_line("Hunde::dogs", scorers)

    def test_identical_patterns_share_one_scorer_set(self):
        pattern = make_search_pattern("fry")
        assert pattern.strict == pattern.loose
        scorers = SearchEngine.build_scorers(pattern)
        assert len(scorers) == 24
        # (infinitive 4 + word start 1) * (suffixes 1 + 2 + 1), two case modes, both patterns
        assert SearchEngine.score_line("to fry::braten", scorers) == 80
        assert SearchEngine.score_line("to run::laufen", SearchEngine.build_scorers(make_search_pattern("run"))) == 80

    def test_equal_scores_keep_dictionary_order(self, engine):
        lines = ["Katze::cat", "Katze::puss", "Katze::kitty"]
        assert engine.search(lines, "Katze").matches == lines

    def test_result_carries_loose_pattern(self, engine, lines):
        result = engine.search(lines, "Hund")
        assert result.pattern == make_search_pattern("Hund").loose
        assert result.matches == ["Hund {m}|Köter {m}::dog|mutt"]

    def test_empty_inputs(self, engine, lines):
        assert engine.search(lines, "").matches == []
        assert engine.search([], "Hund").matches == []
        assert engine.search(lines, "*").matches == []

    def test_no_matches(self, engine, lines):
        result = engine.search(lines, "Zebra")
        assert result.matches == []
        assert result.pattern != ""

    def test_progress_ends_with_full_report(self, engine):
        reports = []
        engine.search(["run::rennen"] * 20, "run", progress=reports.append)
        assert reports
        assert reports[-1] == 100.0
        assert all(0.0 < percent <= 100.0 for percent in reports)

    def test_fast_search_sends_no_progress(self, lines):
        engine = SearchEngine(check_interval_lines=500, initial_report_ms=10_000)
        reports = []
        engine.search(lines, "run", progress=reports.append)
        assert reports == []

    def test_failing_progress_callback_does_not_abort(self, engine):
        def explode(percent):
            raise RuntimeError("listener gone")

        result = engine.search(["run::rennen"] * 5, "run", progress=explode)
        assert len(result.matches) == 5

    def test_statistics_are_tracked(self, engine, lines):
        engine.search(lines, "run")
        engine.search(lines, "Hund")
        stats = engine.get_stats()
        assert stats["total_searches"] == 2
        assert stats["total_matches"] == 3
        assert stats["average_execution_time_ms"] >= 0.0

    def test_random_line(self, engine, lines):
        assert engine.random_line(lines) in lines
        assert engine.random_line([]) is None

    def test_suggest_close_headwords(self, engine):
        headwords = ["Apfel", "Hund", "Straße", "apple", "dog"]
        assert engine.suggest(headwords, "Apfl")[0] == "Apfel"

    def test_suggest_nothing_for_unrelated_terms(self, engine):
        assert engine.suggest(["Apfel", "Hund"], "xyzzyq") == []
        assert engine.suggest([], "Hund") == []
