"""Unit tests for the equivalence table."""

import re

import pytest

from de_en_dict.core.equiv import DEFAULT_TABLE, EQUIVALENCES, WILDCARD, EquivalenceTable


class TestEquivalenceTable:
    """Test cases for EquivalenceTable."""

    def test_rows_with_equivalents_add_to_the_canonical_form(self):
        table = EquivalenceTable([(["a"], ["ä"])])
        assert table.equivalents("a") == {"a", "ä"}
        # the equivalent itself is not a token
        assert table.equivalents("ä") == {"ä"}

    def test_rows_without_equivalents_are_symmetric(self):
        table = EquivalenceTable([(["ae", "ä"], [])])
        assert table.equivalents("ae") == {"ae", "ä"}
        assert table.equivalents("ä") == {"ae", "ä"}

    def test_rows_for_the_same_key_merge(self):
        table = EquivalenceTable([(["a"], ["ä"]), (["a"], ["á"])])
        assert table.equivalents("a") == {"a", "ä", "á"}

    def test_longest_tokens_split_first(self):
        table = EquivalenceTable([(["s"], ["ş"]), (["ss"], ["ß"])])
        assert table.split("Strasse") == ["Stra", "ss", "e"]

    def test_split_keeps_wildcards_and_literal_runs(self):
        table = EquivalenceTable([(["ä"], ["ae"])])
        assert table.split("Bär*x") == ["B", "ä", "r", WILDCARD, "x"]

    def test_single_character_class_becomes_bracket_expression(self):
        table = EquivalenceTable([(["a"], ["ä"])])
        assert table.replacement("a") == "[aä]"

    def test_multi_character_class_becomes_alternation(self):
        table = EquivalenceTable([(["ss"], ["ß"])])
        assert table.replacement("ss") == "(?:ss|ß)"

    def test_unknown_token_is_escaped(self):
        assert DEFAULT_TABLE.replacement("+") == re.escape("+")

    def test_wildcard_cannot_be_a_key(self):
        with pytest.raises(ValueError):
            EquivalenceTable([(["*"], ["x"])])

    def test_empty_row_is_rejected(self):
        with pytest.raises(ValueError):
            EquivalenceTable([([], ["x"])])

    def test_default_table_covers_umlauts_and_sharp_s(self):
        assert "ä" in DEFAULT_TABLE.equivalents("ae")
        assert "ß" in DEFAULT_TABLE.equivalents("ss")
        assert "ss" in DEFAULT_TABLE.equivalents("ß")
        assert "½" in DEFAULT_TABLE.equivalents("1/2")
        assert len(EQUIVALENCES) > 50

    def test_replacements_compile(self):
        for token in DEFAULT_TABLE.tokens:
            re.compile(DEFAULT_TABLE.replacement(token))
