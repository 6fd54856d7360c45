"""Character equivalences used to loosen search patterns.

If the user searches for any of the strings in the left list of a row, the
search should match what the user entered plus the alternatives in the right
list. If the right list is empty, it is taken to be identical to the left list.
This lets users type plain ASCII and still find the Unicode spellings.
"""

import re
from typing import Dict, Iterable, List, Pattern, Sequence, Set, Tuple

WILDCARD = "*"

EQUIVALENCES: List[Tuple[Sequence[str], Sequence[str]]] = [
    # "a" matches "a" or "ä", "A" matches "A" or "Ä"
    (["a"], ["ä"]),
    (["A"], ["Ä"]),
    # "ae" and "ä" both match either "ae" or "ä" (same for uppercase)
    (["ae", "ä"], []),
    (["AE", "Ae", "Ä"], []),
    (["o"], ["ö"]),
    (["O"], ["Ö"]),
    (["oe", "ö"], []),
    (["OE", "Oe", "Ö"], []),
    (["u"], ["ü"]),
    (["U"], ["Ü"]),
    (["ue", "ü"], []),
    (["UE", "Ue", "Ü"], []),
    (["ss", "sz"], ["ß"]),
    (["ß"], ["ss"]),
    # other accented letters
    (["e"], ["ë"]),
    (["i"], ["ï"]),
    (["A"], ["Á"]),
    (["E"], ["É"]),
    (["I"], ["Î"]),
    (["a"], ["á"]),
    (["e"], ["é"]),
    (["i"], ["í"]),
    (["o"], ["ó"]),
    (["a"], ["à"]),
    (["e"], ["è"]),
    (["i"], ["ì"]),
    (["o"], ["ò"]),
    (["a"], ["â"]),
    (["e"], ["ê"]),
    (["i"], ["î"]),
    (["o"], ["ô"]),
    (["u"], ["û"]),
    (["a"], ["ã"]),
    (["n"], ["ñ"]),
    (["i"], ["ī"]),
    (["c"], ["ç"]),
    (["S"], ["Š"]),
    (["a"], ["å"]),
    (["ae"], ["æ"]),
    (["l"], ["ł"]),
    # greek letters
    (["alpha"], ["α"]),
    (["lambda", "lamda"], ["λ"]),
    (["omega", "ohm"], ["Ω"]),
    # punctuation
    (["'", "’", "ʽ"], []),
    (["-", "–", "⁻"], []),
    (["...", "…"], []),
    (['"', "“", "”", "„"], []),
    # sub- and superscripts and other symbol sequences
    (["0"], ["₀", "⁰"]),
    (["1"], ["₁", "¹"]),
    (["2"], ["₂", "²"]),
    (["3"], ["₃", "³"]),
    (["4"], ["₄", "⁴"]),
    (["5"], ["₅", "⁵"]),
    (["6"], ["₆", "⁶"]),
    (["7"], ["₇", "⁷"]),
    (["8"], ["₈", "⁸"]),
    (["9"], ["₉", "⁹"]),
    (["1/2"], ["½"]),
    (["x"], ["×"]),
    (["(R)"], ["®"]),
    (["(c)", "(C)"], ["©"]),
]


def _longest_first(items: Iterable[str]) -> List[str]:
    # lexical order first so ties in length come out deterministic
    return sorted(sorted(items), key=len, reverse=True)


class EquivalenceTable:
    """Compiled form of an equivalence list.

    Holds the regular expression that splits a search term into tokens and,
    for every token, the regex fragment matching all of its equivalents.
    """

    def __init__(self, equivalences: Iterable[Tuple[Sequence[str], Sequence[str]]]) -> None:
        self.classes: Dict[str, Set[str]] = {}
        for canonical, equivalents in equivalences:
            if not canonical:
                raise ValueError("equivalence row without canonical forms")
            for key in canonical:
                if not key:
                    raise ValueError("empty canonical form")
                variants = [key, *equivalents] if equivalents else list(canonical)
                self.classes.setdefault(key, set()).update(variants)

        if WILDCARD in self.classes:
            raise ValueError(f"{WILDCARD!r} is reserved for wildcards")

        self.tokens: List[str] = _longest_first(self.classes)
        self.replacements: Dict[str, str] = {
            token: self._fragment(self.classes[token]) for token in self.tokens
        }
        # one capturing group so re.split() keeps the tokens
        alternatives = [re.escape(token) for token in self.tokens] + [re.escape(WILDCARD)]
        self.split_re: Pattern[str] = re.compile("(" + "|".join(alternatives) + ")")

    @staticmethod
    def _fragment(variants: Set[str]) -> str:
        ordered = _longest_first(variants)
        if len(ordered) == 1:
            return re.escape(ordered[0])
        if all(len(v) == 1 for v in ordered):
            return "[" + "".join(re.escape(v) for v in ordered) + "]"
        return "(?:" + "|".join(re.escape(v) for v in ordered) + ")"

    def split(self, term: str) -> List[str]:
        """Split a term into equivalence tokens, wildcards and literal runs."""
        return [piece for piece in self.split_re.split(term) if piece]

    def replacement(self, token: str) -> str:
        """Loose regex fragment for a token; escaped literal if it has no equivalents."""
        return self.replacements.get(token, re.escape(token))

    def equivalents(self, token: str) -> Set[str]:
        return set(self.classes.get(token, {token}))


DEFAULT_TABLE = EquivalenceTable(EQUIVALENCES)
