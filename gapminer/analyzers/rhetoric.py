import logging
from typing import Dict, List, Optional, Sequence

from ..utils.data import load_json
from .base import DimensionProfile

logger = logging.getLogger(__name__)


def _dedupe(words: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(w.lower() for w in words))


_RHETORIC_DATA = load_json("rhetoric.json")

VOCABULARY: Dict[str, Dict[str, List[str]]] = {
    dimension: {category: _dedupe(terms) for category, terms in lists.items()}
    for dimension, lists in _RHETORIC_DATA.items()
    if isinstance(lists, dict)
}


class RhetoricAnalyzer:
    """
    Six independent rhetorical dimensions over one word sequence.

    Words are matched by exact membership after cleaning (lowercase, only
    word characters and apostrophes kept). A word can count towards any
    number of dimensions. Each dimension keeps the matched words in their
    original case, deduplicated, as evidence.

    Several ratios floor their denominator at 1, so a text with no matching
    vocabulary gets 0 rather than NaN.
    """

    def __init__(self, vocabulary: Optional[Dict[str, Dict[str, List[str]]]] = None):
        self.vocabulary = VOCABULARY if vocabulary is None else vocabulary

    def analyze(self, words: Sequence[str], cleaned: Sequence[str]) -> Dict[str, object]:
        counts = {
            dimension: self._match(lists, words, cleaned)
            for dimension, lists in self.vocabulary.items()
            if dimension != "shadow_concepts"
        }
        return {
            "sensory": self._sensory(counts.get("sensory", {})),
            "confidence": self._binary(counts.get("confidence", {}), "absolutes", "hedges"),
            "abstraction": self._abstraction(counts.get("abstraction", {})),
            "perspective": self._binary(counts.get("perspective", {}), "personal", "impersonal"),
            "temporal": self._three_way(counts.get("temporal", {}), ("past", "present", "future")),
            "argumentation": self._three_way(
                counts.get("argumentation", {}), ("causality", "contrast", "addition")
            ),
            "shadow_concept": self.shadow_concept(cleaned),
        }

    def shadow_concept(self, cleaned: Sequence[str]) -> Optional[str]:
        """
        The central concept that is never named while the most of its
        associated words are present (more than two), or None.
        """
        present = set(cleaned)
        best, best_score = None, 0
        for concept, related in self.vocabulary.get("shadow_concepts", {}).items():
            if concept in present:
                continue
            score = sum(1 for w in related if w in present)
            if score > best_score:
                best, best_score = concept, score
        return best if best_score > 2 else None

    def _match(self, lists, words, cleaned) -> Dict[str, List[str]]:
        """category -> every matching occurrence, original case."""
        lookup = {category: set(terms) for category, terms in lists.items()}
        matches: Dict[str, List[str]] = {category: [] for category in lists}
        for original, clean in zip(words, cleaned):
            for category, terms in lookup.items():
                if clean in terms:
                    matches[category].append(original)
        return matches

    def _examples(self, matches: Dict[str, List[str]]) -> Dict[str, List[str]]:
        return {category: list(dict.fromkeys(found)) for category, found in matches.items()}

    def _sensory(self, matches) -> DimensionProfile:
        lists = self.vocabulary.get("sensory", {})
        percentages = {
            sense: (len(found) / len(lists[sense]) * 100) if lists.get(sense) else 0.0
            for sense, found in matches.items()
        }
        return DimensionProfile(percentages=percentages, example_words=self._examples(matches))

    def _binary(self, matches, first: str, second: str) -> DimensionProfile:
        a = len(matches.get(first, []))
        b = len(matches.get(second, []))
        total = (a + b) or 1
        return DimensionProfile(
            percentages={first: a / total * 100, second: b / total * 100},
            ratio=a / total,
            example_words=self._examples(matches),
        )

    def _abstraction(self, matches) -> DimensionProfile:
        concrete = len(matches.get("concrete", []))
        abstract = len(matches.get("abstract", []))
        total = concrete + abstract
        if total:
            percentages = {
                "concrete": concrete / total * 100,
                "abstract": abstract / total * 100,
            }
            ratio = concrete / total
        else:
            percentages = {"concrete": 0.0, "abstract": 0.0}
            ratio = 0.5
        return DimensionProfile(
            percentages=percentages, ratio=ratio, example_words=self._examples(matches)
        )

    def _three_way(self, matches, categories) -> DimensionProfile:
        counts = {c: len(matches.get(c, [])) for c in categories}
        total = sum(counts.values()) or 1
        return DimensionProfile(
            percentages={c: n / total * 100 for c, n in counts.items()},
            example_words=self._examples(matches),
        )
