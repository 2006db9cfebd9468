import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from ..utils.data import load_json
from .base import ContextEntry, Sentence, Stats, Word, WordPosEntry
from .reconstructor import normalize_apostrophes
from .rhetoric import RhetoricAnalyzer

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 7

_CLEAN_RE = re.compile(r"[^A-Za-z0-9_']")
_LETTERS_RE = re.compile(r"[^a-z]")
_VOWEL_RUN_RE = re.compile(r"[aeiouy]+")
_HAS_LETTER_RE = re.compile(r"[a-z]")

_READABILITY_DATA = load_json("readability.json")

READABILITY_LEVELS: List[Tuple[float, str]] = [
    (float(threshold), label) for threshold, label in _READABILITY_DATA.get("levels", [])
]
READABILITY_BENCHMARKS: Dict[str, float] = _READABILITY_DATA.get("readability_benchmarks", {})
SENTENCE_LENGTH_BENCHMARKS: Dict[str, float] = _READABILITY_DATA.get(
    "sentence_length_benchmarks", {}
)


def clean_word(word: str) -> str:
    """Lowercase and drop everything but word characters and apostrophes.

    Curly apostrophes are folded to ' first, matching reconstructed words.
    """
    return _CLEAN_RE.sub("", normalize_apostrophes(word).lower())


def count_syllables(word: str) -> int:
    """Vowel-cluster approximation; a trailing 'e' is silent, minimum 1."""
    letters = _LETTERS_RE.sub("", word.lower())
    if not letters:
        return 0
    syllables = len(_VOWEL_RUN_RE.findall(letters))
    if letters.endswith("e"):
        syllables -= 1
    return max(syllables, 1)


def flesch_reading_ease(total_words: int, total_sentences: int, total_syllables: int) -> float:
    if not total_words or not total_sentences:
        return 0.0
    return (
        206.835
        - 1.015 * (total_words / total_sentences)
        - 84.6 * (total_syllables / total_words)
    )


def readability_level(score: float) -> str:
    for threshold, label in READABILITY_LEVELS:
        if score >= threshold:
            return label
    return READABILITY_LEVELS[-1][1] if READABILITY_LEVELS else ""


def nearest_benchmark(value: float, benchmarks: Dict[str, float]) -> str:
    if not benchmarks:
        return ""
    return min(benchmarks, key=lambda label: abs(benchmarks[label] - value))


def build_context_index(
    sentences: Sequence[Sentence], targets: Sequence[str], window: int = CONTEXT_WINDOW
) -> Dict[str, List[ContextEntry]]:
    """
    For every target (cleaned) word, each occurrence in the whitespace-split
    sentences with up to `window` words on either side.
    """
    wanted = set(targets)
    index: Dict[str, List[ContextEntry]] = {}
    seen = set()
    for sentence_index, sentence in enumerate(sentences):
        text = sentence.text.strip()
        if not text:
            continue
        tokens = text.split()
        for position, token in enumerate(tokens):
            key = clean_word(token)
            if key not in wanted or (key, sentence_index, position) in seen:
                continue
            seen.add((key, sentence_index, position))
            start = max(0, position - window)
            end = min(len(tokens), position + window + 1)
            index.setdefault(key, []).append(
                ContextEntry(
                    sentence_index=sentence_index,
                    sentence=text,
                    context=" ".join(tokens[start:end]),
                    word_position=position - start,
                )
            )
    return index


class StatisticsEngine:
    """
    Counts, readability and rhetorical profile for a reconciled word sequence.

    compute() is pure: the same words and sentences always produce an equal
    Stats object.
    """

    def __init__(self, rhetoric: Optional[RhetoricAnalyzer] = None):
        self.rhetoric = rhetoric or RhetoricAnalyzer()

    def compute(self, words: Sequence[Word], sentences: Sequence[Sentence]) -> Stats:
        surfaces = [w.surface for w in words]
        tags = [str(w.tag) for w in words]
        cleaned = [clean_word(s) for s in surfaces]

        stats = Stats(
            total_words=len(words),
            unique_words=len({s.lower() for s in surfaces}),
            total_sentences=len(sentences),
            pos_counts=dict(Counter(tags)),
            pos_sequence=tags,
        )

        frequency: Dict[str, int] = {}
        word_pos_map: Dict[str, WordPosEntry] = {}
        for surface, clean, tag in zip(surfaces, cleaned, tags):
            if len(clean) <= 1 or not _HAS_LETTER_RE.search(clean):
                continue
            frequency[clean] = frequency.get(clean, 0) + 1
            entry = word_pos_map.setdefault(clean, WordPosEntry(original=surface))
            entry.tags[tag] = entry.tags.get(tag, 0) + 1
            entry.total_count += 1

        contexts = build_context_index(sentences, list(word_pos_map))
        for clean, entry in word_pos_map.items():
            entry.contexts = contexts.get(clean, [])

        stats.word_frequency = frequency
        stats.word_pos_map = word_pos_map
        stats.hapax_legomena = [w for w, n in frequency.items() if n == 1 and len(w) > 2]

        if sentences and words:
            stats.total_syllables = sum(count_syllables(s) for s in surfaces)
            stats.readability = flesch_reading_ease(
                len(words), len(sentences), stats.total_syllables
            )
            stats.avg_sentence_length = len(words) / len(sentences)
        stats.readability_level = readability_level(stats.readability)
        stats.readability_benchmark = nearest_benchmark(stats.readability, READABILITY_BENCHMARKS)
        stats.sentence_length_benchmark = nearest_benchmark(
            stats.avg_sentence_length, SENTENCE_LENGTH_BENCHMARKS
        )

        profile = self.rhetoric.analyze(surfaces, cleaned)
        stats.sensory = profile["sensory"]
        stats.confidence = profile["confidence"]
        stats.abstraction = profile["abstraction"]
        stats.perspective = profile["perspective"]
        stats.temporal = profile["temporal"]
        stats.argumentation = profile["argumentation"]
        stats.shadow_concept = profile["shadow_concept"]

        return stats


def compute_stats(words: Sequence[Word], sentences: Sequence[Sentence]) -> Stats:
    return StatisticsEngine().compute(words, sentences)
