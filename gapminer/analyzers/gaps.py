import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from ..embeddings import EmbeddingTable
from ..utils.data import load_json
from .base import UniversalTag, Word
from .statistics import clean_word
from .tagset import normalize_tag

logger = logging.getLogger(__name__)

_GAPS_DATA = load_json("gaps.json")

COMMON_WORDS: Set[str] = set(_GAPS_DATA.get("common_words", []))
CANDIDATE_STOPWORDS: Set[str] = set(_GAPS_DATA.get("candidate_stopwords", []))
GENERIC_NOUNS: Set[str] = set(_GAPS_DATA.get("generic_nouns", []))
FALLBACK_MAPS: Dict[str, List[str]] = _GAPS_DATA.get("fallback_maps", {})
UNIVERSAL_ALTERNATIVES: List[str] = _GAPS_DATA.get("universal_alternatives", [])

HEAD_TAGS = (UniversalTag.NOUN, UniversalTag.VERB, UniversalTag.PROPN)
NOUN_TAGS = (UniversalTag.NOUN, UniversalTag.PROPN)

# similarity thresholds
PAIR_FLOOR = 0.4
CLOSE_KEY = 0.5
VERY_CLOSE_KEY = 0.6
EXTREMELY_CLOSE_KEY = 0.7
CLOSE_PAIR = 0.55
STRONG_PAIR = 0.6
VERY_CLOSE_PAIR = 0.65

_GENERIC_SUFFIXES = ("tion", "sion", "ness", "ment", "ity", "ance", "ence")
_SPECIFIC_SUFFIXES = ("ship", "hood", "dom", "ism", "ist", "er", "or", "ian")


@dataclass
class KeyWord:
    word: str
    frequency: int
    length: int
    is_noun: bool
    specificity: float


@dataclass
class GapCandidate:
    word: str
    is_noun: bool
    adjusted_score: float
    close_keys: int
    very_close_keys: int
    extremely_close_keys: int
    close_pairs: int
    very_close_pairs: int
    max_key_similarity: float
    max_pair_similarity: float
    avg_top_key_similarity: float
    avg_top_pair_similarity: float
    intersection_score: float

    def rank_key(self) -> Tuple:
        """Ascending sort key: every metric descending, then the word."""
        return (
            -self.avg_top_pair_similarity,
            -self.very_close_pairs,
            -self.close_pairs,
            -self.max_pair_similarity,
            -self.intersection_score,
            -self.extremely_close_keys,
            -self.very_close_keys,
            -self.close_keys,
            -self.avg_top_key_similarity,
            -self.max_key_similarity,
            -self.adjusted_score,
            -len(self.word),
            self.word,
        )


def is_likely_noun(word: str) -> bool:
    """Suffix heuristic for candidate words, which carry no tag."""
    if len(word) < 10:
        return False
    if word.endswith(("ing", "ed", "ly")):
        return False
    generic = word.endswith(_GENERIC_SUFFIXES)
    specific = word.endswith(_SPECIFIC_SUFFIXES)
    return (len(word) >= 11 and not generic) or specific or len(word) >= 13


def passes_candidate_filters(word: str) -> bool:
    if len(word) < 9 or word.endswith("ly"):
        return False
    if word.endswith("ing") and len(word) < 12:
        return False
    if word.endswith("ed") and len(word) < 11:
        return False
    if word.endswith(("tion", "sion")) and len(word) < 12:
        return False
    return word not in CANDIDATE_STOPWORDS and word not in GENERIC_NOUNS


def _mean_top3(values: np.ndarray) -> float:
    if values.size == 0:
        return 0.0
    return float(np.sort(values)[::-1][:3].mean())


class SemanticGapFinder:
    """
    Finds words that are absent from a text yet close, in embedding space,
    to its most specific vocabulary.

    Key words are the text's most specific nouns and verbs. Every eligible
    table word is scored against each key word and against the midpoint of
    every key-word pair; only candidates with several strong matches are
    kept. When the table is empty or nothing qualifies, a small hand-made
    map of alternatives is used instead. find_gaps never raises and never
    returns a word that occurs in the text.
    """

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self.max_results = config.get("max_results", 20)
        self.max_key_words = config.get("max_key_words", 20)
        self.min_key_nouns = config.get("min_key_nouns", 12)
        self.noun_slots = config.get("noun_slots", 15)
        self.other_slots = config.get("other_slots", 5)
        self.batch_size = config.get("batch_size", 4096)
        self.fallback_maps: Dict[str, List[str]] = config.get("fallback_maps", FALLBACK_MAPS)

    def find_gaps(self, words: Sequence[Word], embeddings) -> List[str]:
        if not words:
            return []

        text_words = self._text_words(words)
        try:
            gaps = self._semantic_gaps(words, embeddings, text_words)
        except Exception as e:
            logger.error(f"Semantic gap search failed, using fallback: {e}")
            gaps = []

        if not gaps:
            return self.fallback(words)
        return gaps

    def key_words(self, words: Sequence[Word], embeddings) -> List[KeyWord]:
        """The text's most specific head words, with the top nouns first."""
        frequency: Dict[str, int] = {}
        noun_counts: Dict[str, int] = {}
        for w in words:
            tag = normalize_tag(w.tag)
            if tag not in HEAD_TAGS:
                continue
            word = clean_word(w.surface)
            if len(word) <= 4 or word in COMMON_WORDS or word not in embeddings:
                continue
            frequency[word] = frequency.get(word, 0) + 1
            if tag in NOUN_TAGS:
                noun_counts[word] = noun_counts.get(word, 0) + 1

        candidates = []
        for word, freq in frequency.items():
            # dominant tag: noun when at least half the occurrences are nouns
            is_noun = noun_counts.get(word, 0) * 2 >= freq
            specificity = freq * len(word) ** 1.5 * (2 if is_noun else 1)
            candidates.append(KeyWord(word, freq, len(word), is_noun, specificity))

        candidates.sort(key=lambda k: (-k.specificity, k.word))
        nouns = [k for k in candidates if k.is_noun][: self.min_key_nouns]
        top = candidates[: self.max_key_words]

        merged: Dict[str, KeyWord] = {}
        for k in nouns + top:
            merged.setdefault(k.word, k)
        return list(merged.values())[: self.max_key_words]

    def fallback(self, words: Sequence[Word]) -> List[str]:
        """Hand-picked alternatives for common head words, then generic adverbs."""
        if not words:
            return []
        text_words = self._text_words(words)

        heads: List[str] = []
        for w in words:
            word = clean_word(w.surface)
            if (
                len(word) > 2
                and normalize_tag(w.tag) in HEAD_TAGS
                and word in self.fallback_maps
                and word not in heads
            ):
                heads.append(word)

        gaps = [
            alt
            for head in heads
            for alt in self.fallback_maps[head]
            if len(clean_word(alt)) > 2 and not self._in_text(alt, text_words)
        ]
        if not gaps:
            gaps = [a for a in UNIVERSAL_ALTERNATIVES if not self._in_text(a, text_words)]

        return list(dict.fromkeys(gaps))[: self.max_results]

    def _semantic_gaps(self, words, embeddings, text_words: Set[str]) -> List[str]:
        if embeddings is None or not len(embeddings):
            logger.warning("No embeddings available, using fallback semantic maps")
            return []
        if not isinstance(embeddings, EmbeddingTable):
            embeddings = EmbeddingTable(embeddings)

        keys = [k.word for k in self.key_words(words, embeddings)]
        if not keys:
            logger.info("No key words found, using fallback")
            return []
        logger.debug(f"Key words: {keys[:10]}")

        key_set = set(keys)
        pool = [
            w
            for w in embeddings
            if w not in text_words and w not in key_set and passes_candidate_filters(w)
        ]
        if not pool:
            return []

        key_matrix = embeddings.matrix(keys)
        rows, cols = np.triu_indices(len(keys), k=1)
        midpoints = (key_matrix[rows] + key_matrix[cols]) / 2.0
        center = key_matrix.mean(axis=0, keepdims=True)

        accepted: List[GapCandidate] = []
        for start in range(0, len(pool), self.batch_size):
            batch = pool[start:start + self.batch_size]
            accepted.extend(
                self._score_batch(batch, embeddings.matrix(batch), key_matrix, midpoints, center)
            )
        logger.info(f"Checked {len(pool)} candidates, accepted {len(accepted)}")

        nouns = sorted((c for c in accepted if c.is_noun), key=GapCandidate.rank_key)
        others = sorted((c for c in accepted if not c.is_noun), key=GapCandidate.rank_key)
        selected = [c.word for c in nouns[: self.noun_slots]] + [
            c.word for c in others[: self.other_slots]
        ]

        result: List[str] = []
        seen: Set[str] = set()
        for word in selected:
            lower = word.lower()
            if lower in seen or self._in_text(lower, text_words):
                continue
            seen.add(lower)
            result.append(lower)
            if len(result) >= self.max_results:
                break
        return result

    def _score_batch(self, batch, vectors, key_matrix, midpoints, center) -> List[GapCandidate]:
        single = cosine_similarity(vectors, key_matrix)
        if len(midpoints):
            pair = cosine_similarity(vectors, midpoints)
        else:
            pair = np.zeros((len(batch), 0))
        center_sim = cosine_similarity(vectors, center)[:, 0]

        very_close_keys = (single > VERY_CLOSE_KEY).sum(axis=1)
        close_pairs = (pair > CLOSE_PAIR).sum(axis=1)
        strong_pairs = (pair > STRONG_PAIR).sum(axis=1)
        max_pair = np.where(
            (pair > PAIR_FLOOR).any(axis=1), pair.max(axis=1, initial=0.0), 0.0
        )
        max_key = single.max(axis=1)

        strong_pair_match = (strong_pairs >= 3) & (max_pair > STRONG_PAIR)
        strong_key_match = (very_close_keys >= 4) & (max_key > VERY_CLOSE_KEY) & (close_pairs >= 2)
        gate = strong_pair_match | strong_key_match

        accepted = []
        for idx in np.flatnonzero(gate):
            candidate = self._candidate(
                batch[idx], single[idx], pair[idx], float(center_sim[idx])
            )
            if candidate is not None:
                accepted.append(candidate)
        return accepted

    def _candidate(self, word, single, pair_all, center_sim) -> Optional[GapCandidate]:
        pair = pair_all[pair_all > PAIR_FLOOR]

        close_keys = int((single > CLOSE_KEY).sum())
        very_close_keys = int((single > VERY_CLOSE_KEY).sum())
        extremely_close_keys = int((single > EXTREMELY_CLOSE_KEY).sum())
        close_pairs = int((pair > CLOSE_PAIR).sum())
        very_close_pairs = int((pair > VERY_CLOSE_PAIR).sum())

        key_hits = single[single > CLOSE_KEY]
        pair_hits = pair[pair > CLOSE_PAIR]
        intersection = float((key_hits ** 2).sum()) / max(close_keys, 1)
        pair_intersection = float((pair_hits ** 2).sum()) / max(close_pairs, 1)
        combined = pair_intersection * 0.6 + intersection * 0.4

        avg_top_key = _mean_top3(single)
        avg_top_pair = _mean_top3(pair)

        is_noun = is_likely_noun(word)
        bonus = (
            (0.1 if is_noun else 0.0)
            + min(len(word) / 15, 0.1)
            + min(close_pairs / 2, 0.25)
            + very_close_pairs * 0.15
            + min(close_keys / 2, 0.2)
            + very_close_keys * 0.15
            + extremely_close_keys * 0.2
        )
        adjusted = max(combined, avg_top_pair, avg_top_key, center_sim) + bonus

        threshold = 0.5 if is_noun else 0.6
        if adjusted <= threshold:
            return None

        return GapCandidate(
            word=word,
            is_noun=is_noun,
            adjusted_score=adjusted,
            close_keys=close_keys,
            very_close_keys=very_close_keys,
            extremely_close_keys=extremely_close_keys,
            close_pairs=close_pairs,
            very_close_pairs=very_close_pairs,
            max_key_similarity=float(single.max()) if single.size else 0.0,
            max_pair_similarity=float(pair.max()) if pair.size else 0.0,
            avg_top_key_similarity=avg_top_key,
            avg_top_pair_similarity=avg_top_pair,
            intersection_score=combined,
        )

    @staticmethod
    def _text_words(words: Sequence[Word]) -> Set[str]:
        found: Set[str] = set()
        for w in words:
            found.add(w.surface.lower())
            found.add(clean_word(w.surface))
        found.discard("")
        return found

    @staticmethod
    def _in_text(word: str, text_words: Set[str]) -> bool:
        return word.lower() in text_words or clean_word(word) in text_words


def find_gaps(words: Sequence[Word], embeddings) -> List[str]:
    return SemanticGapFinder().find_gaps(words, embeddings)
