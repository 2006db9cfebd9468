from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class UniversalTag(str, Enum):
    NOUN = "NOUN"
    PROPN = "PROPN"
    VERB = "VERB"
    AUX = "AUX"
    ADJ = "ADJ"
    ADV = "ADV"
    PRON = "PRON"
    DET = "DET"
    ADP = "ADP"
    CONJ = "CONJ"
    NUM = "NUM"
    PART = "PART"
    INTJ = "INTJ"
    X = "X"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RawToken:
    """One fragment as emitted by the primary tagger, with its native tag."""

    text: str
    tag: str
    index: int = 0


@dataclass(frozen=True)
class Word:
    surface: str
    tag: Union[str, UniversalTag]


@dataclass
class Sentence:
    text: str
    words: List[Word] = field(default_factory=list)


@dataclass
class SegmentedSentence:
    """A sentence as returned by a SentenceSegmenter: text plus raw tokens."""

    text: str
    tokens: List[RawToken] = field(default_factory=list)


@dataclass
class ContextEntry:
    sentence_index: int
    sentence: str
    context: str
    word_position: int


@dataclass
class WordPosEntry:
    original: str
    tags: Dict[str, int] = field(default_factory=dict)
    total_count: int = 0
    contexts: List[ContextEntry] = field(default_factory=list)


@dataclass
class DimensionProfile:
    """
    One rhetorical dimension.

    percentages: category -> score (meaning depends on the dimension)
    ratio: dimension-level ratio, None where the dimension has none (sensory)
    example_words: category -> matched words, original case, deduplicated
    """

    percentages: Dict[str, float] = field(default_factory=dict)
    ratio: Optional[float] = None
    example_words: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def index(self) -> Optional[float]:
        return self.ratio


@dataclass
class Stats:
    total_words: int = 0
    unique_words: int = 0
    total_sentences: int = 0
    total_syllables: int = 0
    pos_counts: Dict[str, int] = field(default_factory=dict)
    word_frequency: Dict[str, int] = field(default_factory=dict)
    hapax_legomena: List[str] = field(default_factory=list)
    word_pos_map: Dict[str, WordPosEntry] = field(default_factory=dict)
    readability: float = 0.0
    avg_sentence_length: float = 0.0
    readability_level: str = ""
    readability_benchmark: str = ""
    sentence_length_benchmark: str = ""
    pos_sequence: List[str] = field(default_factory=list)
    sensory: DimensionProfile = field(default_factory=DimensionProfile)
    confidence: DimensionProfile = field(default_factory=DimensionProfile)
    abstraction: DimensionProfile = field(default_factory=DimensionProfile)
    perspective: DimensionProfile = field(default_factory=DimensionProfile)
    temporal: DimensionProfile = field(default_factory=DimensionProfile)
    argumentation: DimensionProfile = field(default_factory=DimensionProfile)
    shadow_concept: Optional[str] = None

    def contexts(self, word: str) -> List[ContextEntry]:
        """Sentence occurrences of a cleaned word (empty if unseen)."""
        entry = self.word_pos_map.get(word.lower())
        return entry.contexts if entry else []

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisResult:
    words: List[Word]
    stats: Stats
    gaps: List[str] = field(default_factory=list)

    @property
    def pos_tags(self) -> List[str]:
        return [str(w.tag) for w in self.words]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "words": [w.surface for w in self.words],
            "pos_tags": self.pos_tags,
            "stats": self.stats.to_dict(),
            "gaps": list(self.gaps),
        }
