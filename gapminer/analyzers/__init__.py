from .base import (
    AnalysisResult,
    DimensionProfile,
    RawToken,
    SegmentedSentence,
    Sentence,
    Stats,
    UniversalTag,
    Word,
)
from .reconstructor import Reconstructor
from .arbiter import PosArbiter
from .statistics import StatisticsEngine, compute_stats
from .rhetoric import RhetoricAnalyzer
from .gaps import SemanticGapFinder, find_gaps

__all__ = [
    "AnalysisResult",
    "DimensionProfile",
    "RawToken",
    "SegmentedSentence",
    "Sentence",
    "Stats",
    "UniversalTag",
    "Word",
    "Reconstructor",
    "PosArbiter",
    "StatisticsEngine",
    "compute_stats",
    "RhetoricAnalyzer",
    "SemanticGapFinder",
    "find_gaps",
]
