from abc import ABC, abstractmethod
from typing import List, Sequence

from ..analyzers.base import SegmentedSentence


class SentenceSegmenter(ABC):
    """Primary tagger: splits text into sentences of tagged raw tokens."""

    name: str = "base"

    def __init__(self, config: dict = None):
        self.config = config or {}

    @classmethod
    @abstractmethod
    def is_available(cls) -> bool:
        """Check if the backend library is installed."""
        pass

    @abstractmethod
    def segment(self, text: str) -> List[SegmentedSentence]:
        """Split text into sentences.

        Args:
            text: Plain document text

        Returns:
            One SegmentedSentence per sentence, each token carrying the
            backend's native POS tag
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(available={self.is_available()})"


class SecondaryTagger(ABC):
    """Secondary tagger: re-tags an already segmented word sequence."""

    name: str = "base"

    def __init__(self, config: dict = None):
        self.config = config or {}

    @classmethod
    @abstractmethod
    def is_available(cls) -> bool:
        pass

    @abstractmethod
    def tag(self, words: Sequence[str]) -> List[str]:
        """Return one native tag per word, in order."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(available={self.is_available()})"
