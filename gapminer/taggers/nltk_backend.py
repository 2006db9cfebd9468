import importlib.util
import logging
from typing import List, Sequence

from ..errors import SecondaryTaggerUnavailable
from .base import SecondaryTagger

logger = logging.getLogger(__name__)

TAGGER_RESOURCES = ["averaged_perceptron_tagger", "averaged_perceptron_tagger_eng"]


class NltkTagger(SecondaryTagger):
    """Penn Treebank tags from NLTK's averaged perceptron tagger."""

    name = "nltk"

    def __init__(self, config: dict = None):
        super().__init__(config)
        if not self.is_available():
            raise SecondaryTaggerUnavailable("NLTK not installed. Run: pip install nltk")
        self._ensure_resources(self.config.get("download", True))

        from nltk import pos_tag

        self._pos_tag = pos_tag

    @classmethod
    def is_available(cls) -> bool:
        return importlib.util.find_spec("nltk") is not None

    @staticmethod
    def _ensure_resources(download: bool) -> None:
        import nltk

        found = False
        for resource in TAGGER_RESOURCES:
            try:
                nltk.data.find(f"taggers/{resource}")
                found = True
            except LookupError:
                if download:
                    found = nltk.download(resource, quiet=True) or found
        if not found:
            raise SecondaryTaggerUnavailable("NLTK perceptron tagger data not available")

    def tag(self, words: Sequence[str]) -> List[str]:
        if not words:
            return []
        return [t for _, t in self._pos_tag(list(words))]
