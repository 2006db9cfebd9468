import importlib.util
import logging
from typing import List

from ..analyzers.base import RawToken, SegmentedSentence
from ..errors import TaggerUnavailable
from .base import SentenceSegmenter

logger = logging.getLogger(__name__)

FALLBACK_MODELS = ["en_core_web_sm", "en_core_web_md", "en_core_web_lg"]


class SpacySegmenter(SentenceSegmenter):
    """Sentence segmentation and universal POS tags from a spaCy pipeline."""

    name = "spacy"

    def __init__(self, config: dict = None):
        super().__init__(config)
        self.model_name = self.config.get("model", FALLBACK_MODELS[0])
        self._nlp = self._load_model()

    @classmethod
    def is_available(cls) -> bool:
        return importlib.util.find_spec("spacy") is not None

    def _load_model(self):
        try:
            import spacy
        except ImportError as e:
            raise TaggerUnavailable("spaCy not installed. Run: pip install spacy") from e

        models_to_try = [self.model_name] + [
            m for m in FALLBACK_MODELS if m != self.model_name
        ]
        for model in models_to_try:
            try:
                nlp = spacy.load(model)
                self.model_name = model
                logger.info(f"Loaded spaCy model {model}")
                return nlp
            except OSError:
                logger.debug(f"spaCy model {model} not installed")
                continue

        raise TaggerUnavailable(
            "No spaCy model found. Install with: python -m spacy download en_core_web_sm"
        )

    def segment(self, text: str) -> List[SegmentedSentence]:
        doc = self._nlp(text)
        sentences = []
        for sent in doc.sents:
            tokens = [
                RawToken(text=tok.text, tag=tok.pos_ or tok.tag_ or "X", index=i)
                for i, tok in enumerate(t for t in sent if not t.is_space)
            ]
            if tokens:
                sentences.append(SegmentedSentence(text=sent.text.strip(), tokens=tokens))
        return sentences
