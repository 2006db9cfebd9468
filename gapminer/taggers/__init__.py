import logging
import time
from typing import Callable, Optional

from ..errors import SecondaryTaggerUnavailable, TaggerUnavailable
from .base import SecondaryTagger, SentenceSegmenter
from .nltk_backend import NltkTagger
from .spacy_backend import SpacySegmenter

logger = logging.getLogger(__name__)

__all__ = [
    "SentenceSegmenter",
    "SecondaryTagger",
    "SpacySegmenter",
    "NltkTagger",
    "get_segmenter",
    "get_secondary_tagger",
    "acquire_segmenter",
    "load_secondary_tagger",
]

SEGMENTERS = {
    "spacy": SpacySegmenter,
}

SECONDARY_TAGGERS = {
    "nltk": NltkTagger,
}


def get_segmenter(name: str, config: Optional[dict] = None) -> SentenceSegmenter:
    """Factory function to get a primary tagger backend by name."""
    backend_class = SEGMENTERS.get(name.lower())
    if not backend_class:
        raise ValueError(
            f"Unknown segmenter backend: {name}. Available: {list(SEGMENTERS.keys())}"
        )
    return backend_class(config if config else {})


def get_secondary_tagger(name: str, config: Optional[dict] = None) -> SecondaryTagger:
    """Factory function to get a secondary tagger backend by name."""
    backend_class = SECONDARY_TAGGERS.get(name.lower())
    if not backend_class:
        raise ValueError(
            f"Unknown secondary tagger: {name}. Available: {list(SECONDARY_TAGGERS.keys())}"
        )
    return backend_class(config if config else {})


def acquire_segmenter(
    factory: Callable[[], SentenceSegmenter], attempts: int = 30, interval: float = 0.1
) -> SentenceSegmenter:
    """
    Poll factory until it yields a segmenter, at most `attempts` times with
    `interval` seconds between tries. Raises TaggerUnavailable afterwards.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return factory()
        except (TaggerUnavailable, ImportError, OSError) as e:
            last_error = e
            logger.debug(f"Primary tagger not ready (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                time.sleep(interval)
    raise TaggerUnavailable(
        f"Primary tagger unavailable after {attempts} attempts: {last_error}"
    )


def load_secondary_tagger(config: Optional[dict] = None) -> Optional[SecondaryTagger]:
    """Build the configured secondary tagger, or None if disabled or unavailable."""
    section = (config or {}).get("secondary", {})
    if not section.get("enabled", True):
        return None
    name = section.get("backend", "nltk")
    if name.lower() not in SECONDARY_TAGGERS:
        raise ValueError(
            f"Unknown secondary tagger: {name}. Available: {list(SECONDARY_TAGGERS.keys())}"
        )
    try:
        return get_secondary_tagger(name, section)
    except SecondaryTaggerUnavailable as e:
        logger.warning(f"Secondary tagger unavailable, using primary tags only: {e}")
    except Exception as e:
        logger.warning(f"Could not construct secondary tagger {name}: {e}")
    return None
