import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from ..utils.data import load_json
from .base import UniversalTag, Word
from .reconstructor import normalize_apostrophes
from .tagset import (
    is_modal_or_verb,
    is_proper_noun,
    is_verb_or_adj,
    map_native_tag,
    normalize_tag,
)

logger = logging.getLogger(__name__)

_DATA = load_json("arbiter.json")

KNOWN_CONTRACTIONS: Set[str] = {w.lower() for w in _DATA.get("known_contractions", [])}
KNOWN_NOUNS: Set[str] = {w.lower() for w in _DATA.get("known_nouns", [])}

_EDGE_RE = re.compile(r"^[^\w']+|[^\w']+$")
_UPPER_RE = re.compile(r"[A-Z]")

ARBITRATION_ORDER: Tuple[str, ...] = (
    "contraction",
    "noun_over_verb_or_adj",
    "misflagged_proper_noun",
    "confirmed_proper_noun",
    "auxiliary",
    "secondary_mapping",
)


def normalize_for_secondary(surface: str) -> str:
    """
    Prepare a surface form for the secondary tagger: acronyms stay as they
    are, everything else is lowercased with edge punctuation stripped.
    """
    if not surface:
        return surface
    if surface.upper() == surface and _UPPER_RE.search(surface):
        return surface
    return _EDGE_RE.sub("", surface).lower()


class PosArbiter:
    """
    Reconciles primary tags with an optional secondary tagger.

    The secondary tagger (Penn Treebank tags) runs once per sentence over the
    reconstructed surface forms. Each word is then resolved by the first
    matching rule in ARBITRATION_ORDER. Without a secondary tagger, or when
    it fails for a sentence, every word gets its primary tag normalized.
    """

    def __init__(
        self,
        secondary=None,
        known_nouns: Optional[Iterable[str]] = None,
        known_contractions: Optional[Iterable[str]] = None,
    ):
        self.secondary = secondary
        self.known_nouns: Set[str] = (
            KNOWN_NOUNS if known_nouns is None else {w.lower() for w in known_nouns}
        )
        self.known_contractions: Set[str] = (
            KNOWN_CONTRACTIONS
            if known_contractions is None
            else {w.lower() for w in known_contractions}
        )
        self.rules: List[Tuple[str, Callable]] = [
            (name, getattr(self, f"_rule_{name}")) for name in ARBITRATION_ORDER
        ]

    def reconcile(
        self, words: Sequence[Word], raw_surface_forms: Optional[Sequence[str]] = None
    ) -> List[Word]:
        if not words:
            return []

        secondary_tags = self._secondary_tags(words, raw_surface_forms)
        if secondary_tags is None:
            return [Word(w.surface, normalize_tag(w.tag)) for w in words]

        return [
            Word(w.surface, self.arbitrate(w.surface, w.tag, native))
            for w, native in zip(words, secondary_tags)
        ]

    def arbitrate(self, surface: str, primary_tag, secondary_tag: str) -> UniversalTag:
        """Resolve one word's tag from both taggers' opinions."""
        primary = normalize_tag(primary_tag)
        native = (secondary_tag or "").strip().upper()
        for name, rule in self.rules:
            tag = rule(surface, primary, native)
            if tag is not None:
                logger.debug(f"{surface!r}: {name} -> {tag.value}")
                return tag
        return primary

    def _secondary_tags(
        self, words: Sequence[Word], raw_surface_forms: Optional[Sequence[str]]
    ) -> Optional[List[str]]:
        if self.secondary is None:
            return None

        forms = raw_surface_forms if raw_surface_forms is not None else [w.surface for w in words]
        normalized = [normalize_for_secondary(f) for f in forms]
        try:
            tags = list(self.secondary.tag(normalized))
        except Exception as e:
            logger.warning(f"Secondary tagger failed, using primary tags: {e}")
            return None

        if len(tags) != len(words):
            logger.warning(
                f"Secondary tagger returned {len(tags)} tags for {len(words)} words, "
                f"using primary tags"
            )
            return None
        return [t or "" for t in tags]

    # Rules

    def _rule_contraction(self, surface, primary, native) -> Optional[UniversalTag]:
        key = normalize_apostrophes(surface).lower()
        if (
            "'" in key
            and key in self.known_contractions
            and primary in (UniversalTag.AUX, UniversalTag.VERB)
        ):
            return primary
        return None

    def _rule_noun_over_verb_or_adj(self, surface, primary, native) -> Optional[UniversalTag]:
        if primary == UniversalTag.NOUN and is_verb_or_adj(native):
            return UniversalTag.NOUN
        return None

    def _rule_misflagged_proper_noun(self, surface, primary, native) -> Optional[UniversalTag]:
        if primary != UniversalTag.PROPN or not is_verb_or_adj(native):
            return None
        key = normalize_apostrophes(surface).replace("'", "").lower()
        if key in self.known_nouns:
            return UniversalTag.NOUN
        return map_native_tag(native, primary)

    def _rule_confirmed_proper_noun(self, surface, primary, native) -> Optional[UniversalTag]:
        if primary == UniversalTag.PROPN and is_proper_noun(native):
            return UniversalTag.PROPN
        return None

    def _rule_auxiliary(self, surface, primary, native) -> Optional[UniversalTag]:
        if primary == UniversalTag.AUX and not is_modal_or_verb(native):
            return UniversalTag.AUX
        return None

    def _rule_secondary_mapping(self, surface, primary, native) -> Optional[UniversalTag]:
        return map_native_tag(native, primary)
