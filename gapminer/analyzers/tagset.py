import logging
from typing import Optional, Tuple

from .base import UniversalTag

logger = logging.getLogger(__name__)

# Universal/UD names and common long-form aliases, matched exactly before
# any prefix rule ("INTJ" would otherwise fall under the "IN" prefix).
_EXACT = {
    "NOUN": UniversalTag.NOUN,
    "PROPN": UniversalTag.PROPN,
    "VERB": UniversalTag.VERB,
    "AUX": UniversalTag.AUX,
    "ADJ": UniversalTag.ADJ,
    "ADJECTIVE": UniversalTag.ADJ,
    "ADV": UniversalTag.ADV,
    "ADVERB": UniversalTag.ADV,
    "PRON": UniversalTag.PRON,
    "PRONOUN": UniversalTag.PRON,
    "DET": UniversalTag.DET,
    "DETERMINER": UniversalTag.DET,
    "ART": UniversalTag.DET,
    "ADP": UniversalTag.ADP,
    "PREP": UniversalTag.ADP,
    "CONJ": UniversalTag.CONJ,
    "CCONJ": UniversalTag.CONJ,
    "SCONJ": UniversalTag.CONJ,
    "NUM": UniversalTag.NUM,
    "PART": UniversalTag.PART,
    "INTJ": UniversalTag.INTJ,
    "SYM": UniversalTag.X,
    "PUNCT": UniversalTag.X,
    "SPACE": UniversalTag.X,
    "X": UniversalTag.X,
}

# Penn Treebank prefixes, longest first within each family.
_PREFIXES: Tuple[Tuple[str, UniversalTag], ...] = (
    ("NNP", UniversalTag.PROPN),
    ("NN", UniversalTag.NOUN),
    ("MD", UniversalTag.AUX),
    ("VB", UniversalTag.VERB),
    ("JJ", UniversalTag.ADJ),
    ("RB", UniversalTag.ADV),
    ("WRB", UniversalTag.ADV),
    ("PRP", UniversalTag.PRON),
    ("WP", UniversalTag.PRON),
    ("EX", UniversalTag.PRON),
    ("WDT", UniversalTag.DET),
    ("PDT", UniversalTag.DET),
    ("DT", UniversalTag.DET),
    ("IN", UniversalTag.ADP),
    ("CC", UniversalTag.CONJ),
    ("CD", UniversalTag.NUM),
    ("TO", UniversalTag.PART),
    ("RP", UniversalTag.PART),
    ("POS", UniversalTag.PART),
    ("UH", UniversalTag.INTJ),
)


def normalize_tag(tag: Optional[str]) -> UniversalTag:
    """
    Map any tag string (universal, UD, Penn Treebank or unknown) to exactly
    one UniversalTag. Unknown and empty input map to X.
    """
    if isinstance(tag, UniversalTag):
        return tag
    if not tag:
        return UniversalTag.X

    upper = tag.strip().upper()
    exact = _EXACT.get(upper)
    if exact is not None:
        return exact

    for prefix, universal in _PREFIXES:
        if upper.startswith(prefix):
            return universal

    logger.debug(f"Unmapped tag {tag!r}, using X")
    return UniversalTag.X


def map_native_tag(native: Optional[str], fallback: Optional[str] = None) -> UniversalTag:
    """
    Map a secondary-tagger tag; an empty tag defers to the fallback tag
    (normally the primary tagger's).
    """
    if native and native.strip():
        return normalize_tag(native)
    return normalize_tag(fallback)


def is_verb_or_adj(native: str) -> bool:
    upper = (native or "").upper()
    return upper.startswith("VB") or upper.startswith("JJ")


def is_proper_noun(native: str) -> bool:
    return (native or "").upper() in ("NNP", "NNPS")


def is_modal_or_verb(native: str) -> bool:
    upper = (native or "").upper()
    return upper.startswith("MD") or upper.startswith("VB")
