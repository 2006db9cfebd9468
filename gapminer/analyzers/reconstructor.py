import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..utils.data import load_json
from .base import RawToken, UniversalTag, Word

logger = logging.getLogger(__name__)

_DATA = load_json("reconstruction.json")

APOSTROPHES = "".join(_DATA.get("apostrophes", [])) or "'`‘’‛ʼ"
_APOSTROPHE_RE = re.compile(f"[{re.escape(APOSTROPHES)}]")
_SUFFIX_RE = re.compile(r"^'?(n'?t|ll|re|ve|d|m)$", re.IGNORECASE)
_NEGATION_RE = re.compile(r"^n'?t$", re.IGNORECASE)
_ALPHA_RE = re.compile(r"^[A-Za-z]+$")
_WORDLIKE_RE = re.compile(r"[A-Za-z0-9]")
_KEEPABLE_RE = re.compile(f"[A-Za-z0-9{re.escape(APOSTROPHES)}]")

SPLIT_SUFFIXES: Set[str] = set(
    _DATA.get("split_suffixes", ["s", "d", "ll", "re", "ve", "t", "m"])
)
DEFAULT_KNOWN_COMPOUNDS: Dict[str, List[str]] = _DATA.get("known_compounds", {})

# Precedence is the order of this tuple; the first rule that matches wins.
RULE_ORDER: Tuple[str, ...] = (
    "possessive_suffix",
    "contraction_suffix",
    "apostrophe_word",
    "split_contraction",
    "leading_contraction",
    "standalone_apostrophe",
    "hyphen_compound",
    "standalone_hyphen",
    "known_compound",
    "keep",
)


def normalize_apostrophes(text: str) -> str:
    return _APOSTROPHE_RE.sub("'", text)


def has_apostrophe(text: str) -> bool:
    return bool(_APOSTROPHE_RE.search(text))


def is_apostrophe(text: str) -> bool:
    return len(text) == 1 and has_apostrophe(text)


def is_punctuation(text: str) -> bool:
    """True for tokens with no letter, digit or apostrophe once stripped."""
    stripped = (text or "").strip()
    return not stripped or not _KEEPABLE_RE.search(stripped)


class _Slot:
    """Mutable output word; attaching rules edit the previous slot in place."""

    __slots__ = ("surface", "tag")

    def __init__(self, surface: str, tag: str):
        self.surface = surface
        self.tag = tag


# A rule inspects tokens[i:] and the output so far. It returns None when it
# does not apply, else (tokens consumed, new word or None).
RuleResult = Optional[Tuple[int, Optional[Tuple[str, str]]]]
Rule = Callable[[Sequence[RawToken], int, List[_Slot]], RuleResult]


class Reconstructor:
    """
    Merges tagger fragments back into surface words.

    Single left-to-right pass over one sentence with at most two tokens of
    lookahead. Rules run in RULE_ORDER; each consumes one to three tokens.
    Rules that would read past the end of the sentence do not match, so
    the token falls through to "keep".

    known_compounds maps a lowercase first word to the lowercase second
    words it may be joined with (e.g. "you" -> ["tube"]).
    """

    def __init__(self, known_compounds: Optional[Dict[str, Iterable[str]]] = None):
        compounds = (
            DEFAULT_KNOWN_COMPOUNDS if known_compounds is None else known_compounds
        )
        self.known_compounds: Dict[str, Set[str]] = {
            first.lower(): {s.lower() for s in seconds}
            for first, seconds in compounds.items()
        }
        self.rules: List[Tuple[str, Rule]] = [
            (name, getattr(self, f"_rule_{name}")) for name in RULE_ORDER
        ]

    def reconstruct(self, raw_tokens: Sequence[RawToken]) -> List[Word]:
        """Reconstruct one sentence's raw tokens into Words, order preserved."""
        out: List[_Slot] = []
        i = 0
        while i < len(raw_tokens):
            for name, rule in self.rules:
                result = rule(raw_tokens, i, out)
                if result is None:
                    continue
                consumed, emitted = result
                logger.debug(f"{name}: {[t.text for t in raw_tokens[i:i + consumed]]}")
                if emitted is not None:
                    surface, tag = emitted
                    if is_punctuation(surface):
                        logger.debug(f"Discarding punctuation token {surface!r}")
                    else:
                        out.append(_Slot(surface, tag))
                i += consumed
                break
        return [Word(surface=s.surface, tag=s.tag) for s in out]

    # Rules

    def _rule_possessive_suffix(self, tokens, i, out) -> RuleResult:
        text = tokens[i].text
        if len(text) == 2 and is_apostrophe(text[0]) and text[1].lower() == "s" and out:
            out[-1].surface += "'s"
            return 1, None
        return None

    def _rule_contraction_suffix(self, tokens, i, out) -> RuleResult:
        text = tokens[i].text
        if not has_apostrophe(text) or not out:
            return None
        normalized = normalize_apostrophes(text)
        if not _SUFFIX_RE.match(normalized):
            return None
        if _NEGATION_RE.match(normalized):
            suffix = "n't"
        elif normalized.startswith("'"):
            suffix = normalized
        else:
            suffix = "'" + normalized
        out[-1].surface += suffix
        out[-1].tag = UniversalTag.AUX.value
        return 1, None

    def _rule_apostrophe_word(self, tokens, i, out) -> RuleResult:
        text = tokens[i].text
        if has_apostrophe(text) and not is_apostrophe(text):
            return 1, (normalize_apostrophes(text), tokens[i].tag)
        return None

    def _rule_split_contraction(self, tokens, i, out) -> RuleResult:
        token = tokens[i]
        if is_apostrophe(token.text) or i + 1 >= len(tokens):
            return None
        if not is_apostrophe(tokens[i + 1].text):
            return None
        if i + 2 < len(tokens) and tokens[i + 2].text.lower() in SPLIT_SUFFIXES:
            return 3, (f"{token.text}'{tokens[i + 2].text.lower()}", token.tag)
        # plural possessive: "editors" "'" -> "editors'"
        return 2, (f"{token.text}'", token.tag)

    def _rule_leading_contraction(self, tokens, i, out) -> RuleResult:
        if not is_apostrophe(tokens[i].text) or i + 1 >= len(tokens):
            return None
        following = tokens[i + 1]
        if not _ALPHA_RE.match(following.text):
            return None
        if following.text.lower() in SPLIT_SUFFIXES:
            return 2, (f"'{following.text}", following.tag)
        return 1, None

    def _rule_standalone_apostrophe(self, tokens, i, out) -> RuleResult:
        if not is_apostrophe(tokens[i].text):
            return None
        followed_by_s = i + 1 < len(tokens) and tokens[i + 1].text.lower() == "s"
        if out and not followed_by_s:
            out[-1].surface += "'"
        return 1, None

    def _rule_hyphen_compound(self, tokens, i, out) -> RuleResult:
        token = tokens[i]
        if not _WORDLIKE_RE.search(token.text):
            return None
        surface = token.text
        j = i
        # chains like "editor - in - chief"
        while (
            j + 2 < len(tokens)
            and tokens[j + 1].text == "-"
            and _ALPHA_RE.match(tokens[j + 2].text)
        ):
            surface += "-" + tokens[j + 2].text
            j += 2
        if j == i:
            return None
        return j - i + 1, (surface, token.tag)

    def _rule_standalone_hyphen(self, tokens, i, out) -> RuleResult:
        if tokens[i].text == "-":
            return 1, None
        return None

    def _rule_known_compound(self, tokens, i, out) -> RuleResult:
        if i + 1 >= len(tokens):
            return None
        first, second = tokens[i], tokens[i + 1]
        allowed = self.known_compounds.get(first.text.lower())
        if allowed and second.text.lower() in allowed:
            return 2, (first.text + second.text, first.tag)
        return None

    def _rule_keep(self, tokens, i, out) -> RuleResult:
        return 1, (tokens[i].text, tokens[i].tag)


def reconstruct(
    raw_tokens: Sequence[RawToken],
    known_compounds: Optional[Dict[str, Iterable[str]]] = None,
) -> List[Word]:
    """Convenience wrapper around Reconstructor.reconstruct."""
    return Reconstructor(known_compounds=known_compounds).reconstruct(raw_tokens)
