import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

import numpy as np

from .errors import EmbeddingLoadFailure

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = ["embeddings.json", "dist/embeddings.json"]


class EmbeddingTable(Mapping):
    """
    Read-only mapping of lowercase word -> float32 vector.

    All vectors share one dimensionality; rows that disagree with the first
    row are dropped on construction. A missing word is normal, not an error.
    """

    def __init__(self, vectors: Optional[Dict[str, Iterable[float]]] = None):
        self._vectors: Dict[str, np.ndarray] = {}
        self.dimension: Optional[int] = None
        dropped = 0
        for word, values in (vectors or {}).items():
            vec = np.asarray(values, dtype=np.float32)
            if vec.ndim != 1 or vec.size == 0:
                dropped += 1
                continue
            if self.dimension is None:
                self.dimension = int(vec.size)
            elif vec.size != self.dimension:
                dropped += 1
                continue
            self._vectors[str(word).lower()] = vec
        if dropped:
            logger.warning(f"Dropped {dropped} embedding rows with mismatched shape")

    def __getitem__(self, word: str) -> np.ndarray:
        return self._vectors[word.lower()]

    def __contains__(self, word) -> bool:
        return isinstance(word, str) and word.lower() in self._vectors

    def __iter__(self) -> Iterator[str]:
        return iter(self._vectors)

    def __len__(self) -> int:
        return len(self._vectors)

    def __repr__(self) -> str:
        return f"EmbeddingTable(words={len(self)}, dimension={self.dimension})"

    def matrix(self, words: List[str]) -> np.ndarray:
        """Stack the vectors of `words` (all must be present) into a 2-D array."""
        if not words:
            return np.zeros((0, self.dimension or 0), dtype=np.float32)
        return np.vstack([self._vectors[w.lower()] for w in words])


def _parse_or_raise(text: str) -> EmbeddingTable:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise EmbeddingLoadFailure("no JSON object found in embedding payload")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise EmbeddingLoadFailure(f"invalid embedding JSON: {e}") from e
    if not isinstance(data, dict):
        raise EmbeddingLoadFailure("embedding payload is not a JSON object")
    try:
        return EmbeddingTable(data)
    except (TypeError, ValueError) as e:
        raise EmbeddingLoadFailure(f"non-numeric embedding vector: {e}") from e


def parse_embedding_payload(text: str) -> EmbeddingTable:
    """
    Parse an embedding payload, tolerating junk before the first '{' and
    after the last '}'. Any failure yields an empty table.
    """
    try:
        return _parse_or_raise(text or "")
    except EmbeddingLoadFailure as e:
        logger.error(f"Could not parse embeddings: {e}")
        return EmbeddingTable()


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        import chardet

        detected = chardet.detect(raw)
        encoding = detected.get("encoding") or "latin-1"
        logger.info(f"Embedding payload decoded as {encoding}")
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            return raw.decode("latin-1")


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def _fetch(source: Union[str, Path], timeout: float) -> bytes:
    source = str(source)
    if _is_url(source):
        import requests

        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise EmbeddingLoadFailure(f"could not fetch {source}: {e}") from e
        return response.content

    path = Path(source)
    if not path.is_file():
        raise EmbeddingLoadFailure(f"embedding file not found: {path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise EmbeddingLoadFailure(f"could not read {path}: {e}") from e


def load_embeddings(
    sources: Optional[Iterable[Union[str, Path]]] = None,
    timeout: float = 30.0,
    cache=None,
) -> EmbeddingTable:
    """
    Try each source (local path or http(s) URL) in order and return the
    first non-empty table. Never raises: when every source fails the result
    is an empty table.

    cache, if given, is an EmbeddingCache consulted for local files.
    """
    for source in list(sources) if sources is not None else DEFAULT_SOURCES:
        local = not _is_url(str(source))
        if cache is not None and local and Path(source).is_file():
            cached = cache.get(Path(source))
            if cached is not None:
                return cached

        try:
            table = _parse_or_raise(_decode(_fetch(source, timeout)))
        except EmbeddingLoadFailure as e:
            logger.warning(f"Embedding source {source} unavailable: {e}")
            continue

        if not len(table):
            logger.warning(f"Embedding source {source} is empty")
            continue

        logger.info(f"Loaded {len(table)} embeddings from {source}")
        if cache is not None and local:
            cache.set(Path(source), table)
        return table

    logger.warning("No embeddings available; gap search will use fallback maps")
    return EmbeddingTable()
