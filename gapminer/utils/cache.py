import hashlib
import logging
import pickle
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from ..embeddings import EmbeddingTable

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".gapminer" / "cache"


class EmbeddingCache:
    """
    On-disk cache for parsed embedding tables.

    An entry holds the word list and one float32 matrix, keyed by the
    source's resolved path, size and modification time; editing the source
    makes its old entry unreachable. Entries older than ttl_hours are
    discarded on read.
    """

    suffix = ".emb.pkl"

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None, ttl_hours: float = 24 * 7):
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self.tables_dir = self.cache_dir / "embeddings"
        self.tables_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_hours * 3600

    def _entry(self, source: Path) -> Path:
        info = source.stat()
        fingerprint = f"{source.resolve()}|{info.st_size}|{info.st_mtime_ns}"
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:20]
        return self.tables_dir / f"{digest}{self.suffix}"

    def get(self, source: Union[str, Path]):
        """Cached EmbeddingTable for source, or None when missing or expired."""
        entry = self._entry(Path(source))
        if not entry.is_file():
            return None

        try:
            with entry.open("rb") as f:
                payload = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            logger.warning(f"Unreadable embedding cache entry {entry.name}: {e}")
            return None

        age = time.time() - payload.get("created", 0)
        if age > self.ttl_seconds:
            logger.debug(f"Embedding cache entry for {source} expired ({age:.0f}s old)")
            entry.unlink()
            return None

        words, matrix = payload["words"], payload["matrix"]
        logger.info(f"Embedding cache hit for {source} ({len(words)} words)")
        return EmbeddingTable(dict(zip(words, matrix)))

    def set(self, source: Union[str, Path], table) -> Optional[Path]:
        """Store a table for source; returns the entry path, or None on failure."""
        source = Path(source)
        words = list(table)
        payload = {
            "source": str(source),
            "words": words,
            "matrix": table.matrix(words) if words else np.zeros((0, 0), dtype=np.float32),
            "created": time.time(),
        }
        entry = self._entry(source)
        try:
            with entry.open("wb") as f:
                pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
        except OSError as e:
            logger.warning(f"Could not write embedding cache for {source}: {e}")
            return None
        logger.debug(f"Cached {len(words)} embeddings for {source}")
        return entry

    def invalidate(self, source: Union[str, Path]) -> bool:
        entry = self._entry(Path(source))
        if not entry.is_file():
            return False
        entry.unlink()
        return True

    def clear(self) -> int:
        removed = 0
        for entry in self.tables_dir.glob(f"*{self.suffix}"):
            entry.unlink()
            removed += 1
        logger.info(f"Removed {removed} embedding cache entries from {self.tables_dir}")
        return removed

    def stats(self) -> Dict[str, Any]:
        entries = list(self.tables_dir.glob(f"*{self.suffix}"))
        size = sum(e.stat().st_size for e in entries)
        return {
            "directory": str(self.tables_dir),
            "entries": len(entries),
            "size_mb": size / (1024 * 1024),
            "ttl_hours": self.ttl_seconds / 3600,
        }
