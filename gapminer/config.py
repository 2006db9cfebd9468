import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "segmenter": {
        "backend": "spacy",
        "model": "en_core_web_sm",
        "attempts": 30,
        "interval": 0.1,
    },
    "secondary": {
        "enabled": True,
        "backend": "nltk",
        "download": True,
    },
    "reconstruction": {
        # None keeps the packaged whitelist from fdata/reconstruction.json
        "known_compounds": None,
    },
    "embeddings": {
        "sources": ["embeddings.json", "dist/embeddings.json"],
        "timeout": 30,
        "cache": False,
        "cache_dir": None,
        "ttl_hours": 24 * 7,
    },
    "gaps": {
        "enabled": True,
        "max_results": 20,
        "max_key_words": 20,
        "min_key_nouns": 12,
        "noun_slots": 15,
        "other_slots": 5,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Union[str, Path]] = None, **overrides) -> Dict[str, Any]:
    """
    Load a YAML config file and merge it over DEFAULT_CONFIG.

    Sections left out of the file keep their defaults. Keyword overrides
    are merged last, e.g. load_config(secondary={"enabled": False}).
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is not None:
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Could not read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config {path} must be a mapping, got {type(data).__name__}")
        config = _deep_merge(config, data)
        logger.debug(f"Loaded config from {path}")
    if overrides:
        config = _deep_merge(config, overrides)
    return config
