import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "fdata"


def load_json(filename: str) -> dict:
    """Load a bundled fdata file; an unreadable file logs an error and gives {}."""
    data_path = DATA_DIR / filename
    try:
        with open(data_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception as e:
        logger.error(f"Could not load {filename}: {e}")
        return {}
