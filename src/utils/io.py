import json
from pathlib import Path
from typing import Dict, Optional, Any

import yaml

from utils.logging import get_logger

logger = get_logger(__name__)


def maybe_load_yaml(path: Optional[str]) -> Dict[str, Any]:
    """Load YAML config file with fallback to empty dict."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}


def ensure_dir(path: str | Path) -> Path:
    """Ensure the directory exists and return the Path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_text_atomic(path: str | Path, text: str) -> Path:
    """Write text by writing a temp file then renaming it over ``path``."""
    filepath = Path(path)
    ensure_dir(filepath.parent)
    temp_filepath = filepath.with_suffix(filepath.suffix + '.tmp')
    with open(temp_filepath, 'w', encoding='utf-8') as f:
        f.write(text)
    temp_filepath.replace(filepath)
    return filepath


def write_json_atomic(path: str | Path, payload: Any, indent: Optional[int] = 2) -> Path:
    """Serialize ``payload`` as JSON and write it atomically."""
    return write_text_atomic(path, json.dumps(payload, indent=indent))


def read_json(path: str | Path) -> Optional[Any]:
    """Read a JSON document, or None if the file does not exist."""
    filepath = Path(path)
    if not filepath.exists():
        return None
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)
