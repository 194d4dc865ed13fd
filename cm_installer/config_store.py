from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to YAML for unknown extensions; profiles are usually YAML.
    return "yaml"


def load_document(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    fmt = _detect_format(p)
    text = p.read_text(encoding="utf-8")

    data: Any
    if fmt == "json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{p} must contain a mapping/object, got {type(data).__name__}")

    return data


def save_document(path: str | Path, data: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "json":
        p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    else:
        p.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    logger.info("Wrote %s", str(p))
