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
    # Default to JSON for unknown extensions.
    return "json"


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.debug("Wrote build report %s", str(p))


def new_state(*, flavor: str, image_name: str, output_file: str, disk_size_gb: int) -> Dict[str, Any]:
    """Fresh build report; the root password is never recorded."""

    return {
        "version": 1,
        "request": {
            "flavor": flavor,
            "image_name": image_name,
            "output_file": output_file,
            "disk_size_gb": disk_size_gb,
        },
        "execution": {
            "current_step": None,
            "completed_steps": [],
            "errors": [],
        },
        "decisions": {},
    }


def record_decision(state: Dict[str, Any], key: str, value: Any) -> None:
    state.setdefault("decisions", {})[key] = value
