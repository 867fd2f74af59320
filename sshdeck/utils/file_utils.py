"""
File utilities (whole-document JSON read / atomic replace)
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any:
    """Return the parsed JSON document at *path*, or None if it does not exist."""
    if not path.exists():
        return None
    text = path.read_text("utf-8")
    if not text.strip():
        return None
    return json.loads(text)


def dump_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, value: Any):
    """
    Replace *path* with the JSON encoding of *value*.
    Writes a sibling temp file and renames it over the target so readers
    never observe a half-written document.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_json(value))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
