"""JSON file helpers shared by the file-backed stores"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict

from linkhub.utils.exceptions import StorageError


def atomic_write_json(path: Path, payload: Dict[str, Any]) -> None:
    """Atomically write JSON to the target path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    ) as tf:
        json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
        temp_path = Path(tf.name)
    try:
        shutil.move(str(temp_path), str(path))
    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        raise StorageError(f"Failed to save {path}: {e}")


def read_json(path: Path, default: Any) -> Any:
    """Load JSON from path, or default if the file does not exist yet."""
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise StorageError(f"Failed to load {path}: {e}")
