"""
Connection audit trail.

Appends one JSON line per lifecycle transition to data/connection_events.jsonl.
Never contains credentials.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional


class ConnectionAuditLog:
    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / "connection_events.jsonl"

    def record(
        self,
        uid: Optional[str],
        provider: str,
        action: str,
        result: str,
        error: Optional[str] = None,
        extra: Optional[Dict] = None,
    ) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        record: Dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uid": uid,
            "provider": provider,
            "action": action,
            "result": result,
            "error": error,
        }
        if extra:
            record.update(extra)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def read(self) -> List[Dict]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
