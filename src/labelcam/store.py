"""
Append-only SQLite store for labeled detections.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

from .models import Detection, LabeledDetection, LabelRecord

logger = logging.getLogger(__name__)


class LabelStore:
    """
    Durable record store keyed by an auto-incrementing id.

    Records are inserted one at a time and never updated or deleted.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def open(self):
        """Open the database, creating the file and table if needed."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS predictions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    class TEXT NOT NULL,
                    score REAL NOT NULL,
                    bbox TEXT NOT NULL,
                    label TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
        logger.info(f"Label store opened: {self.db_path}")

    def close(self):
        if self._conn is not None:
            with self._lock:
                self._conn.close()
                self._conn = None
            logger.info("Label store closed")

    def __enter__(self) -> "LabelStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Label store is not open")
        return self._conn

    def add_record(self, labeled: LabeledDetection) -> int:
        """
        Insert one labeled detection.

        Returns:
            The id assigned by the database
        """
        conn = self._require_open()
        detection = labeled.detection
        with self._lock, conn:
            cursor = conn.execute(
                "INSERT INTO predictions (class, score, bbox, label, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    detection.class_name,
                    detection.score,
                    json.dumps(list(detection.bbox)),
                    labeled.label,
                    datetime.now().isoformat(),
                ),
            )
            return cursor.lastrowid

    def get_all_records(self) -> List[LabelRecord]:
        """Read every record in insertion order."""
        conn = self._require_open()
        with self._lock:
            rows = conn.execute(
                "SELECT id, class, score, bbox, label, created_at "
                "FROM predictions ORDER BY id"
            ).fetchall()

        records = []
        for record_id, class_name, score, bbox, label, created_at in rows:
            records.append(LabelRecord(
                record_id=record_id,
                detection=Detection(
                    bbox=tuple(json.loads(bbox)),
                    class_name=class_name,
                    score=score,
                ),
                label=label,
                created_at=datetime.fromisoformat(created_at),
            ))
        return records

    def labeled_classes(self) -> Set[str]:
        """Detector classes that have at least one record."""
        return {record.class_name for record in self.get_all_records()}
