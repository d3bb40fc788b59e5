"""
Detection data types shared by the detector, overlay, workflow and store.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple


BBox = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Detection:
    """One object found in a frame. ``bbox`` is (x, y, width, height) in pixels."""
    bbox: BBox
    class_name: str
    score: float

    @property
    def percent(self) -> int:
        # Halves round up
        return int(math.floor(self.score * 100 + 0.5))

    def caption(self) -> str:
        return f"{self.class_name} ({self.percent}%)"

    def to_dict(self) -> dict:
        x, y, w, h = self.bbox
        return {
            'bbox': [x, y, w, h],
            'class': self.class_name,
            'score': self.score,
        }


@dataclass
class LabeledDetection:
    """A detection under manual review; ``label`` stays empty until assigned."""
    detection: Detection
    label: str = ""

    @property
    def is_labeled(self) -> bool:
        return self.label != ""

    def to_dict(self) -> dict:
        payload = self.detection.to_dict()
        payload['label'] = self.label
        return payload


@dataclass(frozen=True)
class LabelRecord:
    """Persisted labeled detection, identified by the store-assigned id."""
    record_id: int
    detection: Detection
    label: str
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def class_name(self) -> str:
        return self.detection.class_name

    def to_dict(self) -> dict:
        payload = self.detection.to_dict()
        payload['id'] = self.record_id
        payload['label'] = self.label
        payload['created_at'] = self.created_at.isoformat()
        return payload
