"""
Bounding box overlay rendering.
"""

import cv2
import numpy as np
from typing import Iterable, List, Optional, Set, Tuple

from .models import Detection

# OpenCV BGR colours
LABELED_COLOR = (0, 0, 255)     # Red: class already labeled by a user
DEFAULT_COLOR = (255, 255, 0)   # Cyan
CURRENT_COLOR = (0, 255, 255)   # Yellow: detection under review

LINE_WIDTH = 2
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.6
CAPTION_OFFSET = 10


def select_color(detection: Detection, labeled_classes: Set[str]) -> Tuple[int, int, int]:
    """Pick the labeled style when the class has records, else the default."""
    if detection.class_name in labeled_classes:
        return LABELED_COLOR
    return DEFAULT_COLOR


def _draw_box(canvas: np.ndarray, detection: Detection, color: Tuple[int, int, int],
              thickness: int = LINE_WIDTH):
    h, w = canvas.shape[:2]
    x, y, bw, bh = detection.bbox
    x1 = max(0, min(int(x), w - 1))
    y1 = max(0, min(int(y), h - 1))
    x2 = max(0, min(int(x + bw), w - 1))
    y2 = max(0, min(int(y + bh), h - 1))

    cv2.rectangle(canvas, (x1, y1), (x2, y2), color, thickness)

    # Caption sits above the box unless that would leave the frame
    caption = detection.caption()
    (_, label_h), _ = cv2.getTextSize(caption, FONT, FONT_SCALE, 1)
    text_y = y1 - CAPTION_OFFSET
    if text_y < label_h:
        text_y = min(y1 + label_h + CAPTION_OFFSET, h - 1)

    cv2.putText(canvas, caption, (x1, text_y), FONT, FONT_SCALE,
                color, 1, cv2.LINE_AA)


def draw_overlay(image: np.ndarray, detections: Iterable[Detection],
                 labeled_classes: Set[str]) -> np.ndarray:
    """
    Draw every detection on a clean copy of the frame.

    Args:
        image: Input image (BGR format)
        detections: Detections for this frame
        labeled_classes: Classes that already have label records

    Returns:
        Annotated image
    """
    annotated = image.copy()
    for detection in detections:
        _draw_box(annotated, detection, select_color(detection, labeled_classes))
    return annotated


def draw_review(image: np.ndarray, detections: List[Detection],
                current_index: Optional[int]) -> np.ndarray:
    """Draw a batch under manual review, highlighting the current detection."""
    annotated = image.copy()
    for index, detection in enumerate(detections):
        if index != current_index:
            _draw_box(annotated, detection, DEFAULT_COLOR)

    if current_index is not None and 0 <= current_index < len(detections):
        _draw_box(annotated, detections[current_index], CURRENT_COLOR, LINE_WIDTH + 1)
    return annotated
