"""
Utility functions for image processing and general helpers.
"""

import cv2
import numpy as np
from typing import Optional, Tuple

from .models import BBox


def clip_box(x: float, y: float, w: float, h: float,
             image_shape: Tuple[int, ...]) -> BBox:
    """
    Clip an (x, y, width, height) box to the image bounds.

    Args:
        x, y, w, h: Box in pixels
        image_shape: Shape of the image the box belongs to

    Returns:
        Clipped box as floats
    """
    img_h, img_w = image_shape[:2]
    x1 = min(max(x, 0.0), float(img_w))
    y1 = min(max(y, 0.0), float(img_h))
    x2 = min(max(x + w, 0.0), float(img_w))
    y2 = min(max(y + h, 0.0), float(img_h))
    return (x1, y1, x2 - x1, y2 - y1)


def encode_jpeg(image: np.ndarray, quality: int = 80) -> Optional[bytes]:
    """
    Encode a BGR image as JPEG.

    Returns:
        JPEG bytes, or None if encoding failed
    """
    ret, buffer = cv2.imencode('.jpg', image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ret:
        return None
    return buffer.tobytes()


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes into a BGR array."""
    array = np.frombuffer(data, dtype=np.uint8)
    if array.size == 0:
        return None
    return cv2.imdecode(array, cv2.IMREAD_COLOR)


def get_coco_class_names() -> list:
    """
    Get COCO class names indexed by the TensorFlow object detection label ids.

    Index 0 is the background class and unused ids are "N/A".

    Returns:
        List of class names
    """
    return [
        "__background__", "person", "bicycle", "car", "motorcycle", "airplane",
        "bus", "train", "truck", "boat", "traffic light", "fire hydrant", "N/A",
        "stop sign", "parking meter", "bench", "bird", "cat", "dog", "horse",
        "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "N/A", "backpack",
        "umbrella", "N/A", "N/A", "handbag", "tie", "suitcase", "frisbee", "skis",
        "snowboard", "sports ball", "kite", "baseball bat", "baseball glove",
        "skateboard", "surfboard", "tennis racket", "bottle", "N/A", "wine glass",
        "cup", "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich",
        "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake",
        "chair", "couch", "potted plant", "bed", "N/A", "dining table", "N/A",
        "N/A", "toilet", "N/A", "tv", "laptop", "mouse", "remote", "keyboard",
        "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator",
        "N/A", "book", "clock", "vase", "scissors", "teddy bear", "hair drier",
        "toothbrush"
    ]
