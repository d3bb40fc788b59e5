"""
Pretrained COCO detector backed by the OpenCV DNN module.
"""

import os
import cv2
import logging
import threading
import numpy as np
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import List, Optional
from .config import DetectorConfig
from .errors import DetectionError, ModelLoadError
from .models import Detection
from .utils import clip_box, get_coco_class_names

logger = logging.getLogger(__name__)

STATUS_LOADING = "loading"
STATUS_READY = "ready"
STATUS_FAILED = "failed"


class Detector:
    """
    SSD detector wrapper.

    Inference runs on a dedicated single worker so that the live loop and the
    labeling workflow never use the network at the same time, and so that a
    per-call timeout can be enforced.
    """

    def __init__(self, config: DetectorConfig, class_names: Optional[List[str]] = None):
        self.config = config
        self.class_names = class_names or get_coco_class_names()
        self.model = None
        self.is_ready = False
        self.load_error: Optional[str] = None
        self.frame_count = 0
        self._status_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")

    @property
    def status(self) -> str:
        with self._status_lock:
            if self.is_ready:
                return STATUS_READY
            if self.load_error is not None:
                return STATUS_FAILED
            return STATUS_LOADING

    def load(self):
        """
        Load the network and run one warm-up inference.

        Raises:
            ModelLoadError: If the files are missing, OpenCV rejects them, or
                loading exceeds ``load_timeout_s``.
        """
        logger.info(f"Loading model: {self.config.model_path}")
        future = self._executor.submit(self._load_model)
        try:
            future.result(timeout=self.config.load_timeout_s)
        except FutureTimeout:
            self._fail(f"Model load timed out after {self.config.load_timeout_s:.0f}s")
        except (cv2.error, OSError) as e:
            self._fail(f"Failed to load model: {e}")

        with self._status_lock:
            self.is_ready = True
        logger.info("Detector ready")

    def _fail(self, message: str):
        with self._status_lock:
            self.load_error = message
            self.is_ready = False
        logger.error(message)
        raise ModelLoadError(message)

    def _load_model(self):
        for path in (self.config.model_path, self.config.config_path):
            if not os.path.exists(path):
                raise OSError(f"Model file not found: {path}")

        model = cv2.dnn_DetectionModel(self.config.model_path, self.config.config_path)
        size = self.config.input_size
        model.setInputSize(size, size)
        model.setInputScale(1.0)
        model.setInputMean((0, 0, 0))
        model.setInputSwapRB(True)

        # Warm-up pass so the first real frame is not slowed by lazy allocation
        model.detect(np.zeros((size, size, 3), dtype=np.uint8), confThreshold=1.0)
        self.model = model

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """
        Detect objects in a BGR frame.

        Returns:
            Detections above the confidence threshold

        Raises:
            DetectionError: If the detector is not ready, inference fails or
                exceeds ``timeout_s``.
        """
        if not self.is_ready or self.model is None:
            raise DetectionError("Detector is not ready")

        future = self._executor.submit(self._infer, frame)
        try:
            return future.result(timeout=self.config.timeout_s)
        except FutureTimeout as e:
            raise DetectionError(
                f"Inference timed out after {self.config.timeout_s:.1f}s"
            ) from e
        except cv2.error as e:
            raise DetectionError(f"Inference failed: {e}") from e

    def _infer(self, frame: np.ndarray) -> List[Detection]:
        class_ids, scores, boxes = self.model.detect(
            frame,
            confThreshold=self.config.confidence_threshold,
            nmsThreshold=self.config.nms_threshold,
        )
        self.frame_count += 1
        return self.to_detections(class_ids, scores, boxes, frame.shape)

    def to_detections(self, class_ids, scores, boxes, image_shape) -> List[Detection]:
        """Convert raw OpenCV outputs to Detection objects."""
        detections: List[Detection] = []
        class_ids = np.asarray(class_ids).flatten()
        scores = np.asarray(scores).flatten()
        boxes = np.asarray(boxes).reshape(-1, 4) if len(class_ids) else []

        for class_id, score, box in zip(class_ids, scores, boxes):
            x, y, w, h = (float(v) for v in box)
            if w <= 0 or h <= 0:
                continue
            detections.append(Detection(
                bbox=clip_box(x, y, w, h, image_shape),
                class_name=self.get_class_name(int(class_id)),
                score=float(min(max(score, 0.0), 1.0)),
            ))
        return detections

    def get_class_name(self, class_id: int) -> str:
        """Get class name for a given class ID."""
        if 0 <= class_id < len(self.class_names):
            return self.class_names[class_id]
        return f"class_{class_id}"

    def cleanup(self):
        """Release detector resources."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.model = None
        with self._status_lock:
            self.is_ready = False
