"""
Live overlay loop: camera frame -> detector -> overlay -> web stream.
"""

import time
import logging
import threading
import numpy as np
from typing import Callable, Optional

from .capture import VideoCapture
from .context import AppContext
from .errors import DetectionError
from .overlay import draw_overlay

logger = logging.getLogger(__name__)

STATS_LOG_INTERVAL = 30.0


class LiveDetectionLoop:
    """
    Runs detection on a fixed period.

    Ticks never overlap: a tick that finds the previous one still running is
    skipped, and periods missed by a slow tick are dropped rather than
    replayed.
    """

    def __init__(self, capture: VideoCapture, context: AppContext,
                 publish: Callable[[np.ndarray], None], interval_ms: int = 100,
                 on_stats: Optional[Callable[[float, float, int], None]] = None):
        self.capture = capture
        self.context = context
        self.publish = publish
        self.interval = interval_ms / 1000.0
        self.on_stats = on_stats

        self._busy = threading.Lock()
        self.skipped_ticks = 0
        self.failed_detections = 0

        self.fps = 0.0
        self._fps_frames = 0
        self._fps_start = time.monotonic()
        self._last_stats_log = time.monotonic()

    def tick(self) -> bool:
        """
        Run one detect-and-draw pass.

        Returns:
            False if skipped because a previous pass is still running

        Raises:
            DeviceAccessError: If the camera fails. Not retried.
        """
        if not self._busy.acquire(blocking=False):
            self.skipped_ticks += 1
            return False
        try:
            self._run_once()
        finally:
            self._busy.release()
        return True

    def _run_once(self):
        frame = self.capture.read()
        detector = self.context.detector

        inference_start = time.monotonic()
        detections = []
        if detector.is_ready:
            try:
                detections = detector.detect(frame)
            except DetectionError as e:
                # Transient: publish the raw frame and keep going
                self.failed_detections += 1
                logger.debug(f"Live detection failed: {e}")
        inference_time = time.monotonic() - inference_start

        annotated = draw_overlay(frame, detections, self.context.labeled_classes())
        self.publish(annotated)
        self._update_stats(inference_time, len(detections))

    def _update_stats(self, inference_time: float, num_detections: int):
        self._fps_frames += 1
        now = time.monotonic()
        elapsed = now - self._fps_start
        if elapsed >= 1.0:
            self.fps = self._fps_frames / elapsed
            self._fps_frames = 0
            self._fps_start = now

        if self.on_stats is not None:
            self.on_stats(self.fps, inference_time, num_detections)

        if now - self._last_stats_log >= STATS_LOG_INTERVAL:
            logger.info(
                f"Stats: FPS={self.fps:.1f}, Inference={inference_time*1000:.1f}ms, "
                f"Detections={num_detections}, Skipped={self.skipped_ticks}"
            )
            self._last_stats_log = now

    def run(self, should_stop: Callable[[], bool]):
        """
        Tick on a fixed schedule until ``should_stop`` returns True.

        Raises:
            DeviceAccessError: If the camera fails.
        """
        next_tick = time.monotonic()
        while not should_stop():
            self.tick()

            next_tick += self.interval
            now = time.monotonic()
            if next_tick < now:
                missed = int((now - next_tick) / self.interval) + 1
                self.skipped_ticks += missed
                next_tick += missed * self.interval
            time.sleep(max(0.0, next_tick - now))
