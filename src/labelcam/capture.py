"""
Camera capture module using OpenCV.
"""

import cv2
import logging
import numpy as np
from typing import Optional, Union
from .config import VideoConfig
from .errors import DeviceAccessError


logger = logging.getLogger(__name__)

VIDEO_FILE_SUFFIXES = ('.mp4', '.avi', '.mkv', '.mov', '.webm')


class VideoCapture:
    """
    Live-mode frame source. Device failures are reported, never retried.
    """

    def __init__(self, config: VideoConfig):
        """
        Initialize video capture.

        Args:
            config: Video configuration
        """
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None
        self.is_opened = False
        self.frame_count = 0

    def _source(self) -> Union[int, str]:
        device = self.config.device
        return int(device) if device.isdigit() else device

    def open(self):
        """
        Open the video device.

        Raises:
            DeviceAccessError: If the device cannot be opened.
        """
        source = self._source()
        logger.info(f"Opening video device: {source}")

        try:
            if isinstance(source, str) and source.endswith(VIDEO_FILE_SUFFIXES):
                self.cap = cv2.VideoCapture(source)
            elif isinstance(source, str):
                self.cap = cv2.VideoCapture(source, cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(source)
        except cv2.error as e:
            raise DeviceAccessError(f"Error opening camera {source}: {e}") from e

        if not self.cap.isOpened():
            self.release()
            raise DeviceAccessError(f"Failed to open {source}")

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.config.fps)

        actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Camera opened: {actual_width}x{actual_height}")

        self.is_opened = True

    def read(self) -> np.ndarray:
        """
        Read a frame from the camera.

        Returns:
            Frame as numpy array (BGR)

        Raises:
            DeviceAccessError: If the device is closed or returns no frame.
        """
        if not self.is_opened or self.cap is None:
            raise DeviceAccessError("Camera is not open")

        ret, frame = self.cap.read()
        if not ret or frame is None:
            self.is_opened = False
            raise DeviceAccessError("Failed to read frame from camera")

        self.frame_count += 1
        return frame

    def release(self):
        """Release video capture resources."""
        if self.cap is not None:
            logger.info("Releasing video capture")
            self.cap.release()
            self.cap = None
        self.is_opened = False
