"""
Shared application resources with an explicit open/close lifecycle.
"""

import logging
import threading
from typing import FrozenSet, Optional, Set

from .store import LabelStore

logger = logging.getLogger(__name__)


class AppContext:
    """
    Resources shared by the live loop, the labeling workflow and the web server.

    Holds the label store, the detector, the manual-mode frame source and the
    set of classes that already have label records.
    """

    def __init__(self, store: LabelStore, detector, frame_source=None):
        self.store = store
        self.detector = detector
        self.frame_source = frame_source
        self._labeled_classes: Set[str] = set()
        self._lock = threading.Lock()

    def open(self):
        """Open the store and read the labeled classes once."""
        self.store.open()
        classes = self.store.labeled_classes()
        with self._lock:
            self._labeled_classes = set(classes)
        logger.info(f"Loaded {len(classes)} labeled classes from the store")

    def close(self):
        self.store.close()

    def __enter__(self) -> "AppContext":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def labeled_classes(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._labeled_classes)

    def add_labeled_class(self, class_name: Optional[str]):
        if not class_name:
            return
        with self._lock:
            self._labeled_classes.add(class_name)
