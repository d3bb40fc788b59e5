from collections import deque
from pathlib import Path
from typing import List

import numpy as np
import pytest

from labelcam.context import AppContext
from labelcam.models import Detection
from labelcam.store import LabelStore


def make_detection(class_name: str = "person", score: float = 0.9,
                   bbox=(10.0, 50.0, 100.0, 100.0)) -> Detection:
    return Detection(bbox=bbox, class_name=class_name, score=score)


def blank_frame(height: int = 480, width: int = 640) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


class ManualExecutor:
    """Queues submitted jobs until the test runs them."""

    def __init__(self) -> None:
        self.pending = deque()

    def submit(self, fn, *args, **kwargs):
        self.pending.append((fn, args, kwargs))

    def run_next(self) -> None:
        fn, args, kwargs = self.pending.popleft()
        fn(*args, **kwargs)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self.pending.clear()


class FakeDetector:
    """Returns queued results; exceptions in the queue are raised."""

    def __init__(self, results: List = None) -> None:
        self.results = deque(results or [])
        self.calls = 0
        self.is_ready = True
        self.status = "ready"
        self.load_error = None
        self.before_detect = None

    def detect(self, frame):
        self.calls += 1
        if self.before_detect is not None:
            self.before_detect()
        result = self.results.popleft() if self.results else []
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeFrameSource:
    """Returns blank frames; exceptions in the queue are raised."""

    def __init__(self, results: List = None) -> None:
        self.results = deque(results or [])
        self.calls = 0

    def next_frame(self):
        self.calls += 1
        result = self.results.popleft() if self.results else blank_frame()
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def store(tmp_path: Path):
    label_store = LabelStore(str(tmp_path / "labels.db"))
    label_store.open()
    yield label_store
    label_store.close()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def make_context(tmp_path: Path):
    contexts = []

    def _make(detector=None, frame_source=None) -> AppContext:
        ctx = AppContext(
            LabelStore(str(tmp_path / f"ctx{len(contexts)}.db")),
            detector or FakeDetector(),
            frame_source or FakeFrameSource(),
        )
        ctx.open()
        contexts.append(ctx)
        return ctx

    yield _make
    for ctx in contexts:
        ctx.close()
