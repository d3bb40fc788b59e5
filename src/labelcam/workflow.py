"""
Manual labeling workflow.

A frame is fetched and run through the detector, then each detection is
presented to the user in turn. Once every detection in the batch has a label
the batch is written to the store and the next frame is requested.
"""

import enum
import logging
import sqlite3
import threading
import numpy as np
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .context import AppContext
from .errors import LabelcamError
from .models import LabeledDetection
from .overlay import draw_review

logger = logging.getLogger(__name__)


class State(str, enum.Enum):
    IDLE = "idle"
    AWAITING_FRAME = "awaiting_frame"
    DETECTING = "detecting"
    REVIEWING = "reviewing"
    PERSISTING = "persisting"
    FAILED = "failed"


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Point-in-time view of the workflow for the UI."""
    state: State
    generation: int
    index: Optional[int] = None
    batch_size: int = 0
    current: Optional[LabeledDetection] = None
    error: Optional[str] = None
    labels: List[str] = field(default_factory=list)

    @property
    def suggested_label(self) -> Optional[str]:
        if self.current is None:
            return None
        return self.current.detection.class_name

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'generation': self.generation,
            'index': self.index,
            'batch_size': self.batch_size,
            'current': self.current.to_dict() if self.current else None,
            'suggested_label': self.suggested_label,
            'error': self.error,
            'labels': list(self.labels),
        }


TransitionListener = Callable[[State, State], None]


class LabelingWorkflow:
    """
    State machine driving manual review.

    Every frame request bumps ``generation``; frame and detection results
    that arrive for an older generation are dropped.
    """

    def __init__(self, context: AppContext, executor: Optional[Executor] = None,
                 on_transition: Optional[TransitionListener] = None):
        if context.frame_source is None:
            raise ValueError("Labeling workflow needs a frame source")

        self.context = context
        self.on_transition = on_transition
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="labeling"
        )
        self._lock = threading.Lock()

        self._state = State.IDLE
        self._generation = 0
        self._frame: Optional[np.ndarray] = None
        self._batch: List[LabeledDetection] = []
        self._index = 0
        self._error: Optional[str] = None

    @property
    def state(self) -> State:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def _set_state(self, new_state: State):
        old_state = self._state
        self._state = new_state
        logger.debug(f"Workflow {old_state.value} -> {new_state.value} (gen {self._generation})")
        if self.on_transition is not None:
            self.on_transition(old_state, new_state)

    def start(self):
        """
        Request the first frame once the detector is ready.

        Also leaves FAILED, which a frame request made while the model was
        still loading ends in.
        """
        with self._lock:
            if self._state not in (State.IDLE, State.FAILED):
                return
        self.request_new_frame()

    def request_new_frame(self):
        """
        Drop the current batch, unsaved labels included, and fetch a new frame.

        Valid in any state; this is also the retry path after a failure.
        """
        with self._lock:
            generation = self._begin_frame_request()
        self._submit(generation)

    def _begin_frame_request(self) -> int:
        # Caller holds the lock
        self._generation += 1
        self._frame = None
        self._batch = []
        self._index = 0
        self._error = None
        self._set_state(State.AWAITING_FRAME)
        return self._generation

    def _submit(self, generation: int):
        self._executor.submit(self._load_batch, generation)

    def _is_stale(self, generation: int) -> bool:
        # Caller holds the lock
        if generation != self._generation:
            logger.debug(f"Dropping result for superseded frame request {generation}")
            return True
        return False

    def _fail(self, generation: int, message: str):
        with self._lock:
            if self._is_stale(generation):
                return
            self._error = message
            self._set_state(State.FAILED)

    def _load_batch(self, generation: int):
        # Skip the fetch entirely if another request has already replaced this one
        with self._lock:
            if self._is_stale(generation):
                return

        try:
            frame = self.context.frame_source.next_frame()
        except LabelcamError as e:
            logger.error(f"Frame source failed: {e}")
            self._fail(generation, f"Failed to load image: {e}")
            return
        except Exception as e:
            logger.exception("Unexpected frame source error")
            self._fail(generation, f"Failed to load image: {e}")
            return

        with self._lock:
            if self._is_stale(generation):
                return
            self._frame = frame
            self._set_state(State.DETECTING)

        try:
            detections = self.context.detector.detect(frame)
        except LabelcamError as e:
            logger.error(f"Detection failed: {e}")
            self._fail(generation, f"Detection failed: {e}")
            return
        except Exception as e:
            logger.exception("Unexpected detector error")
            self._fail(generation, f"Detection failed: {e}")
            return

        with self._lock:
            if self._is_stale(generation):
                return
            if not detections:
                logger.info("No objects detected, requesting a new frame")
                next_generation = self._begin_frame_request()
            else:
                self._batch = [LabeledDetection(detection=d) for d in detections]
                self._index = 0
                self._set_state(State.REVIEWING)
                logger.info(f"Reviewing {len(self._batch)} detections")
                return

        self._submit(next_generation)

    def assign_label(self, label: str):
        """
        Label the detection under review and advance.

        Ignored outside REVIEWING or for a blank label. The label is stored
        exactly as given. Labeling the last detection persists the batch and
        requests the next frame.
        """
        if not label or not label.strip():
            return

        with self._lock:
            if self._state != State.REVIEWING:
                logger.debug(f"Ignoring label '{label}' in state {self._state.value}")
                return

            self._batch[self._index].label = label
            if self._index + 1 < len(self._batch):
                self._index += 1
                return

            self._set_state(State.PERSISTING)
            batch = self._batch
            generation = self._generation

        self._persist(batch)

        with self._lock:
            # A frame request during the commit already moved us on
            if generation != self._generation:
                return
            next_generation = self._begin_frame_request()
        self._submit(next_generation)

    def _persist(self, batch: List[LabeledDetection]):
        saved = 0
        for labeled in batch:
            try:
                self.context.store.add_record(labeled)
                saved += 1
            except (sqlite3.Error, RuntimeError) as e:
                logger.error(f"Failed to save label for {labeled.detection.class_name}: {e}")
                continue
            self.context.add_labeled_class(labeled.detection.class_name)
        logger.info(f"Saved {saved}/{len(batch)} labels")

    def snapshot(self) -> WorkflowSnapshot:
        with self._lock:
            reviewing = self._state == State.REVIEWING
            current = None
            if reviewing:
                item = self._batch[self._index]
                current = LabeledDetection(detection=item.detection, label=item.label)
            return WorkflowSnapshot(
                state=self._state,
                generation=self._generation,
                index=self._index if reviewing else None,
                batch_size=len(self._batch),
                current=current,
                error=self._error,
                labels=[item.label for item in self._batch],
            )

    def render_frame(self) -> Optional[np.ndarray]:
        """Current frame with the batch drawn on it, or None without a frame."""
        with self._lock:
            if self._frame is None:
                return None
            frame = self._frame
            detections = [item.detection for item in self._batch]
            index = self._index if self._state == State.REVIEWING else None
        return draw_review(frame, detections, index)

    def shutdown(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
