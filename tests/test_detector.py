from pathlib import Path

import numpy as np
import pytest

from labelcam.config import DetectorConfig
from labelcam.detector import Detector
from labelcam.errors import DetectionError, ModelLoadError


@pytest.fixture
def detector(tmp_path: Path):
    config = DetectorConfig(
        model_path=str(tmp_path / "missing.pb"),
        config_path=str(tmp_path / "missing.pbtxt"),
        load_timeout_s=5.0,
    )
    det = Detector(config)
    yield det
    det.cleanup()


def test_starts_in_loading_state(detector) -> None:
    assert detector.status == "loading"
    assert not detector.is_ready


def test_missing_model_fails_load(detector) -> None:
    with pytest.raises(ModelLoadError):
        detector.load()
    assert detector.status == "failed"
    assert "missing.pb" in detector.load_error


def test_detect_before_load_raises(detector) -> None:
    with pytest.raises(DetectionError):
        detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))


def test_to_detections_maps_coco_ids_and_clips(detector) -> None:
    detections = detector.to_detections(
        class_ids=np.array([[1], [3]]),
        scores=np.array([[0.873], [0.51]]),
        boxes=np.array([[10, 20, 30, 40], [600, 400, 100, 200]]),
        image_shape=(480, 640, 3),
    )

    assert [d.class_name for d in detections] == ["person", "car"]
    assert detections[0].bbox == (10.0, 20.0, 30.0, 40.0)
    assert detections[0].caption() == "person (87%)"
    assert detections[1].bbox == (600.0, 400.0, 40.0, 80.0)


def test_to_detections_handles_empty_output(detector) -> None:
    assert detector.to_detections((), (), (), (480, 640, 3)) == []


def test_unknown_class_id_gets_placeholder(detector) -> None:
    assert detector.get_class_name(500) == "class_500"
    assert detector.get_class_name(0) == "__background__"
