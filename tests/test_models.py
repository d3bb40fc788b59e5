from labelcam.models import LabeledDetection

from conftest import make_detection


def test_caption_rounds_confidence_to_percent() -> None:
    assert make_detection("person", 0.873).caption() == "person (87%)"
    assert make_detection("person", 0.125).caption() == "person (13%)"
    assert make_detection("person", 0.625).caption() == "person (63%)"
    assert make_detection("cat", 0.996).caption() == "cat (100%)"
    assert make_detection("dog", 0.004).caption() == "dog (0%)"


def test_labeled_detection_starts_unlabeled() -> None:
    labeled = LabeledDetection(detection=make_detection())
    assert labeled.label == ""
    assert not labeled.is_labeled
    labeled.label = "person"
    assert labeled.is_labeled
    assert labeled.to_dict()["label"] == "person"
    assert labeled.to_dict()["class"] == "person"
