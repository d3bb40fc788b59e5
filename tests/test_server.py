import pytest

from labelcam.config import StreamConfig
from labelcam.server import WebServer
from labelcam.workflow import LabelingWorkflow

from conftest import FakeDetector, make_detection


@pytest.fixture
def setup(make_context, executor):
    detector = FakeDetector([[make_detection("person"), make_detection("car", 0.6)]])
    context = make_context(detector=detector)
    workflow = LabelingWorkflow(context, executor=executor)
    server = WebServer(StreamConfig(), context, workflow, quick_labels=["person", "car"])
    server.app.config["TESTING"] = True
    return server.app.test_client(), workflow, executor, server


def test_health_reports_detector_status(setup) -> None:
    client, workflow, _, _ = setup
    workflow.context.detector.status = "loading"

    payload = client.get("/health").get_json()

    assert payload["status"] == "running"
    assert payload["detector"] == "loading"
    assert payload["camera_error"] is None


def test_camera_error_is_reported(setup) -> None:
    client, _, _, server = setup
    server.report_camera_error("Failed to open /dev/video0")
    assert client.get("/health").get_json()["camera_error"] == "Failed to open /dev/video0"


def test_label_page_lists_quick_labels(setup) -> None:
    client, _, _, _ = setup
    body = client.get("/label").get_data(as_text=True)
    assert "Person" in body
    assert "Car" in body
    assert "Load New Image" in body


def test_label_page_hides_stale_frame_and_early_next_button(setup) -> None:
    client, _, _, _ = setup
    body = client.get("/label").get_data(as_text=True)
    # Frame is hidden both on failure and whenever no detection is under review
    assert body.count("frame.style.display = 'none'") == 2
    assert '<button id="next" onclick="next()" style="display: none;">' in body
    assert "health.detector === 'ready' ? 'inline' : 'none'" in body


def test_review_flow_over_http(setup) -> None:
    client, workflow, executor, _ = setup

    assert client.get("/api/review").get_json()["state"] == "idle"
    assert client.get("/api/review/frame.jpg").status_code == 404

    assert client.post("/api/review/next").get_json()["state"] == "awaiting_frame"
    executor.run_next()

    review = client.get("/api/review").get_json()
    assert review["state"] == "reviewing"
    assert review["suggested_label"] == "person"

    frame = client.get("/api/review/frame.jpg")
    assert frame.status_code == 200
    assert frame.mimetype == "image/jpeg"

    client.post("/api/review/label", json={"label": "person"})
    after = client.post("/api/review/label", json={"label": "truck"}).get_json()
    assert after["state"] == "awaiting_frame"

    records = client.get("/api/records").get_json()
    assert [(r["class"], r["label"]) for r in records] == [("person", "person"), ("car", "truck")]


def test_blank_label_is_rejected(setup) -> None:
    client, _, _, _ = setup
    assert client.post("/api/review/label", json={"label": "  "}).status_code == 400
    assert client.post("/api/review/label", json={}).status_code == 400


def test_stats_reflect_live_updates(setup) -> None:
    client, _, _, server = setup
    server.update_stats(12.5, 0.0421, 3)
    stats = client.get("/api/stats").get_json()
    assert stats["fps"] == 12.5
    assert stats["num_detections"] == 3
    assert stats["total_frames"] == 1


def test_live_only_server_has_no_labeling_routes(make_context) -> None:
    server = WebServer(StreamConfig(), make_context())
    client = server.app.test_client()
    assert client.get("/label").status_code == 404
    assert client.get("/").status_code == 200


def test_next_image_is_refused_while_model_loads(setup) -> None:
    client, workflow, executor, _ = setup
    workflow.context.detector.status = "loading"

    response = client.post("/api/review/next")

    assert response.status_code == 503
    assert workflow.snapshot().state.value == "idle"
    assert len(executor.pending) == 0
