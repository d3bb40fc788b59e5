from pathlib import Path

import cv2
import numpy as np
import pytest
import requests

from labelcam.config import ImageSourceConfig
from labelcam.errors import ConfigError, ImageReadError, NetworkFetchError
from labelcam.image_source import DirectoryImageSource, RandomImageSource, create_image_source


def _jpeg_bytes() -> bytes:
    ok, buffer = cv2.imencode(".jpg", np.full((48, 64, 3), 200, dtype=np.uint8))
    assert ok
    return buffer.tobytes()


class FakeResponse:
    def __init__(self, payload=None, content: bytes = b"", status: int = 200) -> None:
        self.payload = payload
        self.content = content
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


class FakeSession:
    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_random_image_source_fetches_and_decodes() -> None:
    session = FakeSession([
        FakeResponse({"urls": {"regular": "https://images.example/a.jpg"}}),
        FakeResponse(content=_jpeg_bytes()),
    ])
    config = ImageSourceConfig(access_key="key", timeout_s=3.0)
    source = RandomImageSource(config, session=session)

    frame = source.next_frame()

    assert frame.shape == (48, 64, 3)
    url, params, timeout = session.requests[0]
    assert url == config.api_url
    assert params == {"w": 640, "h": 480, "client_id": "key"}
    assert timeout == 3.0
    assert session.requests[1][0] == "https://images.example/a.jpg"


@pytest.mark.parametrize("response", [
    requests.ConnectionError("offline"),
    requests.Timeout("slow"),
    FakeResponse(status=403),
    FakeResponse({"unexpected": True}),
    FakeResponse(None),
])
def test_fetch_failures_raise_network_error(response) -> None:
    source = RandomImageSource(ImageSourceConfig(), session=FakeSession([response]))
    with pytest.raises(NetworkFetchError):
        source.fetch_random_image_url()


def test_undecodable_download_raises_network_error() -> None:
    source = RandomImageSource(
        ImageSourceConfig(), session=FakeSession([FakeResponse(content=b"not an image")])
    )
    with pytest.raises(NetworkFetchError):
        source.load_image("https://images.example/broken.jpg")


def test_directory_source_picks_an_image(tmp_path: Path) -> None:
    cv2.imwrite(str(tmp_path / "one.png"), np.zeros((20, 30, 3), dtype=np.uint8))
    (tmp_path / "notes.txt").write_text("ignored")

    source = DirectoryImageSource(str(tmp_path))

    assert [p.name for p in source.list_images()] == ["one.png"]
    assert source.next_frame().shape == (20, 30, 3)


def test_empty_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(ImageReadError):
        DirectoryImageSource(str(tmp_path)).next_frame()


def test_factory_requires_directory_path() -> None:
    with pytest.raises(ConfigError):
        create_image_source(ImageSourceConfig(kind="directory"))
    assert isinstance(create_image_source(ImageSourceConfig()), RandomImageSource)


def test_undecodable_local_file_raises(tmp_path: Path) -> None:
    (tmp_path / "broken.jpg").write_bytes(b"not an image")
    with pytest.raises(ImageReadError):
        DirectoryImageSource(str(tmp_path)).next_frame()
