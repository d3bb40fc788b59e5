"""
Manual-mode frame sources: a random Unsplash photo or a random local file.
"""

import logging
import random
import requests
import numpy as np
from pathlib import Path
from typing import List, Optional

from .config import ImageSourceConfig
from .errors import ConfigError, ImageReadError, NetworkFetchError
from .utils import decode_image

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = ('.jpg', '.jpeg', '.png', '.bmp', '.webp')


class RandomImageSource:
    """Fetches a random photo through the Unsplash API."""

    def __init__(self, config: ImageSourceConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def fetch_random_image_url(self) -> str:
        """
        Ask the API for a random photo.

        Raises:
            NetworkFetchError: On HTTP errors, timeouts or an unexpected payload.
        """
        params = {'w': self.config.width, 'h': self.config.height}
        access_key = self.config.resolved_access_key()
        if access_key:
            params['client_id'] = access_key

        try:
            response = self.session.get(
                self.config.api_url, params=params, timeout=self.config.timeout_s
            )
            response.raise_for_status()
            return response.json()['urls']['regular']
        except requests.RequestException as e:
            raise NetworkFetchError(f"Error fetching image from Unsplash: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise NetworkFetchError(f"Unexpected Unsplash response: {e}") from e

    def load_image(self, url: str) -> np.ndarray:
        """
        Download and decode an image.

        Raises:
            NetworkFetchError: If the download fails or the bytes are not an image.
        """
        try:
            response = self.session.get(url, timeout=self.config.timeout_s)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkFetchError(f"Error downloading {url}: {e}") from e

        image = decode_image(response.content)
        if image is None:
            raise NetworkFetchError(f"Could not decode image from {url}")
        return image

    def next_frame(self) -> np.ndarray:
        url = self.fetch_random_image_url()
        logger.debug(f"Random image: {url}")
        return self.load_image(url)


class DirectoryImageSource:
    """Picks a random image from a local folder."""

    def __init__(self, directory: str, rng: Optional[random.Random] = None):
        self.directory = Path(directory)
        self.rng = rng or random.Random()

    def list_images(self) -> List[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(
            p for p in self.directory.iterdir()
            if p.suffix.lower() in IMAGE_SUFFIXES
        )

    def next_frame(self) -> np.ndarray:
        images = self.list_images()
        if not images:
            raise ImageReadError(f"No images found in {self.directory}")

        path = self.rng.choice(images)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageReadError(f"Could not read image {path}: {e}") from e

        image = decode_image(data)
        if image is None:
            raise ImageReadError(f"Could not decode image {path}")
        return image


def create_image_source(config: ImageSourceConfig):
    """Build the configured manual-mode frame source."""
    if config.kind == "directory":
        if not config.directory:
            raise ConfigError("image_source.directory is required when kind is 'directory'")
        return DirectoryImageSource(config.directory)
    return RandomImageSource(config)
