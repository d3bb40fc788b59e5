"""
Configuration management using Pydantic for validation and type checking.
"""

import os
import yaml
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError


DEFAULT_CONFIG_PATH = "/etc/labelcam/config.yaml"


class VideoConfig(BaseModel):
    """Video capture configuration."""
    device: str = Field(default="/dev/video0", description="Video device path or index")
    width: int = Field(default=640, ge=320, le=3840, description="Capture width")
    height: int = Field(default=480, ge=240, le=2160, description="Capture height")
    fps: int = Field(default=30, ge=1, le=60, description="Capture FPS")


class DetectorConfig(BaseModel):
    """Pretrained detector configuration."""
    model_path: str = Field(
        default="/opt/labelcam/models/frozen_inference_graph.pb",
        description="Path to network weights"
    )
    config_path: str = Field(
        default="/opt/labelcam/models/ssd_mobilenet_v2_coco.pbtxt",
        description="Path to network description"
    )
    confidence_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Confidence threshold"
    )
    nms_threshold: float = Field(
        default=0.45, ge=0.0, le=1.0, description="NMS IOU threshold"
    )
    input_size: int = Field(
        default=300, ge=128, le=1280, description="Model input size"
    )
    timeout_s: float = Field(
        default=10.0, gt=0.0, description="Per-frame inference timeout"
    )
    load_timeout_s: float = Field(
        default=120.0, gt=0.0, description="Model load timeout"
    )


class ImageSourceConfig(BaseModel):
    """Manual-mode image source configuration."""
    kind: str = Field(default="unsplash", description="unsplash or directory")
    api_url: str = Field(
        default="https://api.unsplash.com/photos/random",
        description="Random photo endpoint"
    )
    access_key: Optional[str] = Field(
        default=None, description="Unsplash access key (or UNSPLASH_ACCESS_KEY)"
    )
    directory: Optional[str] = Field(
        default=None, description="Local image folder when kind is directory"
    )
    width: int = Field(default=640, ge=64, le=4096, description="Requested width")
    height: int = Field(default=480, ge=64, le=4096, description="Requested height")
    timeout_s: float = Field(default=10.0, gt=0.0, description="HTTP timeout")

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        """Validate image source kind."""
        v = v.lower()
        if v not in ("unsplash", "directory"):
            raise ValueError("Invalid image source. Must be 'unsplash' or 'directory'")
        return v

    def resolved_access_key(self) -> Optional[str]:
        return self.access_key or os.environ.get("UNSPLASH_ACCESS_KEY")


class StoreConfig(BaseModel):
    """Label store configuration."""
    db_path: str = Field(
        default="/var/lib/labelcam/labels.db", description="SQLite database file"
    )


class LiveConfig(BaseModel):
    """Live overlay loop configuration."""
    interval_ms: int = Field(
        default=100, ge=10, le=10000, description="Detection period in milliseconds"
    )


class LabelingConfig(BaseModel):
    """Manual labeling configuration."""
    quick_labels: List[str] = Field(
        default_factory=lambda: ["person", "car"],
        description="Fixed one-click labels"
    )


class StreamConfig(BaseModel):
    """Web server configuration."""
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, ge=1024, le=65535, description="Server port")
    jpeg_quality: int = Field(
        default=80, ge=1, le=100, description="JPEG compression quality"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid logging level. Must be one of {valid_levels}")
        return v


class Config(BaseModel):
    """Main configuration class."""
    video: VideoConfig = Field(default_factory=VideoConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    image_source: ImageSourceConfig = Field(default_factory=ImageSourceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    live: LiveConfig = Field(default_factory=LiveConfig)
    labeling: LabelingConfig = Field(default_factory=LabelingConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file with sensible defaults.

    Args:
        config_path: Path to configuration file. If None, uses default location.

    Returns:
        Config object with loaded settings.

    Raises:
        ConfigError: If the file exists but cannot be parsed or validated.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    # If config file doesn't exist, use defaults
    if not os.path.exists(config_path):
        return Config()

    try:
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        # Handle empty file
        if config_dict is None:
            return Config()

        return Config(**config_dict)
    except Exception as e:
        raise ConfigError(f"Failed to load configuration from {config_path}: {e}") from e


def save_example_config(output_path: str) -> None:
    """
    Save an example configuration file with comments.

    Args:
        output_path: Where to save the example config.
    """
    example_yaml = """# Video capture settings (live mode)
video:
  device: "/dev/video0"  # V4L2 device path, or camera index such as "0"
  width: 640
  height: 480
  fps: 30

# Pretrained COCO detector (OpenCV DNN)
detector:
  model_path: "/opt/labelcam/models/frozen_inference_graph.pb"
  config_path: "/opt/labelcam/models/ssd_mobilenet_v2_coco.pbtxt"
  confidence_threshold: 0.5  # Minimum confidence for detections (0.0-1.0)
  nms_threshold: 0.45
  input_size: 300
  timeout_s: 10.0            # Per-frame inference timeout
  load_timeout_s: 120.0      # Model warm-up timeout

# Image source for manual labeling
image_source:
  kind: "unsplash"           # unsplash or directory
  access_key: null           # or set UNSPLASH_ACCESS_KEY
  directory: null            # folder of images when kind is directory
  width: 640
  height: 480
  timeout_s: 10.0

# Label database
store:
  db_path: "/var/lib/labelcam/labels.db"

# Live overlay loop
live:
  interval_ms: 100

# Manual labeling
labeling:
  quick_labels: ["person", "car"]

# Web server
stream:
  host: "0.0.0.0"
  port: 8080
  jpeg_quality: 80

# Logging
logging:
  level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
"""

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        f.write(example_yaml)
