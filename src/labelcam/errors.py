"""
Exception hierarchy for labelcam.
"""


class LabelcamError(Exception):
    """Base class for all labelcam errors."""


class ConfigError(LabelcamError):
    """Configuration file could not be read or validated."""


class DeviceAccessError(LabelcamError):
    """Camera could not be opened or stopped delivering frames."""


class NetworkFetchError(LabelcamError):
    """Remote image could not be fetched or decoded."""


class ModelLoadError(LabelcamError):
    """Detection model failed to load."""


class DetectionError(LabelcamError):
    """Inference failed or did not finish in time."""


class ImageReadError(LabelcamError):
    """Local image file could not be listed, read or decoded."""
