"""
labelcam

Real-time object detection overlay for a webcam feed, with a browser-based
manual labeling workflow that stores corrected labels in a local database.
"""

__version__ = "1.0.0"
__license__ = "MIT"
