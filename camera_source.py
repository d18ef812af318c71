"""
Camera frame source: wraps cv2.VideoCapture and hands out mirrored RGBA frames.
"""

import logging

import cv2

from filter_config import CAMERA_SOURCE

log = logging.getLogger(__name__)


class CameraError(Exception):
    """Raised when the capture device cannot be opened."""


def to_rgba(frame_bgr):
    """Mirror a BGR capture horizontally and convert it to RGBA."""
    mirrored = cv2.flip(frame_bgr, 1)
    return cv2.cvtColor(mirrored, cv2.COLOR_BGR2RGBA)


class CameraSource:
    """Latest camera frame, or None while the device has nothing to give."""

    def __init__(self, source=CAMERA_SOURCE):
        self.source = source
        self.cap = None

    def open(self):
        self.cap = cv2.VideoCapture(self.source)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise CameraError(f"Could not open video source: {self.source}")
        log.info(f"Opened video source {self.source}")
        return self

    def read(self):
        if self.cap is None:
            return None
        ret, frame = self.cap.read()
        if not ret or frame is None:
            log.debug("No frame from camera this tick")
            return None
        return to_rgba(frame)

    @property
    def size(self):
        if self.cap is None:
            return 0, 0
        return (int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
