"""
Camera Service - frame source for the prediction loop

Wraps an OpenCV VideoCapture device:
- acquire(): open the device off the event loop and report its dimensions
- pause()/resume(): freeze the feed while a found-item view is shown
- capture_frame(): latest RGB frame for classification
- snapshot(): copy of the last delivered frame (the "photo" of a find)

A MockCapture stands in for the device during development and tests.
"""

import asyncio
import logging
import os
import sys
from datetime import datetime
from io import BytesIO
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from ..game.errors import AcquisitionError, AcquisitionFailure

logger = logging.getLogger(__name__)

# Platforms OpenCV can open capture devices on
SUPPORTED_PLATFORMS = ("linux", "darwin", "win32")

# V4L2 device node backing an OpenCV device index (Linux only)
DEVICE_NODE_PATTERN = "/dev/video{index}"


class MockCapture:
    """Mock VideoCapture for development/testing without a camera."""

    def __init__(self, width: int = 640, height: int = 480):
        self._width = width
        self._height = height
        self._opened = True
        logger.info("[MOCK] Camera opened")

    def isOpened(self) -> bool:
        return self._opened

    def set(self, prop_id: int, value: float) -> bool:
        if prop_id == cv2.CAP_PROP_FRAME_WIDTH:
            self._width = int(value)
        elif prop_id == cv2.CAP_PROP_FRAME_HEIGHT:
            self._height = int(value)
        return True

    def get(self, prop_id: int) -> float:
        if prop_id == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self._width)
        if prop_id == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self._height)
        return 0.0

    def read(self) -> tuple[bool, np.ndarray | None]:
        """Generate a mock BGR frame."""
        if not self._opened:
            return False, None
        return True, np.random.randint(0, 255, (self._height, self._width, 3), dtype=np.uint8)

    def release(self) -> None:
        self._opened = False
        logger.info("[MOCK] Camera released")


class CameraService:
    """
    Camera adapter for the game session.

    The physical feed keeps running while paused; paused only means no new
    frames are delivered, so the last frame stays on screen (and available
    as snapshot) while a found-item view is shown.
    """

    def __init__(
        self,
        device_index: int = 0,
        resolution: tuple[int, int] = (640, 480),
        hflip: bool = False,
        vflip: bool = False,
        force_mock: bool = False,
    ):
        self.device_index = device_index
        self.resolution = resolution
        self.hflip = hflip
        self.vflip = vflip
        self._force_mock = force_mock

        # State
        self._capture = None
        self._paused = True
        self._dimensions: tuple[int, int] | None = None
        self._latest_frame: np.ndarray | None = None
        self._frame_timestamp: datetime | None = None
        self._frame_count = 0

        logger.info(
            f"CameraService created: device={device_index}, resolution={resolution}, "
            f"flip=({hflip}, {vflip}), mock={force_mock}"
        )

    @property
    def acquired(self) -> bool:
        return self._capture is not None

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def dimensions(self) -> tuple[int, int] | None:
        """(width, height) reported by the device."""
        return self._dimensions

    async def acquire(self) -> tuple[int, int]:
        """
        Open the camera.

        Returns:
            (width, height) of delivered frames

        Raises:
            AcquisitionError: Classified as permission denied, no camera or
                unsupported platform
        """
        if self._capture is not None:
            return self._dimensions

        loop = asyncio.get_running_loop()
        self._capture, self._dimensions = await loop.run_in_executor(None, self._open)
        self._paused = True
        logger.info(f"Camera acquired: {self._dimensions[0]}x{self._dimensions[1]}")
        return self._dimensions

    def _open(self):
        """Open the device (blocking)."""
        if self._force_mock:
            capture = MockCapture(*self.resolution)
        else:
            if sys.platform not in SUPPORTED_PLATFORMS:
                raise AcquisitionError(AcquisitionFailure.PLATFORM_UNSUPPORTED, sys.platform)
            try:
                capture = cv2.VideoCapture(self.device_index)
            except PermissionError as e:
                raise AcquisitionError(AcquisitionFailure.PERMISSION_DENIED, str(e)) from e
            except cv2.error as e:
                raise AcquisitionError(AcquisitionFailure.PLATFORM_UNSUPPORTED, str(e)) from e

        if not capture.isOpened():
            capture.release()
            if self._device_access_denied():
                raise AcquisitionError(
                    AcquisitionFailure.PERMISSION_DENIED,
                    f"No access to camera device {self.device_index}",
                )
            raise AcquisitionError(
                AcquisitionFailure.NO_CAMERA, f"Cannot open camera device {self.device_index}"
            )

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)) or self.resolution[0]
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) or self.resolution[1]
        return capture, (width, height)

    def _device_access_denied(self) -> bool:
        """True if the device node exists but this process cannot open it."""
        if self._force_mock:
            return False
        node = Path(DEVICE_NODE_PATTERN.format(index=self.device_index))
        return node.exists() and not os.access(node, os.R_OK | os.W_OK)

    def pause(self) -> None:
        """Stop delivering new frames."""
        if not self._paused:
            self._paused = True
            logger.debug("Camera paused")

    def resume(self) -> None:
        """Deliver frames again."""
        if self._capture is None:
            logger.warning("Camera resume requested before acquisition")
            return
        if self._paused:
            self._paused = False
            logger.debug("Camera resumed")

    def capture_frame(self) -> np.ndarray | None:
        """
        Read the next frame as RGB.

        Returns:
            RGB frame, or None when paused or the device returned nothing
        """
        if self._capture is None or self._paused:
            return None

        ok, frame = self._capture.read()
        if not ok or frame is None:
            logger.warning("Camera returned no frame")
            return None

        frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        if self.hflip:
            frame = np.fliplr(frame)
        if self.vflip:
            frame = np.flipud(frame)
        frame = np.ascontiguousarray(frame)

        self._latest_frame = frame
        self._frame_timestamp = datetime.now()
        self._frame_count += 1
        return frame

    def snapshot(self) -> np.ndarray:
        """
        Copy of the last delivered frame.

        Raises:
            RuntimeError: If no frame has been delivered yet
        """
        if self._latest_frame is None:
            raise RuntimeError("No frame available for snapshot")
        return self._latest_frame.copy()

    def snapshot_jpeg(self, quality: int = 85) -> bytes | None:
        """Last delivered frame as JPEG bytes."""
        if self._latest_frame is None:
            return None
        img = Image.fromarray(self._latest_frame)
        buf = BytesIO()
        img.save(buf, "JPEG", quality=quality)
        return buf.getvalue()

    def get_status(self) -> dict:
        """Get camera service status."""
        return {
            "acquired": self.acquired,
            "paused": self._paused,
            "dimensions": self._dimensions,
            "frame_count": self._frame_count,
            "last_frame": self._frame_timestamp.isoformat() if self._frame_timestamp else None,
            "using_mock": self._force_mock,
        }

    def cleanup(self) -> None:
        """Release the capture device."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self._paused = True
        logger.info("Camera resources cleaned up")
