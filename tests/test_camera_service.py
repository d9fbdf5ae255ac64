"""
Tests for CameraService with the mock capture device.
"""

import asyncio
from unittest.mock import patch

import numpy as np
import pytest

from scavengerhunt.camera import camera_service
from scavengerhunt.camera.camera_service import CameraService, MockCapture
from scavengerhunt.game.errors import AcquisitionError, AcquisitionFailure


@pytest.fixture
def camera():
    service = CameraService(resolution=(320, 240), force_mock=True)
    asyncio.run(service.acquire())
    return service


class TestAcquire:
    """Tests for opening the device."""

    def test_acquire_reports_dimensions(self):
        service = CameraService(resolution=(320, 240), force_mock=True)
        assert asyncio.run(service.acquire()) == (320, 240)
        assert service.acquired
        assert service.is_paused

    def test_unsupported_platform(self):
        service = CameraService()
        with patch.object(camera_service, "SUPPORTED_PLATFORMS", ()):
            with pytest.raises(AcquisitionError) as exc_info:
                asyncio.run(service.acquire())
        assert exc_info.value.reason == AcquisitionFailure.PLATFORM_UNSUPPORTED

    def test_no_camera(self, tmp_path):
        closed = MockCapture()
        closed.release()
        service = CameraService()
        with patch.object(camera_service.cv2, "VideoCapture", return_value=closed), \
                patch.object(camera_service, "DEVICE_NODE_PATTERN", str(tmp_path / "video{index}")):
            with pytest.raises(AcquisitionError) as exc_info:
                asyncio.run(service.acquire())
        assert exc_info.value.reason == AcquisitionFailure.NO_CAMERA

    def test_unreadable_device_node_is_permission_denied(self, tmp_path):
        (tmp_path / "video0").touch()
        closed = MockCapture()
        closed.release()
        service = CameraService(device_index=0)
        with patch.object(camera_service.cv2, "VideoCapture", return_value=closed), \
                patch.object(camera_service, "DEVICE_NODE_PATTERN", str(tmp_path / "video{index}")), \
                patch.object(camera_service.os, "access", return_value=False):
            with pytest.raises(AcquisitionError) as exc_info:
                asyncio.run(service.acquire())
        assert exc_info.value.reason == AcquisitionFailure.PERMISSION_DENIED
        assert not service.acquired

    def test_accessible_device_node_that_fails_is_no_camera(self, tmp_path):
        (tmp_path / "video0").touch()
        closed = MockCapture()
        closed.release()
        service = CameraService(device_index=0)
        with patch.object(camera_service.cv2, "VideoCapture", return_value=closed), \
                patch.object(camera_service, "DEVICE_NODE_PATTERN", str(tmp_path / "video{index}")), \
                patch.object(camera_service.os, "access", return_value=True):
            with pytest.raises(AcquisitionError) as exc_info:
                asyncio.run(service.acquire())
        assert exc_info.value.reason == AcquisitionFailure.NO_CAMERA

    def test_permission_denied(self):
        service = CameraService()
        with patch.object(
            camera_service.cv2, "VideoCapture", side_effect=PermissionError("denied")
        ):
            with pytest.raises(AcquisitionError) as exc_info:
                asyncio.run(service.acquire())
        assert exc_info.value.reason == AcquisitionFailure.PERMISSION_DENIED


class TestFrames:
    """Tests for capture, pause and snapshot."""

    def test_paused_delivers_nothing(self, camera):
        assert camera.capture_frame() is None

    def test_capture_rgb_frame(self, camera):
        camera.resume()
        frame = camera.capture_frame()
        assert frame.shape == (240, 320, 3)
        assert frame.dtype == np.uint8

    def test_snapshot_is_copy_of_last_frame(self, camera):
        camera.resume()
        frame = camera.capture_frame()
        snapshot = camera.snapshot()

        original = frame.copy()
        np.testing.assert_array_equal(snapshot, original)

        snapshot[:] = 7
        np.testing.assert_array_equal(camera.snapshot(), original)

    def test_snapshot_kept_while_paused(self, camera):
        camera.resume()
        frame = camera.capture_frame()
        camera.pause()
        np.testing.assert_array_equal(camera.snapshot(), frame)

    def test_snapshot_without_frame(self, camera):
        with pytest.raises(RuntimeError):
            camera.snapshot()
        assert camera.snapshot_jpeg() is None

    def test_snapshot_jpeg(self, camera):
        camera.resume()
        camera.capture_frame()
        assert camera.snapshot_jpeg()[:2] == b"\xff\xd8"

    def test_horizontal_flip(self):
        service = CameraService(resolution=(4, 2), hflip=True, force_mock=True)
        asyncio.run(service.acquire())
        service.resume()

        bgr = np.zeros((2, 4, 3), dtype=np.uint8)
        bgr[:, 0] = (255, 0, 0)  # blue in the left column
        with patch.object(MockCapture, "read", return_value=(True, bgr)):
            frame = service.capture_frame()

        assert tuple(frame[0, 3]) == (0, 0, 255)
        assert tuple(frame[0, 0]) == (0, 0, 0)

    def test_resume_before_acquire_is_ignored(self):
        service = CameraService(force_mock=True)
        service.resume()
        assert service.is_paused

    def test_cleanup(self, camera):
        camera.cleanup()
        assert not camera.acquired
        assert camera.capture_frame() is None
