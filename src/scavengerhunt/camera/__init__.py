"""
Camera module for Scavenger Hunt.

Provides:
- CameraService: OpenCV capture adapter with pause/resume and snapshots
- Snapshot annotation utilities for found-item photos
"""

from .camera_service import CameraService
from .frame_annotator import annotate_snapshot, found_caption, snapshot_to_jpeg

__all__ = [
    "CameraService",
    "annotate_snapshot",
    "found_caption",
    "snapshot_to_jpeg",
]
