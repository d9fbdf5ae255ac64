"""
Error types for the scavenger hunt engine.
"""

from enum import Enum


class ScavengerHuntError(Exception):
    """Base class for all game engine errors."""


class ConfigurationError(ScavengerHuntError):
    """Invalid catalog, level or difficulty configuration. Always fatal."""


class AcquisitionFailure(Enum):
    """Why the classifier or camera could not be acquired."""

    PERMISSION_DENIED = "permission_denied"
    NO_CAMERA = "no_camera"
    PLATFORM_UNSUPPORTED = "platform_unsupported"
    MODEL_LOAD_FAILED = "model_load_failed"


# Player-facing messages, one per failure kind
ACQUISITION_MESSAGES = {
    AcquisitionFailure.PERMISSION_DENIED: (
        "Hey! To play you'll need to enable camera access. Your camera is how "
        "you'll find objects in the real world. We won't store any images "
        "from your camera."
    ),
    AcquisitionFailure.NO_CAMERA: (
        "It looks like your device doesn't have a camera we can use. "
        "This game is designed to work best on devices with a camera."
    ),
    AcquisitionFailure.PLATFORM_UNSUPPORTED: (
        "It looks like your platform doesn't support this experiment. "
        "Please try again on a supported device."
    ),
    AcquisitionFailure.MODEL_LOAD_FAILED: (
        "The object recognition model could not be loaded. Please try again."
    ),
}


class AcquisitionError(ScavengerHuntError):
    """Classifier load or camera acquisition failed; the session cannot start."""

    def __init__(self, reason: AcquisitionFailure, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)

    @property
    def user_message(self) -> str:
        """Message shown to the player on the landing view."""
        return ACQUISITION_MESSAGES[self.reason]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "reason": self.reason.value,
            "detail": self.detail,
            "message": self.user_message,
        }
