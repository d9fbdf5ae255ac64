"""
Configuration management for Scavenger Hunt using Pydantic settings.

Loads configuration from:
1. .env file (if present)
2. config/config.json (defaults)
3. Environment variables (override with SCAVENGER_ prefix)
"""

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
RUNTIME_DIR = PROJECT_ROOT / "runtime"

# Load .env file from project root (if exists)
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
    logger.debug(f"Loaded environment from {_env_file}")


def load_json_config() -> dict[str, Any]:
    """Load configuration from config.json file."""
    config_file = CONFIG_DIR / "config.json"
    if config_file.exists():
        with open(config_file) as f:
            return json.load(f)
    return {}


_json_config = load_json_config()


class GameConfig(BaseSettings):
    """Game session rules."""

    model_config = {"env_prefix": "SCAVENGER_GAME_"}

    catalog_file: str = Field(
        default=_json_config.get("game", {}).get("catalog_file", ""),
        description="Catalog JSON file (empty for the built-in catalog)",
    )
    difficulty: str = Field(
        default=_json_config.get("game", {}).get("difficulty", "1123445"),
        description="Level sequence, one level id per character",
    )
    max_items: int = Field(
        default=_json_config.get("game", {}).get("max_items", 1),
        description="Items to find to win the game",
    )
    round_seconds: int | None = Field(
        default=_json_config.get("game", {}).get("round_seconds", None),
        description="Seconds per target (unset for untimed play)",
    )
    match_strategy: str = Field(
        default=_json_config.get("game", {}).get("match_strategy", "top2"),
        description="'top2' (per-frame) or 'accumulate' (windowed average)",
    )
    accumulate_window: int = Field(
        default=_json_config.get("game", {}).get("accumulate_window", 10),
        description="Prediction cycles per accumulation window",
    )
    accumulate_threshold: float = Field(
        default=_json_config.get("game", {}).get("accumulate_threshold", 0.94),
        description="Average confidence a label needs in accumulating mode",
    )
    top_k: int = Field(
        default=_json_config.get("game", {}).get("top_k", 10),
        description="Predictions requested per frame",
    )
    frame_interval: float = Field(
        default=_json_config.get("game", {}).get("frame_interval", 1.0 / 60),
        description="Seconds between prediction cycles",
    )
    seed: int | None = Field(
        default=_json_config.get("game", {}).get("seed", None),
        description="Random seed for target draws (unset for random)",
    )
    debug: bool = Field(
        default=_json_config.get("game", {}).get("debug", False),
        description="Log every top-K list",
    )
    telemetry_enabled: bool = Field(
        default=_json_config.get("game", {}).get("telemetry_enabled", True),
        description="Write analytics events to the log",
    )

    @field_validator("max_items")
    @classmethod
    def validate_max_items(cls, v):
        if v < 1:
            raise ValueError(f"max_items must be >= 1, got {v}")
        return v

    @field_validator("round_seconds")
    @classmethod
    def validate_round_seconds(cls, v):
        if v is not None and (v < 1 or v > 3600):
            raise ValueError(f"round_seconds must be 1-3600, got {v}")
        return v

    @field_validator("match_strategy")
    @classmethod
    def validate_match_strategy(cls, v):
        if v not in ("top2", "accumulate"):
            raise ValueError(f"match_strategy must be 'top2' or 'accumulate', got '{v}'")
        return v

    @field_validator("accumulate_window")
    @classmethod
    def validate_accumulate_window(cls, v):
        if v < 1 or v > 600:
            raise ValueError(f"accumulate_window must be 1-600, got {v}")
        return v

    @field_validator("accumulate_threshold")
    @classmethod
    def validate_accumulate_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"accumulate_threshold must be 0.0-1.0, got {v}")
        return v

    @field_validator("top_k")
    @classmethod
    def validate_top_k(cls, v):
        if v < 2:
            raise ValueError(f"top_k must be >= 2 for top-2 matching, got {v}")
        return v


class ClassifierConfig(BaseSettings):
    """Image classifier configuration."""

    model_config = {"env_prefix": "SCAVENGER_CLASSIFIER_"}

    labels_file: str = Field(
        default=_json_config.get("classifier", {}).get("labels_file", ""),
        description="Text file with one class label per line (empty: catalog labels)",
    )
    backend: str = Field(
        default=_json_config.get("classifier", {}).get("backend", ""),
        description="Score function as 'package.module:function' (used when use_mock is off)",
    )
    input_size: int = Field(
        default=_json_config.get("classifier", {}).get("input_size", 224),
        description="Side of the square model input in pixels",
    )
    use_mock: bool = Field(
        default=_json_config.get("classifier", {}).get("use_mock", True),
        description="Use the simulated classifier",
    )
    mock_hit_probability: float = Field(
        default=_json_config.get("classifier", {}).get("mock_hit_probability", 0.05),
        description="Chance per frame that the mock sees a label clearly",
    )

    @field_validator("input_size")
    @classmethod
    def validate_input_size(cls, v):
        if v < 32 or v > 1024:
            raise ValueError(f"input_size must be 32-1024, got {v}")
        return v

    @field_validator("mock_hit_probability")
    @classmethod
    def validate_hit_probability(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"mock_hit_probability must be 0.0-1.0, got {v}")
        return v


class CameraConfig(BaseSettings):
    """Camera capture configuration."""

    model_config = {"env_prefix": "SCAVENGER_CAMERA_"}

    device_index: int = Field(
        default=_json_config.get("camera", {}).get("device_index", 0),
        description="OpenCV capture device index",
    )
    resolution: tuple[int, int] = Field(
        default=tuple(_json_config.get("camera", {}).get("resolution", [640, 480])),
        description="Requested capture resolution",
    )
    hflip: bool = Field(
        default=_json_config.get("camera", {}).get("hflip", False),
        description="Horizontal flip (front-facing camera)",
    )
    vflip: bool = Field(
        default=_json_config.get("camera", {}).get("vflip", False),
        description="Vertical flip",
    )
    use_mock: bool = Field(
        default=_json_config.get("camera", {}).get("use_mock", False),
        description="Use a simulated capture device",
    )

    @field_validator("resolution", mode="before")
    @classmethod
    def parse_resolution(cls, v):
        if isinstance(v, list):
            return tuple(v)
        return v


class APIConfig(BaseSettings):
    """FastAPI server configuration."""

    model_config = {"env_prefix": "SCAVENGER_API_"}

    enabled: bool = Field(
        default=_json_config.get("api", {}).get("enabled", True),
        description="Enable REST API server",
    )
    host: str = Field(
        default=_json_config.get("api", {}).get("host", "0.0.0.0"),
        description="API server bind host",
    )
    port: int = Field(
        default=_json_config.get("api", {}).get("port", 8080),
        description="API server port",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = {"env_prefix": "SCAVENGER_LOGGING_"}

    level: str = Field(
        default=_json_config.get("logging", {}).get("level", "INFO"),
        description="Log level",
    )
    file: str = Field(
        default=_json_config.get("logging", {}).get(
            "file", str(RUNTIME_DIR / "logs" / "scavengerhunt.log")
        ),
        description="Log file path",
    )


# Global configuration instances
game_config = GameConfig()
classifier_config = ClassifierConfig()
camera_config = CameraConfig()
api_config = APIConfig()
logging_config = LoggingConfig()


def setup_logging() -> None:
    """Configure logging for the application with log rotation."""
    from logging.handlers import RotatingFileHandler

    log_dir = Path(logging_config.file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # 10MB max, keep 5 backups
    file_handler = RotatingFileHandler(
        logging_config.file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(logging.StreamHandler())

    logger.info(
        f"Logging configured: level={logging_config.level}, "
        f"file={logging_config.file} (rotating, 10MB max, 5 backups)"
    )


def ensure_runtime_dirs() -> None:
    """Create runtime directories if they don't exist."""
    for d in (Path(logging_config.file).parent,):
        d.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {d}")
