"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CameraPosition(str, Enum):
    """Physical camera position. The other position is the fallback."""
    BACK = "back"
    FRONT = "front"

    def fallback_order(self) -> List["CameraPosition"]:
        other = CameraPosition.FRONT if self is CameraPosition.BACK else CameraPosition.BACK
        return [self, other]


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    preferred_position: CameraPosition = CameraPosition.BACK
    back_device: int = 0
    front_device: int = 1
    resolution: List[int] = field(default_factory=lambda: [1920, 1080])
    fps: int = 30
    max_retries: int = 3
    max_consecutive_failures: int = 10
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    def device_for(self, position: CameraPosition) -> int:
        return self.back_device if position is CameraPosition.BACK else self.front_device

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            preferred_position=CameraPosition(d.get("preferred_position", "back")),
            back_device=d.get("back_device", 0),
            front_device=d.get("front_device", 1),
            resolution=list(d.get("resolution", [1920, 1080])),
            fps=d.get("fps", 30),
            max_retries=d.get("max_retries", 3),
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "preferred_position": self.preferred_position.value,
            "back_device": self.back_device,
            "front_device": self.front_device,
            "resolution": self.resolution,
            "fps": self.fps,
            "max_retries": self.max_retries,
            "max_consecutive_failures": self.max_consecutive_failures,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class DetectionConfig:
    """Detection model configuration."""
    backend: str = "opencv_dnn"
    model: str = ""
    model_dir: str = "models"
    labels_path: Optional[str] = None
    output_layout: str = "v8"
    input_size: int = 640
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            backend=d.get("backend", "opencv_dnn"),
            model=d.get("model", ""),
            model_dir=d.get("model_dir", "models"),
            labels_path=d.get("labels_path"),
            output_layout=d.get("output_layout", "v8"),
            input_size=d.get("input_size", 640),
            conf_threshold=d.get("conf_threshold", 0.25),
            iou_threshold=d.get("iou_threshold", 0.45),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "backend": self.backend,
            "model": self.model,
            "model_dir": self.model_dir,
            "output_layout": self.output_layout,
            "input_size": self.input_size,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
        }
        if self.labels_path is not None:
            d["labels_path"] = self.labels_path
        return d


@dataclass
class PipelineSettings:
    """
    Detection pipeline tuning.

    Attributes:
        stats_log_interval: Seconds between pipeline status log messages.
        result_deadline: Seconds after which a finished inference result is
            considered stale and discarded instead of rendered. None disables.
    """
    stats_log_interval: float = 10.0
    result_deadline: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            stats_log_interval=d.get("stats_log_interval", 10.0),
            result_deadline=d.get("result_deadline"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats_log_interval": self.stats_log_interval,
            "result_deadline": self.result_deadline,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_path: str = "logs/sentry.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline", {}) or {}),
            log_path=d.get("log_path", "logs/sentry.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
