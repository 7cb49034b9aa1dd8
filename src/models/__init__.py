"""
Typed models for the capture and detection pipeline.
"""

from .frame import FrameData, BufferSize
from .detection import (
    BoundingBox,
    Detection,
    DetectionBatch,
    LabelScore,
    OverlayItem,
    RegionProposal,
    best_candidate,
)
from .errors import (
    PipelineError,
    DeviceUnavailable,
    ModelLoadError,
    InferenceError,
    NotReady,
)
from .config import (
    Config,
    CameraConfig,
    CameraPosition,
    DetectionConfig,
    PipelineSettings,
)

__all__ = [
    # Frame
    "FrameData",
    "BufferSize",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionBatch",
    "LabelScore",
    "OverlayItem",
    "RegionProposal",
    "best_candidate",
    # Errors
    "PipelineError",
    "DeviceUnavailable",
    "ModelLoadError",
    "InferenceError",
    "NotReady",
    # Config
    "Config",
    "CameraConfig",
    "CameraPosition",
    "DetectionConfig",
    "PipelineSettings",
]
