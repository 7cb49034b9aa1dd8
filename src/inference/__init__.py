"""
Inference layer: model lookup, backends and the InferenceEngine.
"""

from __future__ import annotations

from models.config import DetectionConfig
from .backend import InferenceBackend
from .dnn_backend import DnnConfig, OpenCVDnnBackend, decode_yolo_output
from .engine import InferenceEngine
from .store import ModelStore


def create_backend(cfg: DetectionConfig) -> InferenceBackend:
    """Build the backend named by detection.backend."""
    if cfg.backend == "opencv_dnn":
        return OpenCVDnnBackend(
            DnnConfig(
                input_size=cfg.input_size,
                conf_threshold=cfg.conf_threshold,
                iou_threshold=cfg.iou_threshold,
                labels_path=cfg.labels_path,
                layout=cfg.output_layout,
            )
        )
    if cfg.backend == "ultralytics":
        from .ultralytics_backend import UltralyticsBackend, UltralyticsConfig
        return UltralyticsBackend(
            UltralyticsConfig(
                conf_threshold=cfg.conf_threshold,
                iou_threshold=cfg.iou_threshold,
            )
        )
    raise ValueError(f"Unknown detection backend: {cfg.backend}")


def create_engine(cfg: DetectionConfig) -> InferenceEngine:
    return InferenceEngine(create_backend(cfg), ModelStore(cfg.model_dir))


__all__ = [
    "InferenceBackend",
    "InferenceEngine",
    "ModelStore",
    "DnnConfig",
    "OpenCVDnnBackend",
    "decode_yolo_output",
    "create_backend",
    "create_engine",
]
