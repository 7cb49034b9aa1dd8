"""
Detection pipeline: drop-on-busy inference scheduling, coordinate mapping
and the presenter contract.
"""

from .engine import DetectionPipeline, PipelineState, PipelineStats
from .coordinates import to_pixel_rect, to_overlay_items
from .presenter import Presenter, LogPresenter

__all__ = [
    "DetectionPipeline",
    "PipelineState",
    "PipelineStats",
    "to_pixel_rect",
    "to_overlay_items",
    "Presenter",
    "LogPresenter",
]
