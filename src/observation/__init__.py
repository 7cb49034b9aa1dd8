"""
Observation layer: camera devices and the threaded frame producer.

ObservationSource wraps one capture device; FrameSource selects a device
by camera position and drives it from a dedicated capture thread.
"""

from .base import ObservationSource, ObservationConfig
from .frame_source import FrameSource, CaptureStats
from .opencv_source import OpenCVSource, OpenCVSourceConfig, create_opencv_device

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "FrameSource",
    "CaptureStats",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_opencv_device",
]
