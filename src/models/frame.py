"""
FrameData and BufferSize models for captured camera frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class BufferSize:
    """
    Pixel dimensions of the active capture format.

    Fixed once the capture device is configured and used as the
    denormalization basis for overlay geometry.
    """
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"BufferSize must be positive, got {self.width}x{self.height}")

    def as_tuple(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def rotated(self) -> "BufferSize":
        """Swap width and height (for 90/270 degree rotations)."""
        return BufferSize(width=self.height, height=self.width)


@dataclass(frozen=True)
class FrameData:
    """
    A single captured frame.

    Attributes:
        frame: The raw frame data as a numpy array (BGR format).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Monotonic capture time in seconds (non-decreasing per source).
        frame_index: Sequential frame number since capture started (1-based).
        source: Identifier for the camera that produced the frame.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def size(self) -> BufferSize:
        return BufferSize(width=self.width, height=self.height)
