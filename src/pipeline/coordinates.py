"""
Normalized-to-pixel coordinate mapping.

Both input and output use a top-left origin (y grows downward), the same
convention backends report in, so no axis flip is applied.
"""

from __future__ import annotations

import math
from typing import List

from models.detection import BoundingBox, DetectionBatch, OverlayItem
from models.frame import BufferSize


def _clamp(v: float) -> float:
    v = float(v)
    if math.isnan(v):
        return 0.0
    return min(max(v, 0.0), 1.0)


def to_pixel_rect(box: BoundingBox, buffer_size: BufferSize) -> BoundingBox:
    """
    Scale a normalized box to buffer pixels.

    Coordinates outside [0, 1] are clamped (NaN counts as 0) and swapped
    corners are reordered, so the result always lies inside the buffer.
    """
    x1, x2 = sorted((_clamp(box.x1), _clamp(box.x2)))
    y1, y2 = sorted((_clamp(box.y1), _clamp(box.y2)))
    w, h = buffer_size.width, buffer_size.height
    return BoundingBox(x1=x1 * w, y1=y1 * h, x2=x2 * w, y2=y2 * h)


def to_overlay_items(batch: DetectionBatch, buffer_size: BufferSize) -> List[OverlayItem]:
    """Map every detection in a batch, preserving order."""
    return [
        OverlayItem(label=d.label, confidence=d.confidence, rect=to_pixel_rect(d.box, buffer_size))
        for d in batch.detections
    ]
