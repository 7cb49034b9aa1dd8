"""
Detection models for object detection results.

All boxes use a top-left origin: x grows to the right, y grows downward.
Normalized boxes hold coordinates in [0, 1] relative to the frame size;
pixel boxes hold coordinates in buffer pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_xywh(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x1, self.y1, self.width, self.height)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(round(self.x1)), int(round(self.y1)), int(round(self.x2)), int(round(self.y2)))

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from (center_x, center_y, width, height) format."""
        return cls(x1=cx - w / 2, y1=cy - h / 2, x2=cx + w / 2, y2=cy + h / 2)


@dataclass(frozen=True)
class LabelScore:
    """One candidate label for a detected region."""
    label: str
    confidence: float


@dataclass(frozen=True)
class RegionProposal:
    """
    Raw backend output for one detected region.

    candidates keeps the order the model reported them in; the engine
    relies on that order to break exact confidence ties.
    """
    box: BoundingBox
    candidates: Tuple[LabelScore, ...]


@dataclass(frozen=True)
class Detection:
    """
    A single detection.

    Attributes:
        label: Human-readable class label.
        confidence: Score in [0, 1].
        box: Normalized bounding box (top-left origin).
    """
    label: str
    confidence: float
    box: BoundingBox


@dataclass(frozen=True)
class DetectionBatch:
    """All detections produced from exactly one frame."""
    frame_index: int
    timestamp: float
    detections: Tuple[Detection, ...] = ()

    def __len__(self) -> int:
        return len(self.detections)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(d.label for d in self.detections)


@dataclass(frozen=True)
class OverlayItem:
    """A detection mapped into buffer pixels, ready for a presenter."""
    label: str
    confidence: float
    rect: BoundingBox


def best_candidate(candidates: Sequence[LabelScore]) -> Optional[LabelScore]:
    """
    Return the highest-confidence candidate.

    Exact ties keep the first-listed candidate. Returns None for an
    empty sequence.
    """
    best: Optional[LabelScore] = None
    for candidate in candidates:
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best
