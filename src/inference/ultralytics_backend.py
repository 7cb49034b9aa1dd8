"""
Ultralytics inference backend.

Optional: install with `pip install sentry-pipeline[ultralytics]`. Useful for
.pt checkpoints that have not been exported to ONNX.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from models.detection import BoundingBox, LabelScore, RegionProposal


@dataclass(frozen=True)
class UltralyticsConfig:
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45


def _as_array(t) -> np.ndarray:
    return t.cpu().numpy() if hasattr(t, "cpu") else np.asarray(t)


class UltralyticsBackend:
    suffixes: Sequence[str] = (".pt", ".onnx", ".engine", ".mlpackage")

    def __init__(self, cfg: UltralyticsConfig):
        self.cfg = cfg
        try:
            from ultralytics import YOLO  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ImportError(
                "detection.backend 'ultralytics' needs the ultralytics package: "
                "`pip install sentry-pipeline[ultralytics]`, or use 'opencv_dnn'."
            ) from e
        self._yolo = YOLO
        self._model = None

    def load(self, model_path: str) -> None:
        self._model = self._yolo(model_path)

    def detect(self, frame: np.ndarray) -> List[RegionProposal]:
        results = self._model.predict(
            source=frame,
            conf=self.cfg.conf_threshold,
            iou=self.cfg.iou_threshold,
            verbose=False,
        )
        if not results or results[0].boxes is None:
            return []

        result = results[0]
        names = result.names or {}
        boxes = result.boxes

        # Ultralytics has already reduced each region to its top class
        proposals: List[RegionProposal] = []
        for (x1, y1, x2, y2), score, class_id in zip(
            _as_array(boxes.xyxyn), _as_array(boxes.conf), _as_array(boxes.cls)
        ):
            label = names.get(int(class_id), str(int(class_id)))
            proposals.append(
                RegionProposal(
                    box=BoundingBox(x1=float(x1), y1=float(y1), x2=float(x2), y2=float(y2)),
                    candidates=(LabelScore(label=label, confidence=float(score)),),
                )
            )
        return proposals
