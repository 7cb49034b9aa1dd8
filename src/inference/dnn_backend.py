"""
OpenCV DNN inference backend.

Runs YOLO-family detectors exported to ONNX (or Darknet/TensorFlow/Caffe)
through cv2.dnn. Needs nothing beyond opencv-python.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from models.detection import BoundingBox, LabelScore, RegionProposal
from models.errors import ModelLoadError


@dataclass(frozen=True)
class DnnConfig:
    input_size: int = 640
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    labels_path: Optional[str] = None
    layout: str = "v8"
    swap_rb: bool = True


def load_labels(path: str) -> Dict[int, str]:
    """Read a one-label-per-line file (.names/.txt) into {class_id: label}."""
    with open(path, "r") as f:
        names = [line.strip() for line in f]
    return {i: name for i, name in enumerate(names) if name}


def decode_yolo_output(
    output: np.ndarray,
    input_size: int,
    conf_threshold: float,
    iou_threshold: float,
    labels: Optional[Dict[int, str]] = None,
    layout: str = "v8",
) -> List[RegionProposal]:
    """
    Decode a raw YOLO output tensor into normalized region proposals.

    Handles the two common layouts:
      - "v8": (1, 4+C, N), rows [cx, cy, w, h, cls0, ...]
      - "v5": (1, N, 5+C), columns [cx, cy, w, h, obj, cls0, ...]

    Box coordinates are in input_size pixels and are divided by input_size.
    Every class scoring at least conf_threshold becomes a candidate, in class
    order; regions are kept by NMS on their best score.
    """
    labels = labels or {}
    output = np.asarray(output, dtype=np.float32)
    if output.ndim == 3:
        output = output[0]
    if output.ndim != 2:
        raise ValueError(f"Unexpected YOLO output shape {output.shape}")
    if layout not in ("v8", "v5"):
        raise ValueError(f"Unknown YOLO output layout: {layout}")

    if layout == "v8":
        output = output.T
        scores = output[:, 4:]
    else:
        scores = output[:, 5:] * output[:, 4:5]
    if scores.shape[1] == 0:
        return []

    best_scores = scores.max(axis=1)
    keep = np.flatnonzero(best_scores >= conf_threshold)
    if keep.size == 0:
        return []

    boxes = []
    for i in keep:
        cx, cy, w, h = output[i, :4]
        boxes.append([float(cx - w / 2), float(cy - h / 2), float(w), float(h)])
    confidences = [float(best_scores[i]) for i in keep]

    indices = cv2.dnn.NMSBoxes(boxes, confidences, conf_threshold, iou_threshold)
    if len(indices) == 0:
        return []

    proposals: List[RegionProposal] = []
    for idx in np.asarray(indices).flatten():
        row = keep[idx]
        x, y, w, h = boxes[idx]
        class_ids = np.flatnonzero(scores[row] >= conf_threshold)
        candidates = tuple(
            LabelScore(label=labels.get(int(c), str(int(c))), confidence=float(scores[row, c]))
            for c in class_ids
        )
        proposals.append(
            RegionProposal(
                box=BoundingBox(
                    x1=x / input_size,
                    y1=y / input_size,
                    x2=(x + w) / input_size,
                    y2=(y + h) / input_size,
                ),
                candidates=candidates,
            )
        )
    return proposals


class OpenCVDnnBackend:
    suffixes: Sequence[str] = (".onnx", ".pb", ".weights", ".caffemodel")

    def __init__(self, cfg: DnnConfig):
        self.cfg = cfg
        self._net = None
        self._labels: Dict[int, str] = {}

    def load(self, model_path: str) -> None:
        try:
            self._net = cv2.dnn.readNet(model_path)
        except cv2.error as e:
            raise ModelLoadError(f"cv2.dnn could not read {model_path}: {e}") from e
        if self._net is None or self._net.empty():
            raise ModelLoadError(f"cv2.dnn returned an empty network for {model_path}")

        labels_path = self.cfg.labels_path or os.path.splitext(model_path)[0] + ".names"
        if os.path.isfile(labels_path):
            self._labels = load_labels(labels_path)
            logging.info(f"Loaded {len(self._labels)} labels from {labels_path}")
        else:
            self._labels = {}
            logging.warning(f"No labels file at {labels_path}; using class ids as labels")

    def detect(self, frame: np.ndarray) -> List[RegionProposal]:
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        size = self.cfg.input_size
        blob = cv2.dnn.blobFromImage(
            frame, 1 / 255.0, (size, size), swapRB=self.cfg.swap_rb, crop=False
        )
        self._net.setInput(blob)
        outputs = self._net.forward(self._net.getUnconnectedOutLayersNames())
        return decode_yolo_output(
            outputs[0],
            input_size=size,
            conf_threshold=self.cfg.conf_threshold,
            iou_threshold=self.cfg.iou_threshold,
            labels=self._labels,
            layout=self.cfg.layout,
        )
