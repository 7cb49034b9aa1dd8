"""
InferenceEngine: owns one loaded detection model.

The engine is called synchronously from the pipeline's inference thread.
It turns backend region proposals into a DetectionBatch, keeping only the
top label of each region.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

import numpy as np

from models.detection import BoundingBox, Detection, DetectionBatch, RegionProposal, best_candidate
from models.errors import InferenceError, ModelLoadError, NotReady
from models.frame import FrameData
from .backend import InferenceBackend
from .store import ModelStore


class InferenceEngine:
    """
    Example:
        engine = InferenceEngine(OpenCVDnnBackend(cfg), ModelStore("models"))
        engine.load_model("yolov8n")
        batch = engine.infer(frame_data)
    """

    def __init__(self, backend: InferenceBackend, store: Optional[ModelStore] = None):
        self._backend = backend
        self._store = store or ModelStore()
        self._lock = threading.Lock()
        self._ready = False
        self.model_path: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    def load_model(self, identifier: str) -> None:
        """
        Resolve and load a model.

        Raises:
            ModelLoadError: If the resource is missing or the backend rejects it.
        """
        path = self._store.resolve(identifier, getattr(self._backend, "suffixes", ()))
        start = time.monotonic()
        with self._lock:
            self._ready = False
            try:
                self._backend.load(path)
            except ModelLoadError:
                raise
            except Exception as e:
                raise ModelLoadError(f"Failed to load model {path}: {e}") from e
            self._ready = True
            self.model_path = path
        logging.info(f"Model loaded: {path} ({time.monotonic() - start:.2f}s)")

    def infer(self, frame_data: FrameData) -> DetectionBatch:
        """
        Run the model on one frame.

        Raises:
            NotReady: If no model has been loaded.
            InferenceError: On malformed input, a backend failure, or
                non-finite backend output.
        """
        if not self._ready:
            raise NotReady("infer() called before a model was loaded")

        self._validate(frame_data)
        with self._lock:
            try:
                proposals = self._backend.detect(frame_data.frame)
            except Exception as e:
                raise InferenceError(
                    f"Inference failed on frame {frame_data.frame_index}: {e}", cause=e
                ) from e

        return DetectionBatch(
            frame_index=frame_data.frame_index,
            timestamp=frame_data.timestamp,
            detections=tuple(self._select_labels(frame_data.frame_index, proposals)),
        )

    @staticmethod
    def _validate(frame_data: FrameData) -> None:
        frame = frame_data.frame
        if not isinstance(frame, np.ndarray) or frame.ndim not in (2, 3) or frame.size == 0:
            raise InferenceError(f"Frame {frame_data.frame_index} is not a valid image array")
        h, w = frame.shape[:2]
        if (w, h) != (frame_data.width, frame_data.height):
            raise InferenceError(
                f"Frame {frame_data.frame_index} is {w}x{h} but declares "
                f"{frame_data.width}x{frame_data.height}"
            )

    @staticmethod
    def _select_labels(frame_index: int, proposals: List[RegionProposal]) -> List[Detection]:
        detections: List[Detection] = []
        for proposal in proposals:
            top = best_candidate(proposal.candidates)
            if top is None:
                continue
            box = proposal.box
            if not np.all(np.isfinite([box.x1, box.y1, box.x2, box.y2, top.confidence])):
                raise InferenceError(
                    f"Backend returned non-finite values on frame {frame_index}: "
                    f"{box.as_tuple()} {top.label}={top.confidence}"
                )
            detections.append(
                Detection(
                    label=top.label,
                    confidence=min(max(float(top.confidence), 0.0), 1.0),
                    box=BoundingBox(
                        x1=float(box.x1), y1=float(box.y1), x2=float(box.x2), y2=float(box.y2)
                    ),
                )
            )
        return detections
