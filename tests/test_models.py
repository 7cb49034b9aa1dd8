"""
Smoke tests for typed models.
"""

import dataclasses

import numpy as np
import pytest

from models.config import CameraConfig, CameraPosition, Config, DetectionConfig, PipelineSettings
from models.detection import (
    BoundingBox,
    Detection,
    DetectionBatch,
    LabelScore,
    best_candidate,
)
from models.errors import InferenceError, PipelineError, DeviceUnavailable
from models.frame import BufferSize, FrameData


class TestBoundingBox:
    def test_properties(self):
        bbox = BoundingBox(x1=100, y1=100, x2=200, y2=150)
        assert bbox.width == 100
        assert bbox.height == 50
        assert bbox.center == (150.0, 125.0)
        assert bbox.area == 5000

    def test_as_tuple(self):
        bbox = BoundingBox(x1=10.4, y1=20.6, x2=30.5, y2=40.0)
        assert bbox.as_tuple() == (10.4, 20.6, 30.5, 40.0)
        assert bbox.as_int_tuple() == (10, 21, 30, 40)
        assert bbox.as_xywh() == pytest.approx((10.4, 20.6, 20.1, 19.4))

    def test_from_center(self):
        bbox = BoundingBox.from_center(0.5, 0.5, 0.2, 0.4)
        assert bbox.as_tuple() == pytest.approx((0.4, 0.3, 0.6, 0.7))

    def test_frozen(self):
        bbox = BoundingBox(0, 0, 1, 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            bbox.x1 = 0.5


class TestBestCandidate:
    def test_highest_confidence_wins(self):
        top = best_candidate([LabelScore("cat", 0.4), LabelScore("dog", 0.8), LabelScore("cow", 0.6)])
        assert top.label == "dog"

    def test_exact_tie_keeps_first_listed(self):
        top = best_candidate([LabelScore("person", 0.7), LabelScore("mannequin", 0.7)])
        assert top.label == "person"

    def test_empty(self):
        assert best_candidate([]) is None


class TestFrameData:
    def test_from_numpy(self):
        arr = np.zeros((720, 1280, 3), dtype=np.uint8)
        fd = FrameData.from_numpy(arr, timestamp=1.5, frame_index=3, source="back-camera")
        assert fd.width == 1280
        assert fd.height == 720
        assert fd.size == BufferSize(1280, 720)

    def test_immutable(self):
        fd = FrameData.from_numpy(np.zeros((2, 2, 3), dtype=np.uint8), timestamp=0.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            fd.frame_index = 9


class TestBufferSize:
    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            BufferSize(0, 480)

    def test_rotated(self):
        assert BufferSize(1920, 1080).rotated() == BufferSize(1080, 1920)


class TestDetectionBatch:
    def test_len_and_labels(self):
        batch = DetectionBatch(
            frame_index=1,
            timestamp=0.0,
            detections=(
                Detection("person", 0.9, BoundingBox(0, 0, 1, 1)),
                Detection("car", 0.5, BoundingBox(0, 0, 0.5, 0.5)),
            ),
        )
        assert len(batch) == 2
        assert batch.labels == ("person", "car")

    def test_empty_by_default(self):
        assert len(DetectionBatch(frame_index=1, timestamp=0.0)) == 0


class TestCameraPosition:
    def test_fallback_order(self):
        assert CameraPosition.BACK.fallback_order() == [CameraPosition.BACK, CameraPosition.FRONT]
        assert CameraPosition.FRONT.fallback_order() == [CameraPosition.FRONT, CameraPosition.BACK]


class TestConfig:
    def test_from_dict(self, valid_config):
        config = Config.from_dict(valid_config)
        assert config.camera.preferred_position is CameraPosition.BACK
        assert config.camera.resolution == [1280, 720]
        assert config.detection.model == "yolov8n"
        assert config.pipeline.result_deadline is None
        assert config.log_level == "INFO"

    def test_defaults_for_missing_sections(self):
        config = Config.from_dict({})
        assert config.camera == CameraConfig()
        assert config.detection == DetectionConfig()
        assert config.pipeline == PipelineSettings()

    def test_roundtrip(self, valid_config):
        config = Config.from_dict(valid_config)
        assert Config.from_dict(config.to_dict()) == config

    def test_device_for_position(self):
        camera = CameraConfig(back_device=2, front_device=5)
        assert camera.device_for(CameraPosition.BACK) == 2
        assert camera.device_for(CameraPosition.FRONT) == 5


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(DeviceUnavailable, PipelineError)
        assert issubclass(InferenceError, PipelineError)

    def test_inference_error_keeps_cause(self):
        cause = ValueError("bad tensor")
        err = InferenceError("frame 3 failed", cause=cause)
        assert err.cause is cause
        assert "frame 3" in str(err)
