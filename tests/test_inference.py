"""
Tests for model lookup, the inference engine and YOLO output decoding.
"""

import numpy as np
import pytest

from conftest import FakeBackend, make_frame
from inference import create_backend
from inference.dnn_backend import DnnConfig, OpenCVDnnBackend, decode_yolo_output, load_labels
from inference.engine import InferenceEngine
from inference.store import ModelStore
from models.config import DetectionConfig
from models.detection import BoundingBox, LabelScore, RegionProposal
from models.errors import InferenceError, ModelLoadError, NotReady
from models.frame import FrameData


class TestModelStore:
    def test_existing_path(self, model_file):
        assert ModelStore().resolve(model_file) == model_file

    def test_name_with_suffix(self, tmp_path):
        (tmp_path / "yolov8n.onnx").write_bytes(b"x")
        store = ModelStore(str(tmp_path))
        assert store.resolve("yolov8n", (".pt", ".onnx")) == str(tmp_path / "yolov8n.onnx")

    def test_missing(self, tmp_path):
        with pytest.raises(ModelLoadError, match="not found"):
            ModelStore(str(tmp_path)).resolve("nope", (".onnx",))

    def test_empty_identifier(self):
        with pytest.raises(ModelLoadError):
            ModelStore().resolve("")


class TestInferenceEngine:
    def test_infer_before_load(self):
        engine = InferenceEngine(FakeBackend())
        with pytest.raises(NotReady):
            engine.infer(make_frame(1))

    def test_load_and_infer(self, model_file):
        backend = FakeBackend()
        engine = InferenceEngine(backend)
        engine.load_model(model_file)

        assert engine.is_ready
        assert backend.loaded == model_file

        batch = engine.infer(make_frame(7))
        assert batch.frame_index == 7
        assert batch.labels == ("person",)
        assert batch.detections[0].box == BoundingBox(0.25, 0.25, 0.75, 0.75)

    def test_missing_model(self, tmp_path):
        engine = InferenceEngine(FakeBackend(), ModelStore(str(tmp_path)))
        with pytest.raises(ModelLoadError):
            engine.load_model("missing")
        assert not engine.is_ready

    def test_backend_load_failure_is_model_load_error(self, model_file):
        class BrokenBackend(FakeBackend):
            def load(self, model_path):
                raise OSError("truncated file")

        engine = InferenceEngine(BrokenBackend())
        with pytest.raises(ModelLoadError, match="truncated"):
            engine.load_model(model_file)
        assert not engine.is_ready

    def test_backend_failure_is_inference_error(self, model_file):
        engine = InferenceEngine(FakeBackend(fail_on={1}))
        engine.load_model(model_file)

        with pytest.raises(InferenceError) as exc_info:
            engine.infer(make_frame(1))
        assert isinstance(exc_info.value.cause, ValueError)

        # Next call is unaffected
        assert len(engine.infer(make_frame(2))) == 1

    def test_malformed_frame(self, model_file):
        engine = InferenceEngine(FakeBackend())
        engine.load_model(model_file)

        empty = FrameData(frame=np.zeros((0, 0, 3), dtype=np.uint8), width=0, height=0, timestamp=0.0)
        with pytest.raises(InferenceError):
            engine.infer(empty)

        mismatched = FrameData(frame=np.zeros((10, 10, 3), dtype=np.uint8), width=20, height=10, timestamp=0.0)
        with pytest.raises(InferenceError):
            engine.infer(mismatched)

    def test_keeps_top_label_per_region(self, model_file):
        backend = FakeBackend(proposals=[
            RegionProposal(
                box=BoundingBox(0, 0, 0.5, 0.5),
                candidates=(LabelScore("cat", 0.3), LabelScore("dog", 0.8), LabelScore("fox", 0.5)),
            ),
            RegionProposal(
                box=BoundingBox(0.5, 0.5, 1, 1),
                candidates=(LabelScore("person", 0.6), LabelScore("mannequin", 0.6)),
            ),
            RegionProposal(box=BoundingBox(0, 0, 1, 1), candidates=()),
        ])
        engine = InferenceEngine(backend)
        engine.load_model(model_file)

        batch = engine.infer(make_frame(1))
        assert batch.labels == ("dog", "person")
        assert batch.detections[0].confidence == 0.8

    def test_clamps_confidence(self, model_file):
        backend = FakeBackend(proposals=[
            RegionProposal(box=BoundingBox(0, 0, 1, 1), candidates=(LabelScore("person", 1.2),)),
        ])
        engine = InferenceEngine(backend)
        engine.load_model(model_file)
        assert engine.infer(make_frame(1)).detections[0].confidence == 1.0

    @pytest.mark.parametrize("box, score", [
        (BoundingBox(float("nan"), 0, 1, 1), 0.9),
        (BoundingBox(0, 0, float("inf"), 1), 0.9),
        (BoundingBox(0, 0, 1, 1), float("nan")),
    ])
    def test_non_finite_output_is_inference_error(self, model_file, box, score):
        backend = FakeBackend(proposals=[
            RegionProposal(box=box, candidates=(LabelScore("person", score),)),
        ])
        engine = InferenceEngine(backend)
        engine.load_model(model_file)
        with pytest.raises(InferenceError, match="non-finite"):
            engine.infer(make_frame(1))


def _v8_output(rows):
    """Build a (1, 4+C, N) tensor from per-detection rows [cx, cy, w, h, s0, s1, ...]."""
    return np.array(rows, dtype=np.float32).T[np.newaxis, ...]


class TestDecodeYoloOutput:
    def test_v8_normalizes_boxes(self):
        output = _v8_output([[320, 160, 64, 32, 0.9, 0.1]])
        proposals = decode_yolo_output(output, 640, 0.25, 0.45, labels={0: "person", 1: "car"})

        assert len(proposals) == 1
        box = proposals[0].box
        assert box.as_tuple() == pytest.approx((0.45, 0.225, 0.55, 0.275))
        assert proposals[0].candidates == (LabelScore("person", pytest.approx(0.9)),)

    def test_below_threshold_dropped(self):
        output = _v8_output([[320, 320, 64, 64, 0.1, 0.2]])
        assert decode_yolo_output(output, 640, 0.25, 0.45) == []

    def test_candidates_in_class_order(self):
        output = _v8_output([[100, 100, 50, 50, 0.5, 0.0, 0.5]])
        proposals = decode_yolo_output(output, 640, 0.25, 0.45, labels={0: "a", 1: "b", 2: "c"})
        assert [c.label for c in proposals[0].candidates] == ["a", "c"]

    def test_nms_suppresses_overlap(self):
        output = _v8_output([
            [320, 320, 100, 100, 0.9],
            [322, 321, 100, 100, 0.8],
            [100, 100, 40, 40, 0.7],
        ])
        proposals = decode_yolo_output(output, 640, 0.25, 0.45)
        assert len(proposals) == 2
        assert proposals[0].candidates[0].confidence == pytest.approx(0.9)

    def test_unlabelled_classes_use_ids(self):
        output = _v8_output([[100, 100, 50, 50, 0.0, 0.9]])
        proposals = decode_yolo_output(output, 640, 0.25, 0.45)
        assert proposals[0].candidates[0].label == "1"

    def test_v5_applies_objectness(self):
        output = np.array([[[320, 320, 64, 64, 0.5, 0.9, 0.2]]], dtype=np.float32)
        proposals = decode_yolo_output(output, 640, 0.25, 0.45, layout="v5")
        assert proposals[0].candidates == (LabelScore("0", pytest.approx(0.45)),)

    def test_unknown_layout(self):
        with pytest.raises(ValueError):
            decode_yolo_output(np.zeros((1, 6, 3)), 640, 0.25, 0.45, layout="v3")


class TestDnnBackend:
    def test_load_labels(self, tmp_path):
        path = tmp_path / "coco.names"
        path.write_text("person\nbicycle\n\ncar\n")
        assert load_labels(str(path)) == {0: "person", 1: "bicycle", 3: "car"}

    def test_corrupt_model_raises(self, model_file):
        backend = OpenCVDnnBackend(DnnConfig())
        with pytest.raises(ModelLoadError):
            backend.load(model_file)

    def test_create_backend(self):
        backend = create_backend(DetectionConfig(input_size=320, output_layout="v5"))
        assert isinstance(backend, OpenCVDnnBackend)
        assert backend.cfg.input_size == 320
        assert backend.cfg.layout == "v5"

    def test_create_backend_unknown(self):
        with pytest.raises(ValueError):
            create_backend(DetectionConfig(backend="tflite"))
