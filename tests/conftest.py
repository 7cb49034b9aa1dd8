"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.detection import BoundingBox, LabelScore, RegionProposal  # noqa: E402
from models.frame import BufferSize, FrameData  # noqa: E402
from observation.base import ObservationConfig, ObservationSource  # noqa: E402


def make_frame(index: int, width: int = 640, height: int = 480) -> FrameData:
    return FrameData.from_numpy(
        np.zeros((height, width, 3), dtype=np.uint8),
        timestamp=time.monotonic(),
        frame_index=index,
        source="test",
    )


class MockCameraSource(ObservationSource):
    """Camera device producing blank frames, optionally paced and bounded."""

    def __init__(
        self,
        config: ObservationConfig,
        size=(640, 480),
        fps: float = 0.0,
        max_frames: int = None,
        fail_open: bool = False,
    ):
        super().__init__(config)
        self._size = size
        self._interval = 1.0 / fps if fps else 0.0
        self._max_frames = max_frames
        self._fail_open = fail_open
        self.closed = False

    def open(self) -> None:
        if self._fail_open:
            raise RuntimeError(f"{self.source_id} not present")
        self._is_open = True
        self._frame_index = 0
        self._buffer_size = BufferSize(*self._size)

    def read(self):
        if not self._is_open:
            return None
        if self._max_frames is not None and self._frame_index >= self._max_frames:
            return None
        if self._interval:
            time.sleep(self._interval)
        self._frame_index += 1
        w, h = self._size
        return FrameData.from_numpy(
            np.zeros((h, w, 3), dtype=np.uint8),
            timestamp=time.monotonic(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class FakeBackend:
    """Backend returning a fixed set of region proposals."""

    suffixes = (".onnx",)

    def __init__(self, proposals=None, delay: float = 0.0, fail_on=()):
        self.proposals = proposals if proposals is not None else [
            RegionProposal(
                box=BoundingBox(0.25, 0.25, 0.75, 0.75),
                candidates=(LabelScore("person", 0.9),),
            )
        ]
        self.delay = delay
        self.fail_on = set(fail_on)
        self.loaded = None
        self.calls = 0

    def load(self, model_path: str) -> None:
        self.loaded = model_path

    def detect(self, frame):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.calls in self.fail_on:
            raise ValueError("model exploded")
        return list(self.proposals)


class RecordingPresenter:
    """Presenter recording each render call and the thread it ran on."""

    def __init__(self):
        self.calls = []
        self.threads = set()
        self._lock = threading.Lock()

    def render(self, items) -> None:
        with self._lock:
            self.calls.append(list(items))
            self.threads.add(threading.current_thread().name)


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "detector.onnx"
    path.write_bytes(b"fake")
    return str(path)


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "preferred_position": "back",
            "back_device": 0,
            "front_device": 1,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "detection": {
            "backend": "opencv_dnn",
            "model": "yolov8n",
            "model_dir": "models",
            "conf_threshold": 0.25,
            "iou_threshold": 0.45,
        },
        "pipeline": {
            "stats_log_interval": 10.0,
            "result_deadline": None,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  preferred_position: "back"
  resolution: [640, 480]
  fps: 30

detection:
  backend: "opencv_dnn"
  model: "yolov8n"
  conf_threshold: 0.25

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir
