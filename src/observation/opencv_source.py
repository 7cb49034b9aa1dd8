"""
OpenCV-based camera device.

Opens a local camera by index through cv2.VideoCapture, requests the
configured format and reads the actual format back as the buffer size.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from models.config import CameraConfig, CameraPosition
from models.frame import BufferSize, FrameData
from .base import ObservationSource, ObservationConfig

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}

# Reconnect attempts inside a single read() before reporting a miss
_READ_RECONNECTS = 3


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Settings for one cv2.VideoCapture device.

    Attributes:
        device_id: Camera index.
        capture_buffer: OpenCV capture buffer size (1 keeps latency low).
        max_retries: Open attempts before giving up.
        warmup: Seconds to wait after opening before the first read.
        swap_rb: Swap red and blue channels.
        rotate: Clockwise rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Mirror left-right.
        flip_vertical: Mirror top-bottom.
    """
    device_id: int = 0
    capture_buffer: int = 1
    max_retries: int = 3
    warmup: float = 0.5
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def for_position(cls, camera: CameraConfig, position: CameraPosition) -> "OpenCVSourceConfig":
        """
        Adapter: Build the device config for one camera position.
        """
        return cls(
            source_id=f"{position.value}-camera",
            resolution=tuple(camera.resolution) if camera.resolution else None,
            fps=camera.fps,
            device_id=camera.device_for(position),
            max_retries=camera.max_retries,
            swap_rb=camera.swap_rb,
            rotate=camera.rotate,
            flip_horizontal=camera.flip_horizontal,
            flip_vertical=camera.flip_vertical,
        )

    @property
    def flip_code(self) -> Optional[int]:
        """cv2.flip code for the configured mirroring, or None."""
        if self.flip_horizontal and self.flip_vertical:
            return -1
        if self.flip_horizontal:
            return 1
        if self.flip_vertical:
            return 0
        return None


class OpenCVSource(ObservationSource):
    """
    Camera device read through cv2.VideoCapture.

    Example:
        device = OpenCVSource(OpenCVSourceConfig(device_id=0, resolution=(1280, 720)))
        device.open()
        print(device.buffer_size)
        frame_data = device.read()
        device.close()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self.cfg = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._misses = 0
        self._last_timestamp = 0.0

    @property
    def device_id(self) -> int:
        return self.cfg.device_id

    def open(self) -> None:
        """Open the camera and determine the buffer size."""
        if self._is_open:
            return

        self._connect()
        self._buffer_size = self._probe_buffer_size()
        self._is_open = True
        self._frame_index = 0
        self._last_timestamp = 0.0

        logging.info(
            f"Camera {self.source_id} open on device {self.device_id}, "
            f"buffer {self._buffer_size.width}x{self._buffer_size.height}"
        )

    def _connect(self) -> None:
        """(Re)open the capture device, backing off between attempts."""
        self._release()

        for attempt in range(1, self.cfg.max_retries + 1):
            if attempt > 1:
                delay = min(2 ** (attempt - 1), 10)
                logging.info(
                    f"Camera {self.device_id}: attempt {attempt}/{self.cfg.max_retries} in {delay}s"
                )
                time.sleep(delay)

            cap = cv2.VideoCapture(self.device_id)
            if cap.isOpened():
                self._cap = cap
                break
            cap.release()
            logging.warning(f"Camera {self.device_id} did not open (attempt {attempt})")
        else:
            raise RuntimeError(
                f"Camera {self.device_id} unavailable after {self.cfg.max_retries} attempts"
            )

        if self.cfg.resolution:
            width, height = self.cfg.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if self.cfg.fps:
            self._cap.set(cv2.CAP_PROP_FPS, self.cfg.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.cfg.capture_buffer)

        if self.cfg.warmup > 0:
            time.sleep(self.cfg.warmup)
        self._misses = 0

    def _probe_buffer_size(self) -> BufferSize:
        """Actual delivered frame size, after rotation."""
        width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            # Some drivers report 0 until the first frame arrives
            ok, frame = self._cap.read()
            if not ok or frame is None:
                raise RuntimeError(f"Camera {self.device_id} did not report a frame format")
            height, width = frame.shape[:2]

        size = BufferSize(width=width, height=height)
        if self.cfg.rotate in (90, 270):
            size = size.rotated()
        logging.info(
            f"Camera {self.device_id} negotiated {width}x{height} @ "
            f"{self._cap.get(cv2.CAP_PROP_FPS)} fps"
        )
        return size

    def read(self) -> Optional[FrameData]:
        """Next frame, or None when the device produced nothing."""
        if not self._is_open or self._cap is None:
            return None

        ok, frame = self._cap.read()
        if not ok or frame is None:
            frame = self._recover()
            if frame is None:
                return None

        self._misses = 0
        frame = self._transform(frame)

        # Clock reads can tie; never let a timestamp go backwards
        timestamp = max(time.monotonic(), self._last_timestamp)
        self._last_timestamp = timestamp
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=timestamp,
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _recover(self) -> Optional[np.ndarray]:
        self._misses += 1
        if self._misses > _READ_RECONNECTS:
            logging.error(f"Camera {self.device_id}: {self._misses} misses in a row")
            return None

        logging.warning(f"Camera {self.device_id}: read miss {self._misses}, reconnecting")
        try:
            self._connect()
        except RuntimeError as e:
            logging.error(f"Camera {self.device_id}: reconnect failed: {e}")
            return None
        ok, frame = self._cap.read()
        return frame if ok else None

    def _transform(self, frame: np.ndarray) -> np.ndarray:
        rotation = _ROTATIONS.get(self.cfg.rotate)
        if rotation is not None:
            frame = cv2.rotate(frame, rotation)
        if self.cfg.flip_code is not None:
            frame = cv2.flip(frame, self.cfg.flip_code)
        if self.cfg.swap_rb:
            frame = np.ascontiguousarray(frame[..., ::-1])
        return frame

    def _release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def close(self) -> None:
        """Release the camera."""
        self._release()
        if self._is_open:
            logging.info(f"Camera {self.source_id} closed")
        self._is_open = False


def create_opencv_device(camera: CameraConfig, position: CameraPosition) -> OpenCVSource:
    """Device factory used by FrameSource for the opencv backend."""
    return OpenCVSource(OpenCVSourceConfig.for_position(camera, position))
