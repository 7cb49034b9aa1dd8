"""
Threaded frame producer.

FrameSource owns one camera device for the life of a capture session. A
capture thread reads frames as fast as the device delivers them and offers
each one to a single-slot handoff; a dispatch thread takes frames from the
slot and calls the registered consumer. When the consumer is still busy with
the previous frame the slot is occupied and the newly captured frame is
discarded, so capture cadence never depends on the consumer.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from models.config import CameraConfig, CameraPosition
from models.errors import DeviceUnavailable
from models.frame import BufferSize, FrameData
from .base import ObservationSource

FrameConsumer = Callable[[FrameData], None]
DeviceFactory = Callable[[CameraConfig, CameraPosition], ObservationSource]

_STOP = object()


@dataclass
class CaptureStats:
    """Counters for one capture session."""
    frames_captured: int = 0
    frames_delivered: int = 0
    frames_dropped: int = 0
    read_failures: int = 0


def _default_device_factory(camera: CameraConfig, position: CameraPosition) -> ObservationSource:
    if camera.backend != "opencv":
        raise ValueError(f"Unknown camera backend: {camera.backend}")
    from .opencv_source import create_opencv_device
    return create_opencv_device(camera, position)


class FrameSource:
    """
    Continuous capture from the best available camera.

    Example:
        source = FrameSource(CameraConfig())
        buffer_size = source.configure(CameraPosition.BACK)
        source.set_consumer(pipeline.submit)
        source.start()
        ...
        source.stop()
    """

    def __init__(
        self,
        camera: CameraConfig,
        device_factory: Optional[DeviceFactory] = None,
        failure_backoff: float = 0.05,
    ):
        self._camera = camera
        self._device_factory = device_factory or _default_device_factory
        self._failure_backoff = failure_backoff
        self._device: Optional[ObservationSource] = None
        self._position: Optional[CameraPosition] = None
        self._buffer_size: Optional[BufferSize] = None
        self._consumer: Optional[FrameConsumer] = None
        self._slot: "queue.Queue[object]" = queue.Queue(maxsize=1)
        self._stop_event = threading.Event()
        self._capture_thread: Optional[threading.Thread] = None
        self._dispatch_thread: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()
        self.stats = CaptureStats()

    @property
    def position(self) -> Optional[CameraPosition]:
        """Camera position selected by configure()."""
        return self._position

    @property
    def buffer_size(self) -> BufferSize:
        """Pixel size of the active camera format."""
        if self._buffer_size is None:
            raise RuntimeError("FrameSource must be configured before querying buffer_size")
        return self._buffer_size

    @property
    def is_running(self) -> bool:
        return self._capture_thread is not None and self._capture_thread.is_alive()

    def configure(self, preference: Optional[CameraPosition] = None) -> BufferSize:
        """
        Select and open a camera, preferred position first.

        Raises:
            DeviceUnavailable: If no camera position could be opened.
        """
        if self._device is not None:
            self._device.close()
            self._device = None

        preference = preference or self._camera.preferred_position
        for position in preference.fallback_order():
            device = self._device_factory(self._camera, position)
            try:
                device.open()
            except RuntimeError as e:
                logging.warning(f"Camera {position.value} unavailable: {e}")
                device.close()
                continue

            if device.buffer_size is None:
                logging.warning(f"Camera {position.value} opened without a frame format")
                device.close()
                continue

            self._device = device
            self._position = position
            self._buffer_size = device.buffer_size
            if position is not preference:
                logging.warning(f"Preferred camera {preference.value} missing, using {position.value}")
            logging.info(
                f"Camera configured: position={position.value}, "
                f"buffer={self._buffer_size.width}x{self._buffer_size.height}"
            )
            return self._buffer_size

        raise DeviceUnavailable("No back or front camera device could be opened")

    def set_consumer(self, consumer: Optional[FrameConsumer]) -> None:
        """Register the callable that receives delivered frames."""
        self._consumer = consumer

    def start(self) -> None:
        """Start capture and delivery threads; returns immediately."""
        if self._device is None:
            raise RuntimeError("FrameSource must be configured before start()")
        if self.is_running:
            return

        self._stop_event.clear()
        self._drain_slot()
        self.stats = CaptureStats()

        self._dispatch_thread = threading.Thread(
            target=self._dispatch_loop, name="frame-dispatch", daemon=True
        )
        self._capture_thread = threading.Thread(
            target=self._capture_loop, name="capture", daemon=True
        )
        self._dispatch_thread.start()
        self._capture_thread.start()
        logging.info(f"Capture started: source={self._device.source_id}")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop both threads and release the camera."""
        self._stop_event.set()

        if self._capture_thread is not None:
            self._capture_thread.join(timeout)
            if self._capture_thread.is_alive():
                logging.warning("Capture thread did not stop in time")
            self._capture_thread = None

        self._drain_slot()
        try:
            self._slot.put_nowait(_STOP)
        except queue.Full:
            pass

        if self._dispatch_thread is not None:
            self._dispatch_thread.join(timeout)
            if self._dispatch_thread.is_alive():
                logging.warning("Dispatch thread did not stop in time")
            self._dispatch_thread = None

        if self._device is not None:
            try:
                self._device.close()
            except Exception as e:
                logging.warning(f"Error closing camera: {e}")
            self._device = None

        logging.info(
            f"Capture stopped: captured={self.stats.frames_captured}, "
            f"delivered={self.stats.frames_delivered}, dropped={self.stats.frames_dropped}"
        )

    def offer(self, frame_data: FrameData) -> bool:
        """
        Place a frame in the handoff slot without blocking.

        Returns False when the slot is still occupied and the frame was dropped.
        """
        try:
            self._slot.put_nowait(frame_data)
            return True
        except queue.Full:
            with self._stats_lock:
                self.stats.frames_dropped += 1
            return False

    def _capture_loop(self) -> None:
        device = self._device
        consecutive_failures = 0

        while not self._stop_event.is_set():
            try:
                frame_data = device.read()
            except Exception as e:
                logging.error(f"Camera read error: {e}")
                frame_data = None

            if frame_data is None:
                consecutive_failures += 1
                with self._stats_lock:
                    self.stats.read_failures += 1
                if consecutive_failures >= self._camera.max_consecutive_failures:
                    logging.error(
                        f"Too many consecutive capture failures ({consecutive_failures}), stopping capture"
                    )
                    break
                time.sleep(self._failure_backoff)
                continue

            consecutive_failures = 0
            with self._stats_lock:
                self.stats.frames_captured += 1
            self.offer(frame_data)

    def _dispatch_loop(self) -> None:
        while True:
            item = self._slot.get()
            if item is _STOP or self._stop_event.is_set():
                break

            consumer = self._consumer
            if consumer is None:
                continue
            try:
                consumer(item)
            except Exception as e:
                logging.warning(f"Frame consumer error: {e}")
            with self._stats_lock:
                self.stats.frames_delivered += 1

    def _drain_slot(self) -> None:
        try:
            while True:
                self._slot.get_nowait()
        except queue.Empty:
            pass
