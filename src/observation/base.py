"""
Camera device interface.

A device wraps one physical camera and knows nothing about threads or
consumers; FrameSource drives it from its capture thread.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models.frame import BufferSize, FrameData


@dataclass
class ObservationConfig:
    """
    Settings shared by all camera devices.

    Attributes:
        source_id: Name stamped on every frame (e.g. "back-camera").
        resolution: Requested (width, height); None keeps the device default.
        fps: Requested frame rate; None keeps the device default.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    One camera device.

    open() must establish buffer_size, the pixel size every later frame
    will have. read() returns None when no frame could be produced; the
    caller decides whether that is fatal.

    Usable as a context manager and as an iterator over frames:
        with device:
            for frame_data in device:
                ...
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._buffer_size: Optional[BufferSize] = None

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def buffer_size(self) -> Optional[BufferSize]:
        """Pixel size of delivered frames; None until open() succeeds."""
        return self._buffer_size

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device and determine buffer_size.

        Raises:
            RuntimeError: If the device cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call more than once."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError(f"{self.source_id} is not open")
        frame_data = self.read()
        while frame_data is not None:
            yield frame_data
            frame_data = self.read()
