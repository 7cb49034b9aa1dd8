"""
Capture session: wires FrameSource, InferenceEngine and DetectionPipeline.

A missing camera is fatal to the session. A missing or broken model only
disables detection; frames still reach the optional preview callback.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Any, Callable, Dict, Optional

from models.config import CameraPosition, Config, PipelineSettings
from models.errors import ModelLoadError
from models.frame import BufferSize, FrameData
from inference import create_engine
from inference.engine import InferenceEngine
from observation.frame_source import DeviceFactory, FrameSource
from pipeline.engine import DetectionPipeline
from pipeline.presenter import Presenter

PreviewCallback = Callable[[FrameData], None]


class CaptureSession:
    """
    Example:
        session = create_session_from_config(config, LogPresenter())
        session.start()
        ...
        session.stop()
    """

    def __init__(
        self,
        source: FrameSource,
        engine: Optional[InferenceEngine],
        presenter: Presenter,
        model: str,
        settings: Optional[PipelineSettings] = None,
        preview: Optional[PreviewCallback] = None,
        presentation_executor: Optional[Executor] = None,
    ):
        self.source = source
        self.engine = engine
        self.presenter = presenter
        self.model = model
        self.settings = settings or PipelineSettings()
        self.preview = preview
        self._presentation_executor = presentation_executor
        self.pipeline: Optional[DetectionPipeline] = None
        self.buffer_size: Optional[BufferSize] = None

    @property
    def detection_enabled(self) -> bool:
        return self.pipeline is not None

    @property
    def is_running(self) -> bool:
        return self.source.is_running

    def start(self, preference: Optional[CameraPosition] = None) -> BufferSize:
        """
        Open the camera, load the model and start capturing.

        Raises:
            DeviceUnavailable: If no camera can be opened.
        """
        self.buffer_size = self.source.configure(preference)

        if self.engine is None:
            logging.error("No inference engine available; running preview only")
        else:
            try:
                if not self.engine.is_ready:
                    self.engine.load_model(self.model)
            except ModelLoadError as e:
                logging.error(f"Detection disabled: {e}")
            else:
                self.pipeline = DetectionPipeline(
                    self.engine,
                    self.presenter,
                    self.buffer_size,
                    settings=self.settings,
                    presentation_executor=self._presentation_executor,
                )

        self.source.set_consumer(self._on_frame)
        self.source.start()
        logging.info(
            f"Session started: camera={self.source.position.value}, "
            f"detection={'on' if self.detection_enabled else 'off'}"
        )
        return self.buffer_size

    def _on_frame(self, frame_data: FrameData) -> None:
        if self.preview is not None:
            try:
                self.preview(frame_data)
            except Exception as e:
                logging.warning(f"Preview error: {e}")
        if self.pipeline is not None:
            self.pipeline.submit(frame_data)

    def stop(self) -> None:
        """Stop capture first, then tear down the pipeline."""
        self.source.stop()
        if self.pipeline is not None:
            self.pipeline.close()
        logging.info(f"Session stopped: {self.stats()}")

    def stats(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"capture": dict(vars(self.source.stats))}
        if self.pipeline is not None:
            out["pipeline"] = dict(vars(self.pipeline.stats))
        return out


def create_session_from_config(
    config: Config,
    presenter: Presenter,
    device_factory: Optional[DeviceFactory] = None,
    engine: Optional[InferenceEngine] = None,
    preview: Optional[PreviewCallback] = None,
) -> CaptureSession:
    """
    Factory function to build a CaptureSession from the typed config.

    Args:
        config: Application config.
        presenter: Receives overlay batches.
        device_factory: Overrides camera device construction (tests, other backends).
        engine: Overrides the engine built from config.detection.
        preview: Called with every delivered frame, detection or not.
    """
    source = FrameSource(config.camera, device_factory=device_factory)

    if engine is None:
        try:
            engine = create_engine(config.detection)
        except (ImportError, ValueError) as e:
            logging.error(f"Could not create inference backend: {e}")
            engine = None

    return CaptureSession(
        source,
        engine,
        presenter,
        model=config.detection.model,
        settings=config.pipeline,
        preview=preview,
    )
