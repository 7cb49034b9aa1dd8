"""Exceptions raised by the capture and detection pipeline."""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base pipeline exception."""


class DeviceUnavailable(PipelineError):
    """Raised when no usable camera device could be opened."""


class ModelLoadError(PipelineError):
    """Raised when a detection model resource is missing or cannot be loaded."""


class NotReady(PipelineError):
    """Raised when inference is requested before a model is loaded."""


class InferenceError(PipelineError):
    """Raised when a single inference call fails; recoverable per frame."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
