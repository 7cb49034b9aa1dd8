"""
Detection pipeline: the single-slot state machine between capture and
inference.

States:
    IDLE       -> a frame arrives: accept it, submit it to the inference
                  thread, go to INFERRING
    INFERRING  -> a frame arrives: drop it
    INFERRING  -> inference finishes: map the batch to pixels, hand it to
                  the presentation thread, go back to IDLE
    INFERRING  -> inference fails: log it, go back to IDLE

The state flag is the only value shared between the capture-side submit()
path and the inference completion path, and both take the same lock.
At most one frame is ever alive inside the pipeline.

Presentation has a single pending slot. A finished batch replaces any
batch still waiting there (the replaced one counts as stale), and one
drain task at a time hands the slot's contents to the presenter. A slow
presenter therefore skips superseded batches instead of queueing them.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import List, Optional

from models.config import PipelineSettings
from models.detection import DetectionBatch, OverlayItem
from models.errors import InferenceError, NotReady
from models.frame import BufferSize, FrameData
from inference.engine import InferenceEngine
from .coordinates import to_overlay_items
from .presenter import Presenter


class PipelineState(str, Enum):
    IDLE = "idle"
    INFERRING = "inferring"


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frames_received: int = 0
    frames_submitted: int = 0
    frames_dropped: int = 0
    inferences_completed: int = 0
    inference_errors: int = 0
    stale_discarded: int = 0
    batches_rendered: int = 0
    max_in_flight: int = 0
    last_rendered_frame_index: int = 0


@dataclass(frozen=True)
class _PendingRender:
    generation: int
    frame_index: int
    items: List[OverlayItem]


class DetectionPipeline:
    """
    Drop-on-busy detection pipeline.

    submit() never blocks: it either hands the frame to the inference
    thread or drops it. Results reach the presenter on a dedicated
    presentation thread (or an injected executor that owns the
    presenter's context).

    Example:
        pipeline = DetectionPipeline(engine, presenter, source.buffer_size)
        source.set_consumer(pipeline.submit)
        ...
        pipeline.close()
    """

    def __init__(
        self,
        engine: InferenceEngine,
        presenter: Presenter,
        buffer_size: BufferSize,
        settings: Optional[PipelineSettings] = None,
        presentation_executor: Optional[Executor] = None,
    ):
        self._engine = engine
        self._presenter = presenter
        self._buffer_size = buffer_size
        self.settings = settings or PipelineSettings()

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._state = PipelineState.IDLE
        self._closed = False
        self._generation = 0
        self._in_flight = 0
        self._pending_render: Optional[_PendingRender] = None
        self._drain_scheduled = False
        self._presented = threading.Condition(self._lock)
        self._last_stats_log = time.monotonic()
        self.stats = PipelineStats()

        self._inference = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self._owns_presentation = presentation_executor is None
        self._presentation = presentation_executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="presentation"
        )

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def buffer_size(self) -> BufferSize:
        return self._buffer_size

    @property
    def is_closed(self) -> bool:
        return self._closed

    def submit(self, frame_data: FrameData) -> bool:
        """
        Offer a frame. Returns True if it was accepted for inference,
        False if it was dropped because an inference is in flight.
        """
        with self._lock:
            self.stats.frames_received += 1
            if self._closed or self._state is PipelineState.INFERRING:
                self.stats.frames_dropped += 1
                return False

            self._state = PipelineState.INFERRING
            self._in_flight += 1
            self.stats.frames_submitted += 1
            self.stats.max_in_flight = max(self.stats.max_in_flight, self._in_flight)
            generation = self._generation

        started = time.monotonic()
        try:
            future = self._inference.submit(self._engine.infer, frame_data)
        except RuntimeError as e:
            # Executor shut down between the state check and the submit
            logging.warning(f"Inference executor unavailable: {e}")
            self._return_to_idle()
            return False

        future.add_done_callback(
            partial(
                self._on_inference_done,
                frame_index=frame_data.frame_index,
                generation=generation,
                started=started,
            )
        )
        return True

    def _on_inference_done(
        self,
        future: Future,
        frame_index: int,
        generation: int,
        started: float,
    ) -> None:
        """Completion path; runs on the inference thread."""
        try:
            error = future.exception()
            elapsed = time.monotonic() - started

            if error is not None:
                self._record_error(frame_index, error)
                return

            with self._lock:
                self.stats.inferences_completed += 1
                superseded = self._closed or generation != self._generation

            deadline = self.settings.result_deadline
            if superseded or (deadline is not None and elapsed > deadline):
                self._discard(frame_index, f"{elapsed * 1000:.0f}ms old")
                return

            batch: DetectionBatch = future.result()
            self._queue_render(
                _PendingRender(
                    generation=generation,
                    frame_index=batch.frame_index,
                    items=to_overlay_items(batch, self._buffer_size),
                )
            )
        except Exception as e:
            logging.error(f"Unexpected error completing frame {frame_index}: {e}")
        finally:
            self._return_to_idle()
            self._maybe_log_stats()

    def _record_error(self, frame_index: int, error: BaseException) -> None:
        with self._lock:
            self.stats.inference_errors += 1
        if isinstance(error, (NotReady, InferenceError)):
            logging.warning(f"Frame {frame_index} skipped: {error}")
        else:
            logging.error(f"Frame {frame_index} skipped after unexpected error: {error!r}")

    def _discard(self, frame_index: int, reason: str) -> None:
        with self._lock:
            self.stats.stale_discarded += 1
        logging.debug(f"Discarding stale result for frame {frame_index} ({reason})")

    def _return_to_idle(self) -> None:
        with self._lock:
            self._in_flight -= 1
            self._state = PipelineState.IDLE
            self._idle.notify_all()

    def _queue_render(self, pending: _PendingRender) -> None:
        """Put a batch in the pending slot; schedule a drain if none is running."""
        with self._lock:
            replaced = self._pending_render
            self._pending_render = pending
            schedule = not self._drain_scheduled
            self._drain_scheduled = True
        if replaced is not None:
            self._discard(replaced.frame_index, "replaced by a newer batch")
        if not schedule:
            return

        try:
            self._presentation.submit(self._drain_renders)
        except RuntimeError:
            with self._lock:
                self._pending_render = None
                self._drain_scheduled = False
                self._presented.notify_all()
            self._discard(pending.frame_index, "presentation closed")

    def _drain_renders(self) -> None:
        """Presentation path; the only place the presenter is touched."""
        while True:
            with self._lock:
                pending = self._pending_render
                self._pending_render = None
                if pending is None:
                    self._drain_scheduled = False
                    self._presented.notify_all()
                    return
                stale = pending.generation != self._generation

            if stale:
                self._discard(pending.frame_index, "pipeline closed before render")
                continue

            try:
                self._presenter.render(pending.items)
            except Exception as e:
                logging.warning(f"Presenter error on frame {pending.frame_index}: {e}")
                continue

            with self._lock:
                self.stats.batches_rendered += 1
                self.stats.last_rendered_frame_index = pending.frame_index

    def _maybe_log_stats(self) -> None:
        now = time.monotonic()
        with self._lock:
            if now - self._last_stats_log < self.settings.stats_log_interval:
                return
            self._last_stats_log = now
            s = self.stats
            line = (
                f"Pipeline stats: received={s.frames_received}, submitted={s.frames_submitted}, "
                f"dropped={s.frames_dropped}, completed={s.inferences_completed}, "
                f"errors={s.inference_errors}, stale={s.stale_discarded}, rendered={s.batches_rendered}"
            )
        logging.info(line)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no inference is in flight."""
        with self._idle:
            return self._idle.wait_for(lambda: self._state is PipelineState.IDLE, timeout)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for idle and for the pending render, if any, to finish."""
        if not self.wait_idle(timeout):
            return False
        with self._presented:
            return self._presented.wait_for(lambda: not self._drain_scheduled, timeout)

    def close(self) -> None:
        """
        Stop accepting frames and release worker threads.

        A result still in flight is discarded when it arrives.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1

        self._inference.shutdown(wait=True)
        if self._owns_presentation:
            self._presentation.shutdown(wait=True)
        logging.info(
            f"Pipeline closed: completed={self.stats.inferences_completed}, "
            f"dropped={self.stats.frames_dropped}, errors={self.stats.inference_errors}"
        )
