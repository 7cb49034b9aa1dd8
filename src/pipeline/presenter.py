"""
Presenter contract.

The pipeline calls render() from its presentation thread only, once per
completed inference. Each call replaces whatever was shown before.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from models.detection import OverlayItem


class Presenter(Protocol):
    def render(self, items: Sequence[OverlayItem]) -> None:
        ...


class LogPresenter:
    """Presenter for headless runs: logs each batch instead of drawing it."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.current: Sequence[OverlayItem] = ()

    def render(self, items: Sequence[OverlayItem]) -> None:
        self.current = tuple(items)
        if not items:
            logging.debug("Overlay cleared")
            return
        summary = ", ".join(
            f"{item.label} {item.confidence:.2f} @ {item.rect.as_int_tuple()}" for item in items
        )
        logging.log(self.level, f"Overlay: {len(items)} detection(s): {summary}")
