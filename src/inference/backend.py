"""
Inference backend interface.

Backends return region proposals with normalized boxes (top-left origin,
[0, 1] relative to the input frame) and the candidate labels the model
reported for each region, in model order.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence

import numpy as np

from models.detection import RegionProposal


class InferenceBackend(Protocol):
    #: File suffixes this backend can load, used by ModelStore to resolve names.
    suffixes: Sequence[str]

    def load(self, model_path: str) -> None:
        ...

    def detect(self, frame: np.ndarray) -> List[RegionProposal]:
        ...
