"""
Model resource lookup.
"""

from __future__ import annotations

import logging
import os
from typing import Sequence

from models.errors import ModelLoadError


class ModelStore:
    """
    Resolves a model identifier to a file on disk.

    An identifier is either a path to an existing file, or a bare name
    looked up in model_dir with each of the backend's suffixes in turn.
    """

    def __init__(self, model_dir: str = "models"):
        self.model_dir = model_dir

    def resolve(self, identifier: str, suffixes: Sequence[str] = ()) -> str:
        if not identifier:
            raise ModelLoadError("No model identifier configured")

        if os.path.isfile(identifier):
            return identifier

        candidates = [os.path.join(self.model_dir, identifier)]
        candidates += [os.path.join(self.model_dir, identifier + s) for s in suffixes]
        for path in candidates:
            if os.path.isfile(path):
                logging.debug(f"Model {identifier!r} resolved to {path}")
                return path

        raise ModelLoadError(
            f"Model resource {identifier!r} not found (searched {', '.join(candidates)})"
        )
