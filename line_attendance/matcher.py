from __future__ import annotations

import math

import numpy as np

from .config import MATCH_THRESHOLD
from .models import UNKNOWN_LABEL, Gallery, MatchResult


def is_accepted(label: str, distance: float, threshold: float = MATCH_THRESHOLD) -> bool:
    return label != UNKNOWN_LABEL and distance < threshold


class FaceMatcher:
    """Nearest-neighbour matching of a probe descriptor against a gallery.

    Distances are Euclidean. When several entries share the minimum distance
    the one inserted first into the gallery wins.
    """

    def __init__(self, gallery: Gallery, threshold: float = MATCH_THRESHOLD):
        self.gallery = gallery
        self.threshold = threshold
        self._labels = gallery.labels
        if gallery.is_empty:
            self._matrix = None
        else:
            self._matrix = np.vstack([entry.descriptor for entry in gallery]).astype(np.float32)

    def find_best_match(self, probe: np.ndarray) -> MatchResult:
        if self._matrix is None:
            return MatchResult.unknown()

        query = np.asarray(probe, dtype=np.float32).reshape(-1)
        if query.shape[0] != self._matrix.shape[1]:
            raise ValueError(
                f"Probe descriptor has {query.shape[0]} values, gallery expects {self._matrix.shape[1]}."
            )

        distances = np.linalg.norm(self._matrix - query, axis=1)
        idx = int(np.argmin(distances))
        best = float(distances[idx])
        label = self._labels[idx]

        if math.isnan(best) or not is_accepted(label, best, self.threshold):
            return MatchResult.unknown(best)
        return MatchResult(label=label, distance=best)
