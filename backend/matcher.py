"""
Nearest-neighbour matching of a probe descriptor against registered faces.
"""
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from errors import DimensionMismatch
from models import FaceRecord

DEFAULT_THRESHOLD = 0.6


@dataclass(frozen=True)
class Matched:
    name: str
    confidence: int
    distance: float


@dataclass(frozen=True)
class Unmatched:
    best_distance: float
    best_name: Optional[str] = None


@dataclass(frozen=True)
class NoCandidates:
    pass


MatchResult = Union[Matched, Unmatched, NoCandidates]


def confidence_from_distance(distance: float) -> int:
    """
    Percentage reported to callers: (1 - distance) * 100, rounded half up.

    Not clamped, so distances above 1 give negative values.
    """
    return int(math.floor((1.0 - distance) * 100 + 0.5))


def match(probe, candidates: Sequence[FaceRecord], threshold: float = DEFAULT_THRESHOLD) -> MatchResult:
    """
    Find the candidate closest to the probe.

    Ties go to the earliest candidate. A match requires distance strictly
    below the threshold.
    """
    if not candidates:
        return NoCandidates()

    probe = np.asarray(probe, dtype=np.float64)
    for record in candidates:
        if len(record.signature) != probe.shape[0]:
            raise DimensionMismatch(probe.shape[0], len(record.signature), record.name)

    gallery = np.asarray([record.signature for record in candidates], dtype=np.float64)
    distances = np.linalg.norm(gallery - probe, axis=1)  # [N]
    best = int(np.argmin(distances))
    best_distance = float(distances[best])
    best_record = candidates[best]

    if best_distance < threshold:
        return Matched(
            name=best_record.name,
            confidence=confidence_from_distance(best_distance),
            distance=best_distance,
        )
    return Unmatched(best_distance=best_distance, best_name=best_record.name)
