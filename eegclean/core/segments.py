"""
Bad-segment bookkeeping.

Segments are kept as an ordered, non-overlapping set. They never remove
samples from a recording: downstream statistics (kurtosis, ICA training)
use ``good_sample_mask`` to skip them while the persisted signal stays
intact for inspection.
"""

import logging
from typing import Dict, Iterable, List, Tuple

import numpy as np

from .exceptions import FormatError
from .models import BadSegment

logger = logging.getLogger(__name__)


def merge_segments(segments: Iterable) -> Tuple[BadSegment, ...]:
    """
    Sort and coalesce bad segments.

    Overlapping or touching intervals are merged into one.

    Parameters
    ----------
    segments : iterable
        BadSegment objects, mappings or ``(start, end)`` pairs

    Returns
    -------
    merged : tuple of BadSegment
        Ordered, non-overlapping segments
    """
    ordered = sorted(
        (BadSegment.coerce(seg) for seg in segments),
        key=lambda seg: (seg.start_sample, seg.end_sample),
    )

    merged: List[BadSegment] = []
    for seg in ordered:
        if merged and seg.start_sample <= merged[-1].end_sample:
            last = merged[-1]
            if seg.end_sample > last.end_sample:
                merged[-1] = BadSegment(
                    start_sample=last.start_sample,
                    end_sample=seg.end_sample,
                )
        else:
            merged.append(seg)

    return tuple(merged)


def check_segments(segments: Iterable[BadSegment], n_samples: int) -> None:
    """Raise FormatError if any segment ends past the recording."""
    for seg in segments:
        if seg.end_sample > n_samples:
            raise FormatError(
                f"Bad segment [{seg.start_sample}, {seg.end_sample}) extends "
                f"beyond the recording ({n_samples} samples)"
            )


def good_sample_mask(segments: Iterable[BadSegment], n_samples: int) -> np.ndarray:
    """Boolean mask that is True for samples outside every bad segment."""
    mask = np.ones(n_samples, dtype=bool)
    for seg in segments:
        mask[seg.start_sample:min(seg.end_sample, n_samples)] = False
    return mask


class SegmentRegistry:
    """
    Per-session store of externally supplied bad segments.

    Segments are merged on insert and validated against the recording
    length. The registry only records; consumers decide how to use the
    segments.

    Examples
    --------
    >>> registry = SegmentRegistry()
    >>> registry.register("sub-01", [(0, 100), (50, 200)], n_samples=1000)
    (BadSegment(start_sample=0, end_sample=200),)
    """

    def __init__(self):
        self._segments: Dict[str, Tuple[BadSegment, ...]] = {}

    def register(
        self,
        session_id: str,
        segments: Iterable,
        n_samples: int,
    ) -> Tuple[BadSegment, ...]:
        """Merge ``segments`` into the session's set and return the result."""
        merged = merge_segments(list(self.get(session_id)) + list(segments))
        check_segments(merged, n_samples)
        self._segments[session_id] = merged

        n_bad = sum(seg.n_samples for seg in merged)
        logger.info(
            "%s: %d bad segment(s) registered, %d/%d samples marked",
            session_id, len(merged), n_bad, n_samples,
        )
        return merged

    def get(self, session_id: str) -> Tuple[BadSegment, ...]:
        return self._segments.get(session_id, ())

    def sessions(self) -> List[str]:
        return sorted(self._segments)

    def to_dict(self, session_id: str) -> Dict[str, object]:
        """Serializable view of a session's segments."""
        return {
            "session_id": session_id,
            "bad_segments": [seg.model_dump() for seg in self.get(session_id)],
        }
