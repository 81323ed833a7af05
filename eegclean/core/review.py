"""
Manual-review collaborators.

The pipeline stops twice for review input: bad time segments after
filtering, and extra bad channels after automatic interpolation. Both are
answered by a ReviewProvider. Providers that have nothing for a session
raise MissingInputError; the pipeline treats that as "no additional input"
so unattended batch runs never block.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

import yaml

from eegclean.core.exceptions import FormatError, MissingInputError
from eegclean.core.models import BadSegment

logger = logging.getLogger(__name__)

REVIEW_SUFFIX = ".review.yaml"


@runtime_checkable
class ReviewProvider(Protocol):
    """Contract for anything that answers review questions for a session."""

    def provide_bad_segments(self, session_id: str) -> List[BadSegment]:
        ...

    def provide_bad_channels(self, session_id: str) -> List[int]:
        ...


class NullReview:
    """Answers every question with 'nothing to add' (unattended batch mode)."""

    def provide_bad_segments(self, session_id: str) -> List[BadSegment]:
        return []

    def provide_bad_channels(self, session_id: str) -> List[int]:
        return []


class StaticReview:
    """
    In-memory review answers keyed by session id.

    Sessions absent from a mapping get an empty answer.

    Examples
    --------
    >>> review = StaticReview(
    ...     bad_segments={'sub-01': [(1000, 2500)]},
    ...     bad_channels={'sub-01': [3, 17]},
    ... )
    """

    def __init__(
        self,
        bad_segments: Optional[Mapping[str, Sequence]] = None,
        bad_channels: Optional[Mapping[str, Sequence[int]]] = None,
    ):
        self.bad_segments = dict(bad_segments or {})
        self.bad_channels = dict(bad_channels or {})

    def provide_bad_segments(self, session_id: str) -> List[BadSegment]:
        return [BadSegment.coerce(seg) for seg in self.bad_segments.get(session_id, [])]

    def provide_bad_channels(self, session_id: str) -> List[int]:
        return [int(idx) for idx in self.bad_channels.get(session_id, [])]


class FileReview:
    """
    Review answers read from per-session YAML files.

    ``<review_dir>/<session_id>.review.yaml``::

        bad_segments:       # half-open sample ranges at the conditioned rate
          - [1000, 2500]
          - [40000, 41250]
        bad_channels: [3, 17]   # zero-based indices in layout order

    Either key may be omitted. A missing file raises MissingInputError.
    """

    def __init__(self, review_dir: Union[str, Path]):
        self.review_dir = Path(review_dir)

    def path_for(self, session_id: str) -> Path:
        return self.review_dir / f"{session_id}{REVIEW_SUFFIX}"

    def _load(self, session_id: str) -> Dict:
        path = self.path_for(session_id)
        if not path.exists():
            raise MissingInputError(f"No review file for session {session_id}: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise FormatError(f"Review file {path} must contain a mapping")
        return data

    def provide_bad_segments(self, session_id: str) -> List[BadSegment]:
        entries = self._load(session_id).get("bad_segments") or []
        try:
            return [BadSegment.coerce(seg) for seg in entries]
        except (TypeError, ValueError) as e:
            raise FormatError(f"Invalid bad_segments for {session_id}: {e}") from e

    def provide_bad_channels(self, session_id: str) -> List[int]:
        entries = self._load(session_id).get("bad_channels") or []
        try:
            return [int(idx) for idx in entries]
        except (TypeError, ValueError) as e:
            raise FormatError(f"Invalid bad_channels for {session_id}: {e}") from e

    def write(
        self,
        session_id: str,
        bad_segments: Sequence = (),
        bad_channels: Sequence[int] = (),
    ) -> Path:
        """Write a review file (used to record decisions taken elsewhere)."""
        self.review_dir.mkdir(parents=True, exist_ok=True)
        segments = [BadSegment.coerce(seg) for seg in bad_segments]
        data = {
            "bad_segments": [[seg.start_sample, seg.end_sample] for seg in segments],
            "bad_channels": [int(idx) for idx in bad_channels],
        }
        path = self.path_for(session_id)
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=None)
        return path


def ask_bad_segments(reviewer: ReviewProvider, session_id: str) -> List[BadSegment]:
    """Ask for bad segments; a missing answer means none."""
    try:
        answer = reviewer.provide_bad_segments(session_id)
    except MissingInputError as e:
        logger.warning("%s: no bad segment review available (%s); assuming none", session_id, e)
        return []
    if answer is None:
        logger.warning("%s: reviewer returned no bad segments; assuming none", session_id)
        return []
    return [BadSegment.coerce(seg) for seg in answer]


def ask_bad_channels(reviewer: ReviewProvider, session_id: str) -> List[int]:
    """Ask for extra bad channel indices; a missing answer means none."""
    try:
        answer = reviewer.provide_bad_channels(session_id)
    except MissingInputError as e:
        logger.warning("%s: no bad channel review available (%s); assuming none", session_id, e)
        return []
    if answer is None:
        logger.warning("%s: reviewer returned no bad channels; assuming none", session_id)
        return []
    return [int(idx) for idx in answer]
