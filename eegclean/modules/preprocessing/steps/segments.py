"""
Bad segment registration step.

Author: eegclean developers
"""

from typing import Any, Dict, Optional, Tuple

from eegclean.core.recording import Recording
from eegclean.core.segments import SegmentRegistry
from eegclean.core.review import NullReview, ReviewProvider, ask_bad_segments
from .base import ProcessingStep


class BadSegmentStep(ProcessingStep):
    """
    Attach externally reviewed bad time segments to the recording.

    Asks the review collaborator for the session's bad segments, merges
    them into the registry and returns a recording carrying them. The
    signal itself is left untouched: later statistics skip these samples,
    but the values stay available for inspection.

    Parameters
    ----------
    session_id : str
        Session the review answers belong to
    reviewer : ReviewProvider
        Source of bad segments (default: NullReview, i.e. none)
    registry : SegmentRegistry, optional
        Registry to record segments in (a private one is created if omitted)
    """

    name = "bad_segments"
    version = "1.0"

    def __init__(
        self,
        session_id: str,
        reviewer: Optional[ReviewProvider] = None,
        registry: Optional[SegmentRegistry] = None,
        enabled: bool = True,
    ):
        """Initialize bad segment step."""
        super().__init__(enabled=enabled)

        self.session_id = session_id
        self.reviewer = reviewer or NullReview()
        self.registry = registry if registry is not None else SegmentRegistry()

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Register bad segments.

        Returns
        -------
        recording : Recording
            Same signal, with bad segments attached
        step_metadata : dict
            Registered segments and the number of samples they cover
        """
        supplied = ask_bad_segments(self.reviewer, self.session_id)
        merged = self.registry.register(
            self.session_id,
            list(recording.bad_segments) + supplied,
            recording.n_samples,
        )
        marked = recording.with_bad_segments(merged)

        n_bad = sum(seg.n_samples for seg in merged)
        step_metadata = {
            'applied': True,
            'n_supplied': len(supplied),
            'n_segments': len(merged),
            'n_bad_samples': n_bad,
            'pct_bad': 100 * n_bad / recording.n_samples if recording.n_samples else 0.0,
            'bad_segments': [seg.model_dump() for seg in merged],
        }

        return marked, step_metadata

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({'reviewer': type(self.reviewer).__name__})
        return config
