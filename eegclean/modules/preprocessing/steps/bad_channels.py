"""
Bad channel detection and manual merge steps.

Author: eegclean developers
"""

import logging
from typing import Any, Dict, Optional, Tuple

from eegclean.core.layout import ChannelLayout
from eegclean.core.models import ChannelQuality, ChannelQualityReport
from eegclean.core.recording import Recording
from eegclean.core.review import NullReview, ReviewProvider, ask_bad_channels
from .base import ProcessingStep
from ..bad_channels import KurtosisDetector, interpolate_channels, manual_channel_names

logger = logging.getLogger(__name__)


class BadChannelDetectionStep(ProcessingStep):
    """
    Automatic bad channel detection and interpolation.

    Flags channels by normalized kurtosis (computed outside bad segments)
    and immediately replaces them by spherical spline interpolation from
    the unflagged channels.

    Parameters
    ----------
    layout : ChannelLayout
        Sensor positions used for interpolation
    threshold : float
        Normalized kurtosis threshold (default: 5.0)
    mode : str
        Interpolation mode: 'accurate' (default) or 'fast'

    Examples
    --------
    >>> step = BadChannelDetectionStep(layout=ChannelLayout.biosemi32(), threshold=5.0)
    """

    name = "bad_channels"
    version = "1.0"

    def __init__(
        self,
        layout: ChannelLayout,
        threshold: float = 5.0,
        mode: str = 'accurate',
        enabled: bool = True,
    ):
        """Initialize bad channel detection step."""
        super().__init__(enabled=enabled)

        self.layout = layout
        self.threshold = threshold
        self.mode = mode
        self.detector = KurtosisDetector(threshold=threshold)

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Detect and interpolate bad channels.

        Returns
        -------
        recording : Recording
            Recording with flagged channels interpolated
        step_metadata : dict
            'report' holds the ChannelQualityReport
        """
        report = self.detector.detect(recording)
        repaired = interpolate_channels(
            recording, report.flagged_names, self.layout, mode=self.mode
        )

        step_metadata = {
            'applied': True,
            'method': 'kurtosis',
            'threshold': self.threshold,
            'bad_channels': report.flagged_names,
            'n_bad': len(report.flagged_names),
            'interpolated': bool(report.flagged_names),
            'report': report,
        }

        return repaired, step_metadata

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'method': 'kurtosis',
            'threshold': self.threshold,
            'mode': self.mode,
        })
        return config


class ManualBadChannelStep(ProcessingStep):
    """
    Merge manually reviewed bad channels and re-interpolate.

    The reviewer supplies zero-based indices in the layout's channel order,
    so they stay valid when the reference pair has been dropped. They are
    added to the automatically flagged set and every channel in the union
    is rebuilt from the channels flagged by neither.

    Parameters
    ----------
    session_id : str
        Session the review answers belong to
    layout : ChannelLayout
        Sensor positions used for interpolation
    reviewer : ReviewProvider
        Source of extra bad channel indices (default: NullReview)
    mode : str
        Interpolation mode: 'accurate' (default) or 'fast'
    """

    name = "manual_bad_channels"
    version = "1.0"

    def __init__(
        self,
        session_id: str,
        layout: ChannelLayout,
        reviewer: Optional[ReviewProvider] = None,
        mode: str = 'accurate',
        enabled: bool = True,
    ):
        """Initialize manual bad channel step."""
        super().__init__(enabled=enabled)

        self.session_id = session_id
        self.layout = layout
        self.reviewer = reviewer or NullReview()
        self.mode = mode

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Apply manual bad channel review.

        Parameters
        ----------
        recording : Recording
            Recording after automatic interpolation
        metadata : dict
            Must contain the automatic report under
            metadata['bad_channels']['report'] (an empty one is assumed
            otherwise)

        Returns
        -------
        recording : Recording
            Recording with the union of flagged channels interpolated
        step_metadata : dict
            'report' holds the merged ChannelQualityReport
        """
        report = self._automatic_report(recording, metadata)

        indices = ask_bad_channels(self.reviewer, self.session_id)
        manual_names = manual_channel_names(indices, self.layout, recording.ch_names)
        if not manual_names:
            return recording, {
                'applied': False,
                'manual': [],
                'bad_channels': report.flagged_names,
                'report': report,
            }

        merged = report.with_manual([recording.ch_names.index(ch) for ch in manual_names])
        logger.info(
            "%s: manual review added %s; re-interpolating %s",
            self.session_id, manual_names, merged.flagged_names,
        )

        repaired = interpolate_channels(
            recording, merged.flagged_names, self.layout, mode=self.mode
        )

        step_metadata = {
            'applied': True,
            'manual': manual_names,
            'bad_channels': merged.flagged_names,
            'n_bad': len(merged.flagged_names),
            'report': merged,
        }

        return repaired, step_metadata

    @staticmethod
    def _automatic_report(recording: Recording, metadata: Dict[str, Any]) -> ChannelQualityReport:
        report = metadata.get('bad_channels', {}).get('report')
        if report is not None:
            return report

        # Automatic detection disabled: start from an all-clean report
        return ChannelQualityReport(
            threshold=float('nan'),
            n_good_samples=int(recording.good_mask().sum()),
            channels=[
                ChannelQuality(name=name, index=i, kurtosis=float('nan'), normalized_kurtosis=0.0)
                for i, name in enumerate(recording.ch_names)
            ],
        )

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'reviewer': type(self.reviewer).__name__,
            'mode': self.mode,
        })
        return config
