"""
Bad Channel Detection and Interpolation Module

Flags channels whose amplitude distribution is an outlier (normalized
kurtosis) and replaces flagged channels by spherical spline interpolation
from the remaining ones.

Bad channels corrupt the common average and the ICA decomposition, so they
are repaired before either runs.

Author: eegclean developers
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from eegclean.core.exceptions import DataQualityError, FormatError
from eegclean.core.layout import ChannelLayout
from eegclean.core.models import ChannelQuality, ChannelQualityReport
from eegclean.core.recording import UV_TO_V, Recording

logger = logging.getLogger(__name__)


def trimmed_zscore(values: np.ndarray, proportiontocut: float = 0.1) -> np.ndarray:
    """
    Z-score against the mean and standard deviation (ddof=1) of the central values.

    The lowest and highest ``proportiontocut`` of the values are left out of
    the reference statistics, so several outliers cannot mask each other by
    inflating the spread they are scored against. Falls back to all values
    when the central values do not vary; returns zeros if nothing varies.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size < 2:
        return np.zeros_like(values)

    core = stats.trimboth(values, proportiontocut)
    if core.size < 2 or np.std(core, ddof=1) == 0:
        core = values

    spread = np.std(core, ddof=1)
    if spread == 0:
        return np.zeros_like(values)
    return (values - np.mean(core)) / spread


def normalized_kurtosis(
    data: np.ndarray,
    proportiontocut: float = 0.1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Excess kurtosis per row, normalized across rows by ``trimmed_zscore``.

    Rows with undefined kurtosis (flat signal) get +inf so they are always
    flagged. If the finite values do not vary, their scores are 0.

    Returns
    -------
    kurt, z : np.ndarray
        Raw excess kurtosis and normalized scores, one per row
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        kurt = stats.kurtosis(data, axis=1, fisher=True, bias=True)
    kurt = np.asarray(kurt, dtype=np.float64)
    finite = np.isfinite(kurt)

    z = np.full(kurt.shape, np.inf)
    z[finite] = trimmed_zscore(kurt[finite], proportiontocut)

    return kurt, z


class KurtosisDetector:
    """
    Automatic bad channel detection by normalized kurtosis.

    A channel is flagged when its kurtosis, z-scored against the central 80 %
    of channels (``trimmed_zscore``), exceeds ``threshold``. Statistics use only samples outside the
    recording's bad segments.

    Parameters
    ----------
    threshold : float, default=5.0
        Normalized kurtosis threshold

    Examples
    --------
    >>> detector = KurtosisDetector(threshold=5.0)
    >>> report = detector.detect(recording)
    >>> report.flagged_names
    ['Oz']
    """

    def __init__(self, threshold: float = 5.0):
        self.threshold = threshold

    def detect(self, recording: Recording) -> ChannelQualityReport:
        """
        Compute the channel quality report.

        Raises
        ------
        DataQualityError
            If no samples remain outside bad segments
        """
        data = recording.good_data()
        n_good = data.shape[1]
        if n_good < 4:
            raise DataQualityError(
                f"Only {n_good} samples outside bad segments; cannot compute kurtosis"
            )

        kurt, z = normalized_kurtosis(data)
        flagged = z > self.threshold

        channels = [
            ChannelQuality(
                name=name,
                index=i,
                kurtosis=float(kurt[i]) if np.isfinite(kurt[i]) else float("nan"),
                normalized_kurtosis=float(z[i]),
                flagged=bool(flagged[i]),
                source="automatic" if flagged[i] else None,
            )
            for i, name in enumerate(recording.ch_names)
        ]

        report = ChannelQualityReport(
            threshold=self.threshold,
            n_good_samples=n_good,
            channels=channels,
        )
        logger.info(
            "Kurtosis detection (threshold %.2f, %d samples): %d flagged %s",
            self.threshold, n_good, len(report.flagged_names), report.flagged_names,
        )
        return report

    def get_config(self) -> dict:
        return {'method': 'kurtosis', 'threshold': self.threshold}


def interpolate_channels(
    recording: Recording,
    bad_channels: Iterable[str],
    layout: ChannelLayout,
    mode: str = "accurate",
) -> Recording:
    """
    Replace ``bad_channels`` by spherical spline interpolation.

    Every flagged channel is estimated from the unflagged channels only, so
    no flagged channel contributes to another's reconstruction. Unflagged
    channels are returned unchanged.

    Parameters
    ----------
    recording : Recording
        Input snapshot
    bad_channels : iterable of str
        Channels to reconstruct
    layout : ChannelLayout
        Sensor positions
    mode : str
        'accurate' (default) or 'fast' Legendre evaluation

    Returns
    -------
    Recording
        New snapshot with flagged channels replaced

    Raises
    ------
    DataQualityError
        If no unflagged channel is left to interpolate from
    """
    bads = [ch for ch in recording.ch_names if ch in set(bad_channels)]
    if not bads:
        return recording

    goods = [ch for ch in recording.ch_names if ch not in bads]
    if not goods:
        raise DataQualityError(
            f"All {recording.n_channels} channels are flagged bad; "
            f"no valid source for interpolation"
        )

    raw = recording.to_raw(layout)
    raw.info["bads"] = bads
    raw.interpolate_bads(reset_bads=True, mode=mode, verbose=False)

    logger.info("Interpolated %d channel(s) from %d: %s", len(bads), len(goods), bads)
    return recording.replace(data=raw.get_data() / UV_TO_V)


def resolve_channel_indices(
    indices: Sequence[int],
    ch_names: Sequence[str],
) -> List[str]:
    """Map zero-based channel indices to names, rejecting out-of-range values."""
    names = []
    for idx in indices:
        if not 0 <= idx < len(ch_names):
            raise FormatError(
                f"Bad channel index {idx} out of range for {len(ch_names)} channels"
            )
        names.append(ch_names[idx])
    return names


def manual_channel_names(
    indices: Sequence[int],
    layout: ChannelLayout,
    ch_names: Sequence[str],
) -> List[str]:
    """
    Names for reviewer indices, which count in the layout's channel order.

    Channels no longer in ``ch_names`` (e.g. a dropped reference pair) are
    skipped with a warning.

    Raises
    ------
    FormatError
        If an index is outside the layout
    """
    names = resolve_channel_indices(indices, layout.ch_names)
    absent = [ch for ch in names if ch not in ch_names]
    if absent:
        logger.warning("Manual bad channels %s are not in the recording; ignoring them", absent)
    return [ch for ch in names if ch in ch_names]


def detect_and_interpolate_bad_channels(
    recording: Recording,
    layout: ChannelLayout,
    threshold: float = 5.0,
    manual: Optional[Sequence[int]] = None,
    mode: str = "accurate",
):
    """
    Convenience function: kurtosis detection, interpolation, manual merge.

    Returns
    -------
    recording : Recording
        Repaired recording
    report : ChannelQualityReport
        Quality report including manual additions
    """
    report = KurtosisDetector(threshold=threshold).detect(recording)
    repaired = interpolate_channels(recording, report.flagged_names, layout, mode=mode)

    manual_names = manual_channel_names(manual or [], layout, recording.ch_names)
    if manual_names:
        report = report.with_manual([recording.ch_names.index(ch) for ch in manual_names])
        repaired = interpolate_channels(repaired, report.flagged_names, layout, mode=mode)

    return repaired, report
