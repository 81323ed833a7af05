"""
Resampling step.

Author: eegclean developers
"""

import math
from fractions import Fraction
from typing import Any, Dict, Tuple

import numpy as np
from scipy import signal

from eegclean.core.recording import Recording
from .base import ProcessingStep


def resampled_length(n_samples: int, native_sfreq: float, target_sfreq: float) -> int:
    """Output length ``round(n * target / native)``, halves rounded up."""
    return int(math.floor(n_samples * target_sfreq / native_sfreq + 0.5))


def resample_data(data: np.ndarray, native_sfreq: float, target_sfreq: float) -> np.ndarray:
    """
    Polyphase resampling of a channel x sample matrix.

    Uses ``scipy.signal.resample_poly`` (Kaiser-windowed anti-aliasing FIR)
    with the rate ratio reduced to lowest terms. The output is trimmed to
    ``resampled_length`` samples.
    """
    ratio = Fraction(target_sfreq / native_sfreq).limit_denominator(10_000)
    resampled = signal.resample_poly(
        data, ratio.numerator, ratio.denominator, axis=1, window=("kaiser", 5.0)
    )
    n_out = resampled_length(data.shape[1], native_sfreq, target_sfreq)
    return resampled[:, :n_out]


class ResampleStep(ProcessingStep):
    """
    Resampling step.

    Downsamples or upsamples EEG data to a new sampling frequency with an
    anti-aliased polyphase filter. Duration is preserved to within one
    output sample period. Bad segments, if any, are mapped onto the new
    time axis.

    Parameters
    ----------
    sfreq : float
        Target sampling frequency in Hz

    Examples
    --------
    Downsample 2048 Hz data to 250 Hz:
    >>> step = ResampleStep(sfreq=250)
    """

    name = "resample"
    version = "1.0"

    def __init__(
        self,
        sfreq: float = 250.0,
        enabled: bool = True,
    ):
        """Initialize resample step."""
        super().__init__(enabled=enabled)

        self.sfreq = sfreq

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Resample data.

        Returns
        -------
        recording : Recording
            Resampled data
        step_metadata : dict
            Resampling metadata
        """
        original_sfreq = recording.sfreq

        if original_sfreq == self.sfreq:
            return recording, {'skipped': True, 'reason': 'already_at_target_sfreq'}

        data = resample_data(recording.data, original_sfreq, self.sfreq)
        n_out = data.shape[1]

        ratio = self.sfreq / original_sfreq
        segments = [seg.rescale(ratio, n_out) for seg in recording.bad_segments]

        resampled = recording.replace(
            sfreq=self.sfreq,
            data=data,
            bad_segments=tuple(seg for seg in segments if seg is not None),
        )

        step_metadata = {
            'applied': True,
            'original_sfreq': original_sfreq,
            'new_sfreq': self.sfreq,
            'original_n_samples': recording.n_samples,
            'new_n_samples': n_out,
        }

        return resampled, step_metadata

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({'sfreq': self.sfreq})
        return config
