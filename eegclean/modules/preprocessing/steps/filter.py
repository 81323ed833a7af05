"""
Zero-phase bandpass filtering step.

Author: eegclean developers
"""

from typing import Any, Dict, Tuple, Union

import mne

from eegclean.core.recording import Recording
from .base import ProcessingStep

ZERO_PHASE = ('zero', 'zero-double')


class FilterStep(ProcessingStep):
    """
    Temporal bandpass filtering step.

    Forward-backward (zero-phase) FIR filter, so no channel is shifted in
    time relative to another before spatial steps and ICA. Filter order is
    chosen by MNE from the transition bandwidths.

    Parameters
    ----------
    l_freq : float
        Low cut-off frequency in Hz (highpass edge)
    h_freq : float
        High cut-off frequency in Hz (lowpass edge)
    phase : str
        'zero' (default) or 'zero-double'. Causal phases are rejected.
    fir_window : str
        FIR window type: 'hamming' (default), 'hann', 'blackman', ...
    fir_design : str
        FIR filter design: 'firwin' (default) or 'firwin2'
    filter_length : str or int
        'auto' (default), a duration string like '10s', or samples
    l_trans_bandwidth : str or float
        Highpass transition bandwidth: 'auto' or Hz
    h_trans_bandwidth : str or float
        Lowpass transition bandwidth: 'auto' or Hz

    Examples
    --------
    >>> step = FilterStep(l_freq=0.2, h_freq=30.0)
    """

    name = "filter"
    version = "1.0"

    def __init__(
        self,
        l_freq: float = 0.2,
        h_freq: float = 30.0,
        phase: str = 'zero',
        fir_window: str = 'hamming',
        fir_design: str = 'firwin',
        filter_length: Union[str, int] = 'auto',
        l_trans_bandwidth: Union[str, float] = 'auto',
        h_trans_bandwidth: Union[str, float] = 'auto',
        enabled: bool = True,
    ):
        """Initialize filter step."""
        super().__init__(enabled=enabled)

        if phase not in ZERO_PHASE:
            raise ValueError(
                f"Filter phase must be one of {ZERO_PHASE} to avoid inter-channel "
                f"phase skew, got '{phase}'"
            )

        self.l_freq = l_freq
        self.h_freq = h_freq
        self.phase = phase
        self.fir_window = fir_window
        self.fir_design = fir_design
        self.filter_length = filter_length
        self.l_trans_bandwidth = l_trans_bandwidth
        self.h_trans_bandwidth = h_trans_bandwidth

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Apply bandpass filtering.

        Returns
        -------
        recording : Recording
            Filtered data
        step_metadata : dict
            Filtering metadata
        """
        filtered = mne.filter.filter_data(
            recording.data.copy(),
            recording.sfreq,
            l_freq=self.l_freq,
            h_freq=self.h_freq,
            filter_length=self.filter_length,
            l_trans_bandwidth=self.l_trans_bandwidth,
            h_trans_bandwidth=self.h_trans_bandwidth,
            method='fir',
            phase=self.phase,
            fir_window=self.fir_window,
            fir_design=self.fir_design,
            pad='reflect_limited',
            copy=False,
            verbose=False,
        )

        step_metadata = {
            'applied': True,
            'l_freq': self.l_freq,
            'h_freq': self.h_freq,
            'method': 'fir',
            'phase': self.phase,
            'fir_window': self.fir_window,
            'fir_design': self.fir_design,
        }

        return recording.replace(data=filtered), step_metadata

    def validate_inputs(self, recording: Recording) -> bool:
        """
        Validate inputs.

        Raises
        ------
        ValueError
            If the passband is empty or reaches Nyquist
        """
        if self.l_freq >= self.h_freq:
            raise ValueError(
                f"l_freq ({self.l_freq} Hz) must be less than h_freq ({self.h_freq} Hz)"
            )

        nyquist = recording.sfreq / 2
        if self.h_freq >= nyquist:
            raise ValueError(
                f"h_freq ({self.h_freq} Hz) must be less than Nyquist frequency ({nyquist} Hz)"
            )

        return True

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'l_freq': self.l_freq,
            'h_freq': self.h_freq,
            'phase': self.phase,
            'fir_window': self.fir_window,
        })
        return config
