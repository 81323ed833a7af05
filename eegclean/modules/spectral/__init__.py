"""
Spectral estimation: Welch power spectral density and band-relative power.

Computed once, from the terminal (post-rejection) recording.
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import pandas as pd
from mne.time_frequency import psd_array_welch

from eegclean.core.exceptions import DataQualityError
from eegclean.core.recording import Recording

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpectralEstimate:
    """
    Per-channel power spectrum.

    Attributes
    ----------
    freqs : np.ndarray, shape (n_bins,)
        Frequency bins shared by all channels (Hz)
    power : np.ndarray, shape (n_channels, n_bins)
        Power spectral density (µV²/Hz)
    relative_power : np.ndarray, shape (n_channels, n_bins)
        ``power`` divided by each channel's summed power inside ``band``
    ch_names : tuple of str
    band : (float, float)
        Normalization band (Hz, inclusive)
    """

    freqs: np.ndarray = field(repr=False)
    power: np.ndarray = field(repr=False)
    relative_power: np.ndarray = field(repr=False)
    ch_names: Tuple[str, ...] = ()
    band: Tuple[float, float] = (0.0, 30.0)

    def __post_init__(self):
        for name in ("freqs", "power", "relative_power"):
            array = np.array(getattr(self, name), dtype=np.float64)
            array.setflags(write=False)
            object.__setattr__(self, name, array)
        object.__setattr__(self, "ch_names", tuple(self.ch_names))
        object.__setattr__(self, "band", tuple(float(f) for f in self.band))

        if self.power.shape != self.relative_power.shape:
            raise ValueError("power and relative_power must have the same shape")
        if self.power.shape != (len(self.ch_names), len(self.freqs)):
            raise ValueError(
                f"power has shape {self.power.shape}, expected "
                f"({len(self.ch_names)}, {len(self.freqs)})"
            )

    @property
    def band_slice(self) -> slice:
        """Bins inside ``band``; for 0.5 Hz bins and (0, 30) this is [0:61]."""
        start = int(np.searchsorted(self.freqs, self.band[0], side="left"))
        stop = int(np.searchsorted(self.freqs, self.band[1], side="right"))
        return slice(start, stop)

    @property
    def resolution(self) -> float:
        return float(self.freqs[1] - self.freqs[0]) if len(self.freqs) > 1 else float("nan")

    def as_tuple(self):
        """``(freqs, power, relative_power, ch_names)`` for reporting."""
        return self.freqs, self.power, self.relative_power, list(self.ch_names)

    def to_dataframe(self, relative: bool = False) -> pd.DataFrame:
        """Channel x frequency table."""
        values = self.relative_power if relative else self.power
        return pd.DataFrame(
            values,
            index=pd.Index(self.ch_names, name="channel"),
            columns=[f"{f:g}" for f in self.freqs],
        )


def compute_spectrum(
    recording: Recording,
    window_seconds: float = 2.0,
    overlap: float = 0.5,
    band: Tuple[float, float] = (0.0, 30.0),
) -> SpectralEstimate:
    """
    Welch PSD and band-relative power for every channel.

    Hann-windowed segments of ``window_seconds``, FFT length equal to the
    segment length, ``overlap`` fraction of overlap, mean-averaged.

    Raises
    ------
    DataQualityError
        If the recording is shorter than one window, or a channel has no
        power inside ``band``
    """
    sfreq = recording.sfreq
    n_per_seg = int(round(window_seconds * sfreq))
    n_overlap = int(n_per_seg * overlap)

    if n_per_seg < 2:
        raise DataQualityError(f"Welch window of {n_per_seg} samples is too short")
    if recording.n_samples < n_per_seg:
        raise DataQualityError(
            f"Recording has {recording.n_samples} samples, shorter than one "
            f"{n_per_seg}-sample Welch window"
        )

    psd, freqs = psd_array_welch(
        recording.data,
        sfreq,
        fmin=0.0,
        fmax=np.inf,
        n_fft=n_per_seg,
        n_overlap=n_overlap,
        n_per_seg=n_per_seg,
        window="hann",
        average="mean",
        verbose=False,
    )

    start = int(np.searchsorted(freqs, band[0], side="left"))
    stop = int(np.searchsorted(freqs, band[1], side="right"))
    in_band = psd[:, start:stop].sum(axis=1, keepdims=True)

    if stop <= start or np.any(in_band <= 0) or not np.all(np.isfinite(in_band)):
        raise DataQualityError(
            f"No power in the {band[0]:g}-{band[1]:g} Hz normalization band"
        )

    relative = psd / in_band

    logger.info(
        "Welch PSD: window=%d, overlap=%d, %d bins (%.3g Hz resolution), "
        "normalized over bins [%d:%d]",
        n_per_seg, n_overlap, len(freqs), sfreq / n_per_seg, start, stop,
    )

    return SpectralEstimate(
        freqs=freqs,
        power=psd,
        relative_power=relative,
        ch_names=recording.ch_names,
        band=band,
    )


__all__ = ["SpectralEstimate", "compute_spectrum"]
