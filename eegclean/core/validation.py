"""
Configuration validation utilities.
"""

from typing import List

from eegclean.core.config import PipelineConfig


class ValidationResult:
    """Container for validation results."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def __repr__(self) -> str:
        status = "VALID" if self.is_valid else "INVALID"
        return f"ValidationResult({status}, {len(self.errors)} errors, {len(self.warnings)} warnings)"


def validate_config(config: PipelineConfig) -> ValidationResult:
    """
    Validate configuration before running the pipeline.

    Checks:
    - Filter band lies below the Nyquist frequency of the target rate
    - Spectral normalization band is ordered and below Nyquist
    - Rejection threshold and overlap are in range
    """
    result = ValidationResult()
    nyquist = config.resample.sfreq / 2

    if config.filter.l_freq >= config.filter.h_freq:
        result.add_error(
            f"filter.l_freq ({config.filter.l_freq}) must be less than "
            f"filter.h_freq ({config.filter.h_freq})"
        )

    if config.filter.h_freq >= nyquist:
        result.add_error(
            f"filter.h_freq ({config.filter.h_freq} Hz) must be below the Nyquist "
            f"frequency of the resampled data ({nyquist} Hz)"
        )

    if config.resample.sfreq > config.ingest.native_sfreq:
        result.add_warning(
            f"resample.sfreq ({config.resample.sfreq} Hz) is above the native rate "
            f"({config.ingest.native_sfreq} Hz); data will be upsampled"
        )

    low, high = config.spectral.band
    if low < 0 or low >= high:
        result.add_error(f"spectral.band {config.spectral.band} must satisfy 0 <= low < high")
    if high > nyquist:
        result.add_error(f"spectral.band upper edge ({high} Hz) exceeds Nyquist ({nyquist} Hz)")
    if high != config.filter.h_freq:
        result.add_warning(
            f"spectral.band upper edge ({high} Hz) differs from the filter passband "
            f"edge ({config.filter.h_freq} Hz)"
        )

    if not 0.0 <= config.spectral.overlap < 1.0:
        result.add_error(f"spectral.overlap ({config.spectral.overlap}) must be in [0, 1)")

    if not 0.0 < config.ica.reject_threshold <= 1.0:
        result.add_error(
            f"ica.reject_threshold ({config.ica.reject_threshold}) must be in (0, 1]"
        )

    if config.channels.kurtosis_threshold <= 0:
        result.add_warning(
            f"channels.kurtosis_threshold ({config.channels.kurtosis_threshold}) is not "
            f"positive; most channels will be flagged"
        )

    return result
