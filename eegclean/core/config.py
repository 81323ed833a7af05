"""
Pipeline configuration for eegclean.

One sub-config per stage, combined in PipelineConfig. Defaults reproduce
the reference deployment: 32-channel BioSemi data at 2048 Hz, resampled to
250 Hz, T7/T8 bipolar reference, 0.2-30 Hz bandpass.
"""

from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field


class IngestConfig(BaseModel):
    """Input table layout."""

    native_sfreq: float = Field(default=2048.0, gt=0, description="Sampling rate of the input file (Hz)")
    n_leading_columns: int = Field(
        default=1,
        ge=0,
        description="Non-data columns (time/index) before the channel columns"
    )


class ResampleConfig(BaseModel):
    """Resampling configuration."""

    sfreq: float = Field(default=250.0, gt=0, description="Target sampling rate (Hz)")


class ReferenceConfig(BaseModel):
    """Bipolar re-reference configuration."""

    channels: Optional[Tuple[str, str]] = Field(
        default=None,
        description="Reference pair; None uses the layout's pair"
    )
    drop_reference: bool = Field(
        default=False,
        description="Remove the reference channels after re-referencing"
    )


class FilterConfig(BaseModel):
    """Zero-phase FIR bandpass configuration."""

    l_freq: float = Field(default=0.2, gt=0, description="High-pass cutoff (Hz)")
    h_freq: float = Field(default=30.0, gt=0, description="Low-pass cutoff (Hz)")
    phase: Literal["zero", "zero-double"] = Field(
        default="zero",
        description="Only zero-phase filtering keeps channels phase-aligned"
    )
    fir_window: str = Field(default="hamming", description="FIR window")
    fir_design: str = Field(default="firwin", description="FIR design method")
    filter_length: str = Field(default="auto", description="'auto' or e.g. '10s'")


class ChannelQualityConfig(BaseModel):
    """Bad channel detection and interpolation."""

    kurtosis_threshold: float = Field(
        default=5.0,
        description="Normalized kurtosis above which a channel is flagged"
    )
    interpolation_mode: Literal["accurate", "fast"] = Field(default="accurate")


class ICAConfig(BaseModel):
    """Decomposition and component rejection."""

    seed: int = Field(default=42, description="ICA random seed (logged with results)")
    max_iter: int = Field(default=512, gt=0, description="Infomax iteration limit")
    rank_tol: Optional[float] = Field(
        default=None,
        description="Singular value tolerance for rank estimation (None = numpy default)"
    )
    reject_threshold: float = Field(
        default=0.70,
        description="Minimum top probability for rejecting a non-brain component"
    )


class SpectralConfig(BaseModel):
    """Welch spectral estimation."""

    window_seconds: float = Field(default=2.0, gt=0, description="Welch window length (s)")
    overlap: float = Field(default=0.5, description="Fraction of window overlap")
    band: Tuple[float, float] = Field(
        default=(0.0, 30.0),
        description="Band used to normalize relative power (Hz, inclusive)"
    )


class OutputConfig(BaseModel):
    """Persistence options."""

    save_csv: bool = Field(default=True, description="Also write power tables as CSV")
    overwrite: bool = Field(default=True)


class PipelineConfig(BaseModel):
    """Master configuration combining all stage configs."""

    ingest: IngestConfig = Field(default_factory=IngestConfig)
    resample: ResampleConfig = Field(default_factory=ResampleConfig)
    reference: ReferenceConfig = Field(default_factory=ReferenceConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    channels: ChannelQualityConfig = Field(default_factory=ChannelQualityConfig)
    ica: ICAConfig = Field(default_factory=ICAConfig)
    spectral: SpectralConfig = Field(default_factory=SpectralConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "PipelineConfig":
        """Load configuration from YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        import yaml
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
