"""
Data models for eegclean using Pydantic v2.

Serializable records that are persisted for audit: bad time segments and
the per-channel quality report.
"""

import math
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BadSegment(BaseModel):
    """Half-open bad time interval ``[start_sample, end_sample)``."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={"example": {"start_sample": 2500, "end_sample": 5000}},
    )

    start_sample: int = Field(..., ge=0, description="First bad sample (inclusive)")
    end_sample: int = Field(..., description="End of bad interval (exclusive)")

    @model_validator(mode="after")
    def check_order(self) -> "BadSegment":
        if self.end_sample <= self.start_sample:
            raise ValueError(
                f"end_sample ({self.end_sample}) must be greater than "
                f"start_sample ({self.start_sample})"
            )
        return self

    @property
    def n_samples(self) -> int:
        return self.end_sample - self.start_sample

    @classmethod
    def coerce(cls, value) -> "BadSegment":
        """Build a segment from a BadSegment, a mapping or a (start, end) pair."""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(**value)
        start, end = value
        return cls(start_sample=int(start), end_sample=int(end))

    def rescale(self, ratio: float, n_samples: int) -> Optional["BadSegment"]:
        """Map the segment onto a resampled time axis.

        Returns None if the segment collapses to zero length.
        """
        start = min(int(self.start_sample * ratio), n_samples)
        end = min(math.ceil(self.end_sample * ratio), n_samples)
        if end <= start:
            return None
        return BadSegment(start_sample=start, end_sample=end)


ChannelSource = Literal["automatic", "manual"]


class ChannelQuality(BaseModel):
    """Quality record for one channel."""

    # Flat channels have undefined kurtosis; keep NaN/inf through JSON
    model_config = ConfigDict(ser_json_inf_nan="constants")

    name: str
    index: int = Field(..., ge=0)
    kurtosis: float = Field(..., description="Excess kurtosis over good samples")
    normalized_kurtosis: float = Field(..., description="Kurtosis z-scored across channels")
    flagged: bool = False
    source: Optional[ChannelSource] = Field(
        default=None,
        description="Who flagged the channel: automatic detection or manual review"
    )


class ChannelQualityReport(BaseModel):
    """Per-recording channel quality report.

    Produced once per session by the channel quality engine, consumed by
    interpolation and then kept for audit.
    """

    model_config = ConfigDict(ser_json_inf_nan="constants")

    threshold: float = Field(..., description="Normalized kurtosis threshold")
    n_good_samples: int = Field(..., ge=0, description="Samples used for statistics")
    channels: List[ChannelQuality] = Field(default_factory=list)

    @property
    def flagged_names(self) -> List[str]:
        return [ch.name for ch in self.channels if ch.flagged]

    @property
    def flagged_indices(self) -> List[int]:
        return [ch.index for ch in self.channels if ch.flagged]

    @property
    def automatic(self) -> List[str]:
        return [ch.name for ch in self.channels if ch.source == "automatic"]

    @property
    def manual(self) -> List[str]:
        return [ch.name for ch in self.channels if ch.source == "manual"]

    def with_manual(self, indices: List[int]) -> "ChannelQualityReport":
        """Return a copy with extra channels flagged by manual review.

        Channels already flagged automatically keep their source.
        """
        wanted = set(indices)
        channels = []
        for ch in self.channels:
            if ch.index in wanted and not ch.flagged:
                ch = ch.model_copy(update={"flagged": True, "source": "manual"})
            channels.append(ch)
        return self.model_copy(update={"channels": channels})

    def summary(self) -> Dict[str, object]:
        return {
            "threshold": self.threshold,
            "n_flagged": len(self.flagged_names),
            "automatic": self.automatic,
            "manual": self.manual,
        }
