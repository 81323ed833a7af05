"""Core infrastructure for eegclean."""

from eegclean.core.config import PipelineConfig
from eegclean.core.exceptions import (
    DataQualityError,
    FormatError,
    MissingInputError,
    NumericalError,
    PipelineError,
)
from eegclean.core.layout import ChannelLayout
from eegclean.core.models import BadSegment, ChannelQuality, ChannelQualityReport
from eegclean.core.review import FileReview, NullReview, ReviewProvider, StaticReview
from eegclean.core.recording import Recording
from eegclean.core.segments import SegmentRegistry, good_sample_mask, merge_segments
from eegclean.core.validation import validate_config

__all__ = [
    "PipelineConfig",
    "PipelineError",
    "FormatError",
    "DataQualityError",
    "NumericalError",
    "MissingInputError",
    "ChannelLayout",
    "BadSegment",
    "ChannelQuality",
    "ChannelQualityReport",
    "ReviewProvider",
    "NullReview",
    "StaticReview",
    "FileReview",
    "Recording",
    "SegmentRegistry",
    "good_sample_mask",
    "merge_segments",
    "validate_config",
]
