"""
eegclean: EEG conditioning, artifact rejection and spectral estimation

Resampling, bipolar referencing, zero-phase bandpass filtering, kurtosis
bad-channel repair, rank-limited extended-infomax ICA with ICLabel
component rejection, and Welch power spectra for single EEG sessions.
"""

__version__ = "0.1.0"
__author__ = "eegclean developers"

from eegclean.core.config import PipelineConfig
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from eegclean.pipeline.session import SessionContext, SessionProcessor, process_batch

__all__ = [
    "PipelineConfig",
    "ChannelLayout",
    "Recording",
    "SessionContext",
    "SessionProcessor",
    "process_batch",
    "__version__",
]
