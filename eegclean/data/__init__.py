"""Data loading and I/O."""

from eegclean.data.loaders import (
    drop_invalid_samples,
    load_fif,
    load_recording,
    read_table,
    recording_from_table,
)

__all__ = [
    "drop_invalid_samples",
    "load_fif",
    "load_recording",
    "read_table",
    "recording_from_table",
]
