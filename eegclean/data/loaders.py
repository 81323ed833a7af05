"""
Data loading utilities.

Reads the acquisition export (a delimited text table: one time/index
column followed by one column per channel) into a Recording, and reads
back FIF files written by the session store.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import mne
import numpy as np
import pandas as pd

from eegclean.core.config import IngestConfig
from eegclean.core.exceptions import FormatError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording

logger = logging.getLogger(__name__)

TABLE_SUFFIXES = {".txt", ".csv", ".tsv", ".dat"}


def read_table(file_path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a delimited numeric table.

    The delimiter (tab, comma, semicolon or whitespace) is sniffed from the
    file. A header row is expected.

    Args:
        file_path: Path to the text export

    Returns:
        DataFrame with one row per sample
    """
    file_path = Path(file_path)
    try:
        table = pd.read_csv(file_path, sep=None, engine="python")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise FormatError(f"Could not parse {file_path.name}: {e}") from e

    if table.shape[1] == 1:
        # Sniffer gives up on whitespace-aligned columns
        table = pd.read_csv(file_path, sep=r"\s+", engine="python")

    return table


def drop_invalid_samples(data: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Drop sample columns in which every channel is missing.

    Args:
        data: Channel x sample matrix (NaN marks a missing value)

    Returns:
        Tuple of (cleaned matrix, indices of dropped columns)

    Raises:
        FormatError: If any column is only partially missing
    """
    invalid = np.isnan(data)
    all_invalid = invalid.all(axis=0)
    partial = invalid.any(axis=0) & ~all_invalid

    if partial.any():
        first = int(np.flatnonzero(partial)[0])
        n_bad_ch = int(invalid[:, first].sum())
        raise FormatError(
            f"Sample {first} has {n_bad_ch}/{data.shape[0]} missing channels; "
            f"only fully missing sample columns can be dropped "
            f"({int(partial.sum())} partially missing columns in total)"
        )

    dropped = np.flatnonzero(all_invalid)
    return data[:, ~all_invalid], dropped


def recording_from_table(
    table: pd.DataFrame,
    layout: ChannelLayout,
    sfreq: float = 2048.0,
    n_leading_columns: int = 1,
) -> Recording:
    """
    Turn a sample x column table into a channel x sample Recording.

    Args:
        table: Table as returned by read_table
        layout: Channel layout; its channel count is the expected column count
        sfreq: Sampling rate of the table
        n_leading_columns: Non-data columns (time/index) to skip

    Returns:
        Recording at the native rate with fully missing samples removed
    """
    channel_columns = table.iloc[:, n_leading_columns:]
    if channel_columns.shape[1] != layout.n_channels:
        raise FormatError(
            f"Expected {layout.n_channels} channel columns after {n_leading_columns} "
            f"leading column(s), found {channel_columns.shape[1]}"
        )

    try:
        values = channel_columns.apply(pd.to_numeric, errors="raise").to_numpy(dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise FormatError(f"Channel columns contain non-numeric values: {e}") from e

    data, dropped = drop_invalid_samples(values.T)
    if dropped.size:
        logger.info(
            "Dropped %d fully missing sample(s) (first: %d, last: %d)",
            dropped.size, dropped[0], dropped[-1],
        )

    if data.shape[1] == 0:
        raise FormatError("No valid samples in table")

    return Recording(ch_names=layout.ch_names, sfreq=sfreq, data=data)


def load_recording(
    file_path: Union[str, Path],
    layout: ChannelLayout,
    config: Optional[IngestConfig] = None,
) -> Recording:
    """
    Load a recording from a text export or a FIF file.

    Supports: .txt, .csv, .tsv, .dat (acquisition exports), .fif

    Args:
        file_path: Path to the recording
        layout: Channel layout (ignored for FIF, which carries its own names)
        config: Ingestion settings (native rate, leading columns)

    Returns:
        Recording
    """
    file_path = Path(file_path)
    config = config or IngestConfig()
    suffix = file_path.suffix.lower()

    if suffix == ".fif":
        recording = load_fif(file_path)
    elif suffix in TABLE_SUFFIXES:
        table = read_table(file_path)
        recording = recording_from_table(
            table,
            layout,
            sfreq=config.native_sfreq,
            n_leading_columns=config.n_leading_columns,
        )
    else:
        raise FormatError(f"Unsupported file format: {suffix}")

    logger.info(
        "Loaded %s: %d channels x %d samples @ %g Hz",
        file_path.name, recording.n_channels, recording.n_samples, recording.sfreq,
    )
    return recording


def load_fif(file_path: Union[str, Path]) -> Recording:
    """Load a Recording saved by the session store."""
    raw = mne.io.read_raw_fif(file_path, preload=True, verbose=False)
    return Recording.from_raw(raw)
