"""
Immutable recording snapshots.

Each pipeline stage takes a Recording and returns a new one; nothing is
modified in place, so any persisted snapshot can be replayed or audited.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import mne
import numpy as np

from .exceptions import FormatError
from .layout import ChannelLayout
from .models import BadSegment
from .segments import check_segments, good_sample_mask, merge_segments

# Recordings hold microvolts; MNE objects hold volts.
UV_TO_V = 1e-6

BAD_SEGMENT_DESCRIPTION = "BAD_segment"


@dataclass(frozen=True)
class Recording:
    """
    Channel x sample EEG signal with its bookkeeping.

    Parameters
    ----------
    ch_names : tuple of str
        Channel identifiers, one per data row
    sfreq : float
        Sampling rate in Hz
    data : np.ndarray, shape (n_channels, n_samples)
        Signal in microvolts. Stored read-only.
    bad_segments : tuple of BadSegment
        Ordered, non-overlapping bad intervals (not removed from ``data``)

    Raises
    ------
    FormatError
        If the row count does not match the channel count, or a segment
        runs past the end of the data.
    """

    ch_names: Tuple[str, ...]
    sfreq: float
    data: np.ndarray = field(repr=False)
    bad_segments: Tuple[BadSegment, ...] = ()

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float64)
        if data.ndim != 2:
            raise FormatError(f"Expected a 2-D channel x sample matrix, got {data.ndim}-D")
        if data.shape[0] != len(self.ch_names):
            raise FormatError(
                f"Data has {data.shape[0]} rows but {len(self.ch_names)} channels"
            )
        if self.sfreq <= 0:
            raise FormatError(f"Sampling rate must be positive, got {self.sfreq}")
        data.setflags(write=False)

        segments = merge_segments(self.bad_segments)
        check_segments(segments, data.shape[1])

        object.__setattr__(self, "ch_names", tuple(self.ch_names))
        object.__setattr__(self, "sfreq", float(self.sfreq))
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "bad_segments", segments)

    @property
    def n_channels(self) -> int:
        return self.data.shape[0]

    @property
    def n_samples(self) -> int:
        return self.data.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.n_samples / self.sfreq

    def good_mask(self) -> np.ndarray:
        """True for samples outside every bad segment."""
        return good_sample_mask(self.bad_segments, self.n_samples)

    def good_data(self) -> np.ndarray:
        """Signal restricted to samples outside bad segments."""
        return self.data[:, self.good_mask()]

    def replace(self, **changes) -> "Recording":
        """New Recording with some fields replaced."""
        return dataclasses.replace(self, **changes)

    def with_bad_segments(self, segments: Sequence) -> "Recording":
        return self.replace(bad_segments=tuple(segments))

    def pick(self, ch_names: Sequence[str]) -> "Recording":
        """New Recording restricted to ``ch_names`` (in that order)."""
        idx = [self.ch_names.index(ch) for ch in ch_names]
        return self.replace(ch_names=tuple(ch_names), data=self.data[idx])

    def to_raw(self, layout: Optional[ChannelLayout] = None) -> mne.io.RawArray:
        """
        Convert to an ``mne.io.RawArray`` (volts, EEG channel type).

        Bad segments become ``BAD_segment`` annotations. If a layout is given
        its montage is attached.
        """
        info = mne.create_info(list(self.ch_names), self.sfreq, ch_types="eeg")
        raw = mne.io.RawArray(self.data * UV_TO_V, info, verbose=False)

        if layout is not None:
            raw.set_montage(layout.make_montage(), on_missing="ignore", verbose=False)

        if self.bad_segments:
            onsets = [seg.start_sample / self.sfreq for seg in self.bad_segments]
            durations = [seg.n_samples / self.sfreq for seg in self.bad_segments]
            raw.set_annotations(mne.Annotations(
                onset=onsets,
                duration=durations,
                description=[BAD_SEGMENT_DESCRIPTION] * len(onsets),
            ))

        return raw

    @classmethod
    def from_raw(cls, raw: mne.io.BaseRaw) -> "Recording":
        """Build a Recording from MNE Raw data (volts -> microvolts)."""
        sfreq = raw.info["sfreq"]
        n_samples = raw.n_times

        segments = []
        annotations = raw.annotations
        for annot in annotations:
            if annot["description"] != BAD_SEGMENT_DESCRIPTION:
                continue
            start = int(raw.time_as_index(
                annot["onset"], use_rounding=True, origin=annotations.orig_time
            )[0])
            end = start + int(round(annot["duration"] * sfreq))
            start, end = max(start, 0), min(end, n_samples)
            if end > start:
                segments.append(BadSegment(start_sample=start, end_sample=end))

        return cls(
            ch_names=tuple(raw.ch_names),
            sfreq=sfreq,
            data=raw.get_data() / UV_TO_V,
            bad_segments=tuple(segments),
        )

    def __repr__(self) -> str:
        return (
            f"Recording({self.n_channels} ch, {self.n_samples} samples @ "
            f"{self.sfreq:g} Hz, {len(self.bad_segments)} bad segments)"
        )
