"""
Sensor layout shared read-only by every session in a batch.

Author: eegclean developers
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple, Union

import mne
import numpy as np

from .exceptions import FormatError

BIOSEMI32_REFERENCE = ("T7", "T8")


@dataclass(frozen=True)
class ChannelLayout:
    """
    Channel identifiers, their 3-D positions and the bipolar reference pair.

    Positions are used only by spatial interpolation (and by ICLabel
    topographies). The underlying MNE montage is kept so recordings can be
    turned into ``mne.io.Raw`` objects with digitization attached.

    Parameters
    ----------
    ch_names : tuple of str
        Channel identifiers in data-row order
    positions : mapping
        Channel name -> (x, y, z) in head coordinates (meters)
    reference : tuple of str
        The two channels averaged for the bipolar reference
    montage : mne.channels.DigMontage
        Montage the positions were read from

    Examples
    --------
    >>> layout = ChannelLayout.biosemi32()
    >>> layout.n_channels
    32
    >>> layout.reference_indices
    (6, 23)
    """

    ch_names: Tuple[str, ...]
    positions: Mapping[str, Tuple[float, float, float]]
    reference: Tuple[str, str]
    montage: mne.channels.DigMontage = field(repr=False, compare=False)

    def __post_init__(self):
        missing = [ch for ch in self.ch_names if ch not in self.positions]
        if missing:
            raise FormatError(f"Layout has no position for channels: {missing}")

        unknown = [ch for ch in self.reference if ch not in self.ch_names]
        if unknown:
            raise FormatError(f"Reference channels not in layout: {unknown}")

    @classmethod
    def from_montage(
        cls,
        montage: mne.channels.DigMontage,
        reference: Sequence[str],
        ch_names: Optional[Sequence[str]] = None,
    ) -> "ChannelLayout":
        """Build a layout from an MNE montage."""
        ch_pos = montage.get_positions()["ch_pos"]
        names = tuple(ch_names) if ch_names is not None else tuple(ch_pos)
        positions = MappingProxyType({
            name: tuple(float(v) for v in np.asarray(ch_pos[name]))
            for name in names
            if name in ch_pos
        })
        return cls(
            ch_names=names,
            positions=positions,
            reference=tuple(reference),
            montage=montage,
        )

    @classmethod
    def biosemi32(cls) -> "ChannelLayout":
        """BioSemi 32-channel cap, referenced to the T7/T8 pair."""
        montage = mne.channels.make_standard_montage("biosemi32")
        return cls.from_montage(montage, reference=BIOSEMI32_REFERENCE)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        reference: Sequence[str],
    ) -> "ChannelLayout":
        """Read a layout from any montage file MNE understands (.elc, .sfp, .loc, ...)."""
        montage = mne.channels.read_custom_montage(path)
        return cls.from_montage(montage, reference=reference)

    @property
    def n_channels(self) -> int:
        return len(self.ch_names)

    @property
    def reference_indices(self) -> Tuple[int, int]:
        return tuple(self.ch_names.index(ch) for ch in self.reference)

    def make_montage(self) -> mne.channels.DigMontage:
        """Fresh copy of the montage; recordings may set it on their own Raw."""
        return self.montage.copy()
