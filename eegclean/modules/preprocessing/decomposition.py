"""
Rank estimation, extended-infomax ICA and signal reconstruction.

The decomposition is fitted on samples outside bad segments at the
numerical rank of the data: re-referencing and channel interpolation leave
the channel x sample matrix rank-deficient, and asking ICA for more
components than that produces degenerate sources.

Author: eegclean developers
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import mne
import numpy as np

from eegclean.core.exceptions import DataQualityError, NumericalError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording

logger = logging.getLogger(__name__)


def _read_only(array) -> np.ndarray:
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class Decomposition:
    """
    Fitted source separation of one recording.

    Attributes
    ----------
    rank : int
        Number of components
    mixing : np.ndarray, shape (n_channels, rank)
        Component topographies
    unmixing : np.ndarray, shape (rank, n_channels)
        Pseudo-inverse of ``mixing``
    activations : np.ndarray, shape (rank, n_samples)
        Component time courses over the whole recording
    ch_names : tuple of str
        Channel order of ``mixing`` rows
    seed : int
        Random state the fit used
    n_iter : int or None
        Iterations reported by the ICA solver
    ica : mne.preprocessing.ICA or None
        The fitted MNE object (needed by ICLabel; not part of equality)
    """

    rank: int
    mixing: np.ndarray = field(repr=False)
    unmixing: np.ndarray = field(repr=False)
    activations: np.ndarray = field(repr=False)
    ch_names: Tuple[str, ...] = ()
    seed: Optional[int] = None
    n_iter: Optional[int] = None
    ica: Optional[mne.preprocessing.ICA] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        mixing = _read_only(self.mixing)
        unmixing = _read_only(self.unmixing)
        activations = _read_only(self.activations)

        if mixing.shape[1] != self.rank or unmixing.shape[0] != self.rank:
            raise NumericalError(
                f"Decomposition matrices {mixing.shape}/{unmixing.shape} "
                f"do not match rank {self.rank}"
            )
        if activations.shape[0] != self.rank:
            raise NumericalError(
                f"Activations have {activations.shape[0]} rows for rank {self.rank}"
            )

        object.__setattr__(self, "mixing", mixing)
        object.__setattr__(self, "unmixing", unmixing)
        object.__setattr__(self, "activations", activations)
        object.__setattr__(self, "ch_names", tuple(self.ch_names))

    @property
    def n_channels(self) -> int:
        return self.mixing.shape[0]


def estimate_rank(recording: Recording, tol: Optional[float] = None) -> int:
    """
    Numerical rank of the recording over samples outside bad segments.

    Singular values at or below ``tol`` (numpy's default tolerance if None)
    are treated as zero.

    Raises
    ------
    NumericalError
        If the SVD fails or the data has no non-zero singular value
    """
    data = recording.good_data()
    if data.shape[1] == 0:
        raise NumericalError("No samples outside bad segments; rank undefined")

    try:
        rank = int(np.linalg.matrix_rank(data, tol=tol))
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Rank computation failed: {e}") from e

    if rank < 1:
        raise NumericalError("Data matrix has rank 0")

    logger.info("Estimated data rank: %d of %d channels", rank, recording.n_channels)
    return rank


def fit_decomposition(
    recording: Recording,
    layout: Optional[ChannelLayout] = None,
    rank: Optional[int] = None,
    seed: int = 42,
    max_iter: int = 512,
    rank_tol: Optional[float] = None,
) -> Decomposition:
    """
    Fit extended-infomax ICA at the data rank.

    MNE reduces the data to ``rank`` principal components before running
    infomax. Samples inside bad segments are left out of the fit but the
    returned activations cover the whole recording.

    Parameters
    ----------
    recording : Recording
        Conditioned, average-referenced recording
    layout : ChannelLayout, optional
        Montage attached to the fitted ICA (ICLabel needs sensor positions)
    rank : int, optional
        Number of components (estimated if omitted)
    seed : int
        Random state for the infomax initialization
    max_iter : int
        Infomax iteration limit

    Raises
    ------
    NumericalError
        If ICA fails or yields non-finite matrices
    """
    if rank is None:
        rank = estimate_rank(recording, tol=rank_tol)

    raw = recording.to_raw(layout)

    ica = mne.preprocessing.ICA(
        n_components=rank,
        method='infomax',
        fit_params={'extended': True},
        random_state=seed,
        max_iter=max_iter,
    )

    try:
        ica.fit(raw, picks='eeg', reject_by_annotation=True, verbose=False)
    except (ValueError, RuntimeError, FloatingPointError, np.linalg.LinAlgError) as e:
        raise NumericalError(f"ICA decomposition failed: {e}") from e

    mixing = ica.get_components()
    if mixing.shape[1] != rank or not np.all(np.isfinite(mixing)):
        raise NumericalError(
            f"ICA did not converge to {rank} finite components (got {mixing.shape[1]})"
        )

    try:
        unmixing = np.linalg.pinv(mixing)
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Mixing matrix could not be inverted: {e}") from e

    activations = unmixing @ recording.data
    n_iter = getattr(ica, 'n_iter_', None)

    logger.info(
        "Extended infomax ICA: %d components, seed=%s, iterations=%s",
        rank, seed, n_iter,
    )

    return Decomposition(
        rank=rank,
        mixing=mixing,
        unmixing=unmixing,
        activations=activations,
        ch_names=recording.ch_names,
        seed=seed,
        n_iter=int(n_iter) if n_iter is not None else None,
        ica=ica,
    )


def reconstruct(
    recording: Recording,
    decomposition: Decomposition,
    rejected: Sequence[bool],
) -> Recording:
    """
    Project out rejected components.

    Rows of the activation matrix belonging to rejected components are
    zeroed and the result is mapped back through the mixing matrix. The
    decomposition itself is not modified.

    Raises
    ------
    DataQualityError
        If every component is rejected
    """
    rejected = np.asarray(rejected, dtype=bool)
    if rejected.shape != (decomposition.rank,):
        raise NumericalError(
            f"Rejection mask has shape {rejected.shape}, expected ({decomposition.rank},)"
        )
    if tuple(recording.ch_names) != decomposition.ch_names:
        raise NumericalError("Recording channels do not match the decomposition")
    if rejected.all():
        raise DataQualityError(
            f"All {decomposition.rank} components rejected; no signal left"
        )

    activations = decomposition.activations.copy()
    activations[rejected] = 0.0
    cleaned = decomposition.mixing @ activations

    return recording.replace(data=cleaned)
