"""
Independent Component Analysis (ICA) step.

Author: eegclean developers
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from eegclean.core.exceptions import DataQualityError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from .base import ProcessingStep
from ..decomposition import estimate_rank, fit_decomposition


class ICAStep(ProcessingStep):
    """
    Extended-infomax ICA at the numerical rank of the data.

    Fits the decomposition and passes the recording through unchanged;
    rejection happens later, once components are classified. The fitted
    Decomposition is published in the step metadata for the ICLabel and
    rejection steps.

    Parameters
    ----------
    layout : ChannelLayout, optional
        Sensor positions attached to the fitted ICA
    random_state : int
        Seed for the infomax initialization (logged with results)
    max_iter : int
        Infomax iteration limit
    rank_tol : float or None
        Singular value tolerance for rank estimation

    Examples
    --------
    >>> step = ICAStep(layout=ChannelLayout.biosemi32(), random_state=42)
    """

    name = "ica"
    version = "1.0"

    def __init__(
        self,
        layout: Optional[ChannelLayout] = None,
        random_state: int = 42,
        max_iter: int = 512,
        rank_tol: Optional[float] = None,
        enabled: bool = True,
    ):
        """Initialize ICA step."""
        super().__init__(enabled=enabled)

        self.layout = layout
        self.random_state = random_state
        self.max_iter = max_iter
        self.rank_tol = rank_tol

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Fit ICA.

        Returns
        -------
        recording : Recording
            The input, unchanged
        step_metadata : dict
            'decomposition' holds the Decomposition, 'ica_object' the MNE ICA
        """
        rank = estimate_rank(recording, tol=self.rank_tol)
        decomposition = fit_decomposition(
            recording,
            layout=self.layout,
            rank=rank,
            seed=self.random_state,
            max_iter=self.max_iter,
        )

        step_metadata = {
            'applied': True,
            'method': 'infomax',
            'extended': True,
            'rank': rank,
            'n_channels': recording.n_channels,
            'random_state': self.random_state,
            'n_iter': decomposition.n_iter,
            'decomposition': decomposition,
            'ica_object': decomposition.ica,
        }

        return recording, step_metadata

    def validate_inputs(self, recording: Recording) -> bool:
        """Check for NaN/Inf and for samples left outside bad segments."""
        if not np.all(np.isfinite(recording.data)):
            raise DataQualityError("Data contains NaN/Inf values")
        if not recording.good_mask().any():
            raise DataQualityError("Every sample lies in a bad segment; nothing to fit ICA on")
        return True

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'method': 'infomax',
            'extended': True,
            'random_state': self.random_state,
            'max_iter': self.max_iter,
            'rank_tol': self.rank_tol,
        })
        return config
