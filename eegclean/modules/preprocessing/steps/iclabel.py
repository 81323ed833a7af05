"""
ICLabel component classification and component rejection steps.

Author: eegclean developers
"""

from typing import Any, Dict, Optional, Tuple

from eegclean.core.exceptions import NumericalError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from .base import ProcessingStep
from ..classification import (
    DEFAULT_REJECT_THRESHOLD,
    ComponentClassifier,
    ICLabelClassifier,
    classify_components,
)
from ..decomposition import reconstruct


def _find_step_output(metadata: Dict[str, Any], key: str, step_name: str):
    """Fetch an object published by an earlier step."""
    value = metadata.get(step_name, {}).get(key)
    if value is None:
        raise NumericalError(f"'{key}' not found; the '{step_name}' step must run first")
    return value


class ICLabelStep(ProcessingStep):
    """
    Classify ICA components.

    Assigns each component a probability over brain, muscle, eye, heart,
    line noise, channel noise and other, then applies the decision rule:
    a component is marked for rejection iff its most probable category is
    not brain and that probability is at least ``threshold``.

    The recording passes through unchanged; ComponentRejectionStep does the
    reconstruction, so the pre-rejection state can be persisted first.

    Parameters
    ----------
    layout : ChannelLayout, optional
        Sensor positions (ICLabel uses topographies)
    threshold : float
        Minimum top probability for rejection (default: 0.70)
    classifier : ComponentClassifier, optional
        Defaults to the pretrained ICLabel network

    Examples
    --------
    >>> step = ICLabelStep(layout=ChannelLayout.biosemi32(), threshold=0.7)
    """

    name = "iclabel"
    version = "1.0"

    def __init__(
        self,
        layout: Optional[ChannelLayout] = None,
        threshold: float = DEFAULT_REJECT_THRESHOLD,
        classifier: Optional[ComponentClassifier] = None,
        enabled: bool = True,
    ):
        """Initialize ICLabel step."""
        super().__init__(enabled=enabled)

        if not 0 < threshold <= 1:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")

        self.layout = layout
        self.threshold = threshold
        self.classifier = classifier or ICLabelClassifier()

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Classify components.

        Parameters
        ----------
        metadata : dict
            Must contain metadata['ica']['decomposition']

        Returns
        -------
        recording : Recording
            The input, unchanged
        step_metadata : dict
            'classification' holds the ComponentClassification
        """
        decomposition = _find_step_output(metadata, 'decomposition', 'ica')

        classification = classify_components(
            recording,
            decomposition,
            classifier=self.classifier,
            layout=self.layout,
            threshold=self.threshold,
        )

        step_metadata = {
            'applied': True,
            'classifier': type(self.classifier).__name__,
            **classification.summary(),
            'classification': classification,
        }

        return recording, step_metadata

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'threshold': self.threshold,
            'classifier': type(self.classifier).__name__,
        })
        return config


class ComponentRejectionStep(ProcessingStep):
    """
    Remove rejected components and reconstruct the channel signals.

    Zeroes the activations of components marked by ICLabelStep and projects
    the rest back through the mixing matrix.
    """

    name = "component_rejection"
    version = "1.0"

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Reconstruct the cleaned recording.

        Raises
        ------
        DataQualityError
            If every component was rejected
        """
        decomposition = _find_step_output(metadata, 'decomposition', 'ica')
        classification = _find_step_output(metadata, 'classification', 'iclabel')

        cleaned = reconstruct(recording, decomposition, classification.rejected)

        step_metadata = {
            'applied': True,
            'n_components': decomposition.rank,
            'n_rejected': len(classification.rejected_indices),
            'rejected_indices': classification.rejected_indices,
        }

        return cleaned, step_metadata
