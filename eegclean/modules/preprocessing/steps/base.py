"""
Base class for preprocessing steps.

Author: eegclean developers
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from eegclean.core.recording import Recording


class ProcessingStep(ABC):
    """
    Base class for a single preprocessing step.

    A step is a pure transform: it receives a Recording and returns a new
    Recording plus a metadata dict describing what it did. Steps never
    modify their input, so intermediate snapshots stay valid for
    checkpointing.

    Attributes
    ----------
    name : str
        Step name (used as the metadata key)
    version : str
        Step version for reproducibility
    enabled : bool
        Whether this step is enabled (default: True)

    Examples
    --------
    Create a custom step:
    >>> class ScaleStep(ProcessingStep):
    ...     name = "scale"
    ...
    ...     def __init__(self, factor=2.0):
    ...         super().__init__()
    ...         self.factor = factor
    ...
    ...     def process(self, recording, metadata):
    ...         scaled = recording.replace(data=recording.data * self.factor)
    ...         return scaled, {'factor': self.factor}
    """

    name: str = "processing_step"
    version: str = "1.0"

    def __init__(self, enabled: bool = True):
        """
        Initialize processing step.

        Parameters
        ----------
        enabled : bool
            Whether this step is enabled (default: True)
        """
        self.enabled = enabled

    @abstractmethod
    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Process a recording.

        Parameters
        ----------
        recording : Recording
            Input snapshot
        metadata : dict
            Accumulated metadata from previous steps.
            Later steps read earlier results here (e.g. the ICLabel step
            reads the decomposition produced by the ICA step).

        Returns
        -------
        recording : Recording
            New snapshot
        step_metadata : dict
            Metadata specific to this step (stored under metadata[step.name])

        Raises
        ------
        PipelineError
            If the session cannot be processed further
        """
        pass

    def validate_inputs(self, recording: Recording) -> bool:
        """
        Validate that input data is suitable for this step.

        Raises
        ------
        PipelineError or ValueError
            If validation fails with specific reason
        """
        return True

    def skip_step(self, recording: Recording, metadata: Dict[str, Any]) -> bool:
        """Whether this step should be skipped given the current state."""
        return not self.enabled

    def get_config(self) -> Dict[str, Any]:
        """
        Get current configuration as dictionary.

        Returns
        -------
        config : dict
            Configuration that can reproduce this step
        """
        return {
            'name': self.name,
            'version': self.version,
            'enabled': self.enabled,
        }

    def __repr__(self) -> str:
        status = "enabled" if self.enabled else "disabled"
        return f"{self.__class__.__name__}(name='{self.name}', {status})"
