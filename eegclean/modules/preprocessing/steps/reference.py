"""
Re-referencing step.

Author: eegclean developers
"""

from typing import Any, Dict, Optional, Sequence, Tuple

import mne

from eegclean.core.exceptions import FormatError
from eegclean.core.recording import UV_TO_V, Recording
from .base import ProcessingStep


class ReferenceStep(ProcessingStep):
    """
    Re-referencing step.

    Changes the EEG reference to the mean of a channel pair (bipolar) or to
    the common average of all channels.

    Parameters
    ----------
    type : str
        Reference type: 'bipolar' or 'average'
    channels : sequence of str
        Reference channels for 'bipolar' type
    drop_reference : bool
        Remove the reference channels after a bipolar re-reference
        (default: False, they are kept)

    Examples
    --------
    T7/T8 reference, keeping both channels:
    >>> step = ReferenceStep(type='bipolar', channels=['T7', 'T8'])

    Common average reference:
    >>> step = ReferenceStep(type='average')
    """

    name = "reference"
    version = "1.0"

    def __init__(
        self,
        type: str = 'average',
        channels: Optional[Sequence[str]] = None,
        drop_reference: bool = False,
        enabled: bool = True,
    ):
        """Initialize reference step."""
        super().__init__(enabled=enabled)

        if type not in ('bipolar', 'average'):
            raise ValueError(f"Unknown reference type: {type}")
        if type == 'bipolar' and not channels:
            raise ValueError("Must specify channels for 'bipolar' reference type")

        self.type = type
        self.channels = list(channels) if channels else None
        self.drop_reference = drop_reference
        if type == 'average':
            self.name = "average_reference"

    def process(
        self,
        recording: Recording,
        metadata: Dict[str, Any]
    ) -> Tuple[Recording, Dict[str, Any]]:
        """
        Apply re-referencing.

        Returns
        -------
        recording : Recording
            Re-referenced data
        step_metadata : dict
            Reference metadata
        """
        raw = recording.to_raw()

        if self.type == 'bipolar':
            mne.set_eeg_reference(
                raw,
                ref_channels=self.channels,
                copy=False,
                projection=False,
                verbose=False,
            )
            ref_info = {'type': 'bipolar', 'channels': self.channels}
        else:
            mne.set_eeg_reference(
                raw,
                ref_channels='average',
                copy=False,
                projection=False,
                verbose=False,
            )
            ref_info = {'type': 'average'}

        referenced = recording.replace(data=raw.get_data() / UV_TO_V)

        if self.type == 'bipolar' and self.drop_reference:
            keep = [ch for ch in referenced.ch_names if ch not in self.channels]
            referenced = referenced.pick(keep)
            ref_info['dropped'] = self.channels

        step_metadata = {
            'applied': True,
            **ref_info,
            'n_channels': referenced.n_channels,
        }

        return referenced, step_metadata

    def validate_inputs(self, recording: Recording) -> bool:
        """Check that the reference channels exist."""
        if self.type == 'bipolar':
            missing = [ch for ch in self.channels if ch not in recording.ch_names]
            if missing:
                raise FormatError(f"Reference channels not in recording: {missing}")
        return True

    def get_config(self) -> Dict[str, Any]:
        """Get configuration."""
        config = super().get_config()
        config.update({
            'type': self.type,
            'channels': self.channels,
            'drop_reference': self.drop_reference,
        })
        return config
