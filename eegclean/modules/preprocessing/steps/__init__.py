"""
Preprocessing steps.

Each step is an independent, configurable transform from one Recording
snapshot to the next.

Author: eegclean developers
"""

from .base import ProcessingStep
from .bad_channels import BadChannelDetectionStep, ManualBadChannelStep
from .filter import FilterStep
from .ica import ICAStep
from .iclabel import ComponentRejectionStep, ICLabelStep
from .reference import ReferenceStep
from .resample import ResampleStep
from .segments import BadSegmentStep

# Step registry - maps config names to step classes
STEP_REGISTRY = {
    'resample': ResampleStep,
    'reference': ReferenceStep,
    'filter': FilterStep,
    'bad_segments': BadSegmentStep,
    'bad_channels': BadChannelDetectionStep,
    'manual_bad_channels': ManualBadChannelStep,
    'ica': ICAStep,
    'iclabel': ICLabelStep,
    'component_rejection': ComponentRejectionStep,
}

__all__ = [
    'ProcessingStep',
    'ResampleStep',
    'ReferenceStep',
    'FilterStep',
    'BadSegmentStep',
    'BadChannelDetectionStep',
    'ManualBadChannelStep',
    'ICAStep',
    'ICLabelStep',
    'ComponentRejectionStep',
    'STEP_REGISTRY',
]
