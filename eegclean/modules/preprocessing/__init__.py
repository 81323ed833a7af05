"""
Preprocessing module: conditioning, channel repair and ICA artifact rejection.
"""

from .bad_channels import KurtosisDetector, interpolate_channels
from .classification import (
    CATEGORIES,
    ComponentCategory,
    ComponentClassification,
    ComponentClassifier,
    ICLabelClassifier,
    decide_rejections,
)
from .decomposition import Decomposition, estimate_rank, fit_decomposition, reconstruct
from .pipeline_builder import PreprocessingPipeline
from .steps import STEP_REGISTRY, ProcessingStep

__all__ = [
    "KurtosisDetector",
    "interpolate_channels",
    "CATEGORIES",
    "ComponentCategory",
    "ComponentClassification",
    "ComponentClassifier",
    "ICLabelClassifier",
    "decide_rejections",
    "Decomposition",
    "estimate_rank",
    "fit_decomposition",
    "reconstruct",
    "PreprocessingPipeline",
    "ProcessingStep",
    "STEP_REGISTRY",
]
