"""
Independent component classification and the rejection decision rule.

Author: eegclean developers
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, runtime_checkable

import numpy as np

from eegclean.core.exceptions import NumericalError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from .decomposition import Decomposition

logger = logging.getLogger(__name__)

PROBABILITY_TOLERANCE = 1e-3
DEFAULT_REJECT_THRESHOLD = 0.70


class ComponentCategory(str, Enum):
    """ICLabel categories, in classifier output order."""

    BRAIN = "brain"
    MUSCLE = "muscle"
    EYE = "eye"
    HEART = "heart"
    LINE_NOISE = "line_noise"
    CHANNEL_NOISE = "channel_noise"
    OTHER = "other"


CATEGORIES = tuple(ComponentCategory)


def decide_rejections(
    probabilities: np.ndarray,
    threshold: float = DEFAULT_REJECT_THRESHOLD,
) -> np.ndarray:
    """
    Reject a component iff its most probable category is not brain and
    that probability is at least ``threshold``.

    ``np.argmax`` returns the first maximum, so a tie with brain keeps the
    component.
    """
    probabilities = np.asarray(probabilities)
    top = probabilities.argmax(axis=1)
    p_max = probabilities.max(axis=1)
    brain = CATEGORIES.index(ComponentCategory.BRAIN)
    return (top != brain) & (p_max >= threshold)


@dataclass(frozen=True)
class ComponentClassification:
    """
    Per-component category probabilities and the resulting rejections.

    Attributes
    ----------
    probabilities : np.ndarray, shape (n_components, 7)
        Rows follow ``CATEGORIES`` and sum to 1
    threshold : float
        Probability threshold of the decision rule
    rejected : np.ndarray of bool, shape (n_components,)
        Derived from ``probabilities`` and ``threshold``
    """

    probabilities: np.ndarray = field(repr=False)
    threshold: float = DEFAULT_REJECT_THRESHOLD
    rejected: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        probs = np.array(self.probabilities, dtype=np.float64)
        if probs.ndim != 2 or probs.shape[1] != len(CATEGORIES):
            raise NumericalError(
                f"Expected (n_components, {len(CATEGORIES)}) probabilities, got {probs.shape}"
            )
        if not np.all(np.isfinite(probs)):
            raise NumericalError("Component probabilities contain non-finite values")
        sums = probs.sum(axis=1)
        if np.any(np.abs(sums - 1.0) > PROBABILITY_TOLERANCE):
            raise NumericalError(
                f"Component probabilities do not sum to 1 (range {sums.min():.4f}-{sums.max():.4f})"
            )
        probs.setflags(write=False)

        rejected = decide_rejections(probs, self.threshold)
        rejected.setflags(write=False)

        object.__setattr__(self, "probabilities", probs)
        object.__setattr__(self, "rejected", rejected)

    @property
    def n_components(self) -> int:
        return self.probabilities.shape[0]

    @property
    def labels(self) -> List[ComponentCategory]:
        return [CATEGORIES[i] for i in self.probabilities.argmax(axis=1)]

    @property
    def rejected_indices(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.rejected)]

    def label_counts(self) -> dict:
        labels = self.labels
        return {cat.value: labels.count(cat) for cat in CATEGORIES}

    def summary(self) -> dict:
        labels = self.labels
        return {
            'n_components': self.n_components,
            'threshold': self.threshold,
            'label_counts': self.label_counts(),
            'rejected_indices': self.rejected_indices,
            'rejected_labels': sorted({labels[i].value for i in self.rejected_indices}),
        }

    def __repr__(self) -> str:
        return (
            f"ComponentClassification({self.n_components} components, "
            f"{len(self.rejected_indices)} rejected @ {self.threshold:g})"
        )


@runtime_checkable
class ComponentClassifier(Protocol):
    """Anything that maps a decomposition to category probabilities."""

    def classify(
        self,
        recording: Recording,
        decomposition: Decomposition,
        layout: Optional[ChannelLayout] = None,
    ) -> np.ndarray:
        ...


class ICLabelClassifier:
    """
    Pretrained ICLabel network via mne-icalabel.

    Returns an (n_components, 7) probability matrix in ``CATEGORIES``
    order. ICLabel expects average-referenced data with sensor positions.
    """

    def classify(
        self,
        recording: Recording,
        decomposition: Decomposition,
        layout: Optional[ChannelLayout] = None,
    ) -> np.ndarray:
        from mne_icalabel.iclabel import iclabel_label_components

        if decomposition.ica is None:
            raise NumericalError("ICLabel needs the fitted ICA object")

        raw = recording.to_raw(layout)
        raw.set_eeg_reference('average', projection=False, verbose=False)

        try:
            probabilities = iclabel_label_components(raw, decomposition.ica, inplace=False)
        except (ValueError, RuntimeError) as e:
            raise NumericalError(f"ICLabel classification failed: {e}") from e

        probabilities = np.asarray(probabilities, dtype=np.float64)
        if probabilities.shape[0] != decomposition.rank:
            raise NumericalError(
                f"ICLabel returned {probabilities.shape[0]} rows for {decomposition.rank} components"
            )
        return probabilities


def classify_components(
    recording: Recording,
    decomposition: Decomposition,
    classifier: Optional[ComponentClassifier] = None,
    layout: Optional[ChannelLayout] = None,
    threshold: float = DEFAULT_REJECT_THRESHOLD,
) -> ComponentClassification:
    """Classify all components and apply the decision rule."""
    classifier = classifier or ICLabelClassifier()
    probabilities = classifier.classify(recording, decomposition, layout)
    classification = ComponentClassification(probabilities=probabilities, threshold=threshold)

    if classification.n_components != decomposition.rank:
        raise NumericalError(
            f"Classifier returned {classification.n_components} components, "
            f"decomposition has {decomposition.rank}"
        )

    logger.info(
        "Component labels %s; rejecting %s",
        classification.label_counts(), classification.rejected_indices,
    )
    return classification
