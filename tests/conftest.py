"""Shared fixtures: layout, synthetic recordings, stub collaborators."""

import numpy as np
import pytest
from scipy import linalg

from eegclean.core.config import PipelineConfig
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording

BRAIN_ROW = [0.94, 0.01, 0.01, 0.01, 0.01, 0.01, 0.01]
MUSCLE_ROW = [0.05, 0.85, 0.02, 0.02, 0.02, 0.02, 0.02]


def make_recording(
    ch_names,
    sfreq=250.0,
    n_seconds=20.0,
    seed=0,
    scale=10.0,
    bad_segments=(),
):
    """
    Mixture of Laplacian sources plus Gaussian noise, in microvolts.

    The mixing matrix is circulant, so every channel has the same expected
    kurtosis and none stands out to the bad channel detector.
    """
    rng = np.random.default_rng(seed)
    n_channels = len(ch_names)
    n_samples = int(round(n_seconds * sfreq))

    sources = rng.laplace(size=(n_channels, n_samples))
    mixing = linalg.circulant(rng.normal(size=n_channels))
    data = scale * (mixing @ sources) / np.sqrt(n_channels)
    data += rng.normal(scale=0.1 * scale, size=data.shape)

    return Recording(
        ch_names=tuple(ch_names),
        sfreq=sfreq,
        data=data,
        bad_segments=tuple(bad_segments),
    )


class StubClassifier:
    """Labels every component brain except ``reject`` (labelled muscle)."""

    def __init__(self, reject=(0,)):
        self.reject = set(reject)
        self.calls = 0

    def classify(self, recording, decomposition, layout=None):
        self.calls += 1
        rows = [
            MUSCLE_ROW if i in self.reject else BRAIN_ROW
            for i in range(decomposition.rank)
        ]
        return np.array(rows)


@pytest.fixture(scope="session")
def layout():
    return ChannelLayout.biosemi32()


@pytest.fixture
def recording(layout):
    return make_recording(layout.ch_names, sfreq=250.0, n_seconds=20.0)


@pytest.fixture(scope="session")
def make_rec():
    """Factory for synthetic recordings."""
    return make_recording


@pytest.fixture
def stub_classifier():
    return StubClassifier(reject=(0,))


@pytest.fixture(scope="session")
def make_classifier():
    return StubClassifier


@pytest.fixture
def fast_config():
    """Small, quick configuration for end-to-end runs."""
    config = PipelineConfig()
    config.ingest.native_sfreq = 500.0
    config.ica.max_iter = 200
    return config
