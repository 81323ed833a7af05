"""End-to-end tests for session processing, resume and batch isolation."""

import shutil

import mne
import numpy as np
import pandas as pd
import pytest

from eegclean.core.config import PipelineConfig
from eegclean.core.exceptions import DataQualityError
from eegclean.core.layout import ChannelLayout
from eegclean.core.review import StaticReview
from eegclean.pipeline.checkpoint import (
    STAGE_POST_REJECTION,
    STAGE_PRE_REJECTION,
    STAGE_SEGMENTS,
    STAGE_SPECTRAL,
)
from eegclean.pipeline.session import (
    SessionContext,
    SessionProcessor,
    input_checksum,
    process_batch,
    session_id_from_path,
)

SESSION = "sub-01"
SMALL_CHANNELS = ("Fp1", "F3", "T7", "C3", "Cz", "T8", "P3", "Oz")


def _config(**updates):
    config = PipelineConfig(ingest={'native_sfreq': 500.0}, ica={'max_iter': 200})
    for section, values in updates.items():
        setattr(config, section, getattr(config, section).model_copy(update=values))
    return config


def _review():
    return StaticReview(
        bad_segments={SESSION: [(1000, 1500)]},
        bad_channels={SESSION: [3]},
    )


def _process(output_dir, recording, layout, classifier, config=None, resume=False):
    context = SessionContext.create(
        SESSION,
        output_dir,
        config=config or _config(),
        layout=layout,
        reviewer=_review(),
        classifier=classifier,
    )
    return context, SessionProcessor(context, resume=resume).process(recording)


@pytest.fixture(scope="module")
def raw_recording(layout, make_rec):
    """40 s of 32-channel data at 500 Hz."""
    return make_rec(layout.ch_names, sfreq=500.0, n_seconds=40.0)


@pytest.fixture(scope="module")
def completed(tmp_path_factory, raw_recording, layout, make_classifier):
    """One full run shared by the tests below."""
    output_dir = tmp_path_factory.mktemp("derivatives")
    classifier = make_classifier(reject=(0,))
    context, result = _process(output_dir, raw_recording, layout, classifier)
    return output_dir, context, result, classifier


class TestSessionProcessor:
    """Test a full session run."""

    def test_result(self, completed):
        """Test that every stage completes in order."""
        _, _, result, classifier = completed

        assert result.success
        assert result.resumed_from is None
        assert result.completed_stages == [
            STAGE_SEGMENTS, STAGE_PRE_REJECTION, STAGE_POST_REJECTION, STAGE_SPECTRAL,
        ]
        assert classifier.calls == 1

    def test_summary(self, completed, layout):
        """Test rank accounting and rejection in the summary."""
        _, _, result, _ = completed
        summary = result.summary

        assert summary['n_samples'] == 10000
        assert layout.ch_names[3] in summary['bad_channels']
        # Bipolar reference and each interpolated channel remove one dimension
        assert summary['rank'] == 31 - len(summary['bad_channels'])
        assert summary['rejected_components'] == [0]
        assert summary['seed'] == 42
        assert summary['n_bins'] == 251

    def test_artifacts(self, completed):
        """Test that every artifact is written."""
        _, context, _, _ = completed
        store = context.store

        for path in (
            store.bad_segments_path,
            store.channel_quality_path,
            store.pre_rejection_raw_path,
            store.ica_path,
            store.decomposition_path,
            store.cleaned_raw_path,
            store.spectrum_path,
            store.path("power.csv"),
            store.path("relative_power.csv"),
        ):
            assert path.exists(), path.name

    def test_persisted_review_decisions(self, completed, layout):
        """Test that segments and manual channels are kept for audit."""
        _, context, _, _ = completed

        segments = context.store.load_bad_segments()
        report = context.store.load_channel_quality()

        assert [(s.start_sample, s.end_sample) for s in segments] == [(1000, 1500)]
        assert report.manual == [layout.ch_names[3]]

    def test_cleaned_recording(self, completed, layout):
        """Test the cleaned signal: same channels, segments kept, average referenced."""
        _, context, _, _ = completed

        cleaned = context.store.load_cleaned()

        assert cleaned.ch_names == layout.ch_names
        assert cleaned.sfreq == 250.0
        assert cleaned.n_samples == 10000
        assert len(cleaned.bad_segments) == 1
        np.testing.assert_allclose(cleaned.data.mean(axis=0), 0.0, atol=1e-6)

    def test_rejection_matches_decomposition(self, completed):
        """Test that the cleaned signal is the decomposition with component 0 removed."""
        _, context, _, _ = completed

        _, decomposition, classification = context.store.load_pre_rejection()
        cleaned = context.store.load_cleaned()

        activations = decomposition.activations.copy()
        activations[classification.rejected] = 0.0
        np.testing.assert_allclose(
            cleaned.data, decomposition.mixing @ activations, rtol=1e-10, atol=1e-10
        )

    def test_spectrum(self, completed):
        """Test relative power normalization over 0-30 Hz."""
        _, context, _, _ = completed

        spectrum = context.store.load_spectrum()

        assert spectrum.band_slice == slice(0, 61)
        np.testing.assert_allclose(spectrum.relative_power[:, :61].sum(axis=1), 1.0, atol=1e-6)


class TestResume:
    """Test restarting from checkpoints."""

    def test_resume_from_cleaned(self, completed, raw_recording, layout, make_classifier):
        """Test that only the spectral stage reruns."""
        output_dir, _, first, _ = completed
        classifier = make_classifier()

        _, result = _process(output_dir, raw_recording, layout, classifier, resume=True)

        assert result.resumed_from == STAGE_POST_REJECTION
        assert result.completed_stages == [STAGE_SPECTRAL]
        assert classifier.calls == 0
        assert result.summary == first.summary

    def test_resume_from_pre_rejection(
        self, completed, raw_recording, layout, make_classifier, tmp_path
    ):
        """Test that rejection reruns from the saved decomposition."""
        output_dir, context, _, _ = completed
        copy_dir = tmp_path / "derivatives"
        shutil.copytree(output_dir, copy_dir)
        expected = context.store.load_cleaned()
        (copy_dir / SESSION / context.store.cleaned_raw_path.name).unlink()
        classifier = make_classifier()

        resumed_context, result = _process(copy_dir, raw_recording, layout, classifier, resume=True)

        assert result.resumed_from == STAGE_PRE_REJECTION
        assert result.completed_stages == [STAGE_POST_REJECTION, STAGE_SPECTRAL]
        assert classifier.calls == 0
        np.testing.assert_allclose(
            resumed_context.store.load_cleaned().data, expected.data, rtol=1e-10, atol=1e-10
        )

    def test_changed_config_not_resumed(self, completed, raw_recording, layout, tmp_path):
        """Test that checkpoints from another configuration are ignored."""
        output_dir, _, _, _ = completed
        copy_dir = tmp_path / "derivatives"
        shutil.copytree(output_dir, copy_dir)
        config = _config(spectral={'window_seconds': 4.0})
        context = SessionContext.create(SESSION, copy_dir, config=config, layout=layout)
        run_key = context.run_hash(input_checksum(raw_recording))

        assert SessionProcessor(context, resume=True)._resume_stage(run_key) is None
        assert context.checkpoints.load(SESSION) is None

    def test_changed_input_not_resumed(
        self, completed, raw_recording, layout, make_rec, make_classifier, tmp_path
    ):
        """Test that a different recording under the same session id is processed afresh."""
        output_dir, context, _, _ = completed
        copy_dir = tmp_path / "derivatives"
        shutil.copytree(output_dir, copy_dir)
        previous = context.store.load_cleaned()
        other = make_rec(layout.ch_names, sfreq=500.0, n_seconds=40.0, seed=7)
        classifier = make_classifier(reject=(0,))

        resumed_context, result = _process(copy_dir, other, layout, classifier, resume=True)

        assert result.resumed_from is None
        assert classifier.calls == 1
        assert STAGE_PRE_REJECTION in result.completed_stages
        assert not np.allclose(resumed_context.store.load_cleaned().data, previous.data)

    def test_input_checksum(self, raw_recording, tmp_path):
        """Test that checksums follow recording and file contents."""
        changed = raw_recording.replace(data=raw_recording.data + 1e-3)
        path = tmp_path / "sub-01.txt"
        path.write_text("time\tFz\n0\t1\n")
        first = input_checksum(path)
        path.write_text("time\tFz\n0\t2\n")

        assert input_checksum(raw_recording) == input_checksum(raw_recording.replace())
        assert input_checksum(raw_recording) != input_checksum(changed)
        assert input_checksum(path) != first


class TestFailures:
    """Test that failures stop the session before later artifacts."""

    def test_all_channels_flagged(self, tmp_path, make_rec, layout, make_classifier):
        """Test that flagging every channel aborts before ICA."""
        recording = make_rec(layout.ch_names, sfreq=500.0, n_seconds=20.0)
        config = _config(channels={'kurtosis_threshold': -100.0})
        classifier = make_classifier()

        with pytest.raises(DataQualityError):
            _process(tmp_path, recording, layout, classifier, config=config)

        session_dir = tmp_path / SESSION
        assert (session_dir / f"{SESSION}_bad_segments.json").exists()
        assert not (session_dir / f"{SESSION}_channel_quality.json").exists()
        assert not (session_dir / f"{SESSION}_before_ica_rej_raw.fif").exists()
        assert not (session_dir / f"{SESSION}_after_ica_rej_raw.fif").exists()
        assert not (session_dir / f"{SESSION}_spectrum.npz").exists()
        assert classifier.calls == 0


class TestBatch:
    """Test batch processing with per-session isolation."""

    @pytest.fixture
    def small_layout(self):
        montage = mne.channels.make_standard_montage("biosemi32")
        return ChannelLayout.from_montage(montage, reference=("T7", "T8"), ch_names=SMALL_CHANNELS)

    def _write_table(self, path, recording):
        table = pd.DataFrame(recording.data.T, columns=list(recording.ch_names))
        table.insert(0, "time", np.arange(recording.n_samples) / recording.sfreq)
        table.to_csv(path, sep="\t", index=False)

    def test_failed_session_does_not_stop_batch(
        self, tmp_path, small_layout, make_rec, make_classifier
    ):
        """Test that bad and missing inputs are reported and the good one succeeds."""
        good = tmp_path / "sub-02.txt"
        self._write_table(good, make_rec(SMALL_CHANNELS, sfreq=500.0, n_seconds=30.0))
        bad = tmp_path / "sub-01.txt"
        self._write_table(bad, make_rec(SMALL_CHANNELS[:5], sfreq=500.0, n_seconds=5.0))
        missing = tmp_path / "sub-03.txt"
        seen = []

        results = process_batch(
            [bad, good, missing],
            tmp_path / "derivatives",
            config=_config(),
            layout=small_layout,
            classifier=make_classifier(),
            on_result=seen.append,
        )

        assert [r.session_id for r in results] == ["sub-01", "sub-02", "sub-03"]
        assert [r.success for r in results] == [False, True, False]
        assert results[0].error_type == "FormatError"
        assert results[2].error_type == "FileNotFoundError"
        assert results[1].summary['rank'] == 7
        assert seen == results
        assert (tmp_path / "derivatives" / "sub-02" / "sub-02_spectrum.npz").exists()


def test_session_id_from_path():
    assert session_id_from_path("/data/sub-01.txt") == "sub-01"
    assert session_id_from_path("sub-01_raw.fif") == "sub-01_raw"
    assert session_id_from_path("sub-01") == "sub-01"
