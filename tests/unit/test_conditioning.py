"""Tests for signal conditioning steps: resampling, referencing, filtering."""

import numpy as np
import pytest

from eegclean.core.exceptions import FormatError
from eegclean.core.models import BadSegment
from eegclean.core.recording import Recording
from eegclean.modules.preprocessing.steps import FilterStep, ReferenceStep, ResampleStep
from eegclean.modules.preprocessing.steps.resample import resample_data, resampled_length


class TestResampling:
    """Test resampled_length, resample_data and ResampleStep."""

    def test_output_length_rounds(self):
        assert resampled_length(122800, 2048.0, 250.0) == 14990
        assert resampled_length(2048, 2048.0, 250.0) == 250
        assert resampled_length(1000, 500.0, 250.0) == 500

    def test_reference_deployment_length(self):
        """A 60 s export at 2048 Hz yields 14990 samples at 250 Hz."""
        rng = np.random.default_rng(0)
        recording = Recording(
            ch_names=("A", "B"),
            sfreq=2048.0,
            data=rng.normal(size=(2, 122800)),
        )

        resampled, meta = ResampleStep(sfreq=250.0).process(recording, {})

        assert resampled.n_samples == 14990
        assert resampled.sfreq == 250.0
        assert abs(resampled.duration - recording.duration) <= 1 / 250.0
        assert meta['new_n_samples'] == 14990
        assert meta['original_sfreq'] == 2048.0

    def test_low_frequency_content_preserved(self):
        sfreq = 1000.0
        t = np.arange(10000) / sfreq
        data = np.sin(2 * np.pi * 5.0 * t)[np.newaxis, :]

        resampled = resample_data(data, sfreq, 250.0)
        expected = np.sin(2 * np.pi * 5.0 * np.arange(2500) / 250.0)

        # Ignore filter edge effects
        np.testing.assert_allclose(resampled[0, 100:-100], expected[100:-100], atol=1e-2)

    def test_same_rate_is_skipped(self, recording):
        resampled, meta = ResampleStep(sfreq=recording.sfreq).process(recording, {})

        assert resampled is recording
        assert meta['skipped'] is True

    def test_bad_segments_rescaled(self):
        recording = Recording(
            ch_names=("A",),
            sfreq=2048.0,
            data=np.zeros((1, 20480)),
            bad_segments=(BadSegment(start_sample=2048, end_sample=4096),),
        )

        resampled, _ = ResampleStep(sfreq=250.0).process(recording, {})

        assert resampled.bad_segments == (BadSegment(start_sample=250, end_sample=500),)

    def test_input_not_modified(self, recording):
        before = recording.data.copy()
        ResampleStep(sfreq=125.0).process(recording, {})
        np.testing.assert_array_equal(recording.data, before)


class TestReferenceStep:
    """Test bipolar and average re-referencing."""

    def test_bipolar_subtracts_pair_mean(self, recording):
        step = ReferenceStep(type='bipolar', channels=['T7', 'T8'])

        referenced, meta = step.process(recording, {})

        t7, t8 = recording.ch_names.index('T7'), recording.ch_names.index('T8')
        pair_mean = (recording.data[t7] + recording.data[t8]) / 2
        np.testing.assert_allclose(
            referenced.data, recording.data - pair_mean, atol=1e-8
        )
        np.testing.assert_allclose(referenced.data[t7], -referenced.data[t8], atol=1e-8)
        assert meta['type'] == 'bipolar'
        assert referenced.n_channels == 32

    def test_bipolar_drop_reference(self, recording):
        step = ReferenceStep(type='bipolar', channels=['T7', 'T8'], drop_reference=True)

        referenced, meta = step.process(recording, {})

        assert referenced.n_channels == 30
        assert 'T7' not in referenced.ch_names
        assert 'T8' not in referenced.ch_names
        assert meta['dropped'] == ['T7', 'T8']

    def test_missing_reference_channel(self, make_rec):
        recording = make_rec(("Fz", "Cz", "Pz"))
        step = ReferenceStep(type='bipolar', channels=['T7', 'T8'])

        with pytest.raises(FormatError, match="T7"):
            step.validate_inputs(recording)

    def test_bipolar_requires_channels(self):
        with pytest.raises(ValueError):
            ReferenceStep(type='bipolar')

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown reference type"):
            ReferenceStep(type='laplacian')

    def test_average_reference_zero_mean(self, recording):
        step = ReferenceStep(type='average')

        referenced, meta = step.process(recording, {})

        np.testing.assert_allclose(referenced.data.mean(axis=0), 0.0, atol=1e-9)
        assert step.name == 'average_reference'
        assert meta['type'] == 'average'

    def test_bad_segments_carried(self, make_rec):
        recording = make_rec(("T7", "T8", "Cz"), bad_segments=[(100, 200)])

        referenced, _ = ReferenceStep(type='average').process(recording, {})

        assert referenced.bad_segments == recording.bad_segments


class TestFilterStep:
    """Test zero-phase bandpass filtering."""

    @pytest.fixture
    def sines(self):
        sfreq = 250.0
        t = np.arange(int(60 * sfreq)) / sfreq
        data = np.vstack([
            np.sin(2 * np.pi * 10.0 * t),
            np.sin(2 * np.pi * 60.0 * t),
        ])
        return Recording(ch_names=("pass", "stop"), sfreq=sfreq, data=data)

    def test_passband_kept_stopband_removed(self, sines):
        filtered, meta = FilterStep(l_freq=0.2, h_freq=30.0).process(sines, {})

        middle = slice(5000, 10000)
        assert np.std(filtered.data[0, middle]) == pytest.approx(np.std(sines.data[0, middle]), rel=0.02)
        assert np.std(filtered.data[1, middle]) < 0.01
        assert meta['phase'] == 'zero'

    def test_zero_phase(self, sines):
        """A passband sine is not shifted in time."""
        filtered, _ = FilterStep(l_freq=0.2, h_freq=30.0).process(sines, {})

        middle = slice(5000, 10000)
        np.testing.assert_allclose(filtered.data[0, middle], sines.data[0, middle], atol=0.02)

    def test_causal_phase_rejected(self):
        with pytest.raises(ValueError, match="phase"):
            FilterStep(phase='minimum')

    def test_inverted_band(self, recording):
        step = FilterStep(l_freq=30.0, h_freq=1.0)
        with pytest.raises(ValueError, match="must be less than h_freq"):
            step.validate_inputs(recording)

    def test_band_above_nyquist(self, recording):
        step = FilterStep(l_freq=1.0, h_freq=200.0)
        with pytest.raises(ValueError, match="Nyquist"):
            step.validate_inputs(recording)

    def test_get_config(self):
        config = FilterStep(l_freq=0.5, h_freq=40.0).get_config()
        assert config['name'] == 'filter'
        assert config['l_freq'] == 0.5
        assert config['h_freq'] == 40.0
