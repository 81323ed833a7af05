"""Tests for pipeline configuration and validation."""

import pytest
from pydantic import ValidationError

from eegclean.core.config import PipelineConfig
from eegclean.core.validation import validate_config


class TestPipelineConfig:
    """Test PipelineConfig defaults and YAML persistence."""

    def test_defaults(self):
        config = PipelineConfig()

        assert config.ingest.native_sfreq == 2048.0
        assert config.resample.sfreq == 250.0
        assert config.filter.l_freq == 0.2
        assert config.filter.h_freq == 30.0
        assert config.filter.phase == "zero"
        assert config.channels.kurtosis_threshold == 5.0
        assert config.ica.reject_threshold == 0.70
        assert config.spectral.window_seconds == 2.0
        assert config.spectral.band == (0.0, 30.0)

    def test_yaml_round_trip(self, tmp_path):
        config = PipelineConfig()
        config.ica.seed = 123
        config.reference.channels = ("Cz", "Pz")
        path = tmp_path / "config.yaml"

        config.to_yaml(path)
        loaded = PipelineConfig.from_yaml(path)

        assert loaded == config
        assert loaded.reference.channels == ("Cz", "Pz")

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("filter:\n  h_freq: 40.0\nica:\n  seed: 7\n")

        config = PipelineConfig.from_yaml(path)

        assert config.filter.h_freq == 40.0
        assert config.filter.l_freq == 0.2
        assert config.ica.seed == 7

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert PipelineConfig.from_yaml(path) == PipelineConfig()

    def test_causal_phase_rejected(self):
        with pytest.raises(ValidationError):
            PipelineConfig(filter={'phase': 'minimum'})


class TestValidateConfig:
    """Test validate_config function."""

    def test_defaults_valid(self):
        result = validate_config(PipelineConfig())

        assert result.is_valid
        assert result.warnings == []

    def test_inverted_filter_band(self):
        result = validate_config(PipelineConfig(filter={'l_freq': 40.0, 'h_freq': 30.0}))

        assert not result.is_valid
        assert any("filter.l_freq" in e for e in result.errors)

    def test_filter_above_nyquist(self):
        config = PipelineConfig(resample={'sfreq': 50.0}, spectral={'band': (0.0, 20.0)})
        result = validate_config(config)

        assert any("Nyquist" in e for e in result.errors)

    def test_spectral_band_warning(self):
        result = validate_config(PipelineConfig(spectral={'band': (0.0, 40.0)}))

        assert result.is_valid
        assert any("differs from the filter" in w for w in result.warnings)

    def test_reject_threshold_range(self):
        result = validate_config(PipelineConfig(ica={'reject_threshold': 1.5}))

        assert not result.is_valid

    def test_overlap_range(self):
        result = validate_config(PipelineConfig(spectral={'overlap': 1.0}))

        assert not result.is_valid

    def test_upsampling_warning(self):
        result = validate_config(PipelineConfig(ingest={'native_sfreq': 200.0}))

        assert any("upsampled" in w for w in result.warnings)
