"""Tests for pipeline module."""

import pytest

import numpy as np

from eegclean.core.config import PipelineConfig
from eegclean.core.exceptions import DataQualityError
from eegclean.modules.preprocessing.pipeline_builder import PreprocessingPipeline
from eegclean.modules.preprocessing.steps import FilterStep, ProcessingStep, ResampleStep
from eegclean.pipeline.base import ModuleResult, SessionResult


class TestResults:
    """Test result dataclasses."""

    def test_successful_result(self):
        """Test creating a successful module result."""
        result = ModuleResult(
            success=True,
            module_name="test_module",
            execution_time_seconds=1.5,
            outputs={"data": "test"},
        )
        assert result.success
        assert result.module_name == "test_module"
        assert result.outputs["data"] == "test"
        assert result.errors == []
        assert result.warnings == []

    def test_result_repr(self):
        """Test result string representation."""
        result = ModuleResult(success=True, module_name="repr_test", execution_time_seconds=1.23)
        assert "repr_test" in repr(result)
        assert "SUCCESS" in repr(result)

    def test_failed_session_result(self):
        """Test a failed session result."""
        result = SessionResult(
            session_id="sub-01",
            success=False,
            error="All 32 channels are flagged bad",
            error_type="DataQualityError",
        )
        assert "FAILED (DataQualityError)" in repr(result)
        assert result.output_files == []


class Double(ProcessingStep):
    """Test step that doubles the signal."""

    name = "double"

    def process(self, recording, metadata):
        return recording.replace(data=recording.data * 2), {'factor': 2}


class Explode(ProcessingStep):
    """Test step that always fails."""

    name = "explode"

    def process(self, recording, metadata):
        raise DataQualityError("boom")


class TestPreprocessingPipeline:
    """Test PreprocessingPipeline."""

    def test_standard_order(self, layout):
        """Test the conditioning order built from configuration."""
        pipeline = PreprocessingPipeline.from_config(PipelineConfig(), layout, session_id="sub-01")

        assert [step.name for step in pipeline.steps] == [
            "resample",
            "reference",
            "filter",
            "bad_segments",
            "bad_channels",
            "manual_bad_channels",
            "average_reference",
            "ica",
            "iclabel",
            "component_rejection",
        ]
        assert pipeline.steps[1].channels == ["T7", "T8"]
        assert pipeline.steps[7].random_state == 42

    def test_reference_override(self, layout):
        """Test that configured reference channels replace the layout pair."""
        config = PipelineConfig(reference={'channels': ('Cz', 'Pz')})

        pipeline = PreprocessingPipeline.from_config(config, layout, session_id="sub-01")

        assert pipeline.steps[1].channels == ["Cz", "Pz"]

    def test_steps_from_dicts(self):
        """Test building steps from configuration dicts."""
        pipeline = PreprocessingPipeline([
            {'name': 'resample', 'params': {'sfreq': 125}},
            {'name': 'filter', 'params': {'l_freq': 1.0, 'h_freq': 40.0}},
        ])

        assert isinstance(pipeline.steps[0], ResampleStep)
        assert isinstance(pipeline.steps[1], FilterStep)
        assert pipeline.get_config()['steps'][1]['params']['h_freq'] == 40.0

    def test_unknown_step(self):
        """Test that unknown step names are rejected."""
        with pytest.raises(ValueError, match="Unknown step"):
            PreprocessingPipeline([{'name': 'autoreject'}])

    def test_invalid_params(self):
        """Test that bad parameters are reported as ValueError."""
        with pytest.raises(ValueError, match="Invalid parameters"):
            PreprocessingPipeline([{'name': 'resample', 'params': {'rate': 250}}])

    def test_process_and_callback(self, recording):
        """Test that each step sees the previous output and the callback fires."""
        seen = []
        pipeline = PreprocessingPipeline(
            [Double(), ResampleStep(sfreq=125.0)],
            on_step=lambda step, rec, meta: seen.append((step.name, rec.sfreq)),
        )

        result = pipeline.process(recording)

        assert seen == [("double", 250.0), ("resample", 125.0)]
        assert result.outputs['data'].sfreq == 125.0
        assert result.metadata['double'] == {'factor': 2}

    def test_start_from(self, recording):
        """Test skipping steps when resuming."""
        pipeline = PreprocessingPipeline([Explode(), Double()])

        result = pipeline.process(recording, metadata={'explode': {}}, start_from='double')

        np.testing.assert_allclose(result.outputs['data'].data, recording.data * 2)
        assert 'explode' in result.metadata

    def test_start_from_unknown(self, recording):
        with pytest.raises(ValueError):
            PreprocessingPipeline([Double()]).process(recording, start_from='ica')

    def test_failure_propagates(self, recording):
        """Test that a failing step aborts the run."""
        seen = []
        pipeline = PreprocessingPipeline(
            [Double(), Explode(), Double()],
            on_step=lambda step, rec, meta: seen.append(step.name),
        )

        with pytest.raises(DataQualityError, match="boom"):
            pipeline.process(recording)

        assert seen == ["double"]

    def test_disabled_step_skipped(self, recording):
        """Test that disabled steps are recorded as skipped."""
        pipeline = PreprocessingPipeline([Double(enabled=False)])

        result = pipeline.process(recording)

        assert result.outputs['data'] is recording
        assert result.metadata['double']['skipped'] is True
