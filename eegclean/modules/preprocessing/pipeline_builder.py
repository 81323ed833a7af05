"""
Preprocessing pipeline builder.

Builds the ordered conditioning pipeline from configuration and runs it
step by step over immutable Recording snapshots.

Author: eegclean developers
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from eegclean.core.config import PipelineConfig
from eegclean.core.exceptions import PipelineError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from eegclean.core.review import ReviewProvider
from eegclean.core.segments import SegmentRegistry
from eegclean.pipeline.base import ModuleResult
from .classification import ComponentClassifier
from .steps import (
    STEP_REGISTRY,
    BadChannelDetectionStep,
    BadSegmentStep,
    ComponentRejectionStep,
    FilterStep,
    ICAStep,
    ICLabelStep,
    ManualBadChannelStep,
    ProcessingStep,
    ReferenceStep,
    ResampleStep,
)

logger = logging.getLogger(__name__)

StepCallback = Callable[[ProcessingStep, Recording, Dict[str, Any]], None]


class PreprocessingPipeline:
    """
    Ordered preprocessing pipeline.

    Steps run strictly in sequence; each receives the previous step's
    Recording and the accumulated metadata. A PipelineError in any step
    aborts the run, since later steps depend on the failed one.

    Parameters
    ----------
    steps : list of ProcessingStep or dict
        Step instances, or configurations with 'name' and optional 'params'
        (looked up in STEP_REGISTRY)
    on_step : callable, optional
        Called as ``on_step(step, recording, metadata)`` after each step
        completes. Used to persist checkpoints at stage boundaries.

    Examples
    --------
    Build the default pipeline for a session:
    >>> pipeline = PreprocessingPipeline.from_config(
    ...     PipelineConfig(), ChannelLayout.biosemi32(), session_id='sub-01'
    ... )
    >>> result = pipeline.process(recording)
    >>> cleaned = result.outputs['data']

    Explicit step configurations:
    >>> pipeline = PreprocessingPipeline([
    ...     {'name': 'resample', 'params': {'sfreq': 250}},
    ...     {'name': 'filter', 'params': {'l_freq': 0.2, 'h_freq': 30.0}},
    ... ])
    """

    def __init__(
        self,
        steps: List[Union[ProcessingStep, Dict[str, Any]]],
        on_step: Optional[StepCallback] = None,
    ):
        """Initialize pipeline."""
        self.steps = self._build_steps(steps)
        self.on_step = on_step

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        layout: ChannelLayout,
        session_id: str,
        reviewer: Optional[ReviewProvider] = None,
        classifier: Optional[ComponentClassifier] = None,
        registry: Optional[SegmentRegistry] = None,
        on_step: Optional[StepCallback] = None,
    ) -> "PreprocessingPipeline":
        """
        Build the standard conditioning and artifact rejection pipeline.

        resample -> bipolar reference -> bandpass -> bad segments ->
        bad channels -> manual bad channels -> average reference ->
        ICA -> ICLabel -> component rejection
        """
        ref_channels = config.reference.channels or layout.reference
        mode = config.channels.interpolation_mode

        steps = [
            ResampleStep(sfreq=config.resample.sfreq),
            ReferenceStep(
                type='bipolar',
                channels=list(ref_channels),
                drop_reference=config.reference.drop_reference,
            ),
            FilterStep(
                l_freq=config.filter.l_freq,
                h_freq=config.filter.h_freq,
                phase=config.filter.phase,
                fir_window=config.filter.fir_window,
                fir_design=config.filter.fir_design,
                filter_length=config.filter.filter_length,
            ),
            BadSegmentStep(session_id=session_id, reviewer=reviewer, registry=registry),
            BadChannelDetectionStep(
                layout=layout,
                threshold=config.channels.kurtosis_threshold,
                mode=mode,
            ),
            ManualBadChannelStep(
                session_id=session_id,
                layout=layout,
                reviewer=reviewer,
                mode=mode,
            ),
            ReferenceStep(type='average'),
            ICAStep(
                layout=layout,
                random_state=config.ica.seed,
                max_iter=config.ica.max_iter,
                rank_tol=config.ica.rank_tol,
            ),
            ICLabelStep(
                layout=layout,
                threshold=config.ica.reject_threshold,
                classifier=classifier,
            ),
            ComponentRejectionStep(),
        ]
        return cls(steps, on_step=on_step)

    def _build_steps(self, step_configs: List[Union[ProcessingStep, Dict]]) -> List[ProcessingStep]:
        """
        Build step instances from configurations.

        Raises
        ------
        ValueError
            If a step name is not recognized or its parameters are invalid
        """
        steps = []

        for i, step_config in enumerate(step_configs):
            if isinstance(step_config, ProcessingStep):
                steps.append(step_config)
                continue

            step_name = step_config.get('name')
            if not step_name:
                raise ValueError(f"Step {i} missing 'name' field")

            if step_name not in STEP_REGISTRY:
                available = ', '.join(STEP_REGISTRY.keys())
                raise ValueError(
                    f"Unknown step '{step_name}'. "
                    f"Available steps: {available}"
                )

            step_class = STEP_REGISTRY[step_name]
            params = step_config.get('params', {})

            try:
                steps.append(step_class(**params))
            except TypeError as e:
                raise ValueError(
                    f"Invalid parameters for step '{step_name}': {e}"
                ) from e

        return steps

    def process(
        self,
        recording: Recording,
        metadata: Optional[Dict[str, Any]] = None,
        start_from: Optional[str] = None,
    ) -> ModuleResult:
        """
        Execute the pipeline.

        Parameters
        ----------
        recording : Recording
            Input snapshot
        metadata : dict, optional
            Metadata of steps already done (when resuming)
        start_from : str, optional
            Name of the first step to run; earlier steps are skipped

        Returns
        -------
        result : ModuleResult
            outputs['data'] is the final Recording; 'report',
            'decomposition' and 'classification' are set when the
            corresponding steps ran

        Raises
        ------
        PipelineError
            If any step fails; the session cannot continue
        """
        start_time = time.time()

        metadata = dict(metadata or {})
        warnings = []
        current = recording

        steps = self.steps
        if start_from is not None:
            names = [step.name for step in self.steps]
            if start_from not in names:
                raise ValueError(f"Unknown start step '{start_from}'. Steps: {names}")
            steps = self.steps[names.index(start_from):]

        for i, step in enumerate(steps):
            step_name = step.name
            if self._count_step_occurrences(step.name) > 1:
                step_name = f"{step.name}_{i}"

            if step.skip_step(current, metadata):
                metadata[step_name] = {
                    'skipped': True,
                    'reason': 'disabled or conditional skip'
                }
                continue

            try:
                step.validate_inputs(current)
                logger.info("Running: %s", step_name)
                current, step_meta = step.process(current, metadata)
            except PipelineError as e:
                logger.error("%s failed: %s: %s", step_name, type(e).__name__, e)
                raise

            if step_meta.get('skipped'):
                warnings.append(f"{step_name}: skipped ({step_meta.get('reason')})")

            metadata[step_name] = step_meta

            if self.on_step is not None:
                self.on_step(step, current, metadata)

        outputs = {'data': current}
        for step_name, key in (
            ('manual_bad_channels', 'report'),
            ('bad_channels', 'report'),
            ('ica', 'decomposition'),
            ('iclabel', 'classification'),
        ):
            value = metadata.get(step_name, {}).get(key)
            if value is not None and key not in outputs:
                outputs[key] = value

        return ModuleResult(
            success=True,
            module_name="preprocessing_pipeline",
            execution_time_seconds=time.time() - start_time,
            outputs=outputs,
            warnings=warnings,
            metadata=metadata,
        )

    def _count_step_occurrences(self, step_name: str) -> int:
        """Count how many times a step appears in the pipeline."""
        return sum(1 for step in self.steps if step.name == step_name)

    def get_config(self) -> Dict[str, Any]:
        """
        Get pipeline configuration.

        Returns
        -------
        config : dict
            Configuration of each step, in order
        """
        return {
            'steps': [
                {
                    'name': step.name,
                    'params': step.get_config()
                }
                for step in self.steps
            ]
        }

    def __repr__(self) -> str:
        step_names = [step.name for step in self.steps]
        return f"PreprocessingPipeline({' → '.join(step_names)})"
