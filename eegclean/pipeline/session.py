"""
Single-session processing and the batch driver.

Each session gets a fresh SessionContext: configuration, the shared
read-only layout, review and classification collaborators, and its own
store and segment registry. Nothing else is shared between sessions, so a
failure in one cannot affect another.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from eegclean import __version__
from eegclean.core.config import PipelineConfig
from eegclean.core.exceptions import PipelineError
from eegclean.core.layout import ChannelLayout
from eegclean.core.recording import Recording
from eegclean.core.review import NullReview, ReviewProvider
from eegclean.core.segments import SegmentRegistry
from eegclean.data.loaders import load_recording
from eegclean.modules.preprocessing.classification import ComponentClassifier
from eegclean.modules.preprocessing.pipeline_builder import PreprocessingPipeline
from eegclean.modules.preprocessing.steps import ProcessingStep
from eegclean.modules.spectral import SpectralEstimate, compute_spectrum
from eegclean.pipeline.base import SessionResult
from eegclean.pipeline.checkpoint import (
    STAGE_POST_REJECTION,
    STAGE_PRE_REJECTION,
    STAGE_SEGMENTS,
    STAGE_SPECTRAL,
    STAGES,
    CheckpointManager,
    file_checksum,
    generate_reproducibility_hash,
    recording_checksum,
)
from eegclean.pipeline.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything one session needs; built fresh per session."""

    session_id: str
    config: PipelineConfig
    layout: ChannelLayout
    store: SessionStore
    checkpoints: CheckpointManager
    reviewer: ReviewProvider = field(default_factory=NullReview)
    classifier: Optional[ComponentClassifier] = None
    registry: SegmentRegistry = field(default_factory=SegmentRegistry)

    @classmethod
    def create(
        cls,
        session_id: str,
        output_dir: Union[str, Path],
        config: Optional[PipelineConfig] = None,
        layout: Optional[ChannelLayout] = None,
        reviewer: Optional[ReviewProvider] = None,
        classifier: Optional[ComponentClassifier] = None,
    ) -> "SessionContext":
        config = config or PipelineConfig()
        return cls(
            session_id=session_id,
            config=config,
            layout=layout or ChannelLayout.biosemi32(),
            store=SessionStore(
                output_dir,
                session_id,
                overwrite=config.output.overwrite,
                save_csv=config.output.save_csv,
            ),
            checkpoints=CheckpointManager(output_dir),
            reviewer=reviewer or NullReview(),
            classifier=classifier,
        )

    def run_hash(self, data_checksum: Optional[str] = None) -> str:
        """Checkpoint key: configuration, package version and input contents."""
        return generate_reproducibility_hash(
            self.config.model_dump(mode="json"),
            __version__,
            data_checksums={'input': data_checksum} if data_checksum else None,
        )


class SessionProcessor:
    """
    Run one session end to end.

    ingest -> preprocessing pipeline (persisting the segment list, channel
    quality report, pre- and post-rejection checkpoints as they are
    reached) -> spectral estimation -> spectrum artifacts.

    Parameters
    ----------
    context : SessionContext
        Per-session state
    resume : bool
        Reuse checkpoints made from the same input with the same
        configuration: restart from the cleaned recording if present, else
        from the pre-rejection checkpoint. Checkpoints made from anything
        else are cleared.

    Examples
    --------
    >>> context = SessionContext.create('sub-01', 'derivatives/')
    >>> result = SessionProcessor(context).process('raw/sub-01.txt')
    """

    def __init__(self, context: SessionContext, resume: bool = False):
        self.context = context
        self.resume = resume
        self._output_files: List[Path] = []
        self._completed: List[str] = []
        self._summary: Dict[str, Any] = {}
        self._run_key: Optional[str] = None

    def process(self, source: Union[str, Path, Recording]) -> SessionResult:
        """
        Process the session.

        Parameters
        ----------
        source : path or Recording
            Input table / FIF file, or an already loaded recording

        Returns
        -------
        SessionResult
            Successful result; ``summary`` holds the key numbers

        Raises
        ------
        PipelineError
            If any stage fails. Artifacts of stages after the failure are
            not written.
        """
        start_time = time.time()
        ctx = self.context
        self._output_files, self._completed, self._summary = [], [], {}
        self._run_key = ctx.run_hash(input_checksum(source))

        resumed_from = self._resume_stage(self._run_key) if self.resume else None

        if resumed_from == STAGE_POST_REJECTION:
            logger.info("%s: resuming from cleaned recording", ctx.session_id)
            self._restore_summary(STAGE_POST_REJECTION)
            cleaned = ctx.store.load_cleaned()
        elif resumed_from == STAGE_PRE_REJECTION:
            logger.info("%s: resuming from pre-rejection checkpoint", ctx.session_id)
            self._restore_summary(STAGE_PRE_REJECTION)
            cleaned = self._run_rejection_only()
        else:
            recording = self._load(source)
            cleaned = self._run_pipeline(recording)

        spectrum = self.compute_spectrum(cleaned)

        return SessionResult(
            session_id=ctx.session_id,
            success=True,
            execution_time_seconds=time.time() - start_time,
            resumed_from=resumed_from,
            completed_stages=list(self._completed),
            output_files=list(self._output_files),
            summary={**self._summary, 'n_bins': len(spectrum.freqs)},
        )

    def compute_spectrum(self, cleaned: Recording) -> SpectralEstimate:
        """Spectral stage: estimate, save and checkpoint."""
        ctx = self.context
        spectral = ctx.config.spectral
        spectrum = compute_spectrum(
            cleaned,
            window_seconds=spectral.window_seconds,
            overlap=spectral.overlap,
            band=spectral.band,
        )
        files = ctx.store.save_spectrum(spectrum)
        self._checkpoint(STAGE_SPECTRAL, files, {'n_bins': len(spectrum.freqs)})
        return spectrum

    def _load(self, source: Union[str, Path, Recording]) -> Recording:
        if isinstance(source, Recording):
            return source
        return load_recording(source, self.context.layout, self.context.config.ingest)

    def _resume_stage(self, run_key: str) -> Optional[str]:
        ctx = self.context
        checkpoints = ctx.checkpoints

        manifest = checkpoints.load(ctx.session_id)
        if manifest is None:
            return None
        if manifest.get('config_hash') != run_key:
            logger.warning(
                "%s: checkpoints were made from another input or configuration; starting over",
                ctx.session_id,
            )
            checkpoints.clear(ctx.session_id)
            return None

        latest = checkpoints.latest_stage(ctx.session_id, run_key)
        if latest is None:
            return None
        reached = STAGES.index(latest)

        if reached >= STAGES.index(STAGE_POST_REJECTION) and ctx.store.has_cleaned():
            return STAGE_POST_REJECTION
        if reached >= STAGES.index(STAGE_PRE_REJECTION) and ctx.store.has_pre_rejection():
            return STAGE_PRE_REJECTION
        return None

    def _restore_summary(self, stage: str) -> None:
        record = self.context.checkpoints.load_stage_checkpoint(self.context.session_id, stage)
        if record is not None:
            self._summary.update(record['metadata'].get('summary', {}))

    def _build_pipeline(self) -> PreprocessingPipeline:
        ctx = self.context
        return PreprocessingPipeline.from_config(
            ctx.config,
            ctx.layout,
            session_id=ctx.session_id,
            reviewer=ctx.reviewer,
            classifier=ctx.classifier,
            registry=ctx.registry,
            on_step=self._persist_step,
        )

    def _run_pipeline(self, recording: Recording) -> Recording:
        logger.info("%s: %r", self.context.session_id, recording)
        self._summary.update({
            'n_channels': recording.n_channels,
            'n_samples_raw': recording.n_samples,
        })
        result = self._build_pipeline().process(recording)
        return result.outputs['data']

    def _run_rejection_only(self) -> Recording:
        recording, decomposition, classification = self.context.store.load_pre_rejection()
        metadata = {
            'ica': {'decomposition': decomposition},
            'iclabel': {'classification': classification},
        }
        self._summary.update({
            'rank': decomposition.rank,
            'rejected_components': classification.rejected_indices,
        })
        result = self._build_pipeline().process(
            recording, metadata=metadata, start_from='component_rejection'
        )
        return result.outputs['data']

    def _persist_step(self, step: ProcessingStep, recording: Recording, metadata: Dict[str, Any]) -> None:
        """Persist artifacts at stage boundaries as the pipeline reaches them."""
        ctx = self.context
        step_meta = metadata.get(step.name, {})

        if step.name == 'resample':
            self._summary['n_samples'] = recording.n_samples

        elif step.name == 'bad_segments':
            path = ctx.store.save_bad_segments(recording)
            self._checkpoint(STAGE_SEGMENTS, [path], step_meta)

        elif step.name in ('bad_channels', 'manual_bad_channels'):
            report = step_meta.get('report')
            if report is not None:
                path = ctx.store.save_channel_quality(report)
                if path not in self._output_files:
                    self._output_files.append(path)
                self._summary['bad_channels'] = report.flagged_names

        elif step.name == 'iclabel':
            decomposition = metadata['ica']['decomposition']
            classification = step_meta['classification']
            files = ctx.store.save_pre_rejection(
                recording, decomposition, classification, layout=ctx.layout
            )
            self._summary.update({
                'rank': decomposition.rank,
                'seed': decomposition.seed,
                'rejected_components': classification.rejected_indices,
            })
            self._checkpoint(STAGE_PRE_REJECTION, files, {**step_meta, 'summary': dict(self._summary)})

        elif step.name == 'component_rejection':
            path = ctx.store.save_cleaned(recording, layout=ctx.layout)
            self._checkpoint(STAGE_POST_REJECTION, [path], {**step_meta, 'summary': dict(self._summary)})

    def _checkpoint(self, stage: str, files: List[Path], metadata: Dict[str, Any]) -> None:
        ctx = self.context
        run_key = self._run_key
        if run_key is None:
            # Spectrum recomputed on its own: extend the run that made the cleaned recording
            manifest = ctx.checkpoints.load(ctx.session_id) or {}
            run_key = manifest.get('config_hash') or ctx.run_hash()
        ctx.checkpoints.save(
            ctx.session_id,
            stage,
            output_files=files,
            metadata=metadata,
            config_hash=run_key,
        )
        self._output_files.extend(files)
        self._completed.append(stage)


def input_checksum(source: Union[str, Path, Recording]) -> str:
    """Checksum identifying a session's input: file contents or recording samples."""
    if isinstance(source, Recording):
        return recording_checksum(source.ch_names, source.sfreq, source.data)
    return file_checksum(Path(source))


def session_id_from_path(path: Union[str, Path]) -> str:
    """Session identifier for an input file: its name without extensions."""
    name = Path(path).name
    return name.split('.')[0] if '.' in name else name


def process_batch(
    paths: Iterable[Union[str, Path]],
    output_dir: Union[str, Path],
    config: Optional[PipelineConfig] = None,
    layout: Optional[ChannelLayout] = None,
    reviewer: Optional[ReviewProvider] = None,
    classifier: Optional[ComponentClassifier] = None,
    resume: bool = False,
    on_result: Optional[Callable[[SessionResult], None]] = None,
) -> List[SessionResult]:
    """
    Process independent sessions one after another.

    A failing session is logged and recorded as a failed SessionResult;
    the batch continues with the next one.
    """
    config = config or PipelineConfig()
    layout = layout or ChannelLayout.biosemi32()
    results = []

    for path in paths:
        session_id = session_id_from_path(path)
        start_time = time.time()
        context = SessionContext.create(
            session_id,
            output_dir,
            config=config,
            layout=layout,
            reviewer=reviewer,
            classifier=classifier,
        )

        try:
            result = SessionProcessor(context, resume=resume).process(path)
        except PipelineError as e:
            logger.error("%s: session aborted: %s: %s", session_id, type(e).__name__, e)
            result = SessionResult(
                session_id=session_id,
                success=False,
                execution_time_seconds=time.time() - start_time,
                error=str(e),
                error_type=type(e).__name__,
            )
        except Exception as e:
            logger.exception("%s: unexpected failure", session_id)
            result = SessionResult(
                session_id=session_id,
                success=False,
                execution_time_seconds=time.time() - start_time,
                error=str(e),
                error_type=type(e).__name__,
            )

        results.append(result)
        if on_result is not None:
            on_result(result)

    n_ok = sum(r.success for r in results)
    logger.info("Batch finished: %d/%d sessions succeeded", n_ok, len(results))
    return results
