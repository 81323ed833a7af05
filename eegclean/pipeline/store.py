"""
Per-session artifact persistence.

Everything a session produces lives under ``<output_dir>/<session_id>/``::

    <sid>_bad_segments.json         registered bad segments
    <sid>_channel_quality.json      ChannelQualityReport
    <sid>_before_ica_rej_raw.fif    signal entering component rejection
    <sid>_before_ica_rej-ica.fif    fitted MNE ICA
    <sid>_decomposition.npz         mixing/unmixing/activations + classification
    <sid>_after_ica_rej_raw.fif     cleaned signal
    <sid>_spectrum.npz              freqs, power, relative_power, ch_names
    <sid>_power.csv                 channel x frequency tables (optional)
    <sid>_relative_power.csv

``load_cleaned()`` is the read interface for restarting spectral estimation.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import mne
import numpy as np

from eegclean.core.exceptions import MissingInputError
from eegclean.core.layout import ChannelLayout
from eegclean.core.models import BadSegment, ChannelQualityReport
from eegclean.core.recording import Recording
from eegclean.data.loaders import load_fif
from eegclean.modules.preprocessing.classification import ComponentClassification
from eegclean.modules.preprocessing.decomposition import Decomposition
from eegclean.modules.spectral import SpectralEstimate

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Read and write one session's artifacts.

    Parameters
    ----------
    output_dir : Path
        Root output directory (one subdirectory per session)
    session_id : str
        Session identifier, used as directory name and file prefix
    overwrite : bool
        Replace existing files (default: True)
    save_csv : bool
        Also write power tables as CSV (default: True)
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        session_id: str,
        overwrite: bool = True,
        save_csv: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.session_id = session_id
        self.overwrite = overwrite
        self.save_csv = save_csv

    @property
    def session_dir(self) -> Path:
        return self.output_dir / self.session_id

    def path(self, suffix: str) -> Path:
        """Artifact path ``<session_dir>/<session_id>_<suffix>``."""
        return self.session_dir / f"{self.session_id}_{suffix}"

    @property
    def bad_segments_path(self) -> Path:
        return self.path("bad_segments.json")

    @property
    def channel_quality_path(self) -> Path:
        return self.path("channel_quality.json")

    @property
    def pre_rejection_raw_path(self) -> Path:
        return self.path("before_ica_rej_raw.fif")

    @property
    def ica_path(self) -> Path:
        return self.path("before_ica_rej-ica.fif")

    @property
    def decomposition_path(self) -> Path:
        return self.path("decomposition.npz")

    @property
    def cleaned_raw_path(self) -> Path:
        return self.path("after_ica_rej_raw.fif")

    @property
    def spectrum_path(self) -> Path:
        return self.path("spectrum.npz")

    def _ensure_dir(self) -> None:
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _require(self, path: Path) -> Path:
        if not path.exists():
            raise MissingInputError(f"{self.session_id}: artifact not found: {path}")
        return path

    def has_pre_rejection(self) -> bool:
        return self.pre_rejection_raw_path.exists() and self.decomposition_path.exists()

    def has_cleaned(self) -> bool:
        return self.cleaned_raw_path.exists()

    # Bad segments and channel quality

    def save_bad_segments(self, recording: Recording) -> Path:
        """Save the registered bad segments of ``recording``."""
        self._ensure_dir()
        record = {
            'session_id': self.session_id,
            'sfreq': recording.sfreq,
            'n_samples': recording.n_samples,
            'bad_segments': [seg.model_dump() for seg in recording.bad_segments],
        }
        with open(self.bad_segments_path, 'w') as f:
            json.dump(record, f, indent=2)
        return self.bad_segments_path

    def load_bad_segments(self) -> List[BadSegment]:
        with open(self._require(self.bad_segments_path)) as f:
            record = json.load(f)
        return [BadSegment(**seg) for seg in record.get('bad_segments', [])]

    def save_channel_quality(self, report: ChannelQualityReport) -> Path:
        self._ensure_dir()
        self.channel_quality_path.write_text(report.model_dump_json(indent=2))
        return self.channel_quality_path

    def load_channel_quality(self) -> ChannelQualityReport:
        text = self._require(self.channel_quality_path).read_text()
        return ChannelQualityReport.model_validate_json(text)

    # Signals

    def _save_raw(self, recording: Recording, path: Path, layout: Optional[ChannelLayout]) -> Path:
        self._ensure_dir()
        raw = recording.to_raw(layout)
        raw.save(path, fmt='double', overwrite=self.overwrite, verbose=False)
        return path

    def save_pre_rejection(
        self,
        recording: Recording,
        decomposition: Decomposition,
        classification: ComponentClassification,
        layout: Optional[ChannelLayout] = None,
    ) -> List[Path]:
        """
        Save the pre-rejection checkpoint: signal, decomposition and
        classification.
        """
        files = [self._save_raw(recording, self.pre_rejection_raw_path, layout)]

        if decomposition.ica is not None:
            decomposition.ica.save(self.ica_path, overwrite=self.overwrite, verbose=False)
            files.append(self.ica_path)

        np.savez(
            self.decomposition_path,
            rank=decomposition.rank,
            mixing=decomposition.mixing,
            unmixing=decomposition.unmixing,
            activations=decomposition.activations,
            ch_names=np.array(decomposition.ch_names, dtype=str),
            seed=-1 if decomposition.seed is None else decomposition.seed,
            n_iter=-1 if decomposition.n_iter is None else decomposition.n_iter,
            probabilities=classification.probabilities,
            threshold=classification.threshold,
            rejected=classification.rejected,
        )
        files.append(self.decomposition_path)

        logger.info("%s: saved pre-rejection checkpoint", self.session_id)
        return files

    def load_pre_rejection(self) -> Tuple[Recording, Decomposition, ComponentClassification]:
        """Reload signal, decomposition and classification saved before rejection."""
        recording = load_fif(self._require(self.pre_rejection_raw_path))

        with np.load(self._require(self.decomposition_path), allow_pickle=False) as npz:
            seed = int(npz['seed'])
            n_iter = int(npz['n_iter'])
            ica = None
            if self.ica_path.exists():
                ica = mne.preprocessing.read_ica(self.ica_path, verbose=False)

            decomposition = Decomposition(
                rank=int(npz['rank']),
                mixing=npz['mixing'],
                unmixing=npz['unmixing'],
                activations=npz['activations'],
                ch_names=tuple(str(ch) for ch in npz['ch_names']),
                seed=None if seed < 0 else seed,
                n_iter=None if n_iter < 0 else n_iter,
                ica=ica,
            )
            classification = ComponentClassification(
                probabilities=npz['probabilities'],
                threshold=float(npz['threshold']),
            )

        return recording, decomposition, classification

    def save_cleaned(self, recording: Recording, layout: Optional[ChannelLayout] = None) -> Path:
        """Save the post-rejection (cleaned) recording."""
        path = self._save_raw(recording, self.cleaned_raw_path, layout)
        logger.info("%s: saved cleaned recording", self.session_id)
        return path

    def load_cleaned(self) -> Recording:
        """Load the cleaned recording (input of spectral estimation)."""
        return load_fif(self._require(self.cleaned_raw_path))

    # Spectrum

    def save_spectrum(self, spectrum: SpectralEstimate) -> List[Path]:
        self._ensure_dir()
        np.savez(
            self.spectrum_path,
            freqs=spectrum.freqs,
            power=spectrum.power,
            relative_power=spectrum.relative_power,
            ch_names=np.array(spectrum.ch_names, dtype=str),
            band=np.array(spectrum.band),
        )
        files = [self.spectrum_path]

        if self.save_csv:
            for relative, suffix in ((False, "power.csv"), (True, "relative_power.csv")):
                path = self.path(suffix)
                spectrum.to_dataframe(relative=relative).to_csv(path)
                files.append(path)

        logger.info("%s: saved spectrum (%d files)", self.session_id, len(files))
        return files

    def load_spectrum(self) -> SpectralEstimate:
        with np.load(self._require(self.spectrum_path), allow_pickle=False) as npz:
            return SpectralEstimate(
                freqs=npz['freqs'],
                power=npz['power'],
                relative_power=npz['relative_power'],
                ch_names=tuple(str(ch) for ch in npz['ch_names']),
                band=tuple(float(f) for f in npz['band']),
            )

    def list_files(self) -> List[Path]:
        if not self.session_dir.exists():
            return []
        return sorted(p for p in self.session_dir.iterdir() if p.is_file())
