"""
Checkpoint management for session resume.

A session passes three persisted boundaries: the pre-rejection state
(decomposition, classification and the unmodified signal), the
post-rejection cleaned signal, and the spectral outputs. Each boundary is
recorded in a per-session JSON manifest together with a hash of the
configuration and input data that produced it, so a resumed run only
reuses artifacts built from the same recording with the same settings.
"""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

STAGE_SEGMENTS = "bad_segments"
STAGE_PRE_REJECTION = "pre_rejection"
STAGE_POST_REJECTION = "post_rejection"
STAGE_SPECTRAL = "spectral"

STAGES = (STAGE_SEGMENTS, STAGE_PRE_REJECTION, STAGE_POST_REJECTION, STAGE_SPECTRAL)


def _json_safe(value: Any) -> Any:
    """Drop values json cannot encode (arrays, MNE objects, reports)."""
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items() if _is_plain(v)}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value if _is_plain(v)]
    return value


def _is_plain(value: Any) -> bool:
    if isinstance(value, (dict, list, tuple)):
        return True
    return value is None or isinstance(value, (str, int, float, bool))


class CheckpointManager:
    """
    Track which persisted stages a session has completed.

    Layout::

        <checkpoint_dir>/<session_id>/manifest.json
        <checkpoint_dir>/<session_id>/<stage>.checkpoint.json
    """

    def __init__(self, checkpoint_dir: Path):
        """
        Initialize checkpoint manager.

        Args:
            checkpoint_dir: Directory to store checkpoints
        """
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

    def _get_session_dir(self, session_id: str) -> Path:
        return self.checkpoint_dir / session_id

    def _get_checkpoint_path(self, session_id: str, stage: str) -> Path:
        return self._get_session_dir(session_id) / f"{stage}.checkpoint.json"

    def _manifest_path(self, session_id: str) -> Path:
        return self._get_session_dir(session_id) / "manifest.json"

    def save(
        self,
        session_id: str,
        stage: str,
        output_files: Optional[List[Path]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        config_hash: Optional[str] = None,
    ) -> Path:
        """
        Record completion of a stage.

        Args:
            session_id: Session identifier
            stage: One of STAGES
            output_files: Artifacts written for this stage
            metadata: Step metadata (non-JSON values are dropped)
            config_hash: Hash of the configuration that produced the stage

        Returns:
            Path to saved checkpoint
        """
        if stage not in STAGES:
            raise ValueError(f"Unknown stage '{stage}'. Valid stages: {STAGES}")

        session_dir = self._get_session_dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        checkpoint = {
            "session_id": session_id,
            "stage": stage,
            "timestamp": datetime.now().isoformat(),
            "config_hash": config_hash,
            "output_files": [str(p) for p in (output_files or [])],
            "metadata": _json_safe(metadata or {}),
        }

        checkpoint_path = self._get_checkpoint_path(session_id, stage)
        with open(checkpoint_path, "w") as f:
            json.dump(checkpoint, f, indent=2, default=str)

        self._update_manifest(session_id, stage, config_hash)
        logger.debug("%s: checkpoint '%s' saved", session_id, stage)

        return checkpoint_path

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Load the session manifest, or None if there is none."""
        manifest_path = self._manifest_path(session_id)
        if not manifest_path.exists():
            return None

        with open(manifest_path) as f:
            return json.load(f)

    def load_stage_checkpoint(self, session_id: str, stage: str) -> Optional[Dict[str, Any]]:
        """Load one stage's checkpoint record."""
        checkpoint_path = self._get_checkpoint_path(session_id, stage)
        if not checkpoint_path.exists():
            return None

        with open(checkpoint_path) as f:
            return json.load(f)

    def get_completed_stages(
        self,
        session_id: str,
        config_hash: Optional[str] = None,
    ) -> List[str]:
        """
        Completed stages for a session, in completion order.

        If ``config_hash`` is given and differs from the one recorded in the
        manifest, nothing counts as completed.
        """
        manifest = self.load(session_id)
        if manifest is None:
            return []

        if config_hash is not None and manifest.get("config_hash") != config_hash:
            logger.warning(
                "%s: checkpoints were made with a different configuration or input; ignoring them",
                session_id,
            )
            return []

        return manifest.get("completed_stages", [])

    def latest_stage(self, session_id: str, config_hash: Optional[str] = None) -> Optional[str]:
        """Furthest completed stage in pipeline order, or None."""
        completed = set(self.get_completed_stages(session_id, config_hash))
        for stage in reversed(STAGES):
            if stage in completed:
                return stage
        return None

    def clear(self, session_id: str) -> None:
        """Forget every checkpoint of a session (artifacts are kept)."""
        for stage in STAGES:
            self._get_checkpoint_path(session_id, stage).unlink(missing_ok=True)
        self._manifest_path(session_id).unlink(missing_ok=True)

    def _update_manifest(self, session_id: str, stage: str, config_hash: Optional[str]) -> None:
        manifest_path = self._manifest_path(session_id)

        if manifest_path.exists():
            with open(manifest_path) as f:
                manifest = json.load(f)
        else:
            manifest = {
                "session_id": session_id,
                "config_hash": config_hash,
                "completed_stages": [],
                "last_updated": None,
            }

        if manifest.get("config_hash") != config_hash:
            # A different configuration or input invalidates earlier stages
            manifest["config_hash"] = config_hash
            manifest["completed_stages"] = []

        if stage not in manifest["completed_stages"]:
            manifest["completed_stages"].append(stage)

        manifest["last_updated"] = datetime.now().isoformat()

        with open(manifest_path, "w") as f:
            json.dump(manifest, f, indent=2)


def generate_reproducibility_hash(
    config: Dict[str, Any],
    code_version: str,
    data_checksums: Optional[Dict[str, str]] = None,
) -> str:
    """
    Generate a hash for reproducibility tracking.

    Args:
        config: Configuration dict
        code_version: Software version string
        data_checksums: Optional dict of file -> checksum

    Returns:
        Truncated SHA256 hex digest
    """
    components = {
        "config": json.dumps(config, sort_keys=True, default=str),
        "code_version": code_version,
        "data_checksums": data_checksums or {},
    }

    content = json.dumps(components, sort_keys=True)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def file_checksum(path: Path, chunk_size: int = 1 << 20) -> str:
    """SHA256 of a file's contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def recording_checksum(ch_names, sfreq: float, data: np.ndarray) -> str:
    """SHA256 of an in-memory recording: channel names, rate and samples."""
    digest = hashlib.sha256()
    digest.update(json.dumps([list(ch_names), float(sfreq)]).encode())
    digest.update(np.ascontiguousarray(data, dtype=np.float64).tobytes())
    return digest.hexdigest()
