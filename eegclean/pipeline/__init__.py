"""Session orchestration and persistence for eegclean."""

from eegclean.pipeline.base import ModuleResult, SessionResult
from eegclean.pipeline.checkpoint import CheckpointManager, generate_reproducibility_hash
# Avoid circular import: store and session import from modules.preprocessing,
# which imports pipeline.base. Import them from their submodules:
# from eegclean.pipeline.session import SessionProcessor, process_batch
# from eegclean.pipeline.store import SessionStore

__all__ = [
    "ModuleResult",
    "SessionResult",
    "CheckpointManager",
    "generate_reproducibility_hash",
]
