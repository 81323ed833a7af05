"""
Result containers for pipeline execution.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class ModuleResult:
    """Result container for a module (e.g. the preprocessing pipeline)."""

    success: bool
    module_name: str
    execution_time_seconds: float
    outputs: Dict[str, Any] = field(default_factory=dict)
    output_files: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        return f"ModuleResult({self.module_name}: {status}, {self.execution_time_seconds:.2f}s)"


@dataclass
class SessionResult:
    """Outcome of processing one session."""

    session_id: str
    success: bool
    execution_time_seconds: float = 0.0
    resumed_from: Optional[str] = None
    completed_stages: List[str] = field(default_factory=list)
    output_files: List[Path] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else f"FAILED ({self.error_type})"
        return f"SessionResult({self.session_id}: {status}, {self.execution_time_seconds:.2f}s)"
