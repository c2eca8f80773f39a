"""Write sandbox and quality gates applied to generated changes."""

from .changeset_validator import validate_changes, write_changes
from .quality_gates import GateReport, run_quality_gates

__all__ = ["GateReport", "run_quality_gates", "validate_changes", "write_changes"]
