from .orchestrator import MergeRequestOrchestrator
from .precheck import MergeRequestPrecheck

__all__ = ["MergeRequestOrchestrator", "MergeRequestPrecheck"]
