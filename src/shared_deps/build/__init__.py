from .orchestrator import BuildOrchestrator, BuildSummary, UnitResult, run_build

__all__ = ["BuildOrchestrator", "BuildSummary", "UnitResult", "run_build"]
