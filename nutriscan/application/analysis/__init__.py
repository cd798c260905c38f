"""Analysis use cases."""

from nutriscan.application.analysis.orchestrator import AnalysisOrchestrator, AnalysisState

__all__ = ["AnalysisOrchestrator", "AnalysisState"]
