"""In-memory metrics."""

from nutriscan.metrics.ai_analysis import AnalysisMetrics
from nutriscan.metrics.core import MetricsRegistry, RegistrySnapshot

__all__ = ["AnalysisMetrics", "MetricsRegistry", "RegistrySnapshot"]
