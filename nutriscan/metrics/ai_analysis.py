"""Instrumentation helpers for the analysis engine.

Metrics (all tagged with `mode`):
* Counter analysis_requests_total{mode,status}
* Counter analysis_cache_hits_total{mode,source}   source = cache|store
* Counter analysis_parse_total{mode,outcome}        outcome = ok|<failure reason>
* Counter analysis_fallback_total{mode,reason}
* Histogram analysis_model_latency_ms{mode}
* Counter ingredient_estimates_total{status}
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from nutriscan.metrics.core import MetricsRegistry, RegistrySnapshot


class AnalysisMetrics:
    """Typed recorders over an injected registry."""

    def __init__(self, registry: Optional[MetricsRegistry] = None) -> None:
        self.registry = registry or MetricsRegistry()

    def record_request(self, mode: str, status: str) -> None:
        self.registry.counter("analysis_requests_total", mode=mode, status=status).inc()

    def record_cache_hit(self, mode: str, source: str) -> None:
        self.registry.counter("analysis_cache_hits_total", mode=mode, source=source).inc()

    def record_parse_result(self, mode: str, outcome: str) -> None:
        self.registry.counter("analysis_parse_total", mode=mode, outcome=outcome).inc()

    def record_fallback(self, mode: str, reason: str) -> None:
        self.registry.counter("analysis_fallback_total", mode=mode, reason=reason).inc()

    def record_latency_ms(self, mode: str, ms: float) -> None:
        self.registry.histogram("analysis_model_latency_ms", mode=mode).observe(ms)

    def record_ingredient_estimate(self, status: str) -> None:
        self.registry.counter("ingredient_estimates_total", status=status).inc()

    @contextmanager
    def time_model_call(self, mode: str) -> Iterator[None]:
        """Time a model call; failures count as status=failed."""
        start = time.perf_counter()
        try:
            yield
        except Exception:
            self.record_request(mode=mode, status="failed")
            raise
        finally:
            self.record_latency_ms(mode, (time.perf_counter() - start) * 1000.0)

    def snapshot(self) -> RegistrySnapshot:
        return self.registry.snapshot()
