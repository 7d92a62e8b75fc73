"""
Local observability.

Spans and counters for debugging retrieval, without external telemetry.
"""

import time
from contextlib import contextmanager
from typing import Dict, Any, Optional, Iterator

from cortex.core.logging import AsyncLogger
from cortex.core.id_generator import generate_id


class LocalTracer:
    """
    Simple local tracing.

    LocalTracer: one span per operation, logged with duration and attributes.
    MetricsCollector: aggregated counters and gauges with no per-call context.

    Example:
    - metrics.increment("retrieval.fallback.activations")
    - tracer.span("semantic_search", {"limit": 10})
    """

    def __init__(self, service_name: str = "cortex") -> None:
        self.service_name = service_name
        self.logger = AsyncLogger("tracing")

    @contextmanager
    def span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        """
        Create a span around an operation.

        Usage:
        ```
        with tracer.span("fallback_search", {"notes": 120}):
            results = await matcher.search_fallback(query)
        ```
        """
        span_id = generate_id()
        start = time.perf_counter()

        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.debug(
                "Span completed",
                span=name,
                span_id=span_id,
                duration_ms=duration * 1000,
                **(attributes or {}),
            )


class MetricsCollector:
    """
    Local metrics collector. In-process only, nothing is exported.
    """

    def __init__(self) -> None:
        self.metrics: Dict[str, float] = {}
        self.logger = AsyncLogger("metrics")

    def increment(self, name: str, value: float = 1.0) -> None:
        """Increment a counter."""
        self.metrics[name] = self.metrics.get(name, 0) + value

    def gauge(self, name: str, value: float) -> None:
        """Set a current value."""
        self.metrics[name] = value

    def get(self, name: str, default: float = 0.0) -> float:
        """Read a single metric."""
        return self.metrics.get(name, default)

    def get_metrics(self) -> Dict[str, float]:
        """Snapshot of all metrics."""
        return self.metrics.copy()

    def reset(self) -> None:
        """Drop every counter."""
        self.metrics.clear()


tracer = LocalTracer()
metrics = MetricsCollector()
