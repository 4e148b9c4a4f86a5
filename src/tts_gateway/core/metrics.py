"""
Prometheus Metrics for the Gateway.

Metrics Exposed:
    gateway_requests_total            - Requests by mode and status
    gateway_request_duration_seconds  - Dispatch latency by mode
    gateway_audio_bytes_total         - Audio bytes returned by mode
    gateway_cache_events_total        - Cache events (hit, miss, error,
                                        undecryptable, stored, store_failed)
    gateway_backend_errors_total      - Provider failures by mode
    gateway_token_refreshes_total     - Signed credential refreshes by provider

Usage:
    from tts_gateway.core.metrics import metrics

    metrics.record_request("gTTS", "success", 0.42, audio_bytes=18432)
    metrics.record_cache("hit")

    content, content_type = metrics.get_metrics_response()

See Also:
    - api/routes.py: /metrics endpoint definition
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class GatewayMetrics:
    """
    Gateway metrics collection on a private CollectorRegistry.

    A private registry keeps these series separate from anything else that
    registers with the default prometheus_client registry in the same
    process, and lets tests create fresh instances.

    Example:
        >>> m = GatewayMetrics()
        >>> m.record_cache("miss")
        >>> m.value("gateway_cache_events_total", {"event": "miss"})
        1.0
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "gateway_requests_total",
            "Total TTS requests",
            ["mode", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "gateway_request_duration_seconds",
            "Dispatch duration in seconds",
            ["mode"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "gateway_audio_bytes_total",
            "Total audio bytes returned",
            ["mode"],
            registry=self._registry,
        )
        self._cache_events = Counter(
            "gateway_cache_events_total",
            "Cache lookups and writes by outcome",
            ["event"],
            registry=self._registry,
        )
        self._backend_errors = Counter(
            "gateway_backend_errors_total",
            "Provider failures",
            ["mode"],
            registry=self._registry,
        )
        self._token_refreshes = Counter(
            "gateway_token_refreshes_total",
            "Signed credential refreshes",
            ["provider"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(
        self,
        mode: str,
        status: str,
        duration: float,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a completed dispatch.

        Args:
            mode: Mode name (e.g., "gTTS", "Polly")
            status: "success" or the error class name
            duration: Dispatch duration in seconds
            audio_bytes: Size of the returned audio
        """
        self._requests_total.labels(mode=mode, status=status).inc()
        self._request_duration.labels(mode=mode).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.labels(mode=mode).inc(audio_bytes)

    def record_cache(self, event: str) -> None:
        """Record a cache event such as "hit", "miss" or "store_failed"."""
        self._cache_events.labels(event=event).inc()

    def record_backend_error(self, mode: str) -> None:
        self._backend_errors.labels(mode=mode).inc()

    def record_token_refresh(self, provider: str) -> None:
        self._token_refreshes.labels(provider=provider).inc()

    def value(self, name: str, labels: dict | None = None) -> float:
        """Current value of a sample, 0.0 if it has not been recorded."""
        sample = self._registry.get_sample_value(name, labels or {})
        return sample if sample is not None else 0.0

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = GatewayMetrics()
