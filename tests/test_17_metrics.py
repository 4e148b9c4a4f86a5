"""Tests for Prometheus metrics."""
from __future__ import annotations


class TestMetricsModule:
    """Each test uses a fresh GatewayMetrics on its own registry."""

    def test_global_instance(self):
        from tts_gateway.core.metrics import GatewayMetrics, metrics

        assert isinstance(metrics, GatewayMetrics)

    def test_record_request(self):
        from tts_gateway.core.metrics import GatewayMetrics

        m = GatewayMetrics()
        m.record_request("gTTS", "success", 0.5, audio_bytes=1000)
        m.record_request("gTTS", "UnknownVoice", 0.01)

        assert m.value("gateway_requests_total", {"mode": "gTTS", "status": "success"}) == 1.0
        assert m.value("gateway_requests_total", {"mode": "gTTS", "status": "UnknownVoice"}) == 1.0
        assert m.value("gateway_audio_bytes_total", {"mode": "gTTS"}) == 1000.0
        assert m.value("gateway_request_duration_seconds_count", {"mode": "gTTS"}) == 2.0

    def test_record_cache(self):
        from tts_gateway.core.metrics import GatewayMetrics

        m = GatewayMetrics()
        m.record_cache("hit")
        m.record_cache("hit")
        m.record_cache("store_failed")

        assert m.value("gateway_cache_events_total", {"event": "hit"}) == 2.0
        assert m.value("gateway_cache_events_total", {"event": "store_failed"}) == 1.0

    def test_backend_errors_and_refreshes(self):
        from tts_gateway.core.metrics import GatewayMetrics

        m = GatewayMetrics()
        m.record_backend_error("Polly")
        m.record_token_refresh("gCloud")

        assert m.value("gateway_backend_errors_total", {"mode": "Polly"}) == 1.0
        assert m.value("gateway_token_refreshes_total", {"provider": "gCloud"}) == 1.0

    def test_unrecorded_value_is_zero(self):
        from tts_gateway.core.metrics import GatewayMetrics

        assert GatewayMetrics().value("gateway_cache_events_total", {"event": "miss"}) == 0.0

    def test_exposition(self):
        from tts_gateway.core.metrics import GatewayMetrics

        m = GatewayMetrics()
        m.record_request("eSpeak", "success", 0.1)
        content, content_type = m.get_metrics_response()

        assert content_type.startswith("text/plain")
        text = content.decode("utf-8")
        assert "gateway_requests_total" in text
        assert 'mode="eSpeak"' in text

    def test_instances_do_not_share_state(self):
        from tts_gateway.core.metrics import GatewayMetrics

        a, b = GatewayMetrics(), GatewayMetrics()
        a.record_cache("miss")
        assert b.value("gateway_cache_events_total", {"event": "miss"}) == 0.0
