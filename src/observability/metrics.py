"""
Prometheus metrics definitions.

All custom metrics are defined here; business modules import them via
`from src.observability import metrics`.
"""

from prometheus_client import Counter, Histogram, Info


class _Metrics:
    """Holds every Prometheus collector of the service."""

    def __init__(self):
        # ── HTTP ──
        self.http_requests_total = Counter(
            "mitra_http_requests_total",
            "HTTP requests",
            ["method", "endpoint", "status_code"],
        )
        self.http_request_duration_seconds = Histogram(
            "mitra_http_request_duration_seconds",
            "HTTP request latency (seconds)",
            ["method", "endpoint"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        # ── LLM ──
        self.llm_requests_total = Counter(
            "mitra_llm_requests_total",
            "Model backend calls",
            ["provider", "model"],
        )
        self.llm_duration_seconds = Histogram(
            "mitra_llm_duration_seconds",
            "Model backend latency (seconds)",
            ["provider", "model"],
            buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
        )
        self.llm_tokens_used = Counter(
            "mitra_llm_tokens_total",
            "Tokens reported by the model backend",
            ["provider", "model", "direction"],  # direction: input / output
        )
        self.llm_errors_total = Counter(
            "mitra_llm_errors_total",
            "Failed model backend calls",
            ["provider", "model"],
        )

        # ── Message pipeline ──
        self.messages_total = Counter(
            "mitra_messages_total",
            "Send-message requests by outcome",
            ["mode", "outcome"],  # ok / forbidden / insufficient / upstream_error / timeout / overdraw
        )
        self.credits_deducted_total = Counter(
            "mitra_credits_deducted_total",
            "Credits charged at settlement",
            ["model"],
        )
        self.credit_denials_total = Counter(
            "mitra_credit_denials_total",
            "Insufficient-credit rejections",
            ["stage"],  # advisory / settlement
        )

        # ── System ──
        self.app_info = Info(
            "mitra_app",
            "Application metadata",
        )


metrics = _Metrics()
