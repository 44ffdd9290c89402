"""
Prompt-run metrics collection and monitoring.
"""

from prometheus_client import Counter, Gauge, Histogram

# === Batch Metrics ===

prompt_batches_started_total = Counter(
    "prompt_batches_started_total", "Total number of prompt-run batches started"
)

prompt_batches_completed_total = Counter(
    "prompt_batches_completed_total",
    "Total number of prompt-run batches that reached completed",
    ["outcome"],  # clean, pool_fault
)

prompt_batches_rejected_total = Counter(
    "prompt_batches_rejected_total",
    "Batch triggers rejected before any work began",
    ["reason"],
)

prompt_batch_duration_seconds = Histogram(
    "prompt_batch_duration_seconds",
    "Wall-clock duration of a prompt-run batch",
    buckets=[5, 15, 30, 60, 120, 300, 600, 1200],
)

prompt_batch_progress_ratio = Gauge(
    "prompt_batch_progress_ratio",
    "Current batch progress ratio (0.0 to 1.0)",
    ["domain_id"],
)

prompt_units_inflight = Gauge(
    "prompt_units_inflight", "Prompt-run units currently executing"
)

# === Unit Metrics ===

prompt_runs_total = Counter(
    "prompt_runs_total", "Prompt runs recorded", ["provider", "outcome"]
)

provider_call_latency_seconds = Histogram(
    "provider_call_latency_seconds",
    "Provider call response time",
    ["provider"],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 45, 60],
)

provider_errors_total = Counter(
    "provider_errors_total", "Provider call failures by kind", ["provider", "kind"]
)

# === Extraction Metrics ===

classifier_failures_total = Counter(
    "classifier_failures_total", "Brand classifier calls that failed or were unparsable"
)

brand_mentions_stored_total = Counter(
    "brand_mentions_stored_total", "Brand mention rows written"
)


class RunMetrics:
    """
    High-level interface over the prompt-run Prometheus metrics.
    """

    # === Batch ===

    def increment_batch_started(self):
        prompt_batches_started_total.inc()

    def increment_batch_completed(self, pool_fault: bool = False):
        prompt_batches_completed_total.labels(
            outcome="pool_fault" if pool_fault else "clean"
        ).inc()

    def increment_batch_rejected(self, reason: str):
        prompt_batches_rejected_total.labels(reason=reason).inc()

    def record_batch_duration(self, duration_ms: int):
        prompt_batch_duration_seconds.observe(duration_ms / 1000)

    def update_progress(self, domain_id: str, progress: int, total: int):
        ratio = progress / total if total else 0.0
        prompt_batch_progress_ratio.labels(domain_id=domain_id).set(ratio)

    def clear_progress(self, domain_id: str):
        try:
            prompt_batch_progress_ratio.remove(domain_id)
        except KeyError:
            pass

    def unit_started(self):
        prompt_units_inflight.inc()

    def unit_finished(self):
        prompt_units_inflight.dec()

    # === Unit ===

    def record_run(self, provider: str, success: bool):
        prompt_runs_total.labels(
            provider=provider, outcome="success" if success else "error"
        ).inc()

    def record_provider_latency(self, provider: str, duration_ms: int):
        provider_call_latency_seconds.labels(provider=provider).observe(
            duration_ms / 1000
        )

    def increment_provider_error(self, provider: str, kind: str):
        provider_errors_total.labels(provider=provider, kind=kind).inc()

    # === Extraction ===

    def increment_classifier_failure(self):
        classifier_failures_total.inc()

    def increment_brand_mentions(self, count: int):
        if count:
            brand_mentions_stored_total.inc(count)


# Global metrics instance
metrics = RunMetrics()


def get_run_metrics() -> RunMetrics:
    """Get the global prompt-run metrics instance"""
    return metrics
