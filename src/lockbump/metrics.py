"""Metrics collection for lockfile update runs."""

from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

logger = structlog.get_logger()

PUSHGATEWAY_JOB = "lockbump"


class PipelineMetrics:
    """Prometheus metrics for the update pipeline.

    Each instance owns its registry; a run is a short-lived batch job, so
    metrics are pushed to a Pushgateway rather than scraped.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.runs_total = Counter(
            'lockbump_runs_total',
            'Total pipeline runs',
            ['stage', 'status'],
            registry=self.registry,
        )
        self.duration_seconds = Histogram(
            'lockbump_run_duration_seconds',
            'Pipeline stage duration',
            ['stage'],
            registry=self.registry,
        )
        self.pull_requests_total = Counter(
            'lockbump_pull_requests_total',
            'Pull requests edited or created',
            ['action'],
            registry=self.registry,
        )
        self.noise_lines_dropped_total = Counter(
            'lockbump_noise_lines_dropped_total',
            'Update output lines removed by the noise filter',
            registry=self.registry,
        )
        self.errors_total = Counter(
            'lockbump_errors_total',
            'Pipeline errors',
            ['error_type'],
            registry=self.registry,
        )

    def record_stage_success(self, stage: str, duration: float):
        """Record a successful stage."""
        self.runs_total.labels(stage=stage, status="success").inc()
        self.duration_seconds.labels(stage=stage).observe(duration)

    def record_stage_failure(self, stage: str, error_type: str):
        """Record a failed stage."""
        self.runs_total.labels(stage=stage, status="error").inc()
        self.errors_total.labels(error_type=error_type).inc()

    def record_pull_request(self, action: str):
        self.pull_requests_total.labels(action=action).inc()

    def record_noise_lines_dropped(self, count: int):
        self.noise_lines_dropped_total.inc(count)

    def push(self, gateway_url: Optional[str]) -> None:
        """Push metrics to a Pushgateway if one is configured.

        A failed push is logged and never fails the run.
        """
        if not gateway_url:
            return
        try:
            push_to_gateway(gateway_url, job=PUSHGATEWAY_JOB, registry=self.registry)
            logger.debug("Metrics pushed to gateway", gateway_url=gateway_url)
        except Exception as e:
            logger.warning("Failed to push metrics", error=str(e))
