"""
Prometheus metrics for the grading paths.
Exposed by the assessment app on /metrics; the worker can serve them with
start_metrics_server(port=9109).
"""
from prometheus_client import Counter, Histogram, start_http_server

# Submissions accepted by path (inline, draft, finalize) and outcome
submissions_total = Counter(
    "assessment_submissions_total",
    "Submissions handled by the assessment service",
    ["path", "outcome"],
)

# Deferred grading jobs by outcome (graded, error, discarded)
grading_jobs_total = Counter(
    "assessment_grading_jobs_total",
    "Grading jobs processed by the worker",
    ["outcome"],
)

# Time from quiz lookup to persisted grade
grading_latency_seconds = Histogram(
    "assessment_grading_latency_seconds",
    "Latency of one grading pass (lookup + scoring + write)",
    ["path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def start_metrics_server(port: int = 9109) -> None:
    """Start Prometheus metrics HTTP server on the given port."""
    start_http_server(port)


def mark_submission(path: str, outcome: str) -> None:
    """Increment the submission counter for a path and its outcome."""
    submissions_total.labels(path=path, outcome=outcome).inc()


def mark_job(outcome: str) -> None:
    """Increment the grading job counter with a specific outcome."""
    grading_jobs_total.labels(outcome=outcome).inc()
