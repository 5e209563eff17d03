"""
Prometheus counters exposed on /metrics.
"""
from prometheus_client import Counter

WORKFLOW_TRANSITIONS = Counter(
    "riskflow_workflow_transitions_total",
    "Successful workflow state transitions",
    ["entity", "action"],
)


def record_transition(entity: str, action: str) -> None:
    WORKFLOW_TRANSITIONS.labels(entity=entity, action=action).inc()
