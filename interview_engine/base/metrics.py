from prometheus_client import Counter


# === Engine Metrics ===
# HTTP request metrics come from prometheus-fastapi-instrumentator (see main.py).

interview_transition_counter = Counter(
    "interview_transitions_total", "Interview lifecycle transitions by outcome",
    ["transition", "result"]
)

interview_conflict_counter = Counter(
    "interview_conflicts_total", "Participant double-booking attempts rejected"
)

meeting_fallback_counter = Counter(
    "meeting_provider_fallbacks_total", "Meeting provider degradations absorbed with a placeholder",
    ["operation"]
)

evaluation_counter = Counter(
    "interview_evaluations_total", "Evaluation submissions and updates",
    ["action"]
)

api_exception_counter = Counter(
    "api_exception_count", "Total API exceptions by type",
    ["type"]
)
