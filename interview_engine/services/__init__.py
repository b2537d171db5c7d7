"""
Interview Engine Services

Scheduling, lifecycle, evaluation and reporting services. Each component of
the engine lives in its own module; the orchestrating services compose them
over injected repositories, a meeting provider and a notification sender.
"""

# === Scheduling Building Blocks ===
from .business_calendar import BusinessCalendar
from .conflict_detector import ConflictDetector, overlaps_with_buffer
from .slot_generator import SlotGenerator
from .round_resolver import RoundResolver, resolve_next_round
from .lifecycle import InterviewLifecycle, Transition
from .authorization import AccessPolicy

# === Evaluations ===
from .evaluation_service import (
    InterviewEvaluationService,
    aggregate_outcomes,
    aggregate_recommendations,
)

# === Meetings & Notifications ===
from .meeting_service import (
    GoogleCalendarMeetingProvider,
    GoogleMeetProvider,
    JitsiMeetProvider,
    MeetingCoordinator,
    MeetingProvider,
)
from .notification_service import EmailNotificationSender, NotificationDispatcher, NotificationSender

# === Orchestration & Reporting ===
from .scheduling_service import InterviewSchedulingService
from .reporting_service import InterviewReportingService
from .container import EngineServices, build_services, build_sql_services

# === Exported Interface ===
__all__ = [
    "BusinessCalendar",
    "ConflictDetector",
    "overlaps_with_buffer",
    "SlotGenerator",
    "RoundResolver",
    "resolve_next_round",
    "InterviewLifecycle",
    "Transition",
    "AccessPolicy",
    "InterviewEvaluationService",
    "aggregate_outcomes",
    "aggregate_recommendations",
    "GoogleCalendarMeetingProvider",
    "GoogleMeetProvider",
    "JitsiMeetProvider",
    "MeetingCoordinator",
    "MeetingProvider",
    "EmailNotificationSender",
    "NotificationDispatcher",
    "NotificationSender",
    "InterviewSchedulingService",
    "InterviewReportingService",
    "EngineServices",
    "build_services",
    "build_sql_services",
]
