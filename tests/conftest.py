"""
Shared fixtures for the interview engine tests.

Everything runs against the in-memory repositories with a controllable
clock. The clock starts on Monday 2030-01-07 08:00 UTC; business hours are
09:00-18:00 UTC.
"""

from datetime import datetime, timedelta, timezone

import pytest

from interview_engine.base.config import AppConfig
from interview_engine.base.models import (
    Application,
    ApplicationStatus,
    InterviewMode,
    InterviewType,
    MeetingCredentials,
    ParticipantAssignment,
    ParticipantRole,
    ScheduleInterviewRequest,
)
from interview_engine.repositories.memory import (
    InMemoryApplicationRepository,
    InMemoryEvaluationRepository,
    InMemoryInterviewRepository,
    InMemoryParticipantDirectory,
    InMemoryStore,
)
from interview_engine.services.container import build_services
from interview_engine.services.meeting_service import MeetingProvider
from interview_engine.services.notification_service import NotificationSender

MONDAY = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def at(day_offset: int, hour: int, minute: int = 0) -> datetime:
    """An instant `day_offset` days after Monday 2030-01-07, at hour:minute UTC."""
    return (MONDAY + timedelta(days=day_offset)).replace(hour=hour, minute=minute)


class FakeClock:
    def __init__(self, now: datetime = MONDAY):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class RecordingMeetingProvider(MeetingProvider):
    service_type = "Recording"

    def __init__(self):
        self.available = True
        self.fail = False
        self.created = []
        self.cancelled = []

    def create_meeting(self, title, start, duration_minutes, attendee_emails, description=None):
        if self.fail:
            raise RuntimeError("provider down")
        meeting_id = f"meeting-{len(self.created) + 1}"
        credentials = MeetingCredentials(
            meeting_id=meeting_id,
            meeting_link=f"https://meet.example.com/{meeting_id}",
            title=title,
            start=start,
            duration_minutes=duration_minutes,
            password="s3cret",
            attendee_emails=list(attendee_emails),
        )
        self.created.append(credentials)
        return credentials

    def cancel_meeting(self, meeting_id):
        self.cancelled.append(meeting_id)
        return True

    def is_available(self):
        return self.available


class RecordingSender(NotificationSender):
    def __init__(self):
        self.sent = []

    def _record(self, kind, recipient, interview, context):
        self.sent.append({"kind": kind, "recipient": recipient, "interview_id": interview.id, "context": context})

    def notify_scheduled(self, recipient, interview, context):
        self._record("scheduled", recipient, interview, context)

    def notify_rescheduled(self, recipient, interview, context):
        self._record("rescheduled", recipient, interview, context)

    def notify_cancelled(self, recipient, interview, context):
        self._record("cancelled", recipient, interview, context)

    def notify_reminder(self, recipient, interview, context):
        self._record("reminder", recipient, interview, context)

    def notify_evaluation_due(self, recipient, interview, context):
        self._record("evaluation", recipient, interview, context)

    def notify_no_show(self, recipient, interview, context):
        self._record("no_show", recipient, interview, context)

    def of_kind(self, kind):
        return [s for s in self.sent if s["kind"] == kind]

    def emails(self, kind):
        return sorted(s["recipient"].email for s in self.of_kind(kind))


@pytest.fixture
def config():
    return AppConfig(
        BUSINESS_TIMEZONE="UTC",
        BUSINESS_START_HOUR=9,
        BUSINESS_END_HOUR=18,
        SMTP_USER="",
        SMTP_PASSWORD="",
        MEETING_PROVIDER="jitsi",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def applications(store):
    repo = InMemoryApplicationRepository(store)
    for application_id, status in (
        ("app-1", ApplicationStatus.SHORTLISTED),
        ("app-2", ApplicationStatus.UNDER_REVIEW),
        ("app-3", ApplicationStatus.TEST_COMPLETED),
        ("app-rejected", ApplicationStatus.REJECTED),
    ):
        repo.add(Application(
            id=application_id,
            status=status,
            candidate_user_id=f"candidate-{application_id}",
            candidate_name=f"Candidate {application_id}",
            candidate_email=f"candidate-{application_id}@example.com",
            position_title="Backend Engineer",
            assigned_recruiter_id="recruiter-1",
        ))
    return repo


@pytest.fixture
def interviews(store):
    return InMemoryInterviewRepository(store)


@pytest.fixture
def evaluations(store):
    return InMemoryEvaluationRepository(store)


@pytest.fixture
def directory(store):
    repo = InMemoryParticipantDirectory(store)
    repo.add_user("recruiter-1", "recruiter@example.com", "Rita Recruiter", ["Recruiter"])
    repo.add_user("hr-1", "hr@example.com", "Harper HR", ["HR"])
    repo.add_user("p1", "p1@example.com", "Pat One", ["Interviewer"])
    repo.add_user("p2", "p2@example.com", "Pat Two", ["Interviewer"])
    repo.add_user("p3", "p3@example.com", "Pat Three", ["Interviewer"])
    repo.add_user("outsider", "outsider@example.com", "Olly Outsider", [])
    return repo


@pytest.fixture
def meeting_provider():
    return RecordingMeetingProvider()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def services(applications, interviews, evaluations, directory, meeting_provider, sender, config, clock):
    return build_services(
        applications,
        interviews,
        evaluations,
        directory,
        meeting_provider=meeting_provider,
        sender=sender,
        config=config,
        clock=clock,
    )


@pytest.fixture
def scheduling(services):
    return services.scheduling


@pytest.fixture
def evaluation_service(services):
    return services.evaluations


@pytest.fixture
def make_request():
    def factory(
        application_id="app-1",
        start=None,
        participants=("p1", "p2"),
        duration_minutes=60,
        mode=InterviewMode.ONLINE,
        title="Technical interview",
        interview_type=InterviewType.TECHNICAL,
        lead=None,
    ):
        return ScheduleInterviewRequest(
            application_id=application_id,
            title=title,
            interview_type=interview_type,
            scheduled_start=start or at(2, 9),
            duration_minutes=duration_minutes,
            mode=mode,
            participants=[
                ParticipantAssignment(
                    user_id=user_id,
                    role=ParticipantRole.PRIMARY_INTERVIEWER if idx == 0 else ParticipantRole.INTERVIEWER,
                    is_lead=user_id == lead,
                )
                for idx, user_id in enumerate(participants)
            ],
        )
    return factory


@pytest.fixture
def scheduled(scheduling, make_request):
    """Online interview for app-1 with p1 (lead) and p2, Wednesday 09:00-10:00."""
    return scheduling.schedule_interview(make_request(), "recruiter-1").unwrap()
