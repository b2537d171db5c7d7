import uuid
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from interview_engine.utils.time_utils import add_minutes, ensure_utc, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


# An interview lasts between one minute and a full business day.
MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 480


# === Enumerations ===

class ApplicationStatus(str, Enum):
    APPLIED = "Applied"
    TEST_INVITED = "TestInvited"
    TEST_COMPLETED = "TestCompleted"
    UNDER_REVIEW = "UnderReview"
    SHORTLISTED = "Shortlisted"
    INTERVIEW = "Interview"
    SELECTED = "Selected"
    HIRED = "Hired"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"
    ON_HOLD = "OnHold"


class InterviewStatus(str, Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"


class InterviewType(str, Enum):
    SCREENING = "Screening"
    TECHNICAL = "Technical"
    BEHAVIORAL = "Behavioral"
    MANAGERIAL = "Managerial"
    CULTURAL = "Cultural"
    FINAL = "Final"
    PANEL = "Panel"


class InterviewMode(str, Enum):
    IN_PERSON = "InPerson"
    ONLINE = "Online"
    PHONE = "Phone"


class InterviewOutcome(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    PENDING = "Pending"


class EvaluationRecommendation(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    MAYBE = "Maybe"


class ParticipantRole(str, Enum):
    PRIMARY_INTERVIEWER = "PrimaryInterviewer"
    INTERVIEWER = "Interviewer"
    OBSERVER = "Observer"
    SHADOW = "Shadow"


class NotificationType(str, Enum):
    SCHEDULING = "Scheduling"
    RESCHEDULING = "Rescheduling"
    CANCELLATION = "Cancellation"
    REMINDER = "Reminder"
    NO_SHOW = "NoShow"
    EVALUATION = "Evaluation"


# === Domain Entities ===

class Participant(BaseModel):
    user_id: str
    role: ParticipantRole = ParticipantRole.INTERVIEWER
    is_lead: bool = False
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Interview(BaseModel):
    id: str = Field(default_factory=new_id)
    application_id: str
    title: str
    interview_type: InterviewType = InterviewType.SCREENING
    round_number: int = Field(1, ge=1)
    scheduled_start: datetime
    duration_minutes: int = Field(..., ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    mode: InterviewMode = InterviewMode.ONLINE
    status: InterviewStatus = InterviewStatus.SCHEDULED
    outcome: Optional[InterviewOutcome] = None
    outcome_overridden: bool = False
    meeting_details: Optional[str] = None
    instructions: Optional[str] = None
    summary_notes: Optional[str] = None
    is_active: bool = True
    scheduled_by: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None
    participants: List[Participant] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("scheduled_start", "created_at", "updated_at", "reminder_sent_at")
    @classmethod
    def normalize_instants(cls, value):
        return ensure_utc(value)

    @property
    def scheduled_end(self) -> datetime:
        return add_minutes(self.scheduled_start, self.duration_minutes)

    @property
    def participant_ids(self) -> List[str]:
        return [p.user_id for p in self.participants]

    @property
    def lead(self) -> Optional[Participant]:
        return next((p for p in self.participants if p.is_lead), None)

    def is_participant(self, user_id: str) -> bool:
        return user_id in self.participant_ids

    def append_note(self, note: str) -> None:
        """Summary notes are an append-only log, one event per line."""
        self.summary_notes = note if not self.summary_notes else f"{self.summary_notes}\n{note}"


class Evaluation(BaseModel):
    id: str = Field(default_factory=new_id)
    interview_id: str
    evaluator_id: str
    recommendation: EvaluationRecommendation
    overall_rating: Optional[float] = None
    strengths: Optional[str] = None
    concerns: Optional[str] = None
    comments: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_instants(cls, value):
        return ensure_utc(value)


class Application(BaseModel):
    id: str
    status: ApplicationStatus
    candidate_user_id: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    position_title: Optional[str] = None
    assigned_recruiter_id: Optional[str] = None
    is_active: bool = True


class StatusChange(BaseModel):
    application_id: str
    from_status: ApplicationStatus
    to_status: ApplicationStatus
    changed_by: str
    comment: Optional[str] = None
    changed_at: datetime = Field(default_factory=utcnow)


class UserInfo(BaseModel):
    user_id: str
    exists: bool = True
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.email or self.user_id


class MeetingCredentials(BaseModel):
    meeting_id: str
    meeting_link: str
    title: str
    start: datetime
    duration_minutes: int
    password: Optional[str] = None
    dial_in_number: Optional[str] = None
    access_code: Optional[str] = None
    description: Optional[str] = None
    attendee_emails: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


# === Notifications ===

class Recipient(BaseModel):
    user_id: Optional[str] = None
    email: str
    name: str
    is_candidate: bool = False


class NotificationContext(BaseModel):
    candidate_name: str = "Candidate"
    position_title: str = "Position"
    original_start: Optional[datetime] = None
    reason: Optional[str] = None


# === Slots & Reporting ===

class Slot(BaseModel):
    start: datetime
    end: datetime
    duration_minutes: int
    available_participants: List[str] = Field(default_factory=list)
    unavailable_participants: List[str] = Field(default_factory=list)
    is_recommended: bool = False


class ScheduledInterviewSlot(BaseModel):
    interview_id: str
    title: str
    start: datetime
    end: datetime
    duration_minutes: int
    interview_type: InterviewType
    mode: InterviewMode
    participants: List[str] = Field(default_factory=list)


class InterviewAnalytics(BaseModel):
    status_distribution: Dict[str, int] = Field(default_factory=dict)
    type_distribution: Dict[str, int] = Field(default_factory=dict)
    total_interviews: int = 0
    upcoming_interviews: int = 0
    completed_interviews: int = 0
    cancelled_interviews: int = 0
    average_interview_duration: float = 0.0


# === Requests ===

class ParticipantAssignment(BaseModel):
    user_id: str
    role: ParticipantRole = ParticipantRole.INTERVIEWER
    is_lead: bool = False
    notes: Optional[str] = None


class ScheduleInterviewRequest(BaseModel):
    application_id: str
    title: str
    interview_type: InterviewType = InterviewType.SCREENING
    scheduled_start: datetime
    duration_minutes: int = Field(60, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    mode: InterviewMode = InterviewMode.ONLINE
    participants: List[ParticipantAssignment] = Field(default_factory=list)
    instructions: Optional[str] = None

    @field_validator("scheduled_start")
    @classmethod
    def normalize_start(cls, value):
        return ensure_utc(value)


class RescheduleInterviewRequest(BaseModel):
    new_start: datetime
    reason: Optional[str] = None

    @field_validator("new_start")
    @classmethod
    def normalize_start(cls, value):
        return ensure_utc(value)


class CancelInterviewRequest(BaseModel):
    reason: Optional[str] = None


class CompleteInterviewRequest(BaseModel):
    summary_notes: Optional[str] = None


class MarkNoShowRequest(BaseModel):
    notes: Optional[str] = None


class SubmitEvaluationRequest(BaseModel):
    interview_id: str
    recommendation: EvaluationRecommendation
    overall_rating: Optional[float] = None
    strengths: Optional[str] = None
    concerns: Optional[str] = None
    comments: Optional[str] = None


class UpdateEvaluationRequest(BaseModel):
    recommendation: Optional[EvaluationRecommendation] = None
    overall_rating: Optional[float] = None
    strengths: Optional[str] = None
    concerns: Optional[str] = None
    comments: Optional[str] = None


class SetOutcomeRequest(BaseModel):
    outcome: InterviewOutcome


class AvailableSlotsRequest(BaseModel):
    participant_ids: List[str] = Field(default_factory=list)
    start_date: date
    end_date: date
    duration_minutes: int = 60


class ScheduledInterviewsRequest(BaseModel):
    participant_ids: List[str] = Field(default_factory=list)
    start: datetime
    end: datetime
    exclude_application_id: Optional[str] = None


class EmailMessage(BaseModel):
    to_email: EmailStr
    subject: str
    body: str
