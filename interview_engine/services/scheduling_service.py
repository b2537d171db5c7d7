import logging
from datetime import datetime, timedelta
from typing import List, Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import (
    ConflictError,
    InterviewEngineError,
    InvalidStateError,
    NotFoundError,
    RequestValidationFailed,
    UnauthorizedError,
)
from interview_engine.base.metrics import interview_conflict_counter
from interview_engine.base.models import (
    Application,
    ApplicationStatus,
    AvailableSlotsRequest,
    CancelInterviewRequest,
    CompleteInterviewRequest,
    Interview,
    InterviewMode,
    InterviewOutcome,
    InterviewStatus,
    MarkNoShowRequest,
    NotificationType,
    Participant,
    ParticipantAssignment,
    ParticipantRole,
    RescheduleInterviewRequest,
    ScheduledInterviewSlot,
    ScheduledInterviewsRequest,
    ScheduleInterviewRequest,
    Slot,
    UserInfo,
)
from interview_engine.base.results import as_result
from interview_engine.repositories.base import (
    ApplicationRepository,
    EvaluationRepository,
    InterviewRepository,
    ParticipantDirectory,
)
from interview_engine.services.authorization import AccessPolicy
from interview_engine.services.business_calendar import BusinessCalendar
from interview_engine.services.conflict_detector import ConflictDetector
from interview_engine.services.evaluation_service import aggregate_outcomes
from interview_engine.services.lifecycle import InterviewLifecycle, Transition
from interview_engine.services.meeting_service import MeetingCoordinator
from interview_engine.services.notification_service import NotificationDispatcher
from interview_engine.services.round_resolver import resolve_next_round
from interview_engine.services.slot_generator import SlotGenerator
from interview_engine.utils.time_utils import Clock, format_stamp, utcnow

logger = logging.getLogger("interview_scheduler_service")

ROLE_ORDER = list(ParticipantRole)


class InterviewSchedulingService:
    """
    Schedules interviews and drives them through their lifecycle.

    Each mutating operation runs its checks and writes inside one
    `InterviewRepository.transaction()`, so a conflict check and the write
    that relies on it are atomic. Meetings are provisioned inside the scope
    (and released again if the write fails); notifications go out after it
    has committed.
    """

    def __init__(
        self,
        applications: ApplicationRepository,
        interviews: InterviewRepository,
        evaluations: EvaluationRepository,
        directory: ParticipantDirectory,
        meetings: MeetingCoordinator,
        notifier: NotificationDispatcher,
        config: AppConfig = settings,
        clock: Clock = utcnow,
    ):
        self.applications = applications
        self.interviews = interviews
        self.evaluations = evaluations
        self.directory = directory
        self.meetings = meetings
        self.notifier = notifier
        self.config = config
        self.clock = clock

        self.calendar = BusinessCalendar(config, clock)
        self.detector = ConflictDetector(interviews, config, clock)
        self.slot_generator = SlotGenerator(self.calendar, self.detector, config)
        self.lifecycle = InterviewLifecycle(config, clock)
        self.access = AccessPolicy(applications, directory, config)

    # === Lookups & Guards ===

    def _require_interview(self, interview_id: str) -> Interview:
        interview = self.interviews.get_by_id(interview_id)
        if interview is None or not interview.is_active:
            raise NotFoundError(f"Interview {interview_id} not found")
        return interview

    def _require_application(self, application_id: str) -> Application:
        application = self.applications.get_by_id(application_id)
        if application is None:
            raise NotFoundError(f"Application {application_id} not found")
        return application

    def _resolve_participants(self, participant_ids: List[str]) -> List[UserInfo]:
        users = []
        for participant_id in participant_ids:
            user = self.directory.resolve_user(participant_id)
            if not user.exists:
                raise NotFoundError(f"Participant user {participant_id} not found")
            users.append(user)
        return users

    def _ensure_schedulable(self, application: Application) -> None:
        if not application.is_active:
            raise InvalidStateError(f"Application {application.id} is not active")

        if application.status.value not in self.config.SCHEDULABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot schedule interviews for an application in status {application.status.value}"
            )

        now = self.clock()
        pending = [
            i for i in self.applications.get_active_interviews(application.id)
            if i.status == InterviewStatus.SCHEDULED and i.scheduled_start > now
        ]
        if pending:
            raise ConflictError(
                f"Application already has a pending interview on {format_stamp(pending[0].scheduled_start)} UTC"
            )

    def _ensure_no_conflicts(
        self,
        users: List[UserInfo],
        start: datetime,
        duration_minutes: int,
        exclude_interview_id: Optional[str] = None,
    ) -> None:
        for user in users:
            if self.detector.has_conflict(user.user_id, start, duration_minutes, exclude_interview_id):
                interview_conflict_counter.inc()
                raise ConflictError(f"Participant {user.label} has conflicting interviews at the scheduled time")

    def _validate_request(self, req: ScheduleInterviewRequest) -> None:
        if not req.title or not req.title.strip():
            raise RequestValidationFailed("Interview title is required")
        if not req.participants:
            raise RequestValidationFailed("At least one participant is required")

        participant_ids = [p.user_id for p in req.participants]
        if len(set(participant_ids)) != len(participant_ids):
            raise RequestValidationFailed("Each participant can only be assigned once")
        if sum(1 for p in req.participants if p.is_lead) > 1:
            raise RequestValidationFailed("An interview can only have one lead participant")

    def _build_participants(self, assignments: List[ParticipantAssignment]) -> List[Participant]:
        """Exactly one lead: the flagged participant, else the first one listed."""
        lead_index = next((idx for idx, a in enumerate(assignments) if a.is_lead), 0)
        now = self.clock()
        return [
            Participant(user_id=a.user_id, role=a.role, is_lead=idx == lead_index, notes=a.notes, created_at=now)
            for idx, a in enumerate(assignments)
        ]

    def _attendee_emails(self, interview: Interview, application: Optional[Application]) -> List[str]:
        emails = [u.email for u in map(self.directory.resolve_user, interview.participant_ids) if u.email]
        if application and application.candidate_email:
            emails.append(application.candidate_email)
        return emails

    def _store_with_meeting(self, interview: Interview, store) -> Interview:
        """Write the interview; give the fresh meeting back if the write fails."""
        try:
            return store(interview)
        except Exception:
            if interview.mode == InterviewMode.ONLINE:
                self.meetings.release(interview.meeting_details)
            raise

    # === Core Transitions ===

    @as_result("ScheduleInterview")
    def schedule_interview(self, req: ScheduleInterviewRequest, actor_id: str) -> Interview:
        self._validate_request(req)

        with self.interviews.transaction():
            application = self._require_application(req.application_id)
            if not self.access.can_modify_application(actor_id, application.id):
                raise UnauthorizedError(f"User {actor_id} is not allowed to schedule interviews for this application")

            self._ensure_schedulable(application)
            self.calendar.validate_slot(req.scheduled_start, req.duration_minutes)

            users = self._resolve_participants([p.user_id for p in req.participants])
            self._ensure_no_conflicts(users, req.scheduled_start, req.duration_minutes)

            existing = self.applications.get_active_interviews(application.id)
            now = self.clock()
            interview = Interview(
                application_id=application.id,
                title=req.title.strip(),
                interview_type=req.interview_type,
                round_number=resolve_next_round(existing),
                scheduled_start=req.scheduled_start,
                duration_minutes=req.duration_minutes,
                mode=req.mode,
                instructions=req.instructions,
                scheduled_by=actor_id,
                participants=self._build_participants(req.participants),
                created_at=now,
            )
            interview.meeting_details = self.meetings.provision(interview, self._attendee_emails(interview, application))
            self._store_with_meeting(interview, self.interviews.add)

            if not existing and application.status != ApplicationStatus.INTERVIEW:
                self.applications.update_status(
                    application.id,
                    ApplicationStatus.INTERVIEW,
                    actor_id,
                    f"First interview scheduled: {interview.title} on {format_stamp(interview.scheduled_start)}",
                )

        logger.info(
            f"[Schedule] Interview {interview.id} (round {interview.round_number}) scheduled for application "
            f"{application.id} at {interview.scheduled_start}"
        )
        self.notifier.dispatch(interview, NotificationType.SCHEDULING)
        return interview

    @as_result("RescheduleInterview")
    def reschedule_interview(self, interview_id: str, req: RescheduleInterviewRequest, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            self.lifecycle.ensure_allowed(interview, Transition.RESCHEDULE)
            self.access.require_modify(actor_id, interview, "reschedule")

            self.calendar.validate_slot(req.new_start, interview.duration_minutes)
            users = [self.directory.resolve_user(pid) for pid in interview.participant_ids]
            self._ensure_no_conflicts(users, req.new_start, interview.duration_minutes, exclude_interview_id=interview.id)

            original_start = interview.scheduled_start
            previous_details = interview.meeting_details
            self.lifecycle.reschedule(interview, req.new_start, req.reason)

            if interview.mode == InterviewMode.ONLINE:
                application = self.applications.get_by_id(interview.application_id)
                interview.meeting_details = self.meetings.provision(
                    interview, self._attendee_emails(interview, application)
                )
            self._store_with_meeting(interview, self.interviews.update)

        if interview.mode == InterviewMode.ONLINE:
            self.meetings.release(previous_details)

        logger.info(f"[Reschedule] Interview {interview.id} moved from {original_start} to {interview.scheduled_start}")
        self.notifier.dispatch(interview, NotificationType.RESCHEDULING, original_start=original_start, reason=req.reason)
        return interview

    @as_result("CancelInterview")
    def cancel_interview(self, interview_id: str, req: CancelInterviewRequest, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            self.lifecycle.ensure_allowed(interview, Transition.CANCEL)
            self.access.require_modify(actor_id, interview, "cancel")

            self.lifecycle.cancel(interview, req.reason)
            self.interviews.update(interview)

        if interview.mode == InterviewMode.ONLINE:
            self.meetings.release(interview.meeting_details)

        logger.info(f"[Cancel] Interview {interview.id} cancelled by {actor_id}")
        self.notifier.dispatch(interview, NotificationType.CANCELLATION, reason=req.reason)
        return interview

    @as_result("CompleteInterview")
    def complete_interview(self, interview_id: str, req: CompleteInterviewRequest, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            self.lifecycle.ensure_allowed(interview, Transition.COMPLETE)
            self.access.require_complete(actor_id, interview, "complete")

            self.lifecycle.complete(interview, actor_id, req.summary_notes)
            self.interviews.update(interview)

            application_status = self.applications.get_status(interview.application_id)
            if (
                application_status is not None
                and application_status != ApplicationStatus.INTERVIEW
                and application_status.value in self.config.SCHEDULABLE_STATUSES
            ):
                self.applications.update_status(
                    interview.application_id,
                    ApplicationStatus.INTERVIEW,
                    actor_id,
                    f"Interview completed: {interview.title} on {format_stamp(self.clock())}",
                )

        logger.info(f"[Complete] Interview {interview.id} completed by {actor_id}")
        self.notifier.dispatch(interview, NotificationType.EVALUATION)
        return interview

    @as_result("MarkNoShow")
    def mark_no_show(self, interview_id: str, req: MarkNoShowRequest, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            self.lifecycle.ensure_allowed(interview, Transition.MARK_NO_SHOW)
            self.access.require_complete(actor_id, interview, "mark as no-show")

            self.lifecycle.mark_no_show(interview, actor_id, req.notes)
            self.interviews.update(interview)

        logger.info(f"[NoShow] Interview {interview.id} marked as no-show by {actor_id}")
        self.notifier.dispatch(interview, NotificationType.NO_SHOW)
        return interview

    @as_result("DeleteInterview")
    def delete_interview(self, interview_id: str, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            self.access.require_modify(actor_id, interview, "delete")

            self.lifecycle.ensure_deletable(
                interview,
                self.evaluations.get_by_interview(interview.id),
                self.applications.get_status(interview.application_id),
                self.applications.get_active_interviews(interview.application_id),
            )
            was_pending = interview.status == InterviewStatus.SCHEDULED
            self.lifecycle.soft_delete(interview)
            self.interviews.update(interview)

        if was_pending and interview.mode == InterviewMode.ONLINE:
            self.meetings.release(interview.meeting_details)
        return interview

    # === Slot Search & Checks ===

    @as_result("GetAvailableSlots")
    def get_available_slots(self, req: AvailableSlotsRequest) -> List[Slot]:
        if not req.participant_ids:
            raise RequestValidationFailed("At least one participant is required")
        if req.start_date > req.end_date:
            raise RequestValidationFailed("Start date cannot be after end date")
        if (req.end_date - req.start_date).days + 1 > self.config.MAX_SLOT_SEARCH_DAYS:
            raise RequestValidationFailed(f"Date range cannot exceed {self.config.MAX_SLOT_SEARCH_DAYS} days")
        self.calendar.validate_duration(req.duration_minutes)

        users = self._resolve_participants(req.participant_ids)
        labels = {u.user_id: u.label for u in users}
        return self.slot_generator.generate_slots(
            req.participant_ids, req.start_date, req.end_date, req.duration_minutes, labels=labels
        )

    @as_result("ValidateTimeSlot")
    def validate_time_slot(self, start: datetime, duration_minutes: int) -> bool:
        self.calendar.validate_slot(start, duration_minutes)
        return True

    def has_conflicting_interviews(self, participant_id: str, start: datetime, duration_minutes: int) -> bool:
        return self.detector.has_conflict(participant_id, start, duration_minutes)

    def can_schedule_interview(self, application_id: str) -> bool:
        try:
            self._ensure_schedulable(self._require_application(application_id))
            return True
        except InterviewEngineError as e:
            logger.info(f"[CanSchedule] Application {application_id}: {e.message}")
            return False
        except Exception as e:
            logger.error(f"[CanSchedule] Check failed for application {application_id}: {e}")
            return False

    # === Queries ===

    @as_result("GetParticipants")
    def get_participants(self, interview_id: str, actor_id: str) -> List[Participant]:
        interview = self._require_interview(interview_id)
        self.access.require_view(actor_id, interview)

        emails = {p.user_id: self.directory.resolve_user(p.user_id).email or "" for p in interview.participants}
        return sorted(
            interview.participants,
            key=lambda p: (not p.is_lead, ROLE_ORDER.index(p.role), emails[p.user_id]),
        )

    def get_latest_interview(self, application_id: str) -> Optional[Interview]:
        active = self.applications.get_active_interviews(application_id)
        if not active:
            return None
        return max(active, key=lambda i: (i.round_number, i.created_at))

    @as_result("GetScheduledInterviews")
    def get_scheduled_interviews(self, req: ScheduledInterviewsRequest) -> List[ScheduledInterviewSlot]:
        if req.start >= req.end:
            raise RequestValidationFailed("Start must be before end")

        booked = {}
        for participant_id in req.participant_ids:
            for interview in self.interviews.get_scheduled_for_participant(participant_id):
                if interview.application_id == req.exclude_application_id:
                    continue
                if interview.scheduled_start < req.end and interview.scheduled_end > req.start:
                    booked[interview.id] = interview

        return [
            ScheduledInterviewSlot(
                interview_id=i.id,
                title=i.title,
                start=i.scheduled_start,
                end=i.scheduled_end,
                duration_minutes=i.duration_minutes,
                interview_type=i.interview_type,
                mode=i.mode,
                participants=i.participant_ids,
            )
            for i in sorted(booked.values(), key=lambda i: i.scheduled_start)
        ]

    def get_overall_outcome(self, application_id: str) -> InterviewOutcome:
        try:
            return aggregate_outcomes(self.applications.get_active_interviews(application_id))
        except Exception as e:
            logger.warning(f"[Outcome] Falling back to Pending for application {application_id}: {e}")
            return InterviewOutcome.PENDING

    # === Batch ===

    def send_reminders(self) -> int:
        """
        Remind participants and candidate of interviews starting within the
        reminder horizon. Each interview is reminded once; rescheduling
        clears the stamp.
        """
        now = self.clock()
        horizon = now + timedelta(hours=self.config.REMINDER_LEAD_HOURS)
        due = [
            i for i in self.interviews.list_between(now, horizon)
            if i.status == InterviewStatus.SCHEDULED and i.reminder_sent_at is None
        ]

        reminded = 0
        for candidate in due:
            with self.interviews.transaction():
                interview = self.interviews.get_by_id(candidate.id)
                if interview is None or interview.status != InterviewStatus.SCHEDULED or interview.reminder_sent_at:
                    continue
                interview.reminder_sent_at = now
                self.interviews.update(interview)

            self.notifier.dispatch(interview, NotificationType.REMINDER)
            reminded += 1

        logger.info(f"[Reminder] {reminded} interview reminder(s) sent")
        return reminded
