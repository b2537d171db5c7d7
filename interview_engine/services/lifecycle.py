"""
Interview lifecycle state machine.

    Scheduled --reschedule--> Scheduled
    Scheduled --cancel------> Cancelled
    Scheduled --complete----> Completed   (start + completion grace)
    Scheduled --no_show-----> NoShow      (start + no-show grace)

Every status other than Scheduled is terminal. The engine mutates the
interview it is handed and leaves persistence to the caller, so a rejected
transition never touches stored state.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import InvalidStateError
from interview_engine.base.models import (
    ApplicationStatus,
    Evaluation,
    Interview,
    InterviewOutcome,
    InterviewStatus,
)
from interview_engine.utils.time_utils import Clock, ensure_utc, format_stamp, utcnow

logger = logging.getLogger("interview_lifecycle")


class Transition(str, Enum):
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"


TRANSITIONS: Dict[Transition, Tuple[InterviewStatus, InterviewStatus]] = {
    Transition.RESCHEDULE: (InterviewStatus.SCHEDULED, InterviewStatus.SCHEDULED),
    Transition.CANCEL: (InterviewStatus.SCHEDULED, InterviewStatus.CANCELLED),
    Transition.COMPLETE: (InterviewStatus.SCHEDULED, InterviewStatus.COMPLETED),
    Transition.MARK_NO_SHOW: (InterviewStatus.SCHEDULED, InterviewStatus.NO_SHOW),
}


def allowed_transitions(status: InterviewStatus) -> List[Transition]:
    return [t for t, (source, _) in TRANSITIONS.items() if source == status]


class InterviewLifecycle:
    def __init__(self, config: AppConfig = settings, clock: Clock = utcnow):
        self.config = config
        self.clock = clock

    def ensure_allowed(self, interview: Interview, transition: Transition) -> None:
        if transition not in allowed_transitions(interview.status):
            raise InvalidStateError(
                f"Cannot {transition.value.replace('_', ' ')} an interview in status {interview.status.value}"
            )

    def _ensure_grace_elapsed(self, interview: Interview, minutes: int, action: str) -> None:
        not_before = interview.scheduled_start + timedelta(minutes=minutes)
        if self.clock() < not_before:
            raise InvalidStateError(
                f"Interview can only be {action} {minutes} minutes after its scheduled start "
                f"(not before {format_stamp(not_before)} UTC)"
            )

    def _apply(self, interview: Interview, transition: Transition, note: str) -> Interview:
        _, target = TRANSITIONS[transition]
        interview.status = target
        interview.append_note(note)
        interview.updated_at = self.clock()
        logger.info(f"[Lifecycle] Interview {interview.id}: {transition.value} -> {target.value}")
        return interview

    # === Transitions ===

    def reschedule(self, interview: Interview, new_start: datetime, reason: Optional[str] = None) -> Interview:
        self.ensure_allowed(interview, Transition.RESCHEDULE)
        new_start = ensure_utc(new_start)
        note = (
            f"Rescheduled from {format_stamp(interview.scheduled_start)} to {format_stamp(new_start)}. "
            f"Reason: {reason or 'Not specified'}"
        )
        interview.scheduled_start = new_start
        interview.reminder_sent_at = None
        return self._apply(interview, Transition.RESCHEDULE, note)

    def cancel(self, interview: Interview, reason: Optional[str] = None) -> Interview:
        self.ensure_allowed(interview, Transition.CANCEL)
        note = f"Interview cancelled on {format_stamp(self.clock())}. Reason: {reason or 'Not specified'}"
        return self._apply(interview, Transition.CANCEL, note)

    def complete(self, interview: Interview, actor_id: str, summary: Optional[str] = None) -> Interview:
        self.ensure_allowed(interview, Transition.COMPLETE)
        self._ensure_grace_elapsed(interview, self.config.COMPLETION_GRACE_MINUTES, "completed")
        note = f"Interview completed on {format_stamp(self.clock())} by {actor_id}"
        if summary:
            note += f"\nSummary: {summary}"
        return self._apply(interview, Transition.COMPLETE, note)

    def mark_no_show(self, interview: Interview, actor_id: str, notes: Optional[str] = None) -> Interview:
        self.ensure_allowed(interview, Transition.MARK_NO_SHOW)
        self._ensure_grace_elapsed(interview, self.config.NO_SHOW_GRACE_MINUTES, "marked as no-show")
        note = f"Marked as no-show on {format_stamp(self.clock())} by user {actor_id}"
        if notes:
            note += f"\nNotes: {notes}"
        return self._apply(interview, Transition.MARK_NO_SHOW, note)

    # === Outcome & Deletion Rules ===

    def ensure_outcome_assignable(self, interview: Interview) -> None:
        if interview.status != InterviewStatus.COMPLETED:
            raise InvalidStateError("Outcome can only be set for completed interviews")

    def set_outcome(self, interview: Interview, outcome: InterviewOutcome, manual: bool = False) -> Interview:
        self.ensure_outcome_assignable(interview)
        interview.outcome = outcome
        interview.outcome_overridden = interview.outcome_overridden or manual
        interview.updated_at = self.clock()
        return interview

    def ensure_deletable(
        self,
        interview: Interview,
        evaluations: List[Evaluation],
        application_status: Optional[ApplicationStatus],
        active_interviews: List[Interview],
    ) -> None:
        if not interview.is_active:
            raise InvalidStateError("Interview has already been deleted")
        if interview.status == InterviewStatus.COMPLETED and evaluations:
            raise InvalidStateError("A completed interview with evaluations cannot be deleted")
        if application_status == ApplicationStatus.INTERVIEW and [i.id for i in active_interviews] == [interview.id]:
            raise InvalidStateError(
                "Cannot delete the only interview of an application in Interview status"
            )

    def soft_delete(self, interview: Interview) -> Interview:
        interview.is_active = False
        interview.updated_at = self.clock()
        logger.info(f"[Lifecycle] Interview {interview.id} soft-deleted")
        return interview
