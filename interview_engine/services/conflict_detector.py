import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.models import Interview
from interview_engine.repositories.base import InterviewRepository
from interview_engine.utils.time_utils import Clock, add_minutes, ensure_utc, utcnow

logger = logging.getLogger("conflict_detector")


def overlaps_with_buffer(
    proposed_start: datetime,
    proposed_end: datetime,
    existing_start: datetime,
    existing_end: datetime,
    buffer_minutes: int = 15,
) -> bool:
    """
    Half-open overlap test with a trailing buffer on the existing interview.

    Only the existing interview's end is padded; its start is not.
    """
    return proposed_start < existing_end + timedelta(minutes=buffer_minutes) and proposed_end > existing_start


class ConflictDetector:
    def __init__(self, interviews: InterviewRepository, config: AppConfig = settings, clock: Clock = utcnow):
        self.interviews = interviews
        self.buffer_minutes = config.CONFLICT_BUFFER_MINUTES
        self.clock = clock

    def upcoming_for(self, participant_id: str, exclude_interview_id: Optional[str] = None) -> List[Interview]:
        """Active Scheduled interviews of the participant that have not ended yet."""
        now = self.clock()
        return [
            i for i in self.interviews.get_scheduled_for_participant(participant_id)
            if i.scheduled_end > now and i.id != exclude_interview_id
        ]

    def conflicting(self, existing: Iterable[Interview], proposed_start: datetime, duration_minutes: int) -> List[Interview]:
        proposed_start = ensure_utc(proposed_start)
        proposed_end = add_minutes(proposed_start, duration_minutes)
        return [
            i for i in existing
            if overlaps_with_buffer(proposed_start, proposed_end, i.scheduled_start, i.scheduled_end, self.buffer_minutes)
        ]

    def has_conflict(
        self,
        participant_id: str,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_interview_id: Optional[str] = None,
    ) -> bool:
        try:
            existing = self.upcoming_for(participant_id, exclude_interview_id)
        except Exception as e:
            # Fail closed: an unreadable calendar must never allow a double booking.
            logger.error(f"[Conflict] Lookup failed for participant {participant_id}, reporting conflict: {e}")
            return True

        clashes = self.conflicting(existing, proposed_start, duration_minutes)
        if clashes:
            logger.info(
                f"[Conflict] Participant {participant_id} busy at {proposed_start}: "
                f"overlaps {', '.join(i.id for i in clashes)}"
            )
            return True
        return False
