import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.models import Interview, Slot
from interview_engine.services.business_calendar import BusinessCalendar
from interview_engine.services.conflict_detector import ConflictDetector
from interview_engine.utils.time_utils import add_minutes

logger = logging.getLogger("slot_generator")


class SlotGenerator:
    """
    Enumerates candidate interview slots inside business hours and classifies
    each requested participant as available or busy.

    Each participant's calendar is read once per call, so every slot is
    judged against the same snapshot.
    """

    def __init__(self, calendar: BusinessCalendar, detector: ConflictDetector, config: AppConfig = settings):
        self.calendar = calendar
        self.detector = detector
        self.stride = timedelta(minutes=config.SLOT_STRIDE_MINUTES)

    def _snapshot(self, participant_ids: List[str]) -> Dict[str, Optional[List[Interview]]]:
        snapshot = {}
        for participant_id in participant_ids:
            try:
                snapshot[participant_id] = self.detector.upcoming_for(participant_id)
            except Exception as e:
                logger.error(f"[SlotGen] Calendar lookup failed for {participant_id}, marking busy: {e}")
                snapshot[participant_id] = None
        return snapshot

    def day_starts(self, day: date, duration_minutes: int, earliest: datetime) -> List[datetime]:
        """Stride-aligned starts on one day whose interview ends by closing time."""
        if not self.calendar.is_business_day(day):
            return []

        opens, closes = self.calendar.business_window(day)
        starts = []
        cursor = opens
        while add_minutes(cursor, duration_minutes) <= closes:
            if cursor >= earliest:
                starts.append(cursor)
            cursor += self.stride
        return starts

    def generate_slots(
        self,
        participant_ids: List[str],
        start_date: date,
        end_date: date,
        duration_minutes: int,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Slot]:
        labels = labels or {}
        snapshot = self._snapshot(participant_ids)
        earliest = self.calendar.earliest_start()

        slots = []
        for day in self.calendar.iter_days(start_date, end_date):
            for start in self.day_starts(day, duration_minutes, earliest):
                available, unavailable = [], []
                for participant_id in participant_ids:
                    existing = snapshot[participant_id]
                    busy = existing is None or bool(self.detector.conflicting(existing, start, duration_minutes))
                    (unavailable if busy else available).append(labels.get(participant_id, participant_id))

                if not available:
                    continue

                slots.append(Slot(
                    start=start,
                    end=add_minutes(start, duration_minutes),
                    duration_minutes=duration_minutes,
                    available_participants=available,
                    unavailable_participants=unavailable,
                    is_recommended=not unavailable,
                ))

        logger.info(f"[SlotGen] {len(slots)} slots between {start_date} and {end_date} for {len(participant_ids)} participant(s)")
        return slots
