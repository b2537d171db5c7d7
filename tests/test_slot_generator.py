from datetime import date
from unittest.mock import MagicMock

import pytest

from conftest import at
from interview_engine.base.errors import ErrorKind, RequestValidationFailed
from interview_engine.base.models import AvailableSlotsRequest
from interview_engine.repositories.base import InterviewRepository
from interview_engine.services.business_calendar import BusinessCalendar
from interview_engine.services.conflict_detector import ConflictDetector
from interview_engine.services.slot_generator import SlotGenerator

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
WEDNESDAY = date(2030, 1, 9)
SATURDAY = date(2030, 1, 12)
SUNDAY = date(2030, 1, 13)


@pytest.fixture
def generator(interviews, config, clock):
    calendar = BusinessCalendar(config, clock)
    return SlotGenerator(calendar, ConflictDetector(interviews, config, clock), config)


@pytest.mark.scheduling
class TestSlotGeneration:

    def test_weekend_range_yields_nothing(self, generator):
        assert generator.generate_slots(["p1"], SATURDAY, SUNDAY, 60) == []

    def test_duration_longer_than_business_day_yields_nothing(self, generator):
        assert generator.generate_slots(["p1"], TUESDAY, TUESDAY, 600) == []

    def test_walks_thirty_minute_stride_until_closing(self, generator):
        slots = generator.generate_slots(["p1"], TUESDAY, TUESDAY, 60)

        assert len(slots) == 17
        assert slots[0].start == at(1, 9)
        assert slots[-1].start == at(1, 17)
        assert slots[-1].end == at(1, 18)
        assert all(s.is_recommended for s in slots)

    def test_full_day_interview_has_three_starts(self, generator):
        slots = generator.generate_slots(["p1"], TUESDAY, TUESDAY, 480)
        assert [s.start for s in slots] == [at(1, 9), at(1, 9, 30), at(1, 10)]

    def test_respects_advance_notice(self, generator, clock):
        clock.set(at(0, 10, 10))
        slots = generator.generate_slots(["p1"], MONDAY, MONDAY, 60)

        assert slots[0].start == at(0, 11, 30)
        assert len(slots) == 12

    def test_classifies_participants(self, generator, scheduling, make_request):
        scheduling.schedule_interview(make_request(start=at(2, 10), participants=("p1",)), "recruiter-1").unwrap()

        slots = {s.start: s for s in generator.generate_slots(["p1", "p2"], WEDNESDAY, WEDNESDAY, 60)}

        assert slots[at(2, 9)].is_recommended
        assert slots[at(2, 9, 30)].available_participants == ["p2"]
        assert slots[at(2, 9, 30)].unavailable_participants == ["p1"]
        # Trailing buffer keeps 11:00 busy, 11:30 is free again.
        assert not slots[at(2, 11)].is_recommended
        assert slots[at(2, 11, 30)].is_recommended

    def test_slot_needs_one_available_participant(self, generator, scheduling, make_request):
        scheduling.schedule_interview(make_request(start=at(2, 10), participants=("p1",)), "recruiter-1").unwrap()

        starts = [s.start for s in generator.generate_slots(["p1"], WEDNESDAY, WEDNESDAY, 60)]

        assert at(2, 10) not in starts
        assert at(2, 9) in starts

    def test_unreadable_calendar_marks_participant_busy(self, config, clock):
        def lookup(user_id):
            if user_id == "p1":
                raise RuntimeError("timeout")
            return []

        repo = MagicMock(spec=InterviewRepository)
        repo.get_scheduled_for_participant.side_effect = lookup
        calendar = BusinessCalendar(config, clock)
        generator = SlotGenerator(calendar, ConflictDetector(repo, config, clock), config)

        slots = generator.generate_slots(["p1", "p2"], TUESDAY, TUESDAY, 60)

        assert slots
        assert all(s.unavailable_participants == ["p1"] for s in slots)

    def test_uses_labels_when_given(self, generator):
        slots = generator.generate_slots(["p1"], TUESDAY, TUESDAY, 60, labels={"p1": "Pat One"})
        assert slots[0].available_participants == ["Pat One"]


@pytest.mark.scheduling
class TestAvailableSlotsOperation:

    def test_returns_slots_with_display_names(self, scheduling):
        result = scheduling.get_available_slots(AvailableSlotsRequest(
            participant_ids=["p1", "p2"], start_date=TUESDAY, end_date=WEDNESDAY, duration_minutes=60
        ))

        assert result.ok
        assert len(result.value) == 34
        assert result.value[0].available_participants == ["Pat One", "Pat Two"]

    @pytest.mark.parametrize("request_kwargs", [
        {"participant_ids": [], "start_date": TUESDAY, "end_date": TUESDAY},
        {"participant_ids": ["p1"], "start_date": WEDNESDAY, "end_date": TUESDAY},
        {"participant_ids": ["p1"], "start_date": TUESDAY, "end_date": date(2030, 3, 1)},
        {"participant_ids": ["p1"], "start_date": TUESDAY, "end_date": TUESDAY, "duration_minutes": 0},
    ])
    def test_rejects_malformed_requests(self, scheduling, request_kwargs):
        result = scheduling.get_available_slots(AvailableSlotsRequest(**request_kwargs))
        assert result.error.kind == ErrorKind.VALIDATION

    def test_unknown_participant_is_not_found(self, scheduling):
        result = scheduling.get_available_slots(AvailableSlotsRequest(
            participant_ids=["ghost"], start_date=TUESDAY, end_date=TUESDAY
        ))
        assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.scheduling
class TestBusinessTimezone:
    """Business days and hours are judged on the Asia/Tokyo calendar (UTC+9)."""

    @pytest.fixture
    def tokyo(self, config, clock):
        return BusinessCalendar(config.model_copy(update={"BUSINESS_TIMEZONE": "Asia/Tokyo"}), clock)

    def test_business_window_in_utc(self, tokyo):
        assert tokyo.business_window(TUESDAY) == (at(1, 0), at(1, 9))

    def test_slots_follow_local_hours(self, tokyo, interviews):
        generator = SlotGenerator(tokyo, ConflictDetector(interviews, tokyo.config, tokyo.clock), tokyo.config)

        slots = generator.generate_slots(["p1"], TUESDAY, TUESDAY, 60)

        assert len(slots) == 17
        assert slots[0].start == at(1, 0)
        assert slots[-1].end == at(1, 9)

    @pytest.mark.parametrize("start, message", [
        (at(4, 18), "weekends"),            # Friday in UTC, Saturday 03:00 in Tokyo
        (at(2, 9), "business hours"),       # Wednesday 18:00 in Tokyo
        (at(6, 23, 30), "business hours"),  # Sunday in UTC, Monday 08:30 in Tokyo
    ])
    def test_rejections_use_local_calendar(self, tokyo, start, message):
        with pytest.raises(RequestValidationFailed) as excinfo:
            tokyo.validate_slot(start, 60)
        assert message in excinfo.value.message

    def test_local_morning_is_bookable(self, tokyo):
        # Wednesday 10:00 in Tokyo
        tokyo.validate_slot(at(2, 1), 60)
