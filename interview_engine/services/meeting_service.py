"""
Meeting provisioning for Online interviews.

Providers generate or book a video meeting; the `MeetingCoordinator` turns
their credentials into the interview's stored meeting details and absorbs
every provider failure, because an interview must never fail to schedule
over a missing link.
"""

import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import DependencyDegradedError
from interview_engine.base.metrics import meeting_fallback_counter
from interview_engine.base.models import Interview, InterviewMode, MeetingCredentials
from interview_engine.utils.time_utils import add_minutes, ensure_utc

logger = logging.getLogger("meeting_service")

SCOPES = ["https://www.googleapis.com/auth/calendar"]

PROVIDER_UNAVAILABLE_TEXT = "Video conference details will be sent via email"
PROVIDER_FAILED_TEXT = "Video conference link will be provided via email"
IN_PERSON_TEXT = "Meeting room details will be provided separately"


def sanitize_room_title(title: Optional[str], limit: int = 30) -> str:
    if not title or not title.strip():
        return "Meeting"
    sanitized = re.sub(r"[^0-9A-Za-z]", "-", title[:limit]).strip("-")
    return sanitized or "Meeting"


class MeetingProvider(ABC):

    service_type: str = "Generic"

    @abstractmethod
    def create_meeting(
        self,
        title: str,
        start: datetime,
        duration_minutes: int,
        attendee_emails: List[str],
        description: Optional[str] = None,
    ) -> MeetingCredentials:
        pass

    @abstractmethod
    def cancel_meeting(self, meeting_id: str) -> bool:
        pass

    def is_available(self) -> bool:
        return True


class JitsiMeetProvider(MeetingProvider):
    """Generated Jitsi rooms. No account or API call needed, so cancelling is a no-op."""

    service_type = "JitsiMeet"
    BASE_URL = "https://meet.jit.si"

    def create_meeting(self, title, start, duration_minutes, attendee_emails, description=None) -> MeetingCredentials:
        room_name = f"Interview-{sanitize_room_title(title)}-{uuid.uuid4().hex[:12]}"
        logger.info(f"[Meeting] Generated Jitsi room for '{title}'")
        return MeetingCredentials(
            meeting_id=room_name,
            meeting_link=f"{self.BASE_URL}/{room_name}",
            title=title,
            start=ensure_utc(start),
            duration_minutes=duration_minutes,
            description=description or "Interview meeting via Jitsi Meet - no account required, open the link to join",
            attendee_emails=list(attendee_emails),
        )

    def cancel_meeting(self, meeting_id: str) -> bool:
        logger.info(f"[Meeting] Cancellation requested for Jitsi room {meeting_id}; link stays valid")
        return True


class GoogleMeetProvider(MeetingProvider):
    """Generated Meet codes; the organiser's calendar is not touched."""

    service_type = "GoogleMeet"
    BASE_URL = "https://meet.google.com"

    def create_meeting(self, title, start, duration_minutes, attendee_emails, description=None) -> MeetingCredentials:
        code = uuid.uuid4().hex[:10].upper()
        logger.info(f"[Meeting] Generated Google Meet code for '{title}'")
        return MeetingCredentials(
            meeting_id=code,
            meeting_link=f"{self.BASE_URL}/{code}",
            title=title,
            start=ensure_utc(start),
            duration_minutes=duration_minutes,
            description=description or "Interview meeting via Google Meet",
            attendee_emails=list(attendee_emails),
        )

    def cancel_meeting(self, meeting_id: str) -> bool:
        logger.info(f"[Meeting] Cancellation requested for Google Meet {meeting_id}; nothing to release")
        return True


class GoogleCalendarMeetingProvider(MeetingProvider):
    """
    Books a Google Calendar event with Meet conference data through a
    service account, and deletes the event on cancel.
    """

    service_type = "GoogleCalendar"

    def __init__(self, config: AppConfig = settings, service=None):
        self.calendar_id = config.GOOGLE_CALENDAR_ID
        self.credentials_file = config.GOOGLE_CREDENTIALS_FILE
        self.organizer_email = config.MEETING_ORGANIZER_EMAIL
        self._service = service

    @property
    def service(self):
        if self._service is None:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_file, scopes=SCOPES)
            self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
            logger.info("[GoogleCalendar] Authenticated with service account.")
        return self._service

    def is_available(self) -> bool:
        return self._service is not None or os.path.exists(self.credentials_file)

    def create_meeting(self, title, start, duration_minutes, attendee_emails, description=None) -> MeetingCredentials:
        start = ensure_utc(start)
        event = {
            "summary": title,
            "description": description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": add_minutes(start, duration_minutes).isoformat(), "timeZone": "UTC"},
            "attendees": [{"email": email} for email in attendee_emails],
            "organizer": {"email": self.organizer_email},
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
            "reminders": {"useDefault": True},
        }

        try:
            created = self.service.events().insert(
                calendarId=self.calendar_id,
                body=event,
                conferenceDataVersion=1,
                sendUpdates="all",
            ).execute()
        except HttpError as e:
            raise DependencyDegradedError(f"Google Calendar could not book the meeting: {e}") from e

        link = created.get("hangoutLink") or created.get("htmlLink")
        logger.info(f"[EventCreate] Created: {created.get('id')} -> {link}")
        return MeetingCredentials(
            meeting_id=created["id"],
            meeting_link=link,
            title=title,
            start=start,
            duration_minutes=duration_minutes,
            description=description,
            attendee_emails=list(attendee_emails),
        )

    def cancel_meeting(self, meeting_id: str) -> bool:
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=meeting_id, sendUpdates="all").execute()
            logger.info(f"[EventDelete] Deleted event ID: {meeting_id}")
            return True
        except HttpError as e:
            logger.warning(f"[EventDelete] Failed: {e}")
            return False


def build_meeting_provider(config: AppConfig = settings) -> MeetingProvider:
    if config.MEETING_PROVIDER == "google_calendar":
        return GoogleCalendarMeetingProvider(config)
    if config.MEETING_PROVIDER == "google_meet":
        return GoogleMeetProvider()
    return JitsiMeetProvider()


class MeetingCoordinator:
    def __init__(self, provider: MeetingProvider):
        self.provider = provider

    @staticmethod
    def format_details(credentials: MeetingCredentials) -> str:
        lines = [f"Meeting Link: {credentials.meeting_link}"]
        if credentials.password:
            lines.append(f"Password: {credentials.password}")
        if credentials.dial_in_number:
            lines.append(f"Dial-in: {credentials.dial_in_number} (Access Code: {credentials.access_code or 'N/A'})")
        lines.append(f"Meeting ID: {credentials.meeting_id}")
        return "\n".join(lines)

    @staticmethod
    def extract_meeting_id(meeting_details: Optional[str]) -> Optional[str]:
        if not meeting_details:
            return None
        for line in meeting_details.splitlines():
            if line.startswith("Meeting ID:"):
                return line[len("Meeting ID:"):].strip() or None
        return None

    def provision(self, interview: Interview, attendee_emails: List[str]) -> Optional[str]:
        """Meeting details to store on the interview; never raises for provider trouble."""
        if interview.mode == InterviewMode.IN_PERSON:
            return IN_PERSON_TEXT
        if interview.mode != InterviewMode.ONLINE:
            return None

        try:
            available = self.provider.is_available()
        except Exception as e:
            logger.warning(f"[Meeting] Availability check failed for {self.provider.service_type}: {e}")
            available = False

        if not available:
            logger.warning(f"[Meeting] {self.provider.service_type} unavailable for interview {interview.id}, using placeholder")
            meeting_fallback_counter.labels(operation="unavailable").inc()
            return PROVIDER_UNAVAILABLE_TEXT

        try:
            credentials = self.provider.create_meeting(
                title=interview.title,
                start=interview.scheduled_start,
                duration_minutes=interview.duration_minutes,
                attendee_emails=attendee_emails,
                description=f"Round {interview.round_number} {interview.interview_type.value} interview",
            )
        except DependencyDegradedError as e:
            logger.warning(f"[Meeting] {self.provider.service_type} degraded for interview {interview.id}: {e}")
            meeting_fallback_counter.labels(operation="create").inc()
            return PROVIDER_FAILED_TEXT
        except Exception as e:
            logger.warning(f"[Meeting] {self.provider.service_type} failed for interview {interview.id}: {e}")
            meeting_fallback_counter.labels(operation="create").inc()
            return PROVIDER_FAILED_TEXT

        logger.info(f"[Meeting] Provisioned {credentials.meeting_id} for interview {interview.id}")
        return self.format_details(credentials)

    def release(self, meeting_details: Optional[str]) -> bool:
        meeting_id = self.extract_meeting_id(meeting_details)
        if meeting_id is None:
            return False
        try:
            return self.provider.cancel_meeting(meeting_id)
        except Exception as e:
            logger.warning(f"[Meeting] Failed to cancel meeting {meeting_id}: {e}")
            meeting_fallback_counter.labels(operation="cancel").inc()
            return False
