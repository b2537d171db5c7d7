import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.models import (
    EmailMessage,
    Interview,
    NotificationContext,
    NotificationType,
    Recipient,
)
from interview_engine.repositories.base import ApplicationRepository, ParticipantDirectory
from interview_engine.utils.time_utils import format_stamp

logger = logging.getLogger("notification_service")

CANDIDATE_NOTIFICATIONS = {
    NotificationType.SCHEDULING,
    NotificationType.RESCHEDULING,
    NotificationType.CANCELLATION,
    NotificationType.REMINDER,
}


def should_notify_candidate(notification_type: NotificationType) -> bool:
    return notification_type in CANDIDATE_NOTIFICATIONS


class NotificationSender(ABC):

    @abstractmethod
    def notify_scheduled(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass

    @abstractmethod
    def notify_rescheduled(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass

    @abstractmethod
    def notify_cancelled(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass

    @abstractmethod
    def notify_reminder(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass

    @abstractmethod
    def notify_evaluation_due(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass

    @abstractmethod
    def notify_no_show(self, recipient: Recipient, interview: Interview, context: NotificationContext) -> None:
        pass


class NotificationDispatcher:
    """
    Fans a lifecycle event out to participants and, for candidate-facing
    events, the candidate. Delivery problems are logged and swallowed: a
    notification never undoes a transition.
    """

    def __init__(self, sender: NotificationSender, directory: ParticipantDirectory, applications: ApplicationRepository):
        self.sender = sender
        self.directory = directory
        self.applications = applications

    def _route(self, notification_type: NotificationType):
        return {
            NotificationType.SCHEDULING: self.sender.notify_scheduled,
            NotificationType.RESCHEDULING: self.sender.notify_rescheduled,
            NotificationType.CANCELLATION: self.sender.notify_cancelled,
            NotificationType.REMINDER: self.sender.notify_reminder,
            NotificationType.NO_SHOW: self.sender.notify_no_show,
            NotificationType.EVALUATION: self.sender.notify_evaluation_due,
        }[notification_type]

    def recipients(self, interview: Interview, notification_type: NotificationType) -> List[Recipient]:
        recipients = []
        for participant_id in interview.participant_ids:
            user = self.directory.resolve_user(participant_id)
            if not user.exists or not user.email:
                logger.warning(f"[Notify] No email for participant {participant_id}, skipping")
                continue
            recipients.append(Recipient(user_id=user.user_id, email=user.email, name=user.label))

        if should_notify_candidate(notification_type):
            application = self.applications.get_by_id(interview.application_id)
            if application and application.candidate_email:
                recipients.append(Recipient(
                    user_id=application.candidate_user_id,
                    email=application.candidate_email,
                    name=application.candidate_name or "Candidate",
                    is_candidate=True,
                ))
        return recipients

    def build_context(
        self,
        interview: Interview,
        original_start=None,
        reason: Optional[str] = None,
    ) -> NotificationContext:
        application = self.applications.get_by_id(interview.application_id)
        context = NotificationContext(original_start=original_start, reason=reason)
        if application:
            context.candidate_name = application.candidate_name or context.candidate_name
            context.position_title = application.position_title or context.position_title
        return context

    def dispatch(
        self,
        interview: Interview,
        notification_type: NotificationType,
        original_start=None,
        reason: Optional[str] = None,
    ) -> int:
        """Returns how many recipients were notified."""
        try:
            recipients = self.recipients(interview, notification_type)
            context = self.build_context(interview, original_start, reason)
        except Exception as e:
            logger.warning(f"[Notify] Could not prepare {notification_type.value} notifications for {interview.id}: {e}")
            return 0

        notify = self._route(notification_type)
        sent = 0
        for recipient in recipients:
            try:
                notify(recipient, interview, context)
                sent += 1
            except Exception as e:
                logger.warning(f"[Notify] {notification_type.value} to {recipient.email} failed: {e}")

        logger.info(f"[Notify] Sent {sent}/{len(recipients)} {notification_type.value} notification(s) for interview {interview.id}")
        return sent


class EmailNotificationSender(NotificationSender):
    """Plain-text interview mails over SMTP with STARTTLS."""

    def __init__(self, config: AppConfig = settings):
        self.config = config

    def send(self, message: EmailMessage) -> bool:
        if not self.config.SMTP_ENABLED:
            logger.info(f"[Email] SMTP not configured, skipping '{message.subject}' to {message.to_email}")
            return False

        mime = MIMEMultipart()
        mime["From"] = self.config.DEFAULT_SENDER
        mime["To"] = message.to_email
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.body, "plain"))

        with smtplib.SMTP(self.config.SMTP_SERVER, self.config.SMTP_PORT) as server:
            server.starttls()
            server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
            server.send_message(mime)

        logger.info(f"[Email] '{message.subject}' sent to {message.to_email}")
        return True

    def _details(self, interview: Interview, context: NotificationContext) -> str:
        lines = [
            f"Position: {context.position_title}",
            f"Candidate: {context.candidate_name}",
            f"Interview: {interview.title} ({interview.interview_type.value}, round {interview.round_number})",
            f"Date & Time: {format_stamp(interview.scheduled_start)} UTC",
            f"Duration: {interview.duration_minutes} minutes",
            f"Mode: {interview.mode.value}",
        ]
        if interview.meeting_details:
            lines.append(interview.meeting_details)
        if interview.instructions:
            lines.append(f"Instructions: {interview.instructions}")
        return "\n".join(lines)

    def _mail(self, recipient: Recipient, subject: str, intro: str, interview: Interview, context: NotificationContext) -> None:
        body = f"Dear {recipient.name},\n\n{intro}\n\n{self._details(interview, context)}\n\nBest regards,\nRecruitment Team\n"
        self.send(EmailMessage(to_email=recipient.email, subject=subject, body=body))

    def notify_scheduled(self, recipient, interview, context):
        self._mail(recipient, f"Interview Scheduled: {context.position_title}",
                   "An interview has been scheduled.", interview, context)

    def notify_rescheduled(self, recipient, interview, context):
        previous = format_stamp(context.original_start) if context.original_start else "the previous time"
        self._mail(recipient, f"Interview Rescheduled: {context.position_title}",
                   f"The interview originally planned for {previous} UTC has been moved.", interview, context)

    def notify_cancelled(self, recipient, interview, context):
        self._mail(recipient, f"Interview Cancelled: {context.position_title}",
                   f"The interview has been cancelled. Reason: {context.reason or 'Not specified'}", interview, context)

    def notify_reminder(self, recipient, interview, context):
        self._mail(recipient, f"Interview Reminder: {context.position_title}",
                   "This is a reminder of your upcoming interview.", interview, context)

    def notify_evaluation_due(self, recipient, interview, context):
        self._mail(recipient, f"Evaluation Required: {context.candidate_name}",
                   f"Please submit your evaluation within {self.config.EVALUATION_EDIT_WINDOW_DAYS} days.",
                   interview, context)

    def notify_no_show(self, recipient, interview, context):
        self._mail(recipient, "Interview No-Show Recorded",
                   "The interview has been marked as a no-show. Please consider rescheduling "
                   "or update the application status accordingly.", interview, context)
