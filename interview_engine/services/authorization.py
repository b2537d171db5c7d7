import logging
from typing import Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import UnauthorizedError
from interview_engine.base.models import Application, Interview
from interview_engine.repositories.base import ApplicationRepository, ParticipantDirectory

logger = logging.getLogger("interview_access")


class AccessPolicy:
    """
    Who may act on an interview.

    Every check is deny-on-error: a failing lookup answers "not allowed".
    """

    def __init__(self, applications: ApplicationRepository, directory: ParticipantDirectory, config: AppConfig = settings):
        self.applications = applications
        self.directory = directory
        self.staff_roles = set(config.STAFF_ROLES)

    def is_staff(self, actor_id: str) -> bool:
        try:
            return bool(actor_id) and bool(self.staff_roles.intersection(self.directory.get_roles(actor_id)))
        except Exception as e:
            logger.warning(f"[Access] Role lookup failed for {actor_id}, denying: {e}")
            return False

    def _application(self, application_id: str) -> Optional[Application]:
        return self.applications.get_by_id(application_id)

    def can_modify_application(self, actor_id: str, application_id: str) -> bool:
        if not actor_id:
            return False
        try:
            application = self._application(application_id)
            if application and application.assigned_recruiter_id == actor_id:
                return True
        except Exception as e:
            logger.warning(f"[Access] Application lookup failed for {application_id}, denying {actor_id}: {e}")
            return False
        return self.is_staff(actor_id)

    def can_modify(self, actor_id: str, interview: Interview) -> bool:
        return self.can_modify_application(actor_id, interview.application_id)

    def can_complete(self, actor_id: str, interview: Interview) -> bool:
        """Complete and no-show are also open to the interview's participants."""
        return bool(actor_id) and (interview.is_participant(actor_id) or self.can_modify(actor_id, interview))

    def can_view(self, actor_id: str, interview: Interview) -> bool:
        if self.can_complete(actor_id, interview):
            return True
        try:
            application = self._application(interview.application_id)
            return application is not None and application.candidate_user_id == actor_id
        except Exception as e:
            logger.warning(f"[Access] View check failed for {actor_id}, denying: {e}")
            return False

    # === Guards ===

    def require_modify(self, actor_id: str, interview: Interview, action: str) -> None:
        if not self.can_modify(actor_id, interview):
            raise UnauthorizedError(f"User {actor_id} is not allowed to {action} this interview")

    def require_complete(self, actor_id: str, interview: Interview, action: str) -> None:
        if not self.can_complete(actor_id, interview):
            raise UnauthorizedError(f"User {actor_id} is not allowed to {action} this interview")

    def require_view(self, actor_id: str, interview: Interview) -> None:
        if not self.can_view(actor_id, interview):
            raise UnauthorizedError(f"User {actor_id} is not allowed to view this interview")
