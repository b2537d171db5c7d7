"""
Collaborator interfaces consumed by the engine.

Storage, identity and transport live behind these; the engine only ever sees
the domain models from `base.models`.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import List, Optional

from interview_engine.base.models import (
    Application,
    ApplicationStatus,
    Evaluation,
    Interview,
    InterviewStatus,
    UserInfo,
)


class ApplicationRepository(ABC):

    @abstractmethod
    def get_by_id(self, application_id: str) -> Optional[Application]:
        pass

    @abstractmethod
    def get_status(self, application_id: str) -> Optional[ApplicationStatus]:
        pass

    @abstractmethod
    def update_status(self, application_id: str, new_status: ApplicationStatus, actor_id: str, comment: str) -> None:
        pass

    @abstractmethod
    def get_active_interviews(self, application_id: str) -> List[Interview]:
        pass


class InterviewRepository(ABC):

    @abstractmethod
    def get_by_id(self, interview_id: str) -> Optional[Interview]:
        pass

    @abstractmethod
    def add(self, interview: Interview) -> Interview:
        """Persist a new interview together with its participants."""

    @abstractmethod
    def update(self, interview: Interview) -> Interview:
        pass

    @abstractmethod
    def get_scheduled_for_participant(self, user_id: str) -> List[Interview]:
        """Active, Scheduled interviews the user takes part in."""

    @abstractmethod
    def list_by_participant(self, user_id: str) -> List[Interview]:
        pass

    @abstractmethod
    def list_by_status(self, status: InterviewStatus) -> List[Interview]:
        pass

    @abstractmethod
    def list_between(self, start: datetime, end: datetime) -> List[Interview]:
        """Active interviews whose start lies in [start, end]."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Scope within which reads and writes form one atomic unit.

        "Check conflicts, then create" is read-then-write; implementations
        must serialise it (lock, SERIALIZABLE isolation, or a write-time
        overlap constraint).
        """


class EvaluationRepository(ABC):

    @abstractmethod
    def get_by_id(self, evaluation_id: str) -> Optional[Evaluation]:
        pass

    @abstractmethod
    def get_by_interview(self, interview_id: str) -> List[Evaluation]:
        pass

    @abstractmethod
    def get_by_interview_and_evaluator(self, interview_id: str, evaluator_id: str) -> Optional[Evaluation]:
        pass

    @abstractmethod
    def add(self, evaluation: Evaluation) -> Evaluation:
        pass

    @abstractmethod
    def update(self, evaluation: Evaluation) -> Evaluation:
        pass


class ParticipantDirectory(ABC):

    @abstractmethod
    def resolve_user(self, user_id: str) -> UserInfo:
        pass

    @abstractmethod
    def get_roles(self, user_id: str) -> List[str]:
        pass
