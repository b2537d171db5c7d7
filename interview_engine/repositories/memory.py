import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from interview_engine.base.models import (
    Application,
    ApplicationStatus,
    Evaluation,
    Interview,
    InterviewStatus,
    StatusChange,
    UserInfo,
)
from interview_engine.repositories.base import (
    ApplicationRepository,
    EvaluationRepository,
    InterviewRepository,
    ParticipantDirectory,
)

logger = logging.getLogger("memory_store")


class InMemoryStore:
    """
    Dict-backed storage shared by the in-memory repositories.

    Entities are copied on the way in and out, so callers only change stored
    state through the repositories, as they would with a database. Every
    read and write holds `lock`, and `transaction()` holds it for the whole
    scope.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self.applications: Dict[str, Application] = {}
        self.status_history: List[StatusChange] = []
        self.interviews: Dict[str, Interview] = {}
        self.evaluations: Dict[str, Evaluation] = {}
        self.users: Dict[str, UserInfo] = {}
        self.roles: Dict[str, List[str]] = {}


class InMemoryApplicationRepository(ApplicationRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def add(self, application: Application) -> Application:
        with self.store.lock:
            self.store.applications[application.id] = application.model_copy(deep=True)
        return application

    def get_by_id(self, application_id: str) -> Optional[Application]:
        with self.store.lock:
            application = self.store.applications.get(application_id)
            return application.model_copy(deep=True) if application else None

    def get_status(self, application_id: str) -> Optional[ApplicationStatus]:
        with self.store.lock:
            application = self.store.applications.get(application_id)
            return application.status if application else None

    def update_status(self, application_id: str, new_status: ApplicationStatus, actor_id: str, comment: str) -> None:
        with self.store.lock:
            application = self.store.applications.get(application_id)
            if application is None:
                return
            self.store.status_history.append(StatusChange(
                application_id=application_id,
                from_status=application.status,
                to_status=new_status,
                changed_by=actor_id,
                comment=comment,
            ))
            application.status = new_status

    def get_active_interviews(self, application_id: str) -> List[Interview]:
        with self.store.lock:
            return [
                i.model_copy(deep=True) for i in self.store.interviews.values()
                if i.application_id == application_id and i.is_active
            ]

    def history(self, application_id: str) -> List[StatusChange]:
        with self.store.lock:
            return [h for h in self.store.status_history if h.application_id == application_id]


class InMemoryInterviewRepository(InterviewRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def get_by_id(self, interview_id: str) -> Optional[Interview]:
        with self.store.lock:
            interview = self.store.interviews.get(interview_id)
            return interview.model_copy(deep=True) if interview else None

    def add(self, interview: Interview) -> Interview:
        with self.store.lock:
            if interview.id in self.store.interviews:
                raise KeyError(f"Interview {interview.id} already exists")
            self.store.interviews[interview.id] = interview.model_copy(deep=True)
        return interview

    def update(self, interview: Interview) -> Interview:
        with self.store.lock:
            if interview.id not in self.store.interviews:
                raise KeyError(f"Interview {interview.id} does not exist")
            self.store.interviews[interview.id] = interview.model_copy(deep=True)
        return interview

    def get_scheduled_for_participant(self, user_id: str) -> List[Interview]:
        return [
            i for i in self.list_by_participant(user_id)
            if i.is_active and i.status == InterviewStatus.SCHEDULED
        ]

    def list_by_participant(self, user_id: str) -> List[Interview]:
        with self.store.lock:
            return [i.model_copy(deep=True) for i in self.store.interviews.values() if i.is_participant(user_id)]

    def list_by_status(self, status: InterviewStatus) -> List[Interview]:
        with self.store.lock:
            return [
                i.model_copy(deep=True) for i in self.store.interviews.values()
                if i.is_active and i.status == status
            ]

    def list_between(self, start: datetime, end: datetime) -> List[Interview]:
        with self.store.lock:
            return [
                i.model_copy(deep=True) for i in self.store.interviews.values()
                if i.is_active and start <= i.scheduled_start <= end
            ]

    @contextmanager
    def transaction(self):
        with self.store.lock:
            yield


class InMemoryEvaluationRepository(EvaluationRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def get_by_id(self, evaluation_id: str) -> Optional[Evaluation]:
        with self.store.lock:
            evaluation = self.store.evaluations.get(evaluation_id)
            return evaluation.model_copy(deep=True) if evaluation else None

    def get_by_interview(self, interview_id: str) -> List[Evaluation]:
        with self.store.lock:
            return [e.model_copy(deep=True) for e in self.store.evaluations.values() if e.interview_id == interview_id]

    def get_by_interview_and_evaluator(self, interview_id: str, evaluator_id: str) -> Optional[Evaluation]:
        return next(
            (e for e in self.get_by_interview(interview_id) if e.evaluator_id == evaluator_id),
            None
        )

    def add(self, evaluation: Evaluation) -> Evaluation:
        with self.store.lock:
            # One evaluation per (interview, evaluator), mirroring the SQL unique constraint.
            if self.get_by_interview_and_evaluator(evaluation.interview_id, evaluation.evaluator_id):
                raise KeyError(
                    f"Evaluation by {evaluation.evaluator_id} for interview {evaluation.interview_id} already exists"
                )
            self.store.evaluations[evaluation.id] = evaluation.model_copy(deep=True)
        return evaluation

    def update(self, evaluation: Evaluation) -> Evaluation:
        with self.store.lock:
            if evaluation.id not in self.store.evaluations:
                raise KeyError(f"Evaluation {evaluation.id} does not exist")
            self.store.evaluations[evaluation.id] = evaluation.model_copy(deep=True)
        return evaluation


class InMemoryParticipantDirectory(ParticipantDirectory):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def add_user(self, user_id: str, email: str, display_name: str, roles: Optional[List[str]] = None) -> UserInfo:
        user = UserInfo(user_id=user_id, email=email, display_name=display_name)
        with self.store.lock:
            self.store.users[user_id] = user
            self.store.roles[user_id] = list(roles or [])
        return user

    def resolve_user(self, user_id: str) -> UserInfo:
        with self.store.lock:
            user = self.store.users.get(user_id)
        if user is None:
            return UserInfo(user_id=user_id, exists=False)
        return user.model_copy()

    def get_roles(self, user_id: str) -> List[str]:
        with self.store.lock:
            return list(self.store.roles.get(user_id, []))
