"""
SQLAlchemy-backed collaborators.

All repositories built on one `SqlStore` share its transaction scope: calls
made inside `SqlInterviewRepository.transaction()` run on a single session
opened at SERIALIZABLE isolation (on SQLite, under the write lock taken by
BEGIN IMMEDIATE), so a conflict check and the insert that follows it commit
or roll back together.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from interview_engine.base.models import (
    Application,
    ApplicationStatus,
    Evaluation,
    EvaluationRecommendation,
    Interview,
    InterviewMode,
    InterviewOutcome,
    InterviewStatus,
    InterviewType,
    Participant,
    ParticipantRole,
    UserInfo,
)
from interview_engine.db.tables import (
    ApplicationRecord,
    ApplicationStatusHistoryRecord,
    EvaluationRecord,
    InterviewRecord,
    ParticipantRecord,
    UserRecord,
    UserRoleRecord,
)
from interview_engine.repositories.base import (
    ApplicationRepository,
    EvaluationRepository,
    InterviewRepository,
    ParticipantDirectory,
)
from interview_engine.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger("sql_store")


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Columns hold naive UTC."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


class SqlStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._current: ContextVar[Optional[Session]] = ContextVar("interview_engine_session", default=None)

    @contextmanager
    def session(self):
        current = self._current.get()
        if current is not None:
            yield current
            return
        with self.session_factory.begin() as session:
            yield session

    @contextmanager
    def transaction(self):
        if self._current.get() is not None:
            # Nested scopes join the outer transaction.
            yield
            return

        session = self.session_factory()
        if session.get_bind().dialect.name == "sqlite":
            # The engine opens every SQLite transaction with BEGIN IMMEDIATE.
            session.connection()
        else:
            session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
        token = self._current.set(session)
        try:
            yield
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            self._current.reset(token)
            session.close()


# === Record <-> Model mapping ===

def _participant_from_record(record: ParticipantRecord) -> Participant:
    return Participant(
        user_id=record.user_id,
        role=ParticipantRole(record.role),
        is_lead=record.is_lead,
        notes=record.notes,
        created_at=ensure_utc(record.created_at),
    )


def _interview_from_record(record: InterviewRecord) -> Interview:
    return Interview(
        id=record.id,
        application_id=record.application_id,
        title=record.title,
        interview_type=InterviewType(record.interview_type),
        round_number=record.round_number,
        scheduled_start=ensure_utc(record.scheduled_start),
        duration_minutes=record.duration_minutes,
        mode=InterviewMode(record.mode),
        status=InterviewStatus(record.status),
        outcome=InterviewOutcome(record.outcome) if record.outcome else None,
        outcome_overridden=record.outcome_overridden,
        meeting_details=record.meeting_details,
        instructions=record.instructions,
        summary_notes=record.summary_notes,
        is_active=record.is_active,
        scheduled_by=record.scheduled_by,
        reminder_sent_at=ensure_utc(record.reminder_sent_at),
        participants=[_participant_from_record(p) for p in record.participants],
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
    )


def _copy_interview_fields(interview: Interview, record: InterviewRecord) -> None:
    record.application_id = interview.application_id
    record.title = interview.title
    record.interview_type = interview.interview_type.value
    record.round_number = interview.round_number
    record.scheduled_start = to_db_time(interview.scheduled_start)
    record.duration_minutes = interview.duration_minutes
    record.mode = interview.mode.value
    record.status = interview.status.value
    record.outcome = interview.outcome.value if interview.outcome else None
    record.outcome_overridden = interview.outcome_overridden
    record.meeting_details = interview.meeting_details
    record.instructions = interview.instructions
    record.summary_notes = interview.summary_notes
    record.is_active = interview.is_active
    record.scheduled_by = interview.scheduled_by
    record.reminder_sent_at = to_db_time(interview.reminder_sent_at)
    record.created_at = to_db_time(interview.created_at)
    record.updated_at = to_db_time(interview.updated_at)


def _evaluation_from_record(record: EvaluationRecord) -> Evaluation:
    return Evaluation(
        id=record.id,
        interview_id=record.interview_id,
        evaluator_id=record.evaluator_id,
        recommendation=EvaluationRecommendation(record.recommendation),
        overall_rating=record.overall_rating,
        strengths=record.strengths,
        concerns=record.concerns,
        comments=record.comments,
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
    )


def _copy_evaluation_fields(evaluation: Evaluation, record: EvaluationRecord) -> None:
    record.interview_id = evaluation.interview_id
    record.evaluator_id = evaluation.evaluator_id
    record.recommendation = evaluation.recommendation.value
    record.overall_rating = evaluation.overall_rating
    record.strengths = evaluation.strengths
    record.concerns = evaluation.concerns
    record.comments = evaluation.comments
    record.created_at = to_db_time(evaluation.created_at)
    record.updated_at = to_db_time(evaluation.updated_at)


def _application_from_record(record: ApplicationRecord) -> Application:
    return Application(
        id=record.id,
        status=ApplicationStatus(record.status),
        candidate_user_id=record.candidate_user_id,
        candidate_name=record.candidate_name,
        candidate_email=record.candidate_email,
        position_title=record.position_title,
        assigned_recruiter_id=record.assigned_recruiter_id,
        is_active=record.is_active,
    )


# === Repositories ===

class SqlApplicationRepository(ApplicationRepository):
    def __init__(self, store: SqlStore):
        self.store = store

    def add(self, application: Application) -> Application:
        with self.store.session() as session:
            session.add(ApplicationRecord(
                id=application.id,
                status=application.status.value,
                candidate_user_id=application.candidate_user_id,
                candidate_name=application.candidate_name,
                candidate_email=application.candidate_email,
                position_title=application.position_title,
                assigned_recruiter_id=application.assigned_recruiter_id,
                is_active=application.is_active,
            ))
        return application

    def get_by_id(self, application_id: str) -> Optional[Application]:
        with self.store.session() as session:
            record = session.get(ApplicationRecord, application_id)
            return _application_from_record(record) if record else None

    def get_status(self, application_id: str) -> Optional[ApplicationStatus]:
        with self.store.session() as session:
            status = session.scalar(select(ApplicationRecord.status).where(ApplicationRecord.id == application_id))
            return ApplicationStatus(status) if status else None

    def update_status(self, application_id: str, new_status: ApplicationStatus, actor_id: str, comment: str) -> None:
        with self.store.session() as session:
            record = session.get(ApplicationRecord, application_id)
            if record is None:
                return
            session.add(ApplicationStatusHistoryRecord(
                application_id=application_id,
                from_status=record.status,
                to_status=new_status.value,
                changed_by=actor_id,
                comment=comment,
                changed_at=to_db_time(utcnow()),
            ))
            record.status = new_status.value

    def get_active_interviews(self, application_id: str) -> List[Interview]:
        with self.store.session() as session:
            records = session.scalars(
                select(InterviewRecord)
                .where(InterviewRecord.application_id == application_id, InterviewRecord.is_active.is_(True))
                .order_by(InterviewRecord.created_at)
            ).all()
            return [_interview_from_record(r) for r in records]


class SqlInterviewRepository(InterviewRepository):
    def __init__(self, store: SqlStore):
        self.store = store

    def get_by_id(self, interview_id: str) -> Optional[Interview]:
        with self.store.session() as session:
            record = session.get(InterviewRecord, interview_id)
            return _interview_from_record(record) if record else None

    def add(self, interview: Interview) -> Interview:
        with self.store.session() as session:
            record = InterviewRecord(id=interview.id)
            _copy_interview_fields(interview, record)
            record.participants = [
                ParticipantRecord(
                    user_id=p.user_id,
                    role=p.role.value,
                    is_lead=p.is_lead,
                    notes=p.notes,
                    position=position,
                    created_at=to_db_time(p.created_at),
                )
                for position, p in enumerate(interview.participants)
            ]
            session.add(record)
            session.flush()
        return interview

    def update(self, interview: Interview) -> Interview:
        with self.store.session() as session:
            record = session.get(InterviewRecord, interview.id)
            if record is None:
                raise KeyError(f"Interview {interview.id} does not exist")
            # Participants are fixed at scheduling time; only interview columns change.
            _copy_interview_fields(interview, record)
            session.flush()
        return interview

    def _list(self, *criteria) -> List[Interview]:
        with self.store.session() as session:
            records = session.scalars(
                select(InterviewRecord).where(*criteria).order_by(InterviewRecord.scheduled_start)
            ).all()
            return [_interview_from_record(r) for r in records]

    def get_scheduled_for_participant(self, user_id: str) -> List[Interview]:
        return self._list(
            InterviewRecord.participants.any(ParticipantRecord.user_id == user_id),
            InterviewRecord.is_active.is_(True),
            InterviewRecord.status == InterviewStatus.SCHEDULED.value,
        )

    def list_by_participant(self, user_id: str) -> List[Interview]:
        return self._list(InterviewRecord.participants.any(ParticipantRecord.user_id == user_id))

    def list_by_status(self, status: InterviewStatus) -> List[Interview]:
        return self._list(InterviewRecord.is_active.is_(True), InterviewRecord.status == status.value)

    def list_between(self, start: datetime, end: datetime) -> List[Interview]:
        return self._list(
            InterviewRecord.is_active.is_(True),
            InterviewRecord.scheduled_start >= to_db_time(start),
            InterviewRecord.scheduled_start <= to_db_time(end),
        )

    def transaction(self):
        return self.store.transaction()


class SqlEvaluationRepository(EvaluationRepository):
    def __init__(self, store: SqlStore):
        self.store = store

    def get_by_id(self, evaluation_id: str) -> Optional[Evaluation]:
        with self.store.session() as session:
            record = session.get(EvaluationRecord, evaluation_id)
            return _evaluation_from_record(record) if record else None

    def get_by_interview(self, interview_id: str) -> List[Evaluation]:
        with self.store.session() as session:
            records = session.scalars(
                select(EvaluationRecord)
                .where(EvaluationRecord.interview_id == interview_id)
                .order_by(EvaluationRecord.created_at)
            ).all()
            return [_evaluation_from_record(r) for r in records]

    def get_by_interview_and_evaluator(self, interview_id: str, evaluator_id: str) -> Optional[Evaluation]:
        with self.store.session() as session:
            record = session.scalar(
                select(EvaluationRecord).where(
                    EvaluationRecord.interview_id == interview_id,
                    EvaluationRecord.evaluator_id == evaluator_id,
                )
            )
            return _evaluation_from_record(record) if record else None

    def add(self, evaluation: Evaluation) -> Evaluation:
        with self.store.session() as session:
            record = EvaluationRecord(id=evaluation.id)
            _copy_evaluation_fields(evaluation, record)
            session.add(record)
            session.flush()
        return evaluation

    def update(self, evaluation: Evaluation) -> Evaluation:
        with self.store.session() as session:
            record = session.get(EvaluationRecord, evaluation.id)
            if record is None:
                raise KeyError(f"Evaluation {evaluation.id} does not exist")
            _copy_evaluation_fields(evaluation, record)
            session.flush()
        return evaluation


class SqlParticipantDirectory(ParticipantDirectory):
    def __init__(self, store: SqlStore):
        self.store = store

    def add_user(self, user_id: str, email: str, display_name: str, roles: Optional[List[str]] = None) -> UserInfo:
        with self.store.session() as session:
            session.add(UserRecord(
                id=user_id,
                email=email,
                display_name=display_name,
                roles=[UserRoleRecord(role=role) for role in roles or []],
            ))
        return UserInfo(user_id=user_id, email=email, display_name=display_name)

    def resolve_user(self, user_id: str) -> UserInfo:
        with self.store.session() as session:
            record = session.get(UserRecord, user_id)
            if record is None:
                return UserInfo(user_id=user_id, exists=False)
            return UserInfo(user_id=record.id, email=record.email, display_name=record.display_name)

    def get_roles(self, user_id: str) -> List[str]:
        with self.store.session() as session:
            return list(session.scalars(select(UserRoleRecord.role).where(UserRoleRecord.user_id == user_id)).all())
