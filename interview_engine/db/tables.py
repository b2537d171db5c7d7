from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from interview_engine.db.session import Base


class UserRecord(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True)
    display_name = Column(String, nullable=True)

    roles = relationship("UserRoleRecord", cascade="all, delete-orphan", lazy="selectin")


class UserRoleRecord(Base):
    __tablename__ = "user_roles"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String, primary_key=True)


class ApplicationRecord(Base):
    __tablename__ = "applications"

    id = Column(String, primary_key=True, index=True)
    status = Column(String(32), nullable=False, index=True)
    candidate_user_id = Column(String, nullable=True)
    candidate_name = Column(String, nullable=True)
    candidate_email = Column(String, nullable=True)
    position_title = Column(String, nullable=True)
    assigned_recruiter_id = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class ApplicationStatusHistoryRecord(Base):
    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(String, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String(32), nullable=False)
    to_status = Column(String(32), nullable=False)
    changed_by = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False)


class InterviewRecord(Base):
    __tablename__ = "interviews"

    id = Column(String, primary_key=True, index=True)
    application_id = Column(String, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    interview_type = Column(String(32), nullable=False)
    round_number = Column(Integer, nullable=False, default=1)
    scheduled_start = Column(DateTime, nullable=False, index=True)  # UTC
    duration_minutes = Column(Integer, nullable=False)
    mode = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, index=True)
    outcome = Column(String(16), nullable=True)
    outcome_overridden = Column(Boolean, default=False, nullable=False)
    meeting_details = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    summary_notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    scheduled_by = Column(String, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    participants = relationship(
        "ParticipantRecord", back_populates="interview", cascade="all, delete-orphan",
        lazy="selectin", order_by="ParticipantRecord.position"
    )


class ParticipantRecord(Base):
    __tablename__ = "interview_participants"
    __table_args__ = (
        UniqueConstraint("interview_id", "user_id", name="uq_participant_per_interview"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String(32), nullable=False)
    is_lead = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)

    interview = relationship("InterviewRecord", back_populates="participants")


class EvaluationRecord(Base):
    __tablename__ = "interview_evaluations"
    __table_args__ = (
        UniqueConstraint("interview_id", "evaluator_id", name="uq_evaluation_per_evaluator"),
        Index("ix_evaluations_interview_created", "interview_id", "created_at"),
    )

    id = Column(String, primary_key=True, index=True)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False)
    evaluator_id = Column(String, nullable=False)
    recommendation = Column(String(16), nullable=False)
    overall_rating = Column(Float, nullable=True)
    strengths = Column(Text, nullable=True)
    concerns = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)
