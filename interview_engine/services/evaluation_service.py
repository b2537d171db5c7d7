"""
Evaluation collection and outcome aggregation.

Per interview, once every participant has evaluated:
  - strict majority Fail        -> Fail
  - unanimous Pass              -> Pass
  - anything else               -> Pending (needs human review)

Per application, over Completed interviews with an outcome: any Fail wins,
all Pass passes, otherwise Pending.
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RequestValidationFailed,
    UnauthorizedError,
)
from interview_engine.base.metrics import evaluation_counter
from interview_engine.base.models import (
    Evaluation,
    EvaluationRecommendation,
    Interview,
    InterviewOutcome,
    InterviewStatus,
    InterviewType,
    SubmitEvaluationRequest,
    UpdateEvaluationRequest,
)
from interview_engine.base.results import as_result
from interview_engine.repositories.base import (
    ApplicationRepository,
    EvaluationRepository,
    InterviewRepository,
    ParticipantDirectory,
)
from interview_engine.services.authorization import AccessPolicy
from interview_engine.services.lifecycle import InterviewLifecycle
from interview_engine.utils.time_utils import Clock, utcnow

logger = logging.getLogger("evaluation_service")

MIN_RATING = 0.0
MAX_RATING = 10.0


# === Aggregation Rules ===

def overall_recommendation(recommendations: Sequence[EvaluationRecommendation]) -> Optional[EvaluationRecommendation]:
    if not recommendations:
        return None
    fail_count = sum(1 for r in recommendations if r == EvaluationRecommendation.FAIL)
    if fail_count > len(recommendations) / 2:
        return EvaluationRecommendation.FAIL
    if all(r == EvaluationRecommendation.PASS for r in recommendations):
        return EvaluationRecommendation.PASS
    return EvaluationRecommendation.MAYBE


def aggregate_recommendations(recommendations: Sequence[EvaluationRecommendation]) -> InterviewOutcome:
    """An even split is not a Fail majority; it falls through to Pending."""
    return {
        EvaluationRecommendation.FAIL: InterviewOutcome.FAIL,
        EvaluationRecommendation.PASS: InterviewOutcome.PASS,
    }.get(overall_recommendation(recommendations), InterviewOutcome.PENDING)


def aggregate_outcomes(interviews: Iterable[Interview]) -> InterviewOutcome:
    outcomes = [
        i.outcome for i in interviews
        if i.status == InterviewStatus.COMPLETED and i.outcome is not None
    ]
    if not outcomes:
        return InterviewOutcome.PENDING
    if InterviewOutcome.FAIL in outcomes:
        return InterviewOutcome.FAIL
    if all(o == InterviewOutcome.PASS for o in outcomes):
        return InterviewOutcome.PASS
    return InterviewOutcome.PENDING


def is_process_complete(interviews: Sequence[Interview]) -> bool:
    return bool(interviews) and all(
        i.status == InterviewStatus.COMPLETED and i.outcome in (InterviewOutcome.PASS, InterviewOutcome.FAIL)
        for i in interviews
    )


def all_participants_evaluated(interview: Interview, evaluations: Iterable[Evaluation]) -> bool:
    evaluators = {e.evaluator_id for e in evaluations}
    return bool(interview.participant_ids) and set(interview.participant_ids) <= evaluators


class InterviewEvaluationService:
    def __init__(
        self,
        interviews: InterviewRepository,
        evaluations: EvaluationRepository,
        applications: ApplicationRepository,
        directory: ParticipantDirectory,
        config: AppConfig = settings,
        clock: Clock = utcnow,
    ):
        self.interviews = interviews
        self.evaluations = evaluations
        self.applications = applications
        self.config = config
        self.clock = clock
        self.window = timedelta(days=config.EVALUATION_EDIT_WINDOW_DAYS)
        self.lifecycle = InterviewLifecycle(config, clock)
        self.access = AccessPolicy(applications, directory, config)

    def _require_interview(self, interview_id: str) -> Interview:
        interview = self.interviews.get_by_id(interview_id)
        if interview is None or not interview.is_active:
            raise NotFoundError(f"Interview {interview_id} not found")
        return interview

    def _validate_rating(self, rating: Optional[float]) -> None:
        if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
            raise RequestValidationFailed(f"Overall rating must be between {MIN_RATING:g} and {MAX_RATING:g}")

    def _ensure_eligible(self, interview: Interview, evaluator_id: str) -> None:
        if not interview.is_participant(evaluator_id):
            raise UnauthorizedError("Only interview participants can evaluate this interview")
        if interview.status != InterviewStatus.COMPLETED:
            raise InvalidStateError(f"Interview is {interview.status.value}; only completed interviews can be evaluated")

    def recompute_outcome(self, interview_id: str) -> Optional[InterviewOutcome]:
        """
        Set the interview outcome from its evaluations once every participant
        has evaluated. Safe to call repeatedly; a manual outcome is left alone.
        """
        interview = self.interviews.get_by_id(interview_id)
        if interview is None or interview.status != InterviewStatus.COMPLETED:
            return None
        if interview.outcome_overridden:
            logger.info(f"[Outcome] Interview {interview_id} has a manual outcome, not recomputing")
            return interview.outcome

        evaluations = self.evaluations.get_by_interview(interview_id)
        if not all_participants_evaluated(interview, evaluations):
            return None

        outcome = aggregate_recommendations([e.recommendation for e in evaluations])
        if interview.outcome != outcome:
            self.lifecycle.set_outcome(interview, outcome)
            self.interviews.update(interview)
            logger.info(f"[Outcome] Interview {interview_id} outcome -> {outcome.value} from {len(evaluations)} evaluation(s)")
        return outcome

    # === Submissions ===

    @as_result("SubmitEvaluation")
    def submit_evaluation(self, evaluator_id: str, req: SubmitEvaluationRequest) -> Evaluation:
        self._validate_rating(req.overall_rating)

        with self.interviews.transaction():
            interview = self._require_interview(req.interview_id)
            self._ensure_eligible(interview, evaluator_id)

            if self.evaluations.get_by_interview_and_evaluator(interview.id, evaluator_id):
                raise ConflictError("You have already submitted an evaluation for this interview")

            now = self.clock()
            evaluation = Evaluation(
                interview_id=interview.id,
                evaluator_id=evaluator_id,
                recommendation=req.recommendation,
                overall_rating=req.overall_rating,
                strengths=req.strengths,
                concerns=req.concerns,
                comments=req.comments,
                created_at=now,
            )
            self.evaluations.add(evaluation)
            self.recompute_outcome(interview.id)

        evaluation_counter.labels(action="submitted").inc()
        logger.info(f"[Evaluation] {evaluator_id} evaluated interview {interview.id}: {req.recommendation.value}")
        return evaluation

    @as_result("UpdateEvaluation")
    def update_evaluation(self, evaluation_id: str, evaluator_id: str, req: UpdateEvaluationRequest) -> Evaluation:
        self._validate_rating(req.overall_rating)

        with self.interviews.transaction():
            evaluation = self.evaluations.get_by_id(evaluation_id)
            if evaluation is None:
                raise NotFoundError(f"Evaluation {evaluation_id} not found")
            if evaluation.evaluator_id != evaluator_id:
                raise UnauthorizedError("You can only update your own evaluations")

            interview = self._require_interview(evaluation.interview_id)
            self._ensure_eligible(interview, evaluator_id)

            now = self.clock()
            if now - evaluation.created_at > self.window:
                raise InvalidStateError("Evaluation update window has expired")

            for field, value in req.model_dump(exclude_none=True).items():
                setattr(evaluation, field, value)
            evaluation.updated_at = now
            self.evaluations.update(evaluation)
            self.recompute_outcome(interview.id)

        evaluation_counter.labels(action="updated").inc()
        logger.info(f"[Evaluation] {evaluator_id} updated evaluation {evaluation_id}")
        return evaluation

    @as_result("SetInterviewOutcome")
    def set_interview_outcome(self, interview_id: str, outcome: InterviewOutcome, actor_id: str) -> Interview:
        with self.interviews.transaction():
            interview = self._require_interview(interview_id)
            if not self.access.can_modify(actor_id, interview):
                raise UnauthorizedError("Insufficient permissions to set interview outcome")
            self.lifecycle.ensure_outcome_assignable(interview)
            if interview.outcome_overridden:
                raise InvalidStateError("Interview outcome has already been set manually")

            self.lifecycle.set_outcome(interview, outcome, manual=True)
            self.interviews.update(interview)

        logger.info(f"[Outcome] Interview {interview_id} outcome set to {outcome.value} by {actor_id}")
        return interview

    # === Queries ===

    @as_result("GetEvaluations")
    def get_evaluations(self, interview_id: str) -> List[Evaluation]:
        self._require_interview(interview_id)
        return sorted(self.evaluations.get_by_interview(interview_id), key=lambda e: e.created_at)

    def get_evaluation(self, interview_id: str, evaluator_id: str) -> Optional[Evaluation]:
        return self.evaluations.get_by_interview_and_evaluator(interview_id, evaluator_id)

    def get_average_score(self, interview_id: str) -> float:
        try:
            ratings = [
                e.overall_rating for e in self.evaluations.get_by_interview(interview_id)
                if e.overall_rating is not None
            ]
        except Exception as e:
            logger.warning(f"[Score] Could not load evaluations for {interview_id}, returning 0.0: {e}")
            return 0.0

        if not ratings:
            logger.warning(f"[Score] No ratings for interview {interview_id}")
            return 0.0
        return round(sum(ratings) / len(ratings), 2)

    def get_overall_recommendation(self, interview_id: str) -> Optional[EvaluationRecommendation]:
        try:
            evaluations = self.evaluations.get_by_interview(interview_id)
        except Exception as e:
            logger.warning(f"[Recommendation] Could not load evaluations for {interview_id}: {e}")
            return None
        return overall_recommendation([e.recommendation for e in evaluations])

    def get_overall_outcome(self, application_id: str) -> InterviewOutcome:
        try:
            return aggregate_outcomes(self.applications.get_active_interviews(application_id))
        except Exception as e:
            logger.warning(f"[Outcome] Falling back to Pending for application {application_id}: {e}")
            return InterviewOutcome.PENDING

    def is_process_complete(self, application_id: str) -> bool:
        try:
            return is_process_complete(self.applications.get_active_interviews(application_id))
        except Exception as e:
            logger.warning(f"[Outcome] Completion check failed for application {application_id}: {e}")
            return False

    def can_evaluate(self, interview_id: str, evaluator_id: str) -> bool:
        try:
            interview = self.interviews.get_by_id(interview_id)
            if interview is None or not interview.is_participant(evaluator_id):
                return False
            if interview.status != InterviewStatus.COMPLETED:
                return False

            now = self.clock()
            if now - interview.scheduled_start > self.window:
                logger.info(f"[Evaluation] Window expired for interview {interview_id}")
                return False

            existing = self.evaluations.get_by_interview_and_evaluator(interview_id, evaluator_id)
            return existing is None or now - existing.created_at <= self.window
        except Exception as e:
            logger.warning(f"[Evaluation] Eligibility check failed for {evaluator_id} on {interview_id}: {e}")
            return False

    def is_evaluation_complete(self, interview_id: str) -> bool:
        try:
            interview = self.interviews.get_by_id(interview_id)
            if interview is None:
                return False
            return all_participants_evaluated(interview, self.evaluations.get_by_interview(interview_id))
        except Exception as e:
            logger.warning(f"[Evaluation] Completion check failed for interview {interview_id}: {e}")
            return False

    @as_result("GetInterviewsRequiringEvaluation")
    def get_interviews_requiring_evaluation(self, evaluator_id: str) -> List[Interview]:
        if not evaluator_id:
            raise RequestValidationFailed("Evaluator id is required")

        now = self.clock()
        pending = [
            i for i in self.interviews.list_by_participant(evaluator_id)
            if i.is_active
            and i.status == InterviewStatus.COMPLETED
            and now - i.scheduled_start <= self.window
            and self.evaluations.get_by_interview_and_evaluator(i.id, evaluator_id) is None
        ]
        # Earliest first; Final rounds first among equal start times.
        return sorted(pending, key=lambda i: (i.scheduled_start, i.interview_type != InterviewType.FINAL))
