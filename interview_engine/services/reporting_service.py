import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.base.errors import RequestValidationFailed
from interview_engine.base.models import Interview, InterviewAnalytics, InterviewStatus
from interview_engine.base.results import as_result
from interview_engine.repositories.base import EvaluationRepository, InterviewRepository
from interview_engine.utils.time_utils import Clock, ensure_utc, utcnow

logger = logging.getLogger("reporting_service")

DEFAULT_ANALYTICS_DAYS = 30


class InterviewReportingService:
    def __init__(
        self,
        interviews: InterviewRepository,
        evaluations: EvaluationRepository,
        config: AppConfig = settings,
        clock: Clock = utcnow,
    ):
        self.interviews = interviews
        self.evaluations = evaluations
        self.clock = clock
        self.window = timedelta(days=config.EVALUATION_EDIT_WINDOW_DAYS)

    @as_result("GetAnalytics")
    def get_analytics(self, from_date: Optional[datetime] = None, to_date: Optional[datetime] = None) -> InterviewAnalytics:
        now = self.clock()
        end = ensure_utc(to_date) if to_date else now
        start = ensure_utc(from_date) if from_date else now - timedelta(days=DEFAULT_ANALYTICS_DAYS)
        if start > end:
            raise RequestValidationFailed("From date cannot be after to date")

        interviews = self.interviews.list_between(start, end)
        completed = [i for i in interviews if i.status == InterviewStatus.COMPLETED]
        average = sum(i.duration_minutes for i in completed) / len(completed) if completed else 0.0

        analytics = InterviewAnalytics(
            status_distribution=dict(Counter(i.status.value for i in interviews)),
            type_distribution=dict(Counter(i.interview_type.value for i in interviews)),
            total_interviews=len(interviews),
            upcoming_interviews=sum(
                1 for i in interviews if i.status == InterviewStatus.SCHEDULED and i.scheduled_start > now
            ),
            completed_interviews=len(completed),
            cancelled_interviews=sum(1 for i in interviews if i.status == InterviewStatus.CANCELLED),
            average_interview_duration=round(average, 1),
        )
        logger.info(f"[Analytics] {analytics.total_interviews} interviews between {start} and {end}")
        return analytics

    def _missing_evaluation(self, interview: Interview, user_id: Optional[str]) -> bool:
        evaluators = {e.evaluator_id for e in self.evaluations.get_by_interview(interview.id)}
        if user_id:
            return user_id not in evaluators
        return not set(interview.participant_ids) <= evaluators

    def get_interviews_needing_action(self, user_id: Optional[str] = None) -> List[Interview]:
        """
        Completed interviews still inside the evaluation window that lack
        evaluations, plus Scheduled interviews whose end has passed. Overdue
        ones come first.
        """
        now = self.clock()

        def relevant(interview: Interview) -> bool:
            return user_id is None or interview.is_participant(user_id)

        overdue = [
            i for i in self.interviews.list_by_status(InterviewStatus.SCHEDULED)
            if relevant(i) and i.scheduled_end < now
        ]
        awaiting_evaluation = [
            i for i in self.interviews.list_by_status(InterviewStatus.COMPLETED)
            if relevant(i) and now - i.scheduled_start <= self.window and self._missing_evaluation(i, user_id)
        ]

        logger.info(
            f"[Action] {len(overdue)} overdue, {len(awaiting_evaluation)} awaiting evaluation"
            + (f" for user {user_id}" if user_id else "")
        )
        return sorted(overdue, key=lambda i: i.scheduled_start) + sorted(
            awaiting_evaluation, key=lambda i: i.scheduled_start
        )
