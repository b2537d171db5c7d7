from datetime import timedelta

import pytest

from conftest import at
from interview_engine.base.errors import ErrorKind
from interview_engine.base.models import (
    CompleteInterviewRequest,
    EvaluationRecommendation,
    Interview,
    InterviewOutcome,
    InterviewStatus,
    InterviewType,
    Participant,
    SubmitEvaluationRequest,
    UpdateEvaluationRequest,
)
from interview_engine.services.evaluation_service import (
    aggregate_outcomes,
    aggregate_recommendations,
    is_process_complete,
    overall_recommendation,
)

P = EvaluationRecommendation.PASS
F = EvaluationRecommendation.FAIL
M = EvaluationRecommendation.MAYBE


def completed_interview(outcome=None, status=InterviewStatus.COMPLETED, scheduled_start=None, **kwargs):
    return Interview(
        application_id="app-1",
        title="Panel",
        scheduled_start=scheduled_start or at(0, 9),
        duration_minutes=60,
        status=status,
        outcome=outcome,
        **kwargs,
    )


def submit(service, evaluator, interview_id, recommendation, rating=None):
    return service.submit_evaluation(
        evaluator,
        SubmitEvaluationRequest(interview_id=interview_id, recommendation=recommendation, overall_rating=rating),
    )


@pytest.fixture
def completed(scheduling, clock, scheduled):
    clock.set(at(2, 10))
    return scheduling.complete_interview(scheduled.id, CompleteInterviewRequest(), "p1").unwrap()


@pytest.mark.evaluations
class TestAggregationRules:

    @pytest.mark.parametrize("recommendations, expected", [
        ([P, P, P], InterviewOutcome.PASS),
        ([P, F, M], InterviewOutcome.PENDING),
        ([F, F, P], InterviewOutcome.FAIL),
        ([M, M], InterviewOutcome.PENDING),
        ([F, P], InterviewOutcome.PENDING),
        ([F], InterviewOutcome.FAIL),
        ([], InterviewOutcome.PENDING),
    ])
    def test_interview_outcome(self, recommendations, expected):
        assert aggregate_recommendations(recommendations) == expected

    def test_aggregation_ignores_order(self):
        assert aggregate_recommendations([P, F, F]) == aggregate_recommendations([F, P, F]) == InterviewOutcome.FAIL

    def test_overall_recommendation(self):
        assert overall_recommendation([]) is None
        assert overall_recommendation([P, M]) == M
        assert overall_recommendation([P, P]) == P

    def test_application_outcome(self):
        assert aggregate_outcomes([]) == InterviewOutcome.PENDING
        assert aggregate_outcomes([completed_interview(InterviewOutcome.PASS)] * 2) == InterviewOutcome.PASS
        assert aggregate_outcomes([
            completed_interview(InterviewOutcome.PASS), completed_interview(InterviewOutcome.FAIL)
        ]) == InterviewOutcome.FAIL
        assert aggregate_outcomes([
            completed_interview(InterviewOutcome.PASS), completed_interview(InterviewOutcome.PENDING)
        ]) == InterviewOutcome.PENDING

    def test_outcomes_of_unfinished_interviews_are_ignored(self):
        assert aggregate_outcomes([
            completed_interview(InterviewOutcome.PASS),
            completed_interview(InterviewOutcome.FAIL, status=InterviewStatus.CANCELLED),
        ]) == InterviewOutcome.PASS

    def test_process_complete(self):
        assert not is_process_complete([])
        assert is_process_complete([completed_interview(InterviewOutcome.PASS), completed_interview(InterviewOutcome.FAIL)])
        assert not is_process_complete([completed_interview(InterviewOutcome.PENDING)])
        assert not is_process_complete([
            completed_interview(InterviewOutcome.PASS), completed_interview(status=InterviewStatus.SCHEDULED)
        ])


@pytest.mark.evaluations
class TestSubmitEvaluation:

    def test_outcome_set_once_everyone_evaluated(self, evaluation_service, interviews, completed):
        submit(evaluation_service, "p1", completed.id, P, 8).unwrap()
        assert interviews.get_by_id(completed.id).outcome is None

        submit(evaluation_service, "p2", completed.id, P, 7.5).unwrap()
        assert interviews.get_by_id(completed.id).outcome == InterviewOutcome.PASS
        assert evaluation_service.is_evaluation_complete(completed.id)

    def test_only_completed_interviews(self, evaluation_service, scheduled):
        result = submit(evaluation_service, "p1", scheduled.id, P)
        assert result.error.kind == ErrorKind.INVALID_STATE

    def test_only_participants(self, evaluation_service, completed):
        result = submit(evaluation_service, "recruiter-1", completed.id, P)
        assert result.error.kind == ErrorKind.UNAUTHORIZED

    def test_one_evaluation_per_participant(self, evaluation_service, completed):
        submit(evaluation_service, "p1", completed.id, P).unwrap()
        result = submit(evaluation_service, "p1", completed.id, F)
        assert result.error.kind == ErrorKind.CONFLICT

    @pytest.mark.parametrize("rating", [-0.5, 10.5])
    def test_rating_range(self, evaluation_service, completed, rating):
        result = submit(evaluation_service, "p1", completed.id, P, rating)
        assert result.error.kind == ErrorKind.VALIDATION

    def test_unknown_interview(self, evaluation_service):
        assert submit(evaluation_service, "p1", "missing", P).error.kind == ErrorKind.NOT_FOUND


@pytest.mark.evaluations
class TestUpdateEvaluation:

    def test_update_recomputes_outcome(self, evaluation_service, interviews, completed):
        submit(evaluation_service, "p1", completed.id, P).unwrap()
        second = submit(evaluation_service, "p2", completed.id, F).unwrap()
        assert interviews.get_by_id(completed.id).outcome == InterviewOutcome.PENDING

        updated = evaluation_service.update_evaluation(
            second.id, "p2", UpdateEvaluationRequest(recommendation=P, comments="Follow-up answers were solid")
        ).unwrap()

        assert updated.updated_at is not None
        assert updated.comments == "Follow-up answers were solid"
        assert interviews.get_by_id(completed.id).outcome == InterviewOutcome.PASS

    def test_only_author_may_update(self, evaluation_service, completed):
        evaluation = submit(evaluation_service, "p1", completed.id, P).unwrap()
        result = evaluation_service.update_evaluation(evaluation.id, "p2", UpdateEvaluationRequest(recommendation=F))
        assert result.error.kind == ErrorKind.UNAUTHORIZED

    def test_update_window_closes(self, evaluation_service, clock, completed):
        evaluation = submit(evaluation_service, "p1", completed.id, P).unwrap()

        clock.advance(days=7, minutes=1)
        result = evaluation_service.update_evaluation(evaluation.id, "p1", UpdateEvaluationRequest(recommendation=F))

        assert result.error.kind == ErrorKind.INVALID_STATE

    def test_unknown_evaluation(self, evaluation_service):
        result = evaluation_service.update_evaluation("missing", "p1", UpdateEvaluationRequest())
        assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.evaluations
class TestOutcomeOverride:

    def test_manual_outcome_sticks(self, evaluation_service, interviews, completed):
        evaluation_service.set_interview_outcome(completed.id, InterviewOutcome.FAIL, "hr-1").unwrap()

        submit(evaluation_service, "p1", completed.id, P).unwrap()
        submit(evaluation_service, "p2", completed.id, P).unwrap()

        stored = interviews.get_by_id(completed.id)
        assert stored.outcome == InterviewOutcome.FAIL
        assert stored.outcome_overridden

    def test_override_only_once(self, evaluation_service, completed):
        evaluation_service.set_interview_outcome(completed.id, InterviewOutcome.PASS, "recruiter-1").unwrap()
        again = evaluation_service.set_interview_outcome(completed.id, InterviewOutcome.FAIL, "recruiter-1")
        assert again.error.kind == ErrorKind.INVALID_STATE

    def test_override_needs_permission(self, evaluation_service, completed):
        result = evaluation_service.set_interview_outcome(completed.id, InterviewOutcome.PASS, "p1")
        assert result.error.kind == ErrorKind.UNAUTHORIZED

    def test_override_needs_completed_interview(self, evaluation_service, scheduled):
        result = evaluation_service.set_interview_outcome(scheduled.id, InterviewOutcome.PASS, "hr-1")
        assert result.error.kind == ErrorKind.INVALID_STATE


@pytest.mark.evaluations
class TestEvaluationQueries:

    def test_average_score(self, evaluation_service, completed):
        assert evaluation_service.get_average_score(completed.id) == 0.0

        submit(evaluation_service, "p1", completed.id, P, 8).unwrap()
        submit(evaluation_service, "p2", completed.id, M, 7.5).unwrap()

        assert evaluation_service.get_average_score(completed.id) == 7.75
        assert evaluation_service.get_overall_recommendation(completed.id) == M

    def test_evaluations_in_submission_order(self, evaluation_service, clock, completed):
        submit(evaluation_service, "p2", completed.id, P).unwrap()
        clock.advance(minutes=5)
        submit(evaluation_service, "p1", completed.id, P).unwrap()

        listed = evaluation_service.get_evaluations(completed.id).unwrap()

        assert [e.evaluator_id for e in listed] == ["p2", "p1"]
        assert evaluation_service.get_evaluation(completed.id, "p1").evaluator_id == "p1"
        assert evaluation_service.get_evaluation(completed.id, "p3") is None

    def test_application_outcome_and_completion(self, evaluation_service, completed):
        assert evaluation_service.get_overall_outcome("app-1") == InterviewOutcome.PENDING
        assert not evaluation_service.is_process_complete("app-1")

        submit(evaluation_service, "p1", completed.id, P).unwrap()
        submit(evaluation_service, "p2", completed.id, P).unwrap()

        assert evaluation_service.get_overall_outcome("app-1") == InterviewOutcome.PASS
        assert evaluation_service.is_process_complete("app-1")

    def test_can_evaluate(self, evaluation_service, clock, scheduled, completed):
        assert evaluation_service.can_evaluate(completed.id, "p1")
        assert not evaluation_service.can_evaluate(completed.id, "outsider")
        assert not evaluation_service.can_evaluate("missing", "p1")

        clock.set(completed.scheduled_start + timedelta(days=8))
        assert not evaluation_service.can_evaluate(completed.id, "p1")

    def test_cannot_evaluate_before_completion(self, evaluation_service, scheduled):
        assert not evaluation_service.can_evaluate(scheduled.id, "p1")

    def test_requiring_evaluation(self, evaluation_service, completed):
        assert [i.id for i in evaluation_service.get_interviews_requiring_evaluation("p1").unwrap()] == [completed.id]

        submit(evaluation_service, "p1", completed.id, P).unwrap()

        assert evaluation_service.get_interviews_requiring_evaluation("p1").unwrap() == []
        assert evaluation_service.get_interviews_requiring_evaluation("").error.kind == ErrorKind.VALIDATION

    def test_requiring_evaluation_puts_final_rounds_first(self, evaluation_service, interviews):
        panel = [Participant(user_id="p3", is_lead=True)]
        earlier = completed_interview(scheduled_start=at(-1, 9), participants=panel)
        technical = completed_interview(interview_type=InterviewType.TECHNICAL, participants=panel)
        final = completed_interview(interview_type=InterviewType.FINAL, participants=panel)
        for interview in (technical, final, earlier):
            interviews.add(interview)

        pending = evaluation_service.get_interviews_requiring_evaluation("p3").unwrap()

        assert [i.id for i in pending] == [earlier.id, final.id, technical.id]
