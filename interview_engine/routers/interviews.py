from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status

from interview_engine.base.models import (
    AvailableSlotsRequest,
    CancelInterviewRequest,
    CompleteInterviewRequest,
    Evaluation,
    Interview,
    InterviewAnalytics,
    MarkNoShowRequest,
    Participant,
    RescheduleInterviewRequest,
    ScheduledInterviewSlot,
    ScheduledInterviewsRequest,
    ScheduleInterviewRequest,
    SetOutcomeRequest,
    Slot,
    SubmitEvaluationRequest,
    UpdateEvaluationRequest,
)
from interview_engine.services.container import EngineServices, build_sql_services

router = APIRouter(prefix="/interviews", tags=["Interviews"])


@lru_cache()
def get_services() -> EngineServices:
    return build_sql_services()


def get_actor_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Authentication happens upstream; the gateway forwards the acting user."""
    return x_user_id


# === Scheduling ===

@router.post("", response_model=Interview, status_code=status.HTTP_201_CREATED)
def schedule_interview(
    req: ScheduleInterviewRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.schedule_interview(req, actor_id).unwrap()


@router.post("/slots", response_model=List[Slot])
def available_slots(req: AvailableSlotsRequest, services: EngineServices = Depends(get_services)):
    return services.scheduling.get_available_slots(req).unwrap()


@router.post("/booked", response_model=List[ScheduledInterviewSlot])
def scheduled_interviews(req: ScheduledInterviewsRequest, services: EngineServices = Depends(get_services)):
    return services.scheduling.get_scheduled_interviews(req).unwrap()


@router.post("/reminders")
def send_reminders(services: EngineServices = Depends(get_services)):
    return {"reminded": services.scheduling.send_reminders()}


# === Lifecycle ===

@router.post("/{interview_id}/reschedule", response_model=Interview)
def reschedule_interview(
    interview_id: str,
    req: RescheduleInterviewRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.reschedule_interview(interview_id, req, actor_id).unwrap()


@router.post("/{interview_id}/cancel", response_model=Interview)
def cancel_interview(
    interview_id: str,
    req: CancelInterviewRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.cancel_interview(interview_id, req, actor_id).unwrap()


@router.post("/{interview_id}/complete", response_model=Interview)
def complete_interview(
    interview_id: str,
    req: CompleteInterviewRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.complete_interview(interview_id, req, actor_id).unwrap()


@router.post("/{interview_id}/no-show", response_model=Interview)
def mark_no_show(
    interview_id: str,
    req: MarkNoShowRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.mark_no_show(interview_id, req, actor_id).unwrap()


@router.delete("/{interview_id}", response_model=Interview)
def delete_interview(
    interview_id: str,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.delete_interview(interview_id, actor_id).unwrap()


@router.get("/{interview_id}/participants", response_model=List[Participant])
def interview_participants(
    interview_id: str,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.scheduling.get_participants(interview_id, actor_id).unwrap()


# === Evaluations ===

@router.post("/evaluations", response_model=Evaluation, status_code=status.HTTP_201_CREATED)
def submit_evaluation(
    req: SubmitEvaluationRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.evaluations.submit_evaluation(actor_id, req).unwrap()


@router.patch("/evaluations/{evaluation_id}", response_model=Evaluation)
def update_evaluation(
    evaluation_id: str,
    req: UpdateEvaluationRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.evaluations.update_evaluation(evaluation_id, actor_id, req).unwrap()


@router.get("/evaluations/pending", response_model=List[Interview])
def interviews_requiring_evaluation(
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.evaluations.get_interviews_requiring_evaluation(actor_id).unwrap()


@router.get("/{interview_id}/evaluations", response_model=List[Evaluation])
def interview_evaluations(interview_id: str, services: EngineServices = Depends(get_services)):
    return services.evaluations.get_evaluations(interview_id).unwrap()


@router.get("/{interview_id}/score")
def interview_score(interview_id: str, services: EngineServices = Depends(get_services)):
    recommendation = services.evaluations.get_overall_recommendation(interview_id)
    return {
        "interview_id": interview_id,
        "average_score": services.evaluations.get_average_score(interview_id),
        "overall_recommendation": recommendation.value if recommendation else None,
        "evaluation_complete": services.evaluations.is_evaluation_complete(interview_id),
    }


@router.put("/{interview_id}/outcome", response_model=Interview)
def set_outcome(
    interview_id: str,
    req: SetOutcomeRequest,
    actor_id: str = Depends(get_actor_id),
    services: EngineServices = Depends(get_services),
):
    return services.evaluations.set_interview_outcome(interview_id, req.outcome, actor_id).unwrap()


# === Applications & Reporting ===

@router.get("/applications/{application_id}/outcome")
def application_outcome(application_id: str, services: EngineServices = Depends(get_services)):
    return {
        "application_id": application_id,
        "outcome": services.evaluations.get_overall_outcome(application_id).value,
        "process_complete": services.evaluations.is_process_complete(application_id),
        "can_schedule": services.scheduling.can_schedule_interview(application_id),
    }


@router.get("/applications/{application_id}/latest", response_model=Optional[Interview])
def latest_interview(application_id: str, services: EngineServices = Depends(get_services)):
    return services.scheduling.get_latest_interview(application_id)


@router.get("/analytics", response_model=InterviewAnalytics)
def analytics(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    services: EngineServices = Depends(get_services),
):
    return services.reporting.get_analytics(from_date, to_date).unwrap()


@router.get("/needing-action", response_model=List[Interview])
def needing_action(user_id: Optional[str] = None, services: EngineServices = Depends(get_services)):
    return services.reporting.get_interviews_needing_action(user_id)
