import logging
from typing import Iterable

from interview_engine.base.models import Interview, InterviewStatus
from interview_engine.repositories.base import ApplicationRepository

logger = logging.getLogger("round_resolver")


def resolve_next_round(interviews: Iterable[Interview]) -> int:
    """
    A round is a set of interviews at the same stage. The next interview
    joins the current round until one session of it has been completed.
    """
    active = [i for i in interviews if i.is_active]
    if not active:
        return 1

    max_round = max(i.round_number for i in active)
    if any(i.round_number == max_round and i.status == InterviewStatus.COMPLETED for i in active):
        return max_round + 1
    return max_round


class RoundResolver:
    def __init__(self, applications: ApplicationRepository):
        self.applications = applications

    def next_round(self, application_id: str) -> int:
        next_round = resolve_next_round(self.applications.get_active_interviews(application_id))
        logger.debug(f"[Round] Application {application_id} -> round {next_round}")
        return next_round
