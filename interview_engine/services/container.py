from typing import Optional

from interview_engine.base.config import AppConfig, settings
from interview_engine.db.session import build_engine, build_session_factory, init_db
from interview_engine.repositories.base import (
    ApplicationRepository,
    EvaluationRepository,
    InterviewRepository,
    ParticipantDirectory,
)
from interview_engine.repositories.sql import (
    SqlApplicationRepository,
    SqlEvaluationRepository,
    SqlInterviewRepository,
    SqlParticipantDirectory,
    SqlStore,
)
from interview_engine.services.evaluation_service import InterviewEvaluationService
from interview_engine.services.meeting_service import MeetingCoordinator, MeetingProvider, build_meeting_provider
from interview_engine.services.notification_service import (
    EmailNotificationSender,
    NotificationDispatcher,
    NotificationSender,
)
from interview_engine.services.reporting_service import InterviewReportingService
from interview_engine.services.scheduling_service import InterviewSchedulingService
from interview_engine.utils.time_utils import Clock, utcnow


class EngineServices:
    """The public seams of the engine, wired against one set of collaborators."""

    def __init__(
        self,
        scheduling: InterviewSchedulingService,
        evaluations: InterviewEvaluationService,
        reporting: InterviewReportingService,
    ):
        self.scheduling = scheduling
        self.evaluations = evaluations
        self.reporting = reporting


def build_services(
    applications: ApplicationRepository,
    interviews: InterviewRepository,
    evaluations: EvaluationRepository,
    directory: ParticipantDirectory,
    meeting_provider: Optional[MeetingProvider] = None,
    sender: Optional[NotificationSender] = None,
    config: AppConfig = settings,
    clock: Clock = utcnow,
) -> EngineServices:
    meetings = MeetingCoordinator(meeting_provider or build_meeting_provider(config))
    notifier = NotificationDispatcher(sender or EmailNotificationSender(config), directory, applications)
    return EngineServices(
        scheduling=InterviewSchedulingService(
            applications, interviews, evaluations, directory, meetings, notifier, config=config, clock=clock
        ),
        evaluations=InterviewEvaluationService(
            interviews, evaluations, applications, directory, config=config, clock=clock
        ),
        reporting=InterviewReportingService(interviews, evaluations, config=config, clock=clock),
    )


def build_sql_services(database_url: Optional[str] = None, config: AppConfig = settings, **kwargs) -> EngineServices:
    engine = build_engine(database_url or config.DATABASE_URL)
    init_db(engine)
    store = SqlStore(build_session_factory(engine))
    return build_services(
        SqlApplicationRepository(store),
        SqlInterviewRepository(store),
        SqlEvaluationRepository(store),
        SqlParticipantDirectory(store),
        config=config,
        **kwargs,
    )
