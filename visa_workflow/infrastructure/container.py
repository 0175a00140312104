"""
Visa Workflow Container

Centralizes client instantiation and dependency wiring so the orchestrator
can be built from configuration alone.
"""
from typing import Any, Callable, Optional

from visa_workflow.application.orchestrator import VisaWorkflowOrchestrator, WorkflowContext, WorkflowSignal
from visa_workflow.application.persistence_gateway import VisaPersistenceGateway
from visa_workflow.application.record_resolver import VisaRecordResolver
from visa_workflow.core.settings import Settings, settings as default_settings
from visa_workflow.domain.form_schema import VISA_STAGE_SCHEMAS, StageSchemaRegistry
from visa_workflow.domain.stages import VISA_STAGES, StageCatalog
from visa_workflow.infrastructure.http.repositories import HttpUniversityDirectory, HttpVisaProcessRepository
from visa_workflow.infrastructure.http.visa_api_client import AsyncVisaApiClient
from visa_workflow.infrastructure.observability.logger_config import configure_structlog


class VisaWorkflowContainer:
    """
    IoC Container for the visa workflow.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: StageCatalog = VISA_STAGES,
        schemas: StageSchemaRegistry = VISA_STAGE_SCHEMAS,
        api_client: Optional[AsyncVisaApiClient] = None,
    ):
        self.settings = settings or default_settings
        self.catalog = catalog
        self.schemas = schemas
        # Lazy initialization of services
        self._api_client = api_client

    @property
    def api_client(self) -> AsyncVisaApiClient:
        if self._api_client is None:
            self._api_client = AsyncVisaApiClient(
                base_url=self.settings.VISA_API_BASE_URL,
                api_key=self.settings.VISA_API_TOKEN,
                timeout_seconds=self.settings.VISA_API_TIMEOUT_SECONDS,
            )
        return self._api_client

    def visa_repository(self, auth_token: Optional[str] = None) -> HttpVisaProcessRepository:
        return HttpVisaProcessRepository(client=self.api_client, auth_token=auth_token)

    def university_directory(self, auth_token: Optional[str] = None) -> HttpUniversityDirectory:
        return HttpUniversityDirectory(client=self.api_client, auth_token=auth_token)

    def build_orchestrator(
        self,
        context: WorkflowContext,
        on_signal: Optional[Callable[[WorkflowSignal], Any]] = None,
    ) -> VisaWorkflowOrchestrator:
        repository = self.visa_repository(context.auth_token)
        return VisaWorkflowOrchestrator(
            context=context,
            resolver=VisaRecordResolver(repository, self.catalog),
            gateway=VisaPersistenceGateway(repository, self.catalog),
            university_directory=self.university_directory(context.auth_token),
            catalog=self.catalog,
            schemas=self.schemas,
            on_signal=on_signal,
        )

    def startup(self) -> None:
        configure_structlog(self.settings.LOG_LEVEL, self.settings.LOG_JSON)

    async def shutdown(self) -> None:
        if self._api_client is not None:
            await self._api_client.aclose()
            self._api_client = None
