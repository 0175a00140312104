import json

import httpx
import pytest

from visa_workflow.application.orchestrator import WorkflowContext, WorkflowStatus
from visa_workflow.core.settings import Settings
from visa_workflow.infrastructure.container import VisaWorkflowContainer
from visa_workflow.infrastructure.http.visa_api_client import AsyncVisaApiClient


class _FakeCrm:
    """Answers the CRM endpoints the way the production backend does."""

    def __init__(self):
        self.records = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path, request.headers.get("Authorization")))
        path = request.url.path
        if path == "/api/universities":
            return httpx.Response(200, json=[{"id": 3, "name": "Uni Three"}])
        if path.startswith("/api/auth/getVisaProcessByuniversityidsss/"):
            university_id, student_id = path.rsplit("/", 2)[-2:]
            record = self.records.get((university_id, student_id))
            if record is None:
                return httpx.Response(404, json={"message": "Not found"})
            return httpx.Response(200, json=[record])
        if path == "/api/createVisaProcess" and request.method == "POST":
            form = dict(pair.split("=", 1) for pair in request.read().decode().split("&"))
            record = {"id": 900, **form}
            self.records[(form["university_id"], form["student_id"])] = record
            return httpx.Response(201, content=json.dumps(record).encode())
        return httpx.Response(405)


@pytest.mark.asyncio
async def test_container_wires_an_end_to_end_workflow() -> None:
    crm = _FakeCrm()
    api_client = AsyncVisaApiClient(
        base_url="http://crm.test/api/",
        client=httpx.AsyncClient(transport=httpx.MockTransport(crm)),
    )
    container = VisaWorkflowContainer(settings=Settings(_env_file=None), api_client=api_client)
    orchestrator = container.build_orchestrator(WorkflowContext(student_id="42", auth_token="jwt"))

    assert await orchestrator.initialize() is True
    assert orchestrator.selected_university_id == "3"
    assert orchestrator.active_stage == "application"
    assert orchestrator.record_id is None

    assert await orchestrator.save() is True

    assert orchestrator.record_id == "900"
    assert orchestrator.completed_stages == {"application"}
    assert orchestrator.active_stage == "interview"
    assert orchestrator.progress_percent == 8
    assert orchestrator.status == WorkflowStatus.READY
    assert crm.records[("3", "42")]["registration_visa_processing_stage"] == "1"
    assert all(auth == "Bearer jwt" for _, _, auth in crm.requests)

    await container.shutdown()


def test_container_builds_client_from_settings() -> None:
    container = VisaWorkflowContainer(
        settings=Settings(_env_file=None, VISA_API_BASE_URL="http://crm.internal/api", VISA_API_TIMEOUT_SECONDS=5)
    )

    assert container.api_client.base_url == "http://crm.internal/api"
    assert container.api_client.timeout_seconds == 5.0
    assert container.api_client is container.api_client
