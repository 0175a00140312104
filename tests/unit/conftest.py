from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from visa_workflow.application.orchestrator import VisaWorkflowOrchestrator, WorkflowContext
from visa_workflow.application.persistence_gateway import VisaPersistenceGateway
from visa_workflow.application.record_resolver import VisaRecordResolver
from visa_workflow.domain.exceptions import VisaServiceError
from visa_workflow.domain.form_schema import StageFieldSchema, StageSchemaRegistry, choice, document, text
from visa_workflow.domain.ports import IUniversityDirectory, IVisaProcessRepository
from visa_workflow.domain.stages import StageCatalog, StageDefinition
from visa_workflow.domain.types import University, VisaSubmission


def three_stage_catalog() -> StageCatalog:
    return StageCatalog(
        [
            StageDefinition("application", "Application", "person", "applied"),
            StageDefinition("documents", "Documents", "folder", "documents_submitted"),
            StageDefinition("decision", "Decision", "airplane", "decided"),
        ]
    )


def three_stage_schemas() -> StageSchemaRegistry:
    return StageSchemaRegistry(
        [
            StageFieldSchema(
                "application",
                "Application",
                (text("full_name", "Full Name"), document("passport_doc", "Passport")),
            ),
            StageFieldSchema("documents", "Documents", (document("transcript", "Transcript"),)),
            StageFieldSchema(
                "decision",
                "Decision",
                (choice("decision", "Decision", ("Pending", "Accepted", "Rejected"), default="Pending"),),
            ),
        ]
    )


class InMemoryVisaBackend(IVisaProcessRepository):
    """Stores records keyed by (university, student) the way the CRM backend does."""

    def __init__(self):
        self.records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.submissions: List[Tuple[str, Optional[str], VisaSubmission]] = []
        self.fetches: List[Tuple[str, str]] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.fail_fetch_for: set = set()
        self.fail_submit = False
        self.submit_gate: Optional[asyncio.Event] = None
        self._next_id = 100

    def seed(self, university_id: str, student_id: str, **values: Any) -> Dict[str, Any]:
        record = {"id": self._next_id, "student_id": student_id, "university_id": university_id, **values}
        self._next_id += 1
        self.records[(university_id, student_id)] = record
        return record

    async def get_visa_process(self, university_id: str, student_id: str) -> Optional[Any]:
        self.fetches.append((university_id, student_id))
        gate = self.gates.get(university_id)
        if gate is not None:
            await gate.wait()
        if university_id in self.fail_fetch_for:
            raise VisaServiceError("service unavailable", status=503)
        record = self.records.get((university_id, student_id))
        return [dict(record)] if record else []

    async def create_visa_process(self, submission: VisaSubmission) -> Dict[str, Any]:
        self.submissions.append(("create", None, submission))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.fail_submit:
            raise VisaServiceError("validation failed", status=422)
        fields = submission.fields
        record = self.seed(fields["university_id"], fields["student_id"])
        self._merge(record, submission)
        return dict(record)

    async def update_visa_process(self, record_id: str, submission: VisaSubmission) -> Dict[str, Any]:
        self.submissions.append(("update", record_id, submission))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.fail_submit:
            raise VisaServiceError("validation failed", status=422)
        for record in self.records.values():
            if str(record["id"]) == str(record_id):
                self._merge(record, submission)
                return dict(record)
        raise VisaServiceError("record not found", status=404)

    @staticmethod
    def _merge(record: Dict[str, Any], submission: VisaSubmission) -> None:
        for key, value in submission.fields.items():
            if key not in ("student_id", "university_id"):
                record[key] = value
        for key, attachment in submission.files.items():
            record[key] = f"/uploads/{attachment.name}"


class StaticUniversityDirectory(IUniversityDirectory):
    def __init__(self, universities: List[University], fail: bool = False):
        self.universities = universities
        self.fail = fail

    async def list_universities(self) -> List[University]:
        if self.fail:
            raise VisaServiceError("directory down", status=500)
        return list(self.universities)


@pytest.fixture
def catalog() -> StageCatalog:
    return three_stage_catalog()


@pytest.fixture
def schemas() -> StageSchemaRegistry:
    return three_stage_schemas()


@pytest.fixture
def backend() -> InMemoryVisaBackend:
    return InMemoryVisaBackend()


@pytest.fixture
def signals() -> list:
    return []


@pytest.fixture
def orchestrator(backend, catalog, schemas, signals) -> VisaWorkflowOrchestrator:
    directory = StaticUniversityDirectory([University(id="U1", name="Uni One"), University(id="U2", name="Uni Two")])
    return VisaWorkflowOrchestrator(
        context=WorkflowContext(student_id="S1", auth_token="token"),
        resolver=VisaRecordResolver(backend, catalog),
        gateway=VisaPersistenceGateway(backend, catalog),
        university_directory=directory,
        catalog=catalog,
        schemas=schemas,
        on_signal=signals.append,
    )


@pytest.fixture
def build_orchestrator(backend, catalog, schemas, signals):
    def _build(directory: Optional[IUniversityDirectory] = None, **overrides: Any) -> VisaWorkflowOrchestrator:
        options = {"catalog": catalog, "schemas": schemas, "on_signal": signals.append, **overrides}
        return VisaWorkflowOrchestrator(
            context=WorkflowContext(student_id="S1"),
            resolver=VisaRecordResolver(backend, options["catalog"]),
            gateway=VisaPersistenceGateway(backend, options["catalog"]),
            university_directory=directory,
            **options,
        )

    return _build


@pytest.fixture
def failing_directory() -> StaticUniversityDirectory:
    return StaticUniversityDirectory([], fail=True)
