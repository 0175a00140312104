"""
Visa workflow orchestrator.

Owns the selected university, the active stage and the in-memory form for one
student, and sequences fetch -> edit -> save -> refetch. Every resolve is
tagged with a generation number at dispatch time; a result whose generation is
no longer current belongs to an abandoned selection and is dropped, so the
last request wins rather than the last response.
"""
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Any, Callable, List, Optional, Union

import structlog

from visa_workflow.application.document_attachments import DocumentAttachmentManager
from visa_workflow.application.form_renderer import FieldIssue, RenderedStageForm, StageFormRenderer
from visa_workflow.application.persistence_gateway import VisaPersistenceGateway
from visa_workflow.application.record_resolver import VisaRecordResolver
from visa_workflow.domain.exceptions import SubmissionError, TransientFetchError, VisaServiceError, WorkflowStateError
from visa_workflow.domain.form_schema import VISA_STAGE_SCHEMAS, StageSchemaRegistry
from visa_workflow.domain.ports import IUniversityDirectory
from visa_workflow.domain.progress import (
    advance_after_save,
    compute_progress,
    first_incomplete,
    snapshot_for,
)
from visa_workflow.domain.stages import VISA_STAGES, StageCatalog, StageDefinition
from visa_workflow.domain.types import (
    DocumentAttachment,
    DocumentStatus,
    FormState,
    ProgressSnapshot,
    University,
    WorkflowRecord,
)
from visa_workflow.infrastructure.observability.context_vars import workflow_context

logger = structlog.get_logger(__name__)


class WorkflowStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    LOAD_FAILED = "load_failed"
    SAVE_FAILED = "save_failed"


# load_failed / save_failed keep showing the last ready state
EDITABLE_STATUSES = frozenset({WorkflowStatus.READY, WorkflowStatus.LOAD_FAILED, WorkflowStatus.SAVE_FAILED})


class SignalKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PROMPT = "prompt"


@dataclass(frozen=True)
class WorkflowSignal:
    kind: SignalKind
    code: str
    message: str


@dataclass(frozen=True)
class WorkflowContext:
    """Session facts handed in by the host application."""
    student_id: str
    auth_token: Optional[str] = None

    def __post_init__(self):
        if not str(self.student_id or "").strip():
            raise ValueError("WorkflowContext requires a student_id")


@dataclass(frozen=True)
class StageStep:
    stage: StageDefinition
    active: bool
    completed: bool


class VisaWorkflowOrchestrator:
    def __init__(
        self,
        context: WorkflowContext,
        resolver: VisaRecordResolver,
        gateway: VisaPersistenceGateway,
        university_directory: Optional[IUniversityDirectory] = None,
        catalog: StageCatalog = VISA_STAGES,
        schemas: StageSchemaRegistry = VISA_STAGE_SCHEMAS,
        on_signal: Optional[Callable[[WorkflowSignal], Any]] = None,
    ):
        schemas.ensure_covers(catalog)
        self.context = context
        self.resolver = resolver
        self.gateway = gateway
        self.university_directory = university_directory
        self.catalog = catalog
        self.documents = DocumentAttachmentManager()
        self.renderer = StageFormRenderer(schemas, self.documents)
        self.on_signal = on_signal

        self.status = WorkflowStatus.UNINITIALIZED
        self.universities: List[University] = []
        self.selected_university_id = ""
        self.loaded_university_id: Optional[str] = None
        self.record_id: Optional[str] = None
        self.form_state = FormState.empty()
        self.snapshot: ProgressSnapshot = compute_progress(None, catalog)
        self.validation_issues: List[FieldIssue] = []
        self.signals: List[WorkflowSignal] = []
        self._generation = 0

    # -- derived view -------------------------------------------------------

    @property
    def active_stage(self) -> str:
        return self.snapshot.active_stage

    @property
    def completed_stages(self) -> AbstractSet[str]:
        return self.snapshot.completed_stages

    @property
    def progress_percent(self) -> int:
        return self.snapshot.progress_percent

    def stage_steps(self) -> List[StageStep]:
        return [
            StageStep(stage=stage, active=stage.key == self.active_stage, completed=stage.key in self.completed_stages)
            for stage in self.catalog
        ]

    def render_active_stage(self) -> RenderedStageForm:
        return self.renderer.render(self.active_stage, self.form_state)

    def document_status(self, field_name: str) -> DocumentStatus:
        return self.documents.status(self.form_state, field_name)

    # -- loading ------------------------------------------------------------

    async def initialize(self) -> bool:
        """Loads the university directory and opens the first university."""
        if self.university_directory is None:
            raise WorkflowStateError("initialize", "no university directory is configured")

        with workflow_context(self.context.student_id, None):
            try:
                universities = await self.university_directory.list_universities()
            except VisaServiceError as exc:
                logger.warning("universities_load_failed", status=exc.status, error=exc.message)
                self.status = WorkflowStatus.LOAD_FAILED
                self._emit(SignalKind.ERROR, "universities_load_failed", "Failed to load initial data")
                return False

        self.universities = list(universities)
        logger.info("universities_loaded", count=len(self.universities))
        if self.universities and not self.selected_university_id:
            return await self.select_university(self.universities[0].id)
        return True

    async def select_university(self, university_id: str) -> bool:
        selection = str(university_id or "").strip()
        self.selected_university_id = selection
        generation = self._next_generation()

        if not selection:
            self.status = WorkflowStatus.UNINITIALIZED
            return False

        self.status = WorkflowStatus.LOADING
        return await self._load(selection, generation)

    async def retry(self) -> bool:
        """Re-resolves the current selection after a failed load."""
        return await self.select_university(self.selected_university_id)

    async def _load(
        self,
        university_id: str,
        generation: int,
        keep_completed: AbstractSet[str] = frozenset(),
        keep_record_id: Optional[str] = None,
    ) -> bool:
        with workflow_context(self.context.student_id, university_id):
            try:
                record = await self.resolver.resolve(self.context.student_id, university_id)
            except TransientFetchError as exc:
                if self._is_stale(generation):
                    logger.debug("stale_resolve_failure_discarded", generation=generation)
                    return False
                # prior display stays; only the status records the failure
                self.status = WorkflowStatus.LOAD_FAILED
                self._emit(SignalKind.ERROR, "load_failed", f"Failed to load visa process: {exc.message}")
                return False

            if self._is_stale(generation):
                logger.debug("stale_resolve_discarded", generation=generation, current=self._generation)
                return False

            self._apply_record(university_id, record, keep_completed, keep_record_id)
            return True

    def _apply_record(
        self,
        university_id: str,
        record: Optional[WorkflowRecord],
        keep_completed: AbstractSet[str],
        keep_record_id: Optional[str],
    ) -> None:
        snapshot = compute_progress(record, self.catalog)
        if keep_completed:
            merged = snapshot.completed_stages | frozenset(keep_completed)
            snapshot = snapshot_for(merged, first_incomplete(merged, self.catalog), self.catalog)

        self.snapshot = snapshot
        self.form_state = FormState.from_record(record)
        self.record_id = record.id if record is not None and record.id else keep_record_id
        self.loaded_university_id = university_id
        self.validation_issues = []
        self.status = WorkflowStatus.READY
        logger.info(
            "visa_workflow_ready",
            record_id=self.record_id,
            active_stage=snapshot.active_stage,
            progress_percent=snapshot.progress_percent,
        )

    # -- editing ------------------------------------------------------------

    def edit_field(self, name: str, value: Any) -> bool:
        if not self._accepts_edits("edit_field"):
            return False
        self.form_state = self.form_state.with_value(name, value)
        return True

    def attach_document(self, name: str, attachment: Optional[DocumentAttachment]) -> bool:
        if not self._accepts_edits("attach_document"):
            return False
        if attachment is None:
            logger.debug("document_pick_cancelled", field=name)
            return False
        self.form_state = self.documents.attach(self.form_state, name, attachment)
        return True

    def set_document_status(self, name: str, status: Union[DocumentStatus, str]) -> bool:
        if not self._accepts_edits("set_document_status"):
            return False
        self.form_state = self.documents.set_status(self.form_state, name, status)
        return True

    def select_stage(self, stage_key: str) -> None:
        self._require_editable("select_stage")
        self.snapshot = snapshot_for(self.completed_stages, self.catalog.get(stage_key).key, self.catalog)

    # -- saving -------------------------------------------------------------

    async def save(self) -> bool:
        university_id = self.selected_university_id
        if not university_id:
            self._emit(SignalKind.PROMPT, "selection_required", "Please select a university first.")
            return False
        if self.status not in EDITABLE_STATUSES:
            self._emit(SignalKind.PROMPT, "busy", f"Please wait, the visa process is {self.status.value}.")
            return False

        if self.loaded_university_id != university_id:
            self._emit(SignalKind.PROMPT, "reload_required", "Reload this university before saving.")
            return False

        stage = self.catalog.get(self.active_stage)
        issues = self.renderer.validate(stage.key, self.form_state)
        self.validation_issues = issues
        if issues:
            self._emit(SignalKind.PROMPT, "validation_failed", "; ".join(issue.message for issue in issues))
            return False

        generation = self._generation
        created = self.record_id is None
        self.status = WorkflowStatus.SAVING

        with workflow_context(self.context.student_id, university_id):
            try:
                record_id = await self.gateway.save(
                    self.context.student_id,
                    university_id,
                    self.record_id,
                    stage.key,
                    self.form_state,
                )
            except SubmissionError as exc:
                if not self._is_stale(generation):
                    self.status = WorkflowStatus.SAVE_FAILED
                self._emit(SignalKind.ERROR, "save_failed", f"Failed to save progress: {exc.message}")
                return False

            self._emit(
                SignalKind.SUCCESS,
                "saved",
                "Visa process started" if created else f"{stage.label} updated",
            )

            if self._is_stale(generation):
                logger.info("save_completed_after_selection_change", stage=stage.key, record_id=record_id)
                return True

            self.record_id = record_id
            self.snapshot = advance_after_save(self.snapshot, stage.key, self.catalog)
            self.status = WorkflowStatus.READY

        await self._load(
            university_id,
            self._next_generation(),
            keep_completed=self.snapshot.completed_stages,
            keep_record_id=record_id,
        )
        return True

    # -- internals ----------------------------------------------------------

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _require_editable(self, operation: str) -> None:
        if self.status not in EDITABLE_STATUSES:
            raise WorkflowStateError(operation, self.status.value)

    def _accepts_edits(self, operation: str) -> bool:
        self._require_editable(operation)
        # the form on screen belongs to the previous selection until it reloads
        if self.loaded_university_id != self.selected_university_id:
            self._emit(SignalKind.PROMPT, "reload_required", "Reload this university before editing.")
            return False
        return True

    def _emit(self, kind: SignalKind, code: str, message: str) -> None:
        signal = WorkflowSignal(kind=kind, code=code, message=message)
        self.signals.append(signal)
        log = logger.warning if kind == SignalKind.ERROR else logger.info
        log("workflow_signal", kind=kind.value, code=code, signal_message=message)
        if self.on_signal is not None:
            self.on_signal(signal)
