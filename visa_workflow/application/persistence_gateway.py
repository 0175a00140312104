import json
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from visa_workflow.domain.exceptions import PreconditionViolation, SubmissionError, VisaServiceError
from visa_workflow.domain.ports import IVisaProcessRepository
from visa_workflow.domain.stages import StageCatalog
from visa_workflow.domain.types import DocumentAttachment, FormState, VisaSubmission

logger = structlog.get_logger(__name__)

# Keys owned by the backend or set explicitly by the submission itself.
RESERVED_FIELDS = frozenset({"id", "student_id", "university_id", "created_at", "updated_at"})

FLAG_SET = "1"


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


def build_submission(
    student_id: str,
    university_id: str,
    stage_key: str,
    form_state: FormState,
    catalog: StageCatalog,
) -> VisaSubmission:
    """
    Maps the form state onto a multipart submission.
    Only the given stage's completion flag is written; every other flag is left to the backend.
    """
    stage = catalog.get(stage_key)
    fields: Dict[str, str] = {
        "student_id": str(student_id),
        "university_id": str(university_id),
        stage.completion_field: FLAG_SET,
    }
    files: Dict[str, DocumentAttachment] = {}

    for name, value in form_state.items():
        if value is None or name in RESERVED_FIELDS or name in catalog.completion_fields:
            continue
        if isinstance(value, DocumentAttachment):
            files[name] = value
        else:
            fields[name] = _encode_scalar(value)

    return VisaSubmission(fields=fields, files=files)


class VisaPersistenceGateway:
    """
    Creates or updates the visa process record for the active stage.
    """

    def __init__(self, repository: IVisaProcessRepository, catalog: StageCatalog):
        self.repository = repository
        self.catalog = catalog

    async def save(
        self,
        student_id: str,
        university_id: str,
        record_id: Optional[str],
        stage_key: str,
        form_state: FormState,
    ) -> str:
        if not str(student_id or "").strip() or not str(university_id or "").strip():
            raise PreconditionViolation("A student and a university are required before saving")

        submission = build_submission(student_id, university_id, stage_key, form_state, self.catalog)
        log = logger.bind(stage=stage_key, record_id=record_id, files=sorted(submission.files))

        try:
            if record_id:
                response = await self.repository.update_visa_process(record_id, submission)
            else:
                response = await self.repository.create_visa_process(submission)
        except VisaServiceError as exc:
            log.warning("visa_submission_failed", status=exc.status, error=exc.message)
            raise SubmissionError(exc.message, status=exc.status) from exc

        if record_id:
            log.info("visa_process_updated")
            return str(record_id)

        created_id = response.get("id") if isinstance(response, dict) else None
        if created_id in (None, ""):
            log.error("visa_create_without_id", response_keys=sorted(response) if isinstance(response, dict) else None)
            raise SubmissionError("Create response did not include a record id")

        log.info("visa_process_created", created_id=str(created_id))
        return str(created_id)
