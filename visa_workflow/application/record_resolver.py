from typing import Any, Mapping, Optional

import structlog
from pydantic import ValidationError

from visa_workflow.domain.exceptions import PreconditionViolation, TransientFetchError, VisaServiceError
from visa_workflow.domain.ports import IVisaProcessRepository
from visa_workflow.domain.stages import StageCatalog
from visa_workflow.domain.types import WorkflowRecord

logger = structlog.get_logger(__name__)


class VisaRecordResolver:
    """
    Finds the visa process record for a (student, university) pair.
    A missing record is a normal outcome and resolves to None.
    """

    def __init__(self, repository: IVisaProcessRepository, catalog: StageCatalog):
        self.repository = repository
        self.catalog = catalog

    async def resolve(self, student_id: str, university_id: str) -> Optional[WorkflowRecord]:
        student = str(student_id or "").strip()
        university = str(university_id or "").strip()
        if not student or not university:
            raise PreconditionViolation("Both student_id and university_id are required to resolve a visa record")

        try:
            payload = await self.repository.get_visa_process(university, student)
        except VisaServiceError as exc:
            logger.warning("visa_record_fetch_failed", university_id=university, status=exc.status, error=exc.message)
            raise TransientFetchError(exc.message, status=exc.status) from exc

        raw = self._unwrap(payload)
        if raw is None:
            logger.info("visa_record_not_found", university_id=university)
            return None

        try:
            record = WorkflowRecord.from_payload(raw, self.catalog)
        except ValidationError as exc:
            logger.warning("visa_record_unparseable", university_id=university, error=str(exc))
            raise TransientFetchError("Visa record payload could not be parsed") from exc

        logger.info("visa_record_resolved", university_id=university, record_id=record.id)
        return record

    @staticmethod
    def _unwrap(payload: Any) -> Optional[Mapping[str, Any]]:
        # the backend answers with either a single object or a list of matches
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, Mapping) or not payload:
            return None
        return payload
