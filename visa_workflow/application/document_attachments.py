from typing import Any, Optional, Union

import structlog

from visa_workflow.domain.types import DocumentAttachment, DocumentStatus, FormState, status_field_for

logger = structlog.get_logger(__name__)


class DocumentAttachmentManager:
    """
    Pairs picked files with form fields and tracks their review status.
    Purely in-memory: uploads only happen when the form is saved.
    """

    def attach(self, form_state: FormState, field_name: str, attachment: DocumentAttachment) -> FormState:
        updated = form_state.with_value(field_name, attachment)
        status_field = status_field_for(field_name)
        if not updated.get(status_field):
            updated = updated.with_value(status_field, DocumentStatus.PENDING.value)
        logger.debug("document_attached", field=field_name, file_name=attachment.name, mime_type=attachment.mime_type)
        return updated

    def status(self, form_state: FormState, field_name: str) -> DocumentStatus:
        raw = form_state.get(status_field_for(field_name))
        parsed = self._parse(raw)
        if parsed is None:
            if raw not in (None, ""):
                logger.warning("document_status_unrecognized", field=field_name, status=raw)
            return DocumentStatus.PENDING
        return parsed

    def set_status(
        self,
        form_state: FormState,
        field_name: str,
        status: Union[DocumentStatus, str],
    ) -> FormState:
        parsed = self._parse(status)
        if parsed is None:
            raise ValueError(f"Invalid document status for {field_name}: {status!r}")
        logger.info("document_status_set", field=field_name, status=parsed.value)
        return form_state.with_value(status_field_for(field_name), parsed.value)

    def is_uploaded(self, form_state: FormState, field_name: str) -> bool:
        return bool(form_state.get(field_name))

    @staticmethod
    def _parse(value: Any) -> Optional[DocumentStatus]:
        if isinstance(value, DocumentStatus):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for status in DocumentStatus:
            if status.value.lower() == normalized:
                return status
        return None
