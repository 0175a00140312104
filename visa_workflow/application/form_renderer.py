from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from visa_workflow.application.document_attachments import DocumentAttachmentManager
from visa_workflow.domain.form_schema import FieldDescriptor, FieldKind, StageSchemaRegistry
from visa_workflow.domain.types import DocumentAttachment, DocumentStatus, FormState


@dataclass(frozen=True)
class RenderedField:
    descriptor: FieldDescriptor
    value: Any
    uploaded: bool = False
    status: Optional[DocumentStatus] = None


@dataclass(frozen=True)
class RenderedStageForm:
    stage_key: str
    title: str
    fields: Tuple[RenderedField, ...]


@dataclass(frozen=True)
class FieldIssue:
    field: str
    code: str
    message: str


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class StageFormRenderer:
    """
    Interprets stage schemas against the current form state.
    """

    def __init__(self, registry: StageSchemaRegistry, documents: Optional[DocumentAttachmentManager] = None):
        self.registry = registry
        self.documents = documents or DocumentAttachmentManager()

    def render(self, stage_key: str, form_state: FormState) -> RenderedStageForm:
        schema = self.registry.get(stage_key)
        rendered: List[RenderedField] = []
        for descriptor in schema.fields:
            if not self._is_visible(descriptor, schema.fields, form_state):
                continue
            value = form_state.get(descriptor.name)
            if descriptor.kind == FieldKind.DOCUMENT:
                rendered.append(
                    RenderedField(
                        descriptor=descriptor,
                        value=value,
                        uploaded=self.documents.is_uploaded(form_state, descriptor.name),
                        status=self.documents.status(form_state, descriptor.name),
                    )
                )
            else:
                rendered.append(RenderedField(descriptor=descriptor, value=descriptor.default if value is None else value))
        return RenderedStageForm(stage_key=schema.stage_key, title=schema.title, fields=tuple(rendered))

    def validate(self, stage_key: str, form_state: FormState) -> List[FieldIssue]:
        schema = self.registry.get(stage_key)
        issues: List[FieldIssue] = []
        for descriptor in schema.fields:
            if not self._is_visible(descriptor, schema.fields, form_state):
                continue
            value = form_state.get(descriptor.name)
            if descriptor.required and _is_blank(value):
                issues.append(FieldIssue(descriptor.name, "required", f"{descriptor.label or descriptor.name} is required"))
                continue
            if descriptor.kind == FieldKind.CHOICE and not _is_blank(value) and value not in descriptor.choices:
                issues.append(
                    FieldIssue(descriptor.name, "invalid_choice", f"{value!r} is not a valid {descriptor.label or descriptor.name}")
                )
            if (
                descriptor.kind == FieldKind.DOCUMENT
                and not _is_blank(value)
                and not isinstance(value, (DocumentAttachment, str))
            ):
                issues.append(FieldIssue(descriptor.name, "invalid_document", f"{descriptor.name} must be a file"))
        return issues

    @staticmethod
    def _is_visible(descriptor: FieldDescriptor, siblings, form_state: FormState) -> bool:
        if descriptor.visible_when is None:
            return True
        controller, expected = descriptor.visible_when
        current = form_state.get(controller)
        if current is None:
            for sibling in siblings:
                if sibling.name == controller:
                    current = sibling.default
                    break
        return current == expected
