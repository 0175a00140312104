"""
Data model for the visa workflow.
- Remote payloads (records, universities) are Pydantic models.
- In-memory working state (attachments, form state, snapshots) is immutable.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from visa_workflow.domain.stages import StageCatalog

DEFAULT_MIME_TYPE = "application/octet-stream"
STATUS_SUFFIX = "_status"

_TRUE_FLAG_STRINGS = {"1", "true"}


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


def status_field_for(field_name: str) -> str:
    return f"{field_name}{STATUS_SUFFIX}"


def is_flag_set(value: Any) -> bool:
    """A completion flag counts as set only for an explicit true/1 marker."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAG_STRINGS
    return False


@dataclass(frozen=True)
class DocumentAttachment:
    """Opaque handle to a locally picked file; uploaded only on save."""
    uri: str
    name: str
    mime_type: str = DEFAULT_MIME_TYPE

    @classmethod
    def from_picker(cls, result: Optional[Mapping[str, Any]]) -> Optional["DocumentAttachment"]:
        """
        Builds an attachment from a document-picker result.
        Returns None when the user cancelled or picked nothing.
        """
        if not result or result.get("canceled"):
            return None
        assets = result.get("assets") or []
        if not assets:
            return None
        asset = assets[0]
        uri = str(asset.get("uri") or "").strip()
        if not uri:
            return None
        name = str(asset.get("name") or uri.rsplit("/", 1)[-1])
        return cls(uri=uri, name=name, mime_type=str(asset.get("mimeType") or DEFAULT_MIME_TYPE))


class University(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)


class WorkflowRecord(BaseModel):
    """
    Server-side visa process for one (student, university) pair.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    student_id: Optional[str] = None
    university_id: Optional[str] = None
    field_values: Dict[str, Any] = Field(default_factory=dict)
    flags: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("id", "student_id", "university_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        if isinstance(value, (dict, list)):
            raise ValueError("identifiers must be scalar")
        return str(value)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], catalog: StageCatalog) -> "WorkflowRecord":
        flags = {name: is_flag_set(payload.get(name)) for name in catalog.completion_fields}
        fields = {
            key: value
            for key, value in payload.items()
            if key not in {"id", "student_id", "university_id"} and key not in catalog.completion_fields
        }
        return cls(
            id=payload.get("id"),
            student_id=payload.get("student_id"),
            university_id=payload.get("university_id"),
            field_values=fields,
            flags=flags,
        )

    def is_complete(self, completion_field: str) -> bool:
        return bool(self.flags.get(completion_field, False))


class FormState(Mapping[str, Any]):
    """
    Immutable working copy of the form. Every change returns a new instance.
    """
    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    @classmethod
    def empty(cls) -> "FormState":
        return cls()

    @classmethod
    def from_record(cls, record: Optional[WorkflowRecord]) -> "FormState":
        if record is None:
            return cls()
        return cls(record.field_values)

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FormState({self._values!r})"

    def with_value(self, name: str, value: Any) -> "FormState":
        values = dict(self._values)
        values[name] = value
        return FormState(values)

    def without(self, name: str) -> "FormState":
        values = dict(self._values)
        values.pop(name, None)
        return FormState(values)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)


@dataclass(frozen=True)
class ProgressSnapshot:
    completed_stages: FrozenSet[str]
    active_stage: str
    progress_percent: int


@dataclass(frozen=True)
class VisaSubmission:
    """Multipart body for a create/update call: form fields plus file parts."""
    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, DocumentAttachment] = field(default_factory=dict)
