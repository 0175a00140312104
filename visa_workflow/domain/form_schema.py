"""
Per-stage form schemas.

Each stage key maps to a StageFieldSchema value; a single generic renderer
interprets them, so adding a stage means registering data, not writing a new
screen branch.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Tuple

from visa_workflow.domain.exceptions import UnknownStageError
from visa_workflow.domain.stages import VISA_STAGES, StageCatalog
from visa_workflow.domain.types import status_field_for


class FieldKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"
    DOCUMENT = "document"


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    kind: FieldKind
    label: str = ""
    choices: Tuple[str, ...] = ()
    required: bool = False
    default: Optional[Any] = None
    multiline: bool = False
    numeric: bool = False
    # (field, value): shown only while `field` holds `value`
    visible_when: Optional[Tuple[str, str]] = None

    def __post_init__(self):
        if self.kind == FieldKind.CHOICE and not self.choices:
            raise ValueError(f"Choice field {self.name} declares no choices")
        if self.kind != FieldKind.CHOICE and self.choices:
            raise ValueError(f"Only choice fields take choices ({self.name})")
        if self.default is not None and self.choices and self.default not in self.choices:
            raise ValueError(f"Default {self.default!r} is not a choice of {self.name}")

    @property
    def status_field(self) -> Optional[str]:
        if self.kind == FieldKind.DOCUMENT:
            return status_field_for(self.name)
        return None


def text(name: str, label: str, **options: Any) -> FieldDescriptor:
    return FieldDescriptor(name=name, kind=FieldKind.TEXT, label=label, **options)


def choice(name: str, label: str, choices: Sequence[str], **options: Any) -> FieldDescriptor:
    return FieldDescriptor(name=name, kind=FieldKind.CHOICE, label=label, choices=tuple(choices), **options)


def document(name: str, label: str, **options: Any) -> FieldDescriptor:
    return FieldDescriptor(name=name, kind=FieldKind.DOCUMENT, label=label, **options)


@dataclass(frozen=True)
class StageFieldSchema:
    stage_key: str
    title: str
    fields: Tuple[FieldDescriptor, ...]

    def __post_init__(self):
        names = [descriptor.name for descriptor in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in stage {self.stage_key}")

    def field(self, name: str) -> Optional[FieldDescriptor]:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    @property
    def document_fields(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(d for d in self.fields if d.kind == FieldKind.DOCUMENT)


class StageSchemaRegistry:
    """
    Registry mapping stage keys to their field schema.
    """

    def __init__(self, schemas: Iterable[StageFieldSchema] = ()):
        self._schemas: Dict[str, StageFieldSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: StageFieldSchema) -> None:
        if schema.stage_key in self._schemas:
            raise ValueError(f"Schema already registered for stage: {schema.stage_key}")
        self._schemas[schema.stage_key] = schema

    def get(self, stage_key: str) -> StageFieldSchema:
        try:
            return self._schemas[stage_key]
        except KeyError:
            raise UnknownStageError(stage_key) from None

    def __contains__(self, stage_key: object) -> bool:
        return stage_key in self._schemas

    def __iter__(self) -> Iterator[StageFieldSchema]:
        return iter(self._schemas.values())

    def ensure_covers(self, catalog: StageCatalog) -> None:
        missing = [key for key in catalog.keys if key not in self._schemas]
        if missing:
            raise UnknownStageError(", ".join(missing))


CURRENCIES = ("USD", "EUR", "GBP", "BDT", "CAD", "AUD")
TUITION_CURRENCIES = ("USD", "EUR", "GBP", "CAD", "AUD")

ACADEMIC_DOCUMENTS = (
    ("ssc_doc", "SSC Certificate"),
    ("hsc_doc", "HSC Certificate"),
    ("bachelor_doc", "Bachelor Certificate"),
    ("ielts_doc", "IELTS Result"),
    ("cv_doc", "CV"),
    ("sop_doc", "Statement of Purpose"),
    ("financial_doc", "Financial Documents"),
    ("recommendation_letter", "Recommendation Letter"),
    ("work_experience_doc", "Work Experience"),
    ("passport_copy", "Passport Copy"),
)

EMBASSY_DOCUMENTS = (
    ("motivation_letter", "Motivation Letter"),
    ("europass_cv", "Europass CV"),
    ("bank_statement", "Bank Statement"),
    ("birth_certificate", "Birth Certificate"),
    ("police_clearance", "Police Clearance"),
)

VISA_STAGE_SCHEMAS = StageSchemaRegistry(
    [
        StageFieldSchema(
            "application",
            "Registration Details",
            (
                text("full_name", "Full Name"),
                text("passport_no", "Passport No"),
                document("passport_doc", "Passport"),
            ),
        ),
        StageFieldSchema(
            "interview",
            "Document Submission",
            tuple(document(name, label) for name, label in ACADEMIC_DOCUMENTS),
        ),
        StageFieldSchema(
            "visa",
            "University Application",
            (
                text("program_name", "Program Name"),
                text("application_id", "Application ID"),
                text("submission_date", "Submission Date (YYYY-MM-DD)"),
                choice("submission_method", "Submission Method", ("Online", "Email", "Postal", "Agent"), default="Online"),
                document("application_proof", "Application Proof"),
                choice(
                    "application_status",
                    "Application Status",
                    ("Submitted", "Under Review", "Pending Documents", "Approved", "Rejected"),
                    default="Submitted",
                ),
            ),
        ),
        StageFieldSchema(
            "fee",
            "Fee Payment",
            (
                text("fee_amount", "Amount", numeric=True),
                choice("fee_currency", "Currency", CURRENCIES, default="USD"),
                text("fee_method", "Payment Method"),
                choice("fee_status", "Payment Status", ("Pending", "Paid", "Partial", "Refunded"), default="Pending"),
                document("fee_proof", "Payment Proof"),
            ),
        ),
        StageFieldSchema(
            "zoom",
            "University Interview",
            (
                text("interview_date", "Interview Date & Time (YYYY-MM-DD HH:MM)"),
                text("interview_platform", "Platform"),
                text("interviewer_name", "Interviewer Name"),
                choice(
                    "interview_result",
                    "Interview Result",
                    ("Pending", "Accepted", "Rejected", "Waitlisted"),
                    default="Pending",
                ),
                text("interview_result_date", "Result Date (YYYY-MM-DD)"),
                text("interview_feedback", "Interview Feedback", multiline=True),
                text("interview_summary", "Interview Summary / Notes", multiline=True),
                document("interview_recording", "Interview Recording"),
            ),
        ),
        StageFieldSchema(
            "conditionalOffer",
            "Offer Letter",
            (
                text("conditional_offer_date", "Offer Date (YYYY-MM-DD)"),
                text("conditional_conditions", "Conditional Conditions", multiline=True),
                text("tuition_fee_offer", "Tuition Fee Amount", numeric=True),
                choice("tuition_currency", "Currency", TUITION_CURRENCIES, default="USD"),
                text("tuition_comments", "Tuition Comments / Payment Plan", multiline=True),
                document("conditional_offer_upload", "Offer Letter"),
            ),
        ),
        StageFieldSchema(
            "tuitionFee",
            "Tuition Fee Payment",
            (
                text("tuition_fee_amount", "Amount", numeric=True),
                text("tuition_fee_currency", "Currency"),
                document("tuition_fee_proof", "Payment Proof"),
            ),
        ),
        StageFieldSchema(
            "mainofferletter",
            "Final Offer Letter",
            (
                text("main_offer_date", "Final Offer Date"),
                document("main_offer_upload", "Final Offer Letter"),
            ),
        ),
        StageFieldSchema(
            "embassydocument",
            "Embassy Documents",
            tuple(document(name, label) for name, label in EMBASSY_DOCUMENTS),
        ),
        StageFieldSchema(
            "embassyappoint",
            "Embassy Appointment",
            (
                text("appointment_location", "Location"),
                text("appointment_datetime", "Date & Time"),
                document("appointment_letter", "Appointment Letter"),
            ),
        ),
        StageFieldSchema(
            "embassyinterview",
            "Embassy Interview",
            (
                text("embassy_result_date", "Result Date"),
                text("embassy_feedback", "Interview Feedback", multiline=True),
                text("embassy_result", "Result (Approved/Rejected)"),
            ),
        ),
        StageFieldSchema(
            "visaStatus",
            "Final Visa Status",
            (
                choice("visa_status", "Visa Status", ("Pending", "Approved", "Issued", "Rejected"), default="Pending"),
                text("decision_date", "Decision Date (YYYY-MM-DD)"),
                document("visa_sticker_upload", "Visa Sticker / Decision Letter"),
                text(
                    "rejection_reason",
                    "Rejection Reason",
                    multiline=True,
                    visible_when=("visa_status", "Rejected"),
                ),
                choice(
                    "appeal_status",
                    "Appeal Status",
                    ("Not Required", "Appealed", "Under Review", "Approved", "Rejected"),
                    default="Not Required",
                    visible_when=("visa_status", "Rejected"),
                ),
            ),
        ),
    ]
)

VISA_STAGE_SCHEMAS.ensure_covers(VISA_STAGES)
