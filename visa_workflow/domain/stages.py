"""
Visa stage catalog.

The catalog order is the canonical traversal order: it drives the stepper,
active-stage derivation and the "next stage" chosen after a save.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, Optional, Tuple

from visa_workflow.domain.exceptions import UnknownStageError


@dataclass(frozen=True)
class StageDefinition:
    key: str
    label: str
    icon: str
    completion_field: str


class StageCatalog:
    """
    Immutable, ordered collection of stage definitions.
    """

    def __init__(self, stages: Iterable[StageDefinition]):
        ordered = tuple(stages)
        if not ordered:
            raise ValueError("A stage catalog needs at least one stage")

        by_key: Dict[str, int] = {}
        flags = set()
        for index, stage in enumerate(ordered):
            if stage.key in by_key:
                raise ValueError(f"Duplicate stage key in catalog: {stage.key}")
            if stage.completion_field in flags:
                raise ValueError(f"Duplicate completion field in catalog: {stage.completion_field}")
            by_key[stage.key] = index
            flags.add(stage.completion_field)

        self._stages: Tuple[StageDefinition, ...] = ordered
        self._index: Dict[str, int] = by_key
        self._completion_fields: FrozenSet[str] = frozenset(flags)

    def __iter__(self) -> Iterator[StageDefinition]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __getitem__(self, position: int) -> StageDefinition:
        return self._stages[position]

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __repr__(self) -> str:
        return f"StageCatalog({[s.key for s in self._stages]!r})"

    @property
    def first(self) -> StageDefinition:
        return self._stages[0]

    @property
    def last(self) -> StageDefinition:
        return self._stages[-1]

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(stage.key for stage in self._stages)

    @property
    def completion_fields(self) -> FrozenSet[str]:
        return self._completion_fields

    def get(self, key: str) -> StageDefinition:
        try:
            return self._stages[self._index[key]]
        except KeyError:
            raise UnknownStageError(key) from None

    def index_of(self, key: str) -> int:
        self.get(key)
        return self._index[key]

    def next_after(self, key: str) -> Optional[StageDefinition]:
        position = self.index_of(key) + 1
        if position < len(self._stages):
            return self._stages[position]
        return None


VISA_STAGES = StageCatalog(
    [
        StageDefinition("application", "Registration", "person", "registration_visa_processing_stage"),
        StageDefinition("interview", "Documents", "document-text", "documents_visa_processing_stage"),
        StageDefinition("visa", "University Application", "business", "university_application_visa_processing_stage"),
        StageDefinition("fee", "Fee Payment", "card", "fee_payment_visa_processing_stage"),
        StageDefinition("zoom", "Interview", "videocam", "university_interview_visa_processing_stage"),
        StageDefinition("conditionalOffer", "Offer Letter", "document", "offer_letter_visa_processing_stage"),
        StageDefinition("tuitionFee", "Tuition Fee", "cash", "tuition_fee_visa_processing_stage"),
        StageDefinition("mainofferletter", "Final Offer", "checkmark-done", "final_offer_visa_processing_stage"),
        StageDefinition("embassydocument", "Embassy Docs", "folder", "embassy_docs_visa_processing_stage"),
        StageDefinition("embassyappoint", "Appointment", "calendar", "appointment_visa_processing_stage"),
        StageDefinition("embassyinterview", "Interview", "mic", "visa_approval_visa_processing_stage"),
        StageDefinition("visaStatus", "Visa Status", "airplane", "visa_rejection_visa_processing_stage"),
    ]
)
