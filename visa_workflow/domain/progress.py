from typing import AbstractSet, Optional

from visa_workflow.domain.stages import StageCatalog
from visa_workflow.domain.types import ProgressSnapshot, WorkflowRecord


def progress_percent(completed_count: int, total: int) -> int:
    """Percentage rounded half up, matching how the stepper has always displayed it."""
    if total <= 0:
        return 0
    return (200 * completed_count + total) // (2 * total)


def first_incomplete(completed: AbstractSet[str], catalog: StageCatalog) -> str:
    for stage in catalog:
        if stage.key not in completed:
            return stage.key
    # every stage done: the last stage stays active
    return catalog.last.key


def snapshot_for(completed: AbstractSet[str], active_stage: str, catalog: StageCatalog) -> ProgressSnapshot:
    catalog.get(active_stage)
    known = frozenset(key for key in completed if key in catalog)
    return ProgressSnapshot(
        completed_stages=known,
        active_stage=active_stage,
        progress_percent=progress_percent(len(known), len(catalog)),
    )


def compute_progress(record: Optional[WorkflowRecord], catalog: StageCatalog) -> ProgressSnapshot:
    """
    Derives completed stages, the active stage and the progress percent from a record.
    Pure function: no I/O, no side effects.
    """
    if record is None:
        return snapshot_for(frozenset(), catalog.first.key, catalog)

    completed = frozenset(stage.key for stage in catalog if record.is_complete(stage.completion_field))
    return snapshot_for(completed, first_incomplete(completed, catalog), catalog)


def advance_after_save(snapshot: ProgressSnapshot, stage_key: str, catalog: StageCatalog) -> ProgressSnapshot:
    """Marks the saved stage complete and moves to the next catalog stage, if any."""
    following = catalog.next_after(stage_key)
    active = following.key if following is not None else catalog.last.key
    return snapshot_for(snapshot.completed_stages | {stage_key}, active, catalog)
