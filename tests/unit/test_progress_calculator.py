import itertools

import pytest

from visa_workflow.domain.progress import advance_after_save, compute_progress, progress_percent
from visa_workflow.domain.stages import VISA_STAGES
from visa_workflow.domain.types import WorkflowRecord


def _record(catalog, **flags) -> WorkflowRecord:
    return WorkflowRecord.from_payload({"id": 7, **flags}, catalog)


def test_no_record_starts_at_first_stage(catalog) -> None:
    snapshot = compute_progress(None, catalog)

    assert snapshot.completed_stages == frozenset()
    assert snapshot.active_stage == "application"
    assert snapshot.progress_percent == 0


def test_partial_record_points_at_first_incomplete_stage(catalog) -> None:
    snapshot = compute_progress(_record(catalog, applied=True, documents_submitted=False, decided=False), catalog)

    assert snapshot.completed_stages == {"application"}
    assert snapshot.active_stage == "documents"
    assert snapshot.progress_percent == 33


def test_all_flags_set_keeps_last_stage_active(catalog) -> None:
    snapshot = compute_progress(_record(catalog, applied=1, documents_submitted="1", decided="true"), catalog)

    assert snapshot.active_stage == "decision"
    assert snapshot.progress_percent == 100


def test_out_of_order_completion_picks_first_gap(catalog) -> None:
    snapshot = compute_progress(_record(catalog, applied=0, documents_submitted=1, decided=1), catalog)

    assert snapshot.completed_stages == {"documents", "decision"}
    assert snapshot.active_stage == "application"
    assert snapshot.progress_percent == 67


@pytest.mark.parametrize("value", [0, "0", "", None, False, 2, "yes"])
def test_only_explicit_true_markers_count(catalog, value) -> None:
    snapshot = compute_progress(_record(catalog, applied=value), catalog)
    assert "application" not in snapshot.completed_stages


def test_progress_formula_and_active_stage_hold_for_every_flag_combination(catalog) -> None:
    flags = [stage.completion_field for stage in catalog]
    for combo in itertools.product([False, True], repeat=len(flags)):
        record = _record(catalog, **dict(zip(flags, combo)))
        snapshot = compute_progress(record, catalog)

        completed = [stage.key for stage, done in zip(catalog, combo) if done]
        assert snapshot.progress_percent == progress_percent(len(completed), len(catalog))
        missing = [stage.key for stage, done in zip(catalog, combo) if not done]
        assert snapshot.active_stage == (missing[0] if missing else catalog.last.key)


def test_progress_rounds_half_up() -> None:
    assert progress_percent(1, 8) == 13
    assert progress_percent(1, 12) == 8
    assert progress_percent(6, 12) == 50
    assert progress_percent(0, 0) == 0


def test_advance_after_save_moves_to_next_stage_and_stays_on_last(catalog) -> None:
    snapshot = compute_progress(None, catalog)

    after_first = advance_after_save(snapshot, "application", catalog)
    assert after_first.completed_stages == {"application"}
    assert after_first.active_stage == "documents"

    on_last = advance_after_save(after_first, "decision", catalog)
    assert on_last.active_stage == "decision"
    assert on_last.completed_stages == {"application", "decision"}


def test_default_catalog_counts_twelve_stages() -> None:
    payload = {stage.completion_field: 1 for stage in list(VISA_STAGES)[:3]}
    snapshot = compute_progress(WorkflowRecord.from_payload(payload, VISA_STAGES), VISA_STAGES)

    assert snapshot.active_stage == "fee"
    assert snapshot.progress_percent == 25
