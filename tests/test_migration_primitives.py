from __future__ import annotations

import threading

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from urs.core.config.settings import Settings
from urs.domain.migration.batching import run_bounded
from urs.domain.migration.bulk import insert_skip_duplicates
from urs.domain.migration.results import MAX_SAMPLES, RecordOutcome, StepSummary
from urs.domain.migration.steps import ALL_STEPS, require_env, select_steps
from urs.domain.registry.models.references import Reference
from urs.shared.enums import RecordOutcomeKind
from urs.shared.exceptions import ConfigurationError, UnknownStepError


def test_run_bounded_inline_reports_progress_per_item():
    progress = list(run_bounded([1, 2, 3], lambda x: x * 10, limit=1))
    assert progress == [(1, [10]), (2, [20]), (3, [30])]


def test_run_bounded_waits_for_each_group_and_keeps_order():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(x: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        with lock:
            active -= 1
        return x * x

    progress = list(run_bounded(list(range(7)), work, limit=3))
    assert [done for done, _ in progress] == [3, 6, 7]
    assert [r for _, results in progress for r in results] == [x * x for x in range(7)]
    assert peak <= 3


def test_insert_skip_duplicates_ignores_existing_and_repeated_keys(urs_db: Session):
    rows = [
        {"reference_name": "Gender", "code": "M", "name": "Male"},
        {"reference_name": "Gender", "code": "F", "name": "Female"},
    ]
    assert insert_skip_duplicates(urs_db, Reference, rows, conflict_columns=("reference_name", "code")) == 2
    urs_db.commit()

    again = rows + [{"reference_name": "Gender", "code": "X", "name": "Other"}]
    assert insert_skip_duplicates(urs_db, Reference, again, conflict_columns=("reference_name", "code")) == 1
    urs_db.commit()

    assert urs_db.execute(select(func.count()).select_from(Reference)).scalar_one() == 3
    assert insert_skip_duplicates(urs_db, Reference, [], conflict_columns=("reference_name", "code")) == 0


def test_step_summary_counts_and_merge():
    a = StepSummary(step="transactions")
    a.extend([RecordOutcome.success("SIAR-1"), RecordOutcome.missing_field("SIAR-2", "Units")])
    a.extra["source_links_updated"] = 1

    b = StepSummary(step="transactions")
    b.add(RecordOutcome.failed("SIAR-3", "boom"))
    b.add(RecordOutcome.unresolved("SIAR-4", "fund not found"))
    b.extra["source_links_updated"] = 2

    a.merge(b)
    assert a.succeeded == 1
    assert a.skipped == 2
    assert a.failed == 1
    assert a.extra["source_links_updated"] == 3
    assert a.as_dict()["skipped_missing_field"] == 1
    assert RecordOutcome.success("x").ok
    assert RecordOutcome.failed("x", "y").kind is RecordOutcomeKind.FAILED


def test_step_summary_keeps_first_problem_keys_for_the_audit_trail():
    summary = StepSummary(step="nav")
    summary.add(RecordOutcome.success("SIAR-1"))
    summary.add(RecordOutcome.unresolved("SIAR-2", "fund not found"))

    other = StepSummary(step="nav")
    other.extend(RecordOutcome.failed(f"SIAR-{n}", "boom") for n in range(100, 100 + MAX_SAMPLES))
    summary.merge(other)

    assert len(summary.samples) == MAX_SAMPLES
    samples = summary.as_dict()["samples"]
    assert samples[0] == {"kind": "SKIPPED_UNRESOLVED_LINK", "key": "SIAR-2", "detail": "fund not found"}
    assert samples[-1]["key"] == f"SIAR-{100 + MAX_SAMPLES - 2}"
    assert "samples" not in StepSummary(step="holdings").as_dict()


def test_select_steps_keeps_canonical_order():
    names = [s.name for s in select_steps("holdings, references,nav")]
    assert names == ["references", "nav", "holdings"]


def test_select_steps_defaults_to_all():
    assert select_steps(None) == list(ALL_STEPS)
    assert select_steps(" , ") == list(ALL_STEPS)
    assert [s.name for s in ALL_STEPS] == [
        "references",
        "transactions",
        "missing-transactions",
        "nav",
        "management-fee",
        "holdings",
        "aum",
    ]


def test_select_steps_rejects_unknown_names():
    with pytest.raises(UnknownStepError) as exc:
        select_steps("references,bogus,also-bogus")
    assert str(exc.value) == "Unknown migration step(s): bogus, also-bogus"
    assert exc.value.names == ["bogus", "also-bogus"]


def test_require_env_names_the_missing_variable():
    with pytest.raises(ConfigurationError, match="Missing required env: URS_DATABASE_URL"):
        require_env(Settings(urs_database_url=None, siar_database_url="sqlite://"))
    with pytest.raises(ConfigurationError, match="Missing required env: SIAR_DATABASE_URL"):
        require_env(Settings(urs_database_url="sqlite://", siar_database_url=None))
    assert require_env(Settings(urs_database_url="sqlite://a", siar_database_url="sqlite://b")) == ("sqlite://a", "sqlite://b")
