from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import structlog

from urs.core.config.settings import Settings
from urs.core.context import clear_step, set_run_id, set_step
from urs.core.db.audit import write_audit_event
from urs.domain.migration.results import StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.migration.services.aum import generate_aum
from urs.domain.migration.services.fee import import_management_fees
from urs.domain.migration.services.holdings import generate_holdings
from urs.domain.migration.services.missing import import_missing_transactions
from urs.domain.migration.services.nav import import_navs
from urs.domain.migration.services.references import import_references
from urs.domain.migration.services.transactions import import_transactions
from urs.shared.exceptions import ConfigurationError, UnknownStepError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MigrationStep:
    name: str
    description: str
    run: Callable[[MigrationRuntime], StepSummary]


# Canonical order; selected subsets always run in this order.
ALL_STEPS: tuple[MigrationStep, ...] = (
    MigrationStep(
        "references",
        "Import references, banks, agents, funds, and investors from SIAR",
        import_references,
    ),
    MigrationStep("transactions", "Import approved transactions from SIAR", import_transactions),
    MigrationStep(
        "missing-transactions",
        "Reconcile and import missing SIAR transactions",
        import_missing_transactions,
    ),
    MigrationStep("nav", "Import missing NAV records", import_navs),
    MigrationStep("management-fee", "Sync management fee and valuation basis", import_management_fees),
    MigrationStep("holdings", "Generate investor holdings snapshots", generate_holdings),
    MigrationStep("aum", "Generate daily AUM and management fee accruals", generate_aum),
)


def select_steps(raw: str | None, steps: Sequence[MigrationStep] = ALL_STEPS) -> list[MigrationStep]:
    """Resolve a comma separated list of step names, keeping canonical order.

    ``None`` or an empty list selects every step.
    """
    if raw is None:
        return list(steps)
    names = [name.strip() for name in raw.split(",") if name.strip()]
    if not names:
        return list(steps)

    known = {step.name for step in steps}
    unknown = [name for name in names if name not in known]
    if unknown:
        raise UnknownStepError(unknown)

    wanted = set(names)
    return [step for step in steps if step.name in wanted]


def require_env(settings: Settings) -> tuple[str, str]:
    """Return (URS url, SIAR url) or raise if either is not configured."""
    for env_name, value in (
        ("URS_DATABASE_URL", settings.urs_database_url),
        ("SIAR_DATABASE_URL", settings.siar_database_url),
    ):
        if not value:
            raise ConfigurationError(f"Missing required env: {env_name}")
    return settings.urs_database_url, settings.siar_database_url


def run_steps(
    runtime: MigrationRuntime,
    steps: Iterable[MigrationStep],
    *,
    actor_id: str,
    run_id: str | None = None,
    echo: Callable[[str], None] | None = None,
) -> list[StepSummary]:
    """Run ``steps`` sequentially, recording one audit event per completed step.

    The first failing step aborts the run; its exception propagates.
    """
    run_id = run_id or uuid.uuid4().hex
    set_run_id(run_id)
    summaries: list[StepSummary] = []

    for step in steps:
        set_step(step.name)
        started = time.perf_counter()
        if echo:
            echo(f"[migrate] {step.name} - started")
        log.info("migration.step.started", description=step.description)
        try:
            summary = step.run(runtime)
        finally:
            clear_step()
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        with runtime.urs() as db:
            write_audit_event(
                db,
                step=step.name,
                action="migration.step.completed",
                summary={**summary.as_dict(), "elapsed_ms": elapsed_ms},
                actor_id=actor_id,
                run_id=run_id,
            )
            db.commit()

        log.info("migration.step.done", step=step.name, elapsed_ms=elapsed_ms, **summary.as_dict())
        if echo:
            echo(f"[migrate] {step.name} - done in {elapsed_ms}ms")
        summaries.append(summary)

    return summaries
