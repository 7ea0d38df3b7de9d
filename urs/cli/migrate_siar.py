from __future__ import annotations

import argparse
from typing import Sequence

import structlog

from urs.core.config import settings
from urs.core.db.session import create_siar_engine, create_urs_engine
from urs.core.logging import configure_logging
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.migration.steps import ALL_STEPS, require_env, run_steps, select_steps

log = structlog.get_logger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Migrate registry data from SIAR into URS (idempotent, resumable).")
    p.add_argument("--list", action="store_true", help="List available steps and exit.")
    p.add_argument(
        "--steps",
        default=None,
        help="Comma separated step names to run (default: all, always in canonical order).",
    )
    p.add_argument("--page-size", type=int, default=None, help="Rows fetched per page (default: MIGRATION_PAGE_SIZE).")
    p.add_argument(
        "--parallel-limit",
        type=int,
        default=None,
        help="Units of work run concurrently (default: MIGRATION_PARALLEL_LIMIT).",
    )
    return p


def _print_steps() -> None:
    print("Available migration steps:")
    for step in ALL_STEPS:
        print(f"  {step.name:<22} {step.description}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    configure_logging()

    urs_engine = siar_engine = None
    try:
        urs_url, siar_url = require_env(settings)

        if args.list:
            _print_steps()
            return 0

        steps = select_steps(args.steps)

        urs_engine = create_urs_engine(urs_url)
        siar_engine = create_siar_engine(siar_url)
        runtime = MigrationRuntime(
            urs_engine=urs_engine,
            siar_engine=siar_engine,
            page_size=max(1, args.page_size or settings.migration_page_size),
            parallel_limit=max(1, args.parallel_limit or settings.migration_parallel_limit),
        )

        log.info("migration.started", steps=[s.name for s in steps])
        run_steps(runtime, steps, actor_id=settings.migration_actor_id, echo=print)
        print("\nSIAR migration complete")
        return 0
    except Exception:
        log.exception("migration.failed")
        return 1
    finally:
        if siar_engine is not None:
            siar_engine.dispose()
        if urs_engine is not None:
            urs_engine.dispose()
