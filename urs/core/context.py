from __future__ import annotations

from structlog import contextvars


def set_run_id(run_id: str) -> None:
    contextvars.bind_contextvars(run_id=run_id)


def set_step(step: str) -> None:
    contextvars.bind_contextvars(step=step)


def clear_step() -> None:
    contextvars.unbind_contextvars("step")


def get_run_id() -> str | None:
    ctx = contextvars.get_contextvars()
    v = ctx.get("run_id")
    return str(v) if v is not None else None
