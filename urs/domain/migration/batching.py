from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Sequence, TypeVar

from urs.shared.utils import chunked

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(items: Sequence[T], fn: Callable[[T], R], *, limit: int) -> Iterator[tuple[int, list[R]]]:
    """Run ``fn`` over ``items`` ``limit`` at a time, waiting for each group before the next.

    Yields ``(processed_so_far, group_results)`` after every group so callers can
    report progress. Results keep the order of ``items``. With ``limit <= 1`` the
    work runs inline on the calling thread.
    """
    if limit <= 1:
        for done, item in enumerate(items, start=1):
            yield done, [fn(item)]
        return

    done = 0
    with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="siar-migrate") as pool:
        for group in chunked(items, limit):
            # Each worker gets a copy of the caller's context so bound log fields follow it.
            futures = [pool.submit(contextvars.copy_context().run, fn, item) for item in group]
            results = [f.result() for f in futures]
            done += len(group)
            yield done, results
