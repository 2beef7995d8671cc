"""
Parallel per-item planning.

Items share no state, so planning fans out across a ProcessPoolExecutor.

Architecture
------------
* Top-level (module-scope) worker only, required for pickle support with the
  "spawn" start method.
* Items are chunked evenly across workers. Each chunk carries its items'
  original indexes; results are written back by index, so output order never
  depends on completion order.
* The forecaster (and its holiday engine, with instances already resolved for
  the planning years) is pickled once per chunk and only read by workers.
* A chunk that fails as a whole (e.g. a broken pool) turns into degraded
  items for that chunk; the rest of the plan is kept.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor, as_completed
from datetime import date
from typing import List, Optional, Sequence, Tuple

from ..batch_optimizer import BatchOptimizer
from ..forecast import DemandForecaster
from .plan_generator import ItemOutcome, ItemTask, degraded_outcome, plan_item

logger = logging.getLogger(__name__)


# ── Worker (runs in a subprocess) ────────────────────────────────────────────

def _plan_chunk_worker(chunk_args: dict) -> List[Tuple[int, ItemOutcome]]:
    """
    Plan one chunk of items.

    ``chunk_args`` keys
    -------------------
    plan_date_iso : str
    forecaster : DemandForecaster
    optimizer : BatchOptimizer
    tasks : list[tuple[int, ItemTask]]
        (original index, task)

    Returns
    -------
    list[(index, ItemOutcome)]
    """
    plan_date = date.fromisoformat(chunk_args["plan_date_iso"])
    forecaster: DemandForecaster = chunk_args["forecaster"]
    optimizer: BatchOptimizer = chunk_args["optimizer"]
    return [
        (index, plan_item(task, plan_date, forecaster, optimizer))
        for index, task in chunk_args["tasks"]
    ]


# ── Orchestrator ─────────────────────────────────────────────────────────────

def plan_items_parallel(
    tasks: Sequence[ItemTask],
    plan_date: date,
    forecaster: DemandForecaster,
    optimizer: BatchOptimizer,
    n_workers: int,
) -> List[ItemOutcome]:
    """
    Plan ``tasks`` in parallel using ``ProcessPoolExecutor``.

    Parameters
    ----------
    tasks : list[ItemTask]
    plan_date : date
    forecaster : DemandForecaster
        Holiday instances for the planning years should be precomputed.
    optimizer : BatchOptimizer
    n_workers : int
        Number of worker processes.

    Returns
    -------
    list[ItemOutcome]  in the same order as ``tasks``.
    """
    n = len(tasks)
    if n == 0:
        return []

    indexed = list(enumerate(tasks))
    chunk_size = max(1, math.ceil(n / n_workers))
    chunks = [indexed[i: i + chunk_size] for i in range(0, n, chunk_size)]

    results: List[Optional[ItemOutcome]] = [None] * n

    with ProcessPoolExecutor(max_workers=n_workers) as executor:
        future_map = {
            executor.submit(
                _plan_chunk_worker,
                {
                    "plan_date_iso": plan_date.isoformat(),
                    "forecaster": forecaster,
                    "optimizer": optimizer,
                    "tasks": chunk,
                },
            ): chunk
            for chunk in chunks
        }

        for future in as_completed(future_map):
            chunk = future_map[future]
            try:
                for index, outcome in future.result():
                    results[index] = outcome
            except Exception as exc:
                logger.error(f"Parallel planning chunk failed: {exc}")
                for index, task in chunk:
                    results[index] = degraded_outcome(task, exc)

    return [outcome for outcome in results if outcome is not None]
