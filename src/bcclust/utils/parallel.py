"""
Per-trace parallel execution.

Traces have no cross-dependencies, so per-trace stages run in a thread
pool. Results come back in input order, whatever order workers finish in.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Sequence, Tuple, TypeVar

from tqdm import tqdm

from bcclust.io.records import TraceFailure
from bcclust.utils.exceptions import TraceError


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _failure(item, stage: str, error: TraceError) -> TraceFailure:
    logger.warning(f"Excluding trace {item.trace_id} at {stage}: {error}")
    return TraceFailure(
        trace_id=item.trace_id,
        stim_type=item.stim_type,
        stage=stage,
        error=type(error).__name__,
        message=str(error),
    )


def map_traces(
    func: Callable[[T], R],
    items: Sequence[T],
    stage: str,
    n_workers: int = 1,
    show_progress: bool = False,
) -> Tuple[List[R], List[TraceFailure]]:
    """
    Apply func to every trace, collecting per-trace failures.

    A TraceError excludes that trace and is reported as a TraceFailure.
    Any other exception propagates and aborts the batch.

    Args:
        func: Per-trace function.
        items: Records with trace_id and stim_type attributes.
        stage: Stage name recorded on failures.
        n_workers: Thread pool size; 1 runs sequentially.
        show_progress: Whether to show a progress bar.

    Returns:
        Tuple of (results in input order, failures in input order).
    """
    outcomes = [None] * len(items)

    def run_one(index: int):
        try:
            return index, func(items[index]), None
        except TraceError as e:
            return index, None, e

    if n_workers <= 1 or len(items) <= 1:
        for i in tqdm(range(len(items)), desc=stage, unit="trace", disable=not show_progress):
            outcomes[i] = run_one(i)
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            futures = [executor.submit(run_one, i) for i in range(len(items))]
            with tqdm(total=len(items), desc=stage, unit="trace", disable=not show_progress) as pbar:
                for future in as_completed(futures):
                    index, result, error = future.result()  # Raises exception if any
                    outcomes[index] = (index, result, error)
                    pbar.update(1)

    results = []
    failures = []
    for index, result, error in outcomes:
        if error is None:
            results.append(result)
        else:
            failures.append(_failure(items[index], stage, error))

    logger.info(f"{stage}: {len(results)} traces ok, {len(failures)} excluded")
    return results, failures
