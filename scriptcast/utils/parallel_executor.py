"""Parallel Executor - bounded parallelism with per-task failure isolation."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from scriptcast.core.config import Settings


class ParallelExecutor:
    """Runs independent tasks concurrently and reports each outcome separately."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.default_workers = getattr(settings, "tts_batch_size", 4)

    def execute(
        self,
        tasks: list[Callable],
        task_names: Optional[list[str]] = None,
        job_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute tasks in parallel with controlled concurrency.

        A failing task never cancels its siblings; its exception is returned in place
        of a result.

        Args:
            tasks: List of callable tasks to execute
            task_names: Optional list of task names for logging
            job_id: Optional job ID for logging context
            max_workers: Maximum number of parallel workers (defaults to tts_batch_size)

        Returns:
            List of tuples: (result, exception) for each task, in submission order
        """
        if not tasks:
            return []

        max_workers = max(1, min(max_workers or self.default_workers, len(tasks)))
        log_prefix = f"[{job_id}] " if job_id else ""

        def name_of(i: int) -> str:
            return task_names[i] if task_names and i < len(task_names) else f"task_{i+1}"

        if max_workers == 1:
            results = []
            for i, task in enumerate(tasks):
                try:
                    results.append((task(), None))
                except Exception as e:
                    self.logger.warning(f"{log_prefix}❌ {name_of(i)} failed: {e}")
                    results.append((None, e))
            return results

        self.logger.debug(f"{log_prefix}Parallel tasks: {len(tasks)} tasks with max {max_workers} workers")
        start_time = time.time()
        results: list = [None] * len(tasks)
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {}
            for i, task in enumerate(tasks):
                future = executor.submit(task)
                future_to_index[future] = (i, name_of(i))

            for future in as_completed(future_to_index):
                index, task_name = future_to_index[future]
                completed_count += 1
                try:
                    result = future.result()
                    elapsed = time.time() - start_time
                    self.logger.debug(
                        f"{log_prefix}✅ {task_name} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                    results[index] = (result, None)
                except Exception as e:
                    elapsed = time.time() - start_time
                    self.logger.warning(
                        f"{log_prefix}❌ {task_name} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    results[index] = (None, e)

        total_elapsed = time.time() - start_time
        successful = sum(1 for r in results if r and r[1] is None)
        self.logger.debug(
            f"{log_prefix}Batch complete: {successful}/{len(tasks)} successful in {total_elapsed:.2f}s"
        )
        return results
