"""
Fan-out Coordinator.

Responsibilities:
- Run one phase of work items on a fixed number of worker threads.
- Keep exactly ``parallelism`` items in flight, submitting the next item
  as each one completes.
- Merge each result on the calling thread, one at a time, so merge
  functions need no locking of their own.
- Stop submitting and re-raise as soon as any item fails.

Non-Responsibilities:
- No ordering of completions; merge functions must be commutative.
- No retries or timeouts.

Invariant:
With parallelism 1 the items run in order on the calling thread, with no
executor at all, and produce the same merged result.
"""

from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from itertools import islice
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    def __init__(self, parallelism: int, name: str = "identisync"):
        self.parallelism = max(1, parallelism)
        self.name = name

    @property
    def sequential(self) -> bool:
        return self.parallelism == 1

    def run(self, items: Iterable[T], work: Callable[[T], R], merge: Callable[[R], None]) -> int:
        """
        Apply ``work`` to every item and feed each result to ``merge``.

        Returns:
            Number of items processed
        """
        if self.sequential:
            return self._run_sequential(items, work, merge)

        processed = 0
        source = iter(items)
        executor = ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix=self.name)
        try:
            pending = {executor.submit(work, item) for item in islice(source, self.parallelism)}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    result = future.result()
                    merge(result)
                    processed += 1
                    for item in islice(source, 1):
                        pending.add(executor.submit(work, item))
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return processed

    def _run_sequential(self, items: Iterable[T], work: Callable[[T], R], merge: Callable[[R], None]) -> int:
        processed = 0
        for item in items:
            merge(work(item))
            processed += 1
        return processed
