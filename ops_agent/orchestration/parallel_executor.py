"""Dependency-aware parallel tool execution.

Calls become eligible once every tool they depend on is done (successfully
or not). Eligible calls run concurrently, each in its own task, behind a
semaphore of ``max_concurrency`` slots. Every task returns its own finished
``ToolCall`` and the scheduler stores it by input index, so the result list
always has the input's length and order.

The batch stops early when:

- the deadline (``timeout``) elapses: unfinished calls get ``BatchTimeoutError``
- ``cancel_event`` is set: unfinished calls get ``BatchCancelledError``
- a call fails with ``continue_on_error=False``: the rest get ``BatchAbortedError``

Cancelling the awaiting task cancels every child task, waits for them and
re-raises ``asyncio.CancelledError``.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from ..config import constants as c
from ..models.tool_call import ToolCall
from ..observability.logging import AgentLogger
from .dependency_graph import DependencyGraph, graph_for_calls
from .errors import (
    BatchAbortedError,
    BatchCancelledError,
    BatchTimeoutError,
    MissingDependencyError,
    ToolExecutionError,
)

logger = AgentLogger("executor")

ToolInvoker = Callable[[ToolCall], Awaitable[str]]
Dependencies = Union[Mapping[str, Iterable[str]], DependencyGraph, None]


@dataclass
class ParallelExecutorConfig:
    max_concurrency: int = c.DEFAULT_MAX_CONCURRENCY
    timeout: Optional[float] = c.DEFAULT_BATCH_TIMEOUT_SECONDS
    continue_on_error: bool = c.DEFAULT_CONTINUE_ON_ERROR
    batch_size: Optional[int] = None
    batch_pause: float = c.DEFAULT_BATCH_PAUSE_SECONDS

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.batch_pause < 0:
            raise ValueError("batch_pause must be non-negative")


class _BatchRun:
    """Bookkeeping for one call to ``execute_with_config``."""

    def __init__(
        self,
        calls: List[ToolCall],
        graph: DependencyGraph,
        config: ParallelExecutorConfig,
        cancel_event: Optional[asyncio.Event],
    ):
        self.calls = calls
        self.graph = graph
        self.config = config
        self.cancel_event = cancel_event
        self.results: List[Optional[ToolCall]] = [call if call.done else None for call in calls]
        self.started: Set[int] = set()
        self.aborted_by: Optional[str] = None
        self.timed_out = False
        self.cancelled = False
        self.cancel_waiter: Optional[asyncio.Future] = None

        self._loop = asyncio.get_running_loop()
        self.deadline = self._loop.time() + config.timeout if config.timeout else None

    def deps(self, index: int) -> Sequence[str]:
        return self.graph.dependencies_of(self.calls[index].name)

    def pending(self) -> List[int]:
        return [i for i, r in enumerate(self.results) if r is None]

    def remaining_time(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._loop.time())

    def interrupted(self) -> bool:
        if self.aborted_by is not None or self.timed_out or self.cancelled:
            return True
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.cancelled = True
        elif self.deadline is not None and self._loop.time() >= self.deadline:
            self.timed_out = True
        return self.timed_out or self.cancelled

    def mark_missing_dependencies(self) -> None:
        names = {call.name for call in self.calls}
        for i in self.pending():
            missing = [d for d in self.deps(i) if d not in names]
            if missing:
                self.results[i] = self.calls[i].failed(MissingDependencyError(self.calls[i].name, missing))

    def finalize(self) -> List[ToolCall]:
        for i in self.pending():
            call = self.calls[i]
            started = i in self.started
            if self.cancelled:
                error: BaseException = BatchCancelledError(call.name, started)
            elif self.timed_out:
                error = BatchTimeoutError(call.name, self.config.timeout, started)
            elif self.aborted_by is not None:
                error = BatchAbortedError(call.name, self.aborted_by)
            else:
                error = MissingDependencyError(call.name, list(self.deps(i)))
            self.results[i] = call.failed(error)
        return list(self.results)


class ParallelExecutor:
    """Runs batches of tool calls through ``invoker`` with bounded concurrency."""

    def __init__(
        self,
        invoker: ToolInvoker,
        config: Optional[ParallelExecutorConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._invoker = invoker
        self.config = config or ParallelExecutorConfig()
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        calls: Sequence[ToolCall],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        """Fan out mutually independent calls."""
        return await self.execute_with_config(calls, None, self.config, cancel_event)

    async def execute_with_dependencies(
        self,
        calls: Sequence[ToolCall],
        dependencies: Dependencies,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        return await self.execute_with_config(calls, dependencies, self.config, cancel_event)

    async def batch_execute(
        self,
        calls: Sequence[ToolCall],
        batch_size: int,
        dependencies: Dependencies = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        """Run in chunks of ``batch_size``, pausing between chunks."""
        config = replace(self.config, batch_size=batch_size)
        return await self.execute_with_config(calls, dependencies, config, cancel_event)

    async def execute_with_config(
        self,
        calls: Sequence[ToolCall],
        dependencies: Dependencies,
        config: ParallelExecutorConfig,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        """
        Execute ``calls`` honoring ``dependencies`` (tool name -> names it waits for).

        Returns:
            Finished calls, ``results[i]`` corresponding to ``calls[i]``

        Raises:
            CyclicDependencyError: Before any call runs, if the graph has a cycle
        """
        calls = list(calls)
        if not calls:
            return []

        graph = graph_for_calls([call.name for call in calls], dependencies)
        position = {name: n for n, name in enumerate(graph.resolve())}

        run = _BatchRun(calls, graph, config, cancel_event)
        run.mark_missing_dependencies()
        pending = sorted(run.pending(), key=lambda i: (position[calls[i].name], i))

        if cancel_event is not None:
            run.cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            if len(pending) == 1:
                await self._run_single(run, pending[0])
            elif config.batch_size and len(pending) > config.batch_size:
                await self._run_chunks(run, pending)
            elif pending:
                await self._schedule(run, pending)
        finally:
            if run.cancel_waiter is not None:
                await self._cancel_tasks(run, {run.cancel_waiter: -1})

        results = run.finalize()
        failures = sum(1 for r in results if r.error is not None)
        logger.info(
            "Batch finished",
            calls=len(results),
            failures=failures,
            timed_out=run.timed_out or None,
            cancelled=run.cancelled or None,
            aborted_by=run.aborted_by,
        )
        return results

    async def _run_single(self, run: _BatchRun, index: int) -> None:
        if run.interrupted():
            return
        run.started.add(index)
        task = asyncio.ensure_future(self._invoke(run.calls[index]))
        running = {task: index}
        try:
            done = await self._wait_any(run, running)
            if task in done:
                run.results[index] = self._task_result(run, index, task)
                del running[task]
        finally:
            await self._cancel_tasks(run, running)

    async def _run_chunks(self, run: _BatchRun, pending: List[int]) -> None:
        size = run.config.batch_size
        chunks = [pending[k:k + size] for k in range(0, len(pending), size)]
        for n, chunk in enumerate(chunks):
            if n > 0:
                if run.interrupted():
                    return
                logger.debug("Pausing between chunks", chunk=n + 1, chunks=len(chunks))
                await self._sleep(run.config.batch_pause)
            await self._schedule(run, chunk)
            if run.interrupted():
                return

    async def _schedule(self, run: _BatchRun, indices: List[int]) -> None:
        semaphore = asyncio.Semaphore(run.config.max_concurrency)
        outstanding = Counter(run.calls[i].name for i in indices)
        waiting = list(indices)
        running: Dict[asyncio.Future, int] = {}

        try:
            while not run.interrupted():
                blocked = []
                for i in waiting:
                    if all(outstanding[d] == 0 for d in run.deps(i)):
                        running[asyncio.ensure_future(self._worker(run, i, semaphore))] = i
                    else:
                        blocked.append(i)
                waiting = blocked
                if not running:
                    break

                for task in await self._wait_any(run, running):
                    i = running.pop(task)
                    result = self._task_result(run, i, task)
                    run.results[i] = result
                    outstanding[result.name] -= 1
                    if result.error is not None and not run.config.continue_on_error and run.aborted_by is None:
                        run.aborted_by = result.name
                        logger.warning("Fail-fast abort", tool=result.name, error=result.error)
        finally:
            await self._cancel_tasks(run, running)

    async def _wait_any(self, run: _BatchRun, running: Dict[asyncio.Future, int]) -> Set[asyncio.Future]:
        """Wait for a task to finish, the deadline, or the cancel signal."""
        waiters = set(running)
        if run.cancel_waiter is not None:
            waiters.add(run.cancel_waiter)
        done, _ = await asyncio.wait(
            waiters, timeout=run.remaining_time(), return_when=asyncio.FIRST_COMPLETED
        )
        done.discard(run.cancel_waiter)
        if not done:
            run.interrupted()
        return done

    async def _worker(self, run: _BatchRun, index: int, semaphore: asyncio.Semaphore) -> ToolCall:
        async with semaphore:
            run.started.add(index)
            return await self._invoke(run.calls[index])

    async def _invoke(self, call: ToolCall) -> ToolCall:
        start = time.monotonic()
        try:
            output = await self._invoker(call)
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Tool call failed", tool=call.name, duration_ms=duration_ms, error=e)
            return call.failed(e, duration_ms)
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Tool call completed", tool=call.name, duration_ms=duration_ms)
        return call.completed(output if isinstance(output, str) else str(output), duration_ms)

    def _task_result(self, run: _BatchRun, index: int, task: asyncio.Future) -> ToolCall:
        if task.cancelled():
            call = run.calls[index]
            return call.failed(ToolExecutionError(call.name, asyncio.CancelledError(), is_retryable=False))
        return task.result()

    async def _cancel_tasks(self, run: _BatchRun, running: Dict[asyncio.Future, int]) -> None:
        """Cancel and reap tasks; keep results of any that finished meanwhile."""
        if not running:
            return
        for task in running:
            if not task.done():
                task.cancel()
        await asyncio.gather(*running, return_exceptions=True)
        for task, i in running.items():
            if i < 0 or run.results[i] is not None:
                continue
            if not task.cancelled() and task.exception() is None:
                run.results[i] = task.result()


async def execute_tool_batch(
    invoker: ToolInvoker,
    calls: Sequence[ToolCall],
    dependencies: Dependencies = None,
    concurrency_limit: int = c.DEFAULT_MAX_CONCURRENCY,
    timeout: Optional[float] = c.DEFAULT_BATCH_TIMEOUT_SECONDS,
    continue_on_error: bool = c.DEFAULT_CONTINUE_ON_ERROR,
    batch_size: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[ToolCall]:
    """Standalone scheduler entry point for callers without an orchestrator."""
    config = ParallelExecutorConfig(
        max_concurrency=concurrency_limit,
        timeout=timeout,
        continue_on_error=continue_on_error,
        batch_size=batch_size,
    )
    return await ParallelExecutor(invoker, config).execute_with_dependencies(
        calls, dependencies, cancel_event
    )
