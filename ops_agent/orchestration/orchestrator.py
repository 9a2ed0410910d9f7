"""Plan/execute/replan orchestration loop.

One run moves through ``planning -> executing -> replanning`` and then
either back to ``planning`` or into ``done`` / ``failed``, which are final.
Each entry into planning counts as one iteration; a run that would exceed
``max_iterations`` fails with ``IterationLimitExceeded``.

Tool failures are recorded as data and shown to the replanner. Planner,
replanner, iteration-limit, deadline and cancel-signal failures end the
run; ``orchestrate`` reports them in the returned output instead of
raising. Cancelling the calling task propagates ``asyncio.CancelledError``
after every in-flight tool task has been cancelled.
"""

import asyncio
import time
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from ..config import constants as c
from ..models.plan import (
    IterationTrace,
    OrchestrationOutput,
    OrchestrationPhase,
    OrchestrationState,
    Plan,
    ReplanAction,
    ReplanDecision,
    RunStatus,
)
from ..models.tool_call import ToolCall
from ..observability.logging import AgentLogger
from ..observability.metrics import MetricsSink, RunMetrics
from .errors import (
    IterationLimitExceeded,
    OrchestratorError,
    PlannerError,
    ReplannerError,
    RunAbortedError,
    RunCancelledError,
)
from .parallel_executor import Dependencies, ParallelExecutor, ParallelExecutorConfig
from .planning.planner import Planner, Replanner, check_plan
from .reliability import ReliabilityConfig, ReliableToolExecutor
from .tool_registry import ToolRegistry

logger = AgentLogger("orchestrator")

CANCELLED_REASON = "cancelled"
DEADLINE_REASON = "deadline exceeded"

T = TypeVar("T")


class OrchestratorConfig(BaseModel):
    """Per-run limits for the orchestration loop."""

    max_iterations: int = Field(
        default=c.DEFAULT_MAX_ITERATIONS,
        ge=1,
        le=c.MAX_ITERATIONS_CEILING,
        description="Maximum planning passes before the run fails"
    )
    max_concurrency: int = Field(
        default=c.DEFAULT_MAX_CONCURRENCY,
        ge=1,
        le=256,
        description="Maximum tool calls executing at once"
    )
    batch_timeout_s: Optional[float] = Field(
        default=c.DEFAULT_BATCH_TIMEOUT_SECONDS,
        gt=0,
        description="Deadline for each tool batch"
    )
    continue_on_error: bool = Field(
        default=c.DEFAULT_CONTINUE_ON_ERROR,
        description="Keep sibling calls running when one fails"
    )
    batch_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Chunk size for burst-limited execution"
    )
    batch_pause_s: float = Field(default=c.DEFAULT_BATCH_PAUSE_SECONDS, ge=0)
    timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline for the whole run"
    )
    request_id: Optional[str] = Field(default=None, description="Correlation id for logs")

    def executor_config(self) -> ParallelExecutorConfig:
        return ParallelExecutorConfig(
            max_concurrency=self.max_concurrency,
            timeout=self.batch_timeout_s,
            continue_on_error=self.continue_on_error,
            batch_size=self.batch_size,
            batch_pause=self.batch_pause_s,
        )


class Orchestrator:
    """Composes planner, parallel executor and replanner into a bounded loop.

    The registry and the breaker state inside ``tool_executor`` are shared by
    all concurrent runs; everything else belongs to a single run.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        planner: Planner,
        replanner: Replanner,
        config: Optional[OrchestratorConfig] = None,
        tool_executor: Optional[ReliableToolExecutor] = None,
        reliability_config: Optional[ReliabilityConfig] = None,
        metrics_sink: Optional[MetricsSink] = None,
        sleep=None,
    ):
        self.registry = registry
        self.planner = planner
        self.replanner = replanner
        self.config = config or OrchestratorConfig()
        self.tool_executor = tool_executor or ReliableToolExecutor(registry, reliability_config)
        self.executor = ParallelExecutor(self.tool_executor, self.config.executor_config(), sleep=sleep)
        self.metrics_sink = metrics_sink

    async def orchestrate(
        self,
        objective: str,
        config: Optional[OrchestratorConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OrchestrationOutput:
        """Run the loop for ``objective`` until it is done or has failed.

        Args:
            objective: What the operator wants diagnosed
            config: Overrides the orchestrator's default config for this run
            cancel_event: Setting it ends the run as failed with reason "cancelled"

        Raises:
            ValueError: If ``objective`` is empty
        """
        if not objective or not objective.strip():
            raise ValueError("objective must not be empty")

        cfg = config or self.config
        request_id = cfg.request_id or str(uuid.uuid4())[:8]
        state = OrchestrationState(objective=objective.strip())
        start_time = time.monotonic()

        logger.info("Starting run", request_id=request_id, max_iterations=cfg.max_iterations)
        try:
            if cfg.timeout_s is not None:
                await asyncio.wait_for(self._run_loop(state, cfg, cancel_event), timeout=cfg.timeout_s)
            else:
                await self._run_loop(state, cfg, cancel_event)
        except asyncio.TimeoutError as e:
            if not state.terminal:
                state.fail(DEADLINE_REASON, e)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        output = self._build_output(state, request_id, elapsed_ms)

        if output.succeeded:
            logger.info(
                "Run finished", request_id=request_id, iterations=state.iteration_count, duration_ms=elapsed_ms
            )
        else:
            logger.warning(
                "Run failed",
                request_id=request_id,
                iterations=state.iteration_count,
                reason=state.failure_reason,
                error_type=output.error_type,
                duration_ms=elapsed_ms,
            )
        await self._record_metrics(output, state)
        return output

    async def execute_tool_batch(
        self,
        calls: Sequence[ToolCall],
        dependencies: Dependencies = None,
        concurrency_limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ToolCall]:
        """Run a batch through the shared tool executor without planning."""
        exec_config = self.config.executor_config()
        if concurrency_limit is not None:
            exec_config = replace(exec_config, max_concurrency=concurrency_limit)
        return await self.executor.execute_with_config(calls, dependencies, exec_config, cancel_event)

    def get_circuit_breaker_status(self) -> Dict[str, Dict[str, Any]]:
        return self.tool_executor.get_circuit_breaker_status()

    async def _run_loop(
        self,
        state: OrchestrationState,
        cfg: OrchestratorConfig,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        handlers = {
            OrchestrationPhase.PLANNING: self._plan_step,
            OrchestrationPhase.EXECUTING: self._execute_step,
            OrchestrationPhase.REPLANNING: self._replan_step,
        }
        while not state.terminal:
            if cancel_event is not None and cancel_event.is_set():
                state.fail(CANCELLED_REASON, RunCancelledError(CANCELLED_REASON))
                break
            phase = state.phase
            logger.debug("Entering phase", phase=phase.value, iteration=state.iteration_count)
            try:
                await handlers[phase](state, cfg, cancel_event)
            except OrchestratorError as e:
                state.fail(str(e), e)

    async def _plan_step(self, state: OrchestrationState, cfg: OrchestratorConfig, cancel_event) -> None:
        if state.iteration_count >= cfg.max_iterations:
            raise IterationLimitExceeded(cfg.max_iterations)
        state.iteration_count += 1

        if state.pending_plan is not None:
            plan, state.pending_plan = state.pending_plan, None
            check_plan(plan)
        else:
            try:
                plan = await self._until_cancelled(
                    self.planner.plan(state.objective, state.completed_results), cancel_event
                )
            except (PlannerError, RunCancelledError):
                raise
            except Exception as e:
                raise PlannerError(f"Planner failed: {e}") from e
            if not isinstance(plan, Plan):
                raise PlannerError(f"Planner returned {type(plan).__name__}, expected Plan")

        state.plan = plan
        state.traces.append(IterationTrace(iteration=state.iteration_count, plan=plan.summary()))
        state.transition(OrchestrationPhase.EXECUTING)

    async def _execute_step(self, state: OrchestrationState, cfg: OrchestratorConfig, cancel_event) -> None:
        plan = state.plan
        results = await self.executor.execute_with_config(
            plan.calls, plan.dependencies, cfg.executor_config(), cancel_event
        )
        state.record_results(results)
        state.traces[-1].results = [r.summary() for r in results]

        if cancel_event is not None and cancel_event.is_set():
            state.fail(CANCELLED_REASON, RunCancelledError(CANCELLED_REASON))
            return
        state.transition(OrchestrationPhase.REPLANNING)

    async def _replan_step(self, state: OrchestrationState, cfg: OrchestratorConfig, cancel_event) -> None:
        try:
            decision = await self._until_cancelled(self.replanner.replan(state), cancel_event)
        except (ReplannerError, RunCancelledError):
            raise
        except Exception as e:
            raise ReplannerError(f"Replanner failed: {e}") from e
        if not isinstance(decision, ReplanDecision):
            raise ReplannerError(f"Replanner returned {type(decision).__name__}, expected ReplanDecision")

        trace = state.traces[-1]
        trace.decision = decision.action
        trace.reason = decision.reason

        if decision.action == ReplanAction.COMPLETE:
            state.finish(decision.final_answer or "")
        elif decision.action == ReplanAction.ABORT:
            raise RunAbortedError(decision.reason or "aborted by replanner")
        else:
            state.pending_plan = decision.plan
            state.transition(OrchestrationPhase.PLANNING)

    async def _until_cancelled(self, work: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
        """Await ``work`` unless ``cancel_event`` is set first, then cancel it."""
        if cancel_event is None:
            return await work
        task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)
        if task.cancelled():
            raise RunCancelledError(CANCELLED_REASON)
        return task.result()

    def _build_output(self, state: OrchestrationState, request_id: str, elapsed_ms: int) -> OrchestrationOutput:
        done = state.phase == OrchestrationPhase.DONE
        error_type = type(state.error).__name__ if state.error is not None and not done else None
        return OrchestrationOutput(
            status=RunStatus.DONE if done else RunStatus.FAILED,
            final_answer=state.final_answer if done else None,
            failure_reason=None if done else state.failure_reason,
            error_type=error_type,
            iterations=list(state.traces),
            results=[r.summary() for r in state.completed_results],
            elapsed_ms=elapsed_ms,
            request_id=request_id,
        )

    async def _record_metrics(self, output: OrchestrationOutput, state: OrchestrationState) -> None:
        if self.metrics_sink is None:
            return
        results = state.completed_results
        metrics = RunMetrics(
            request_id=output.request_id,
            status=output.status.value,
            latency_ms=output.elapsed_ms,
            iterations=state.iteration_count,
            tool_calls=len(results),
            tool_failures=sum(1 for r in results if r.error is not None),
            error_class=output.error_type,
            tools_used=sorted({r.name for r in results}),
        )
        try:
            await self.metrics_sink.record(metrics)
        except Exception as e:
            logger.error("Failed to record run metrics", request_id=output.request_id, error=e)
