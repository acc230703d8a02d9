"""
Stage executor.

Runs one operation per unit concurrently and collects exactly one result per
unit. Results are passed back through a queue and consumed in arrival order.

Polling stages share a single deadline, started when the stage begins. When it
fires every polling task is signalled to stop and units that have not
reported are recorded as timed out.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Set, Tuple, Type

from rollout_manager.config.settings import TimingConfig
from rollout_manager.errors import BackendOperationError, DeploymentError
from rollout_manager.models import Stage, StageResult, Unit

logger = logging.getLogger(__name__)

UnitOperation = Callable[[Unit], Awaitable[None]]
UnitCheck = Callable[[Unit], Awaitable[bool]]


class StageExecutor:
    """Fan-out/fan-in execution of a stage over a set of units."""

    def __init__(self, timing: TimingConfig) -> None:
        """
        Initialize stage executor.

        Args:
            timing: Check interval and per-stage deadline used by polling stages
        """
        self.check_interval = timing.check_interval
        self.timeout = timing.timeout

    async def run_once(
        self, stage: Stage, units: List[Unit], operation: UnitOperation
    ) -> List[StageResult]:
        """
        Run ``operation`` exactly once for every unit and wait for all of them.

        No deadline applies: a single backend call is expected to return in
        bounded time on its own.
        """
        queue: "asyncio.Queue[StageResult]" = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._run_operation(stage, unit, operation, queue))
            for unit in units
        ]

        results: List[StageResult] = []
        try:
            for _ in units:
                results.append(await queue.get())
        finally:
            await _cancel_all(tasks)
        return results

    async def poll(
        self,
        stage: Stage,
        units: List[Unit],
        check: UnitCheck,
        recoverable: Tuple[Type[Exception], ...] = (),
    ) -> List[StageResult]:
        """
        Poll ``check`` for every unit until it reports convergence or the stage
        deadline elapses.

        Args:
            stage: Stage being executed
            units: Units to poll
            check: Returns True once the unit has converged
            recoverable: Exception types that are logged and retried instead
                of failing the unit

        Returns:
            One result per unit: completed ones in arrival order, followed by
            timed out ones in input order
        """
        if not units:
            return []

        queue: "asyncio.Queue[StageResult]" = asyncio.Queue()
        cancelled = asyncio.Event()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        tasks = [
            asyncio.create_task(
                self._poll_unit(stage, unit, check, recoverable, queue, cancelled)
            )
            for unit in units
        ]

        results: List[StageResult] = []
        reported: Set[str] = set()
        try:
            while len(reported) < len(units):
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    result = await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                if result.unit.name in reported:
                    continue
                reported.add(result.unit.name)
                results.append(result)
        finally:
            # Close the barrier: polling tasks stop and late results are dropped
            cancelled.set()
            await _cancel_all(tasks)

        for unit in units:
            if unit.name not in reported:
                logger.warning(
                    f"{unit.name} did not complete {stage.value} within {self.timeout:g}s"
                )
                results.append(StageResult.timed_out(unit, stage, self.timeout))
        return results

    async def _run_operation(
        self,
        stage: Stage,
        unit: Unit,
        operation: UnitOperation,
        queue: "asyncio.Queue[StageResult]",
    ) -> None:
        try:
            await operation(unit)
        except DeploymentError as e:
            result = StageResult.failure(unit, stage, e)
        except Exception as e:
            logger.error(f"Unexpected error in {stage.value} for {unit.name}: {e}", exc_info=True)
            result = StageResult.failure(unit, stage, BackendOperationError(unit.name, stage.value, e))
        else:
            result = StageResult.success(unit, stage)
        await queue.put(result)

    async def _poll_unit(
        self,
        stage: Stage,
        unit: Unit,
        check: UnitCheck,
        recoverable: Tuple[Type[Exception], ...],
        queue: "asyncio.Queue[StageResult]",
        cancelled: asyncio.Event,
    ) -> None:
        while True:
            # Sleep for the check interval unless the stage closes first
            try:
                await asyncio.wait_for(cancelled.wait(), timeout=self.check_interval)
                return
            except asyncio.TimeoutError:
                pass

            try:
                converged = await check(unit)
            except recoverable as e:
                logger.warning(f"Check for {unit.name} failed, retrying: {e}")
                continue
            except DeploymentError as e:
                await queue.put(StageResult.failure(unit, stage, e))
                return
            except Exception as e:
                logger.error(
                    f"Unexpected error in {stage.value} for {unit.name}: {e}", exc_info=True
                )
                error = BackendOperationError(unit.name, stage.value, e)
                await queue.put(StageResult.failure(unit, stage, error))
                return

            if converged:
                await queue.put(StageResult.success(unit, stage))
                return


async def _cancel_all(tasks: Iterable["asyncio.Task[None]"]) -> None:
    """Cancel tasks and wait until every one of them has finished."""
    tasks = list(tasks)
    for task in tasks:
        if not task.done():
            task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
