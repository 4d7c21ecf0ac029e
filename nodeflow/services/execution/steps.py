"""Durable step execution.

A step is a named unit of work whose completed result is remembered for the
lifetime of a run. Re-running the same run (same execution id) replays
completed steps from the cache instead of executing them again, so side
effects inside a step happen effectively once even under retry.

Usage:
    step = DurableStepRunner(execution_id, cache, RetryPolicy())
    data = await step.run("fetch-user", fetch_user)
    await step.sleep("cool-down", "5s")
"""

import asyncio
import inspect
from collections import defaultdict
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Protocol, TypeVar, Union

from nodeflow.core.cache import CacheService
from nodeflow.core.logging import get_logger
from .exceptions import NonRetriableError
from .models import RetryPolicy, parse_duration

logger = get_logger(__name__)

T = TypeVar("T")

StepFn = Callable[[], Union[T, Awaitable[T]]]


class StepTools(Protocol):
    """Durable step capability handed to node executors."""

    async def run(self, name: str, fn: StepFn) -> Any:
        """Run ``fn`` as a named step and return its result."""
        ...

    async def sleep(self, name: str, duration: Union[str, int, float, timedelta]) -> None:
        """Pause the run for ``duration`` as a named step."""
        ...


def step_cache_key(execution_id: str, step_id: str) -> str:
    """Format: step:{execution_id}:{step_id}"""
    return f"step:{execution_id}:{step_id}"


class DurableStepRunner:
    """In-process implementation of :class:`StepTools`.

    - Results are memoized in the cache under the run's execution id.
    - A name used more than once in a run is indexed in call order
      (``name``, ``name:1``, ``name:2``...), so a replay maps each call to the
      same stored result.
    - Failed steps are retried with exponential backoff. A
      :class:`NonRetriableError` is raised on the first attempt. When attempts
      run out the last error is re-raised unchanged.
    - Results must be JSON-serializable when the cache is Redis-backed.
    """

    def __init__(self, execution_id: str, cache: CacheService,
                 retry_policy: RetryPolicy = None,
                 sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.execution_id = execution_id
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep_fn
        self._name_counts: Dict[str, int] = defaultdict(int)

    def _step_id(self, name: str) -> str:
        index = self._name_counts[name]
        self._name_counts[name] += 1
        return name if index == 0 else f"{name}:{index}"

    async def run(self, name: str, fn: StepFn) -> Any:
        """Run a named step, replaying a stored result when one exists."""
        if not name:
            raise ValueError("Step name is required")

        step_id = self._step_id(name)
        key = step_cache_key(self.execution_id, step_id)

        stored = await self.cache.get(key)
        if stored is not None:
            logger.info("Step replayed from cache", execution_id=self.execution_id, step=step_id)
            return stored["result"]

        policy = self.retry_policy
        attempt = 0
        while True:
            try:
                result = fn()
                if inspect.isawaitable(result):
                    result = await result
                break
            except NonRetriableError:
                logger.warning("Step failed permanently", execution_id=self.execution_id,
                               step=step_id, attempt=attempt + 1)
                raise
            except Exception as e:
                if not policy.should_retry(attempt):
                    logger.error("Step retries exhausted", execution_id=self.execution_id,
                                 step=step_id, attempts=attempt + 1, error=str(e))
                    raise
                delay = policy.calculate_delay(attempt)
                logger.info("Retrying step after failure",
                            execution_id=self.execution_id,
                            step=step_id,
                            attempt=attempt + 1,
                            max_attempts=policy.max_attempts,
                            delay=delay,
                            error=str(e)[:100])
                await self._sleep(delay)
                attempt += 1

        await self.cache.set(key, {"result": result})
        logger.debug("Step completed", execution_id=self.execution_id, step=step_id,
                     attempts=attempt + 1)
        return result

    async def sleep(self, name: str, duration: Union[str, int, float, timedelta]) -> None:
        """Sleep as a named step; a completed sleep is skipped on replay."""
        if not name:
            raise ValueError("Step name is required")

        seconds = parse_duration(duration)
        step_id = self._step_id(name)
        key = step_cache_key(self.execution_id, step_id)

        if await self.cache.get(key) is not None:
            logger.info("Sleep already completed", execution_id=self.execution_id, step=step_id)
            return

        logger.info("Step sleeping", execution_id=self.execution_id, step=step_id, seconds=seconds)
        await self._sleep(seconds)
        await self.cache.set(key, {"result": None, "slept": seconds})
