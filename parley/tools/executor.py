"""Action executor for running parsed actions against a capability registry.

The executor routes each parsed action to its capability handler, applies
the capability's timeout, and turns every failure into a recorded error so
that one bad action never prevents the others from running.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from parley.errors import (
    CapabilityDisabledError,
    CapabilityError,
    CapabilityNotFoundError,
    CapabilityTimeoutError,
)

from .parser import ParsedAction
from .registry import Capability, CapabilityRegistry

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ActionExecution:
    """Result of executing one parsed action.

    Attributes:
        capability: Name of the capability that was requested.
        params: Parameters passed to the capability.
        result: The handler's return value if successful.
        error: Error message if execution failed.
        start_time: When execution started.
        end_time: When execution finished.
    """

    capability: str
    params: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None
    start_time: datetime = field(default_factory=_now)
    end_time: datetime = field(default_factory=_now)

    @property
    def success(self) -> bool:
        """Check if the action succeeded."""
        return self.error is None

    @property
    def duration(self) -> float:
        """Execution time in seconds."""
        return (self.end_time - self.start_time).total_seconds()


@dataclass
class ActionExecutor:
    """Executes parsed actions sequentially, in the order they were written.

    Example:
        >>> executor = ActionExecutor()
        >>> results = await executor.execute(parser.parse(reply), registry)
        >>> [r.success for r in results]
        [True]
    """

    default_timeout: float = 30.0

    async def execute(
        self,
        actions: list[ParsedAction],
        registry: CapabilityRegistry,
    ) -> list[ActionExecution]:
        """Execute all actions and collect one result per action.

        Args:
            actions: Actions produced by the ActionParser.
            registry: Registry to resolve capabilities from.

        Returns:
            Results in the same order as the actions.
        """
        results = []
        for action in actions:
            results.append(await self.execute_one(action, registry))
        return results

    async def execute_one(
        self,
        action: ParsedAction,
        registry: CapabilityRegistry,
    ) -> ActionExecution:
        """Execute a single parsed action."""
        start_time = _now()

        if action.parsed is None:
            return ActionExecution(
                capability="unknown",
                error=action.error or "Invalid action",
                start_time=start_time,
                end_time=_now(),
            )

        name = action.parsed.capability
        params = dict(action.parsed.params)

        try:
            capability = registry.get_enabled(name)
            if capability is None:
                if registry.has(name):
                    raise CapabilityDisabledError(name)
                raise CapabilityNotFoundError(name)

            result = await self._run_handler(capability, params)
            logger.info(f"Capability executed successfully: {name}")
            return ActionExecution(
                capability=name,
                params=params,
                result=result,
                start_time=start_time,
                end_time=_now(),
            )

        except CapabilityError as e:
            logger.warning(f"Capability {name} failed: {e.message}")
            return ActionExecution(
                capability=name,
                params=params,
                error=e.message,
                start_time=start_time,
                end_time=_now(),
            )

        except Exception as e:
            logger.exception(f"Capability execution error: {name}")
            return ActionExecution(
                capability=name,
                params=params,
                error=f"Execution error: {type(e).__name__}: {e}",
                start_time=start_time,
                end_time=_now(),
            )

    async def _run_handler(self, capability: Capability, params: dict[str, Any]) -> Any:
        """Run a sync or async handler under the capability's timeout."""
        timeout = capability.timeout if capability.timeout is not None else self.default_timeout

        async def invoke() -> Any:
            if inspect.iscoroutinefunction(capability.handler):
                return await capability.handler(params)
            result = await asyncio.to_thread(capability.handler, params)
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            return await asyncio.wait_for(invoke(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CapabilityTimeoutError(capability.name, timeout) from e
