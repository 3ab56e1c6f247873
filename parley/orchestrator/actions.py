"""Action runner: executes actions embedded in an agent reply."""

import logging
from typing import Optional

from parley.discussion.models import (
    ActionResult,
    ActionResultMessage,
    ActionResultStatus,
    AgentDef,
    NormalMessage,
)
from parley.discussion.store import MessageStore
from parley.tools.executor import ActionExecutor
from parley.tools.parser import ActionParser
from parley.tools.registry import CapabilityRegistry

from .streaming import ReloadHook, run_reload

logger = logging.getLogger(__name__)


class ActionRunner:
    """Turns the action blocks of a finished reply into a result message.

    The result message is authored by ``system`` and points back at the
    reply it came from, so the next-speaker selector can hand the turn back
    to the acting agent.
    """

    def __init__(
        self,
        message_store: MessageStore,
        registry: Optional[CapabilityRegistry] = None,
        reload: Optional[ReloadHook] = None,
        parser: Optional[ActionParser] = None,
        executor: Optional[ActionExecutor] = None,
    ):
        self.message_store = message_store
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.reload = reload
        self.parser = parser or ActionParser()
        self.executor = executor or ActionExecutor()

    async def run_if_any(
        self,
        author: Optional[AgentDef],
        can_use_actions: bool,
        agent_message: NormalMessage,
    ) -> Optional[ActionResultMessage]:
        """Execute the actions in a reply, if the author may act.

        Args:
            author: Definition of the reply's author
            can_use_actions: Whether the author may act this turn
            agent_message: The finalized reply

        Returns:
            The stored result message, or None if nothing was executed
        """
        if author is None or not can_use_actions:
            return None

        actions = self.parser.parse(agent_message.content)
        if not actions:
            return None

        logger.info(f"Running {len(actions)} action(s) from {author.id}")
        executions = await self.executor.execute(actions, self.registry)

        results = []
        for index, (action, execution) in enumerate(zip(actions, executions)):
            definition = action.parsed
            results.append(
                ActionResult(
                    operation_id=(definition.operation_id if definition else None) or f"op-{index}",
                    capability=execution.capability,
                    params=execution.params,
                    status=ActionResultStatus.ERROR if execution.error else ActionResultStatus.SUCCESS,
                    result=execution.result,
                    error=execution.error,
                    description=definition.description if definition else "",
                    start_time=execution.start_time,
                    end_time=execution.end_time,
                )
            )

        message = await self.message_store.create_message(
            ActionResultMessage(
                discussion_id=agent_message.discussion_id,
                origin_message_id=agent_message.id,
                results=results,
            )
        )
        await run_reload(self.reload)
        return message
