"""Read access to agent definitions."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .models import AgentDef


class AgentRegistry(ABC):
    """Synchronous, read-only view of the currently known agents."""

    @abstractmethod
    def list_agents(self) -> list[AgentDef]:
        """Return all agent definitions."""

    def get_agent(self, agent_id: str) -> Optional[AgentDef]:
        """Look up an agent by id."""
        return next((a for a in self.list_agents() if a.id == agent_id), None)


class StaticAgentRegistry(AgentRegistry):
    """Agent registry holding a replaceable in-memory list."""

    def __init__(self, agents: Optional[Iterable[AgentDef]] = None):
        self._agents: list[AgentDef] = list(agents or [])

    def list_agents(self) -> list[AgentDef]:
        return list(self._agents)

    def set_agents(self, agents: Iterable[AgentDef]) -> None:
        """Replace the whole agent list."""
        self._agents = list(agents)
