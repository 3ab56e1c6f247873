"""Pytest configuration and fixtures for Parley tests."""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from parley.config import reset_settings
from parley.discussion import (
    AgentDef,
    AgentRole,
    InMemoryMessageStore,
    Member,
    StaticAgentRegistry,
)
from parley.tools import CapabilityRegistry, create_capability


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        """
discussion:
  max_rounds: 5
  moderation_style: strict
  tool_permissions:
    participant: true

logging:
  level: DEBUG
"""
    )
    return config_path


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Remove PARLEY_* variables and reset cached settings."""
    original = {k: v for k, v in os.environ.items() if k.startswith("PARLEY_")}
    for key in original:
        del os.environ[key]

    reset_settings()

    yield

    for key in [k for k in os.environ if k.startswith("PARLEY_")]:
        del os.environ[key]
    os.environ.update(original)

    reset_settings()


@pytest.fixture
def moderator() -> AgentDef:
    return AgentDef(
        id="mod",
        name="Moderator",
        slug="moderator",
        role=AgentRole.MODERATOR,
        personality="calm and structured",
    )


@pytest.fixture
def expert_a() -> AgentDef:
    return AgentDef(
        id="expert-a",
        name="Expert A",
        slug="expertA",
        role=AgentRole.PARTICIPANT,
        expertise=["economics"],
    )


@pytest.fixture
def expert_b() -> AgentDef:
    return AgentDef(
        id="expert-b",
        name="Bob Smith",
        slug="bob",
        role=AgentRole.PARTICIPANT,
    )


@pytest.fixture
def agents(moderator: AgentDef, expert_a: AgentDef, expert_b: AgentDef) -> list[AgentDef]:
    return [moderator, expert_a, expert_b]


@pytest.fixture
def agent_registry(agents: list[AgentDef]) -> StaticAgentRegistry:
    return StaticAgentRegistry(agents)


@pytest.fixture
def members() -> list[Member]:
    """Moderator auto-replies, experts only speak when mentioned."""
    return [
        Member(agent_id="mod", is_auto_reply=True),
        Member(agent_id="expert-a", is_auto_reply=False),
        Member(agent_id="expert-b", is_auto_reply=False),
    ]


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def capability_registry() -> CapabilityRegistry:
    """Registry with an echo capability and one that always fails."""
    registry = CapabilityRegistry()

    def fail(params):
        raise RuntimeError("boom")

    registry.register_all(
        [
            create_capability(
                name="echo",
                description="Echo the text back",
                handler=lambda params: f"echo: {params.get('text', '')}",
                params={"text": "Text to echo"},
            ),
            create_capability(
                name="fail",
                description="Always fails",
                handler=fail,
            ),
        ]
    )
    return registry
