"""CLI entry point for Parley.

The commands run discussions offline: agents, roster and replies come from
a YAML scenario file, and replies are streamed from the script instead of a
language model.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from parley import __version__
from parley.config import get_settings, load_settings
from parley.config.settings import DiscussionSettings
from parley.discussion import (
    SYSTEM_AGENT_ID,
    USER_AGENT_ID,
    ActionResultMessage,
    AgentDef,
    InMemoryMessageStore,
    Member,
    Message,
    NormalMessage,
    StaticAgentRegistry,
)
from parley.errors import ConfigurationError, DiscussionError
from parley.models import ScriptedCompletionService
from parley.orchestrator import DiscussionControl
from parley.utils.logging import setup_logging

app = typer.Typer(
    name="parley",
    help="Multi-agent discussion orchestrator - dry-run discussions from scenario files",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


class Scenario(BaseModel):
    """A discussion set up from a YAML file."""

    discussion_id: str = "scenario"
    agents: list[AgentDef] = Field(default_factory=list)
    members: list[Member] = Field(default_factory=list)
    replies: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


def load_scenario(path: Path) -> Scenario:
    """Load and validate a scenario file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    if not path.exists():
        raise ConfigurationError(f"Scenario file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return Scenario.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(f"Invalid scenario file {path}: {e}") from e


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]Parley[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Parley - turn-taking for multi-agent discussions."""
    try:
        settings = load_settings(config_path=config, force_reload=config is not None)
    except ConfigurationError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)
    setup_logging(
        level=settings.logging.level,
        log_file=settings.logging.resolved_file,
        verbose=verbose,
    )
    ctx.obj = {"verbose": verbose}


@app.command()
def run(
    ctx: typer.Context,
    scenario_file: Path = typer.Argument(..., help="Scenario YAML file"),
    message: str = typer.Argument(..., help="Message the user sends"),
    max_rounds: Optional[int] = typer.Option(
        None,
        "--max-rounds",
        "-n",
        help="Override the round limit",
    ),
) -> None:
    """Run one user message through a scripted discussion."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    try:
        scenario = load_scenario(scenario_file)
    except ConfigurationError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    transcript, errors = asyncio.run(_run_scenario(scenario, message, max_rounds))

    agents = {a.id: a for a in scenario.agents}
    for entry in transcript:
        _print_message(entry, agents)

    for error in errors:
        console.print(f"[red]Error: {escape(error.message)}[/red]")
        if verbose:
            console.print(f"[dim]{escape(str(error.to_dict()))}[/dim]")

    if errors:
        raise typer.Exit(1)


async def _run_scenario(
    scenario: Scenario,
    message: str,
    max_rounds: Optional[int],
) -> tuple[list[Message], list[DiscussionError]]:
    """Run the scenario and return the transcript and any reported errors."""
    store = InMemoryMessageStore()
    settings = get_settings().discussion.merged(scenario.settings)
    if max_rounds is not None:
        settings = settings.merged(max_rounds=max_rounds)

    control = DiscussionControl(
        message_store=store,
        agent_registry=StaticAgentRegistry(scenario.agents),
        completion_service=ScriptedCompletionService(scenario.replies),
        settings=settings,
    )
    errors: list[DiscussionError] = []
    control.on_error.subscribe(errors.append)

    control.set_current_discussion_id(scenario.discussion_id)
    control.set_members(scenario.members)

    trigger = await store.create_message(
        NormalMessage(
            discussion_id=scenario.discussion_id,
            agent_id=USER_AGENT_ID,
            content=message,
        )
    )
    control.start_if_eligible()
    await control.process(trigger)

    return await store.list_messages(scenario.discussion_id), errors


def _print_message(message: Message, agents: dict[str, AgentDef]) -> None:
    if isinstance(message, ActionResultMessage):
        lines = []
        for result in message.results:
            outcome = result.error if result.error else result.result
            lines.append(f"{result.operation_id} {result.capability}: {outcome}")
        console.print(Panel(Text("\n".join(lines) or "-"), title="actions", border_style="yellow"))
        return

    if message.agent_id == USER_AGENT_ID:
        title, style = "you", "cyan"
    elif message.agent_id == SYSTEM_AGENT_ID:
        title, style = "system", "dim"
    else:
        agent = agents.get(message.agent_id)
        title, style = (agent.name if agent else message.agent_id), "green"

    status = message.status.value if message.status else None
    if status and status != "completed":
        title = f"{title} [{status}]"
    console.print(Panel(Text(message.content or "-"), title=Text(title), border_style=style))


@app.command()
def agents(
    scenario_file: Path = typer.Argument(..., help="Scenario YAML file"),
) -> None:
    """Show the agents of a scenario and their membership."""
    try:
        scenario = load_scenario(scenario_file)
    except ConfigurationError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    members = {m.agent_id: m for m in scenario.members}

    table = Table(title="Agents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Slug")
    table.add_column("Role")
    table.add_column("Member", justify="center")
    table.add_column("Auto-reply", justify="center")

    for agent in scenario.agents:
        member = members.get(agent.id)
        table.add_row(
            escape(agent.id),
            escape(agent.name),
            escape(agent.slug or "-"),
            agent.role.value,
            "✓" if member else "✗",
            "✓" if member and member.is_auto_reply else "✗",
        )

    console.print(table)


@app.command()
def config() -> None:
    """Show the effective discussion settings."""
    settings = get_settings()
    discussion: DiscussionSettings = settings.discussion

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))

    console.print("\n[bold]Discussion:[/bold]")
    console.print(f"  Max rounds: {discussion.max_rounds}")
    console.print(f"  Temperature: {discussion.temperature}")
    console.print(f"  Moderation style: {discussion.moderation_style}")
    console.print(f"  Focus topics: {escape(', '.join(discussion.focus_topics)) or '-'}")
    console.print(f"  Allow conflict: {discussion.allow_conflict}")

    console.print("\n[bold]Action permissions:[/bold]")
    for role, allowed in discussion.tool_permissions.items():
        console.print(f"  {role}: {'✓ allowed' if allowed else '✗ denied'}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  Level: {settings.logging.level}")
    console.print(f"  File: {settings.logging.resolved_file or '-'}")


if __name__ == "__main__":
    app()
