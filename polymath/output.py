"""Rich console output and markdown consensus report for seminar results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from config.config_loader import AgentProfile
from polymath.models import SeminarRound, SeminarState

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(content: str, words: int = 50) -> str:
    """Return the first N words of an agent input."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _agent_name(agent_id: str, agents: dict[str, AgentProfile]) -> str:
    agent = agents.get(agent_id)
    return agent.name if agent else agent_id


def _percent(score: float) -> str:
    return f"{round(score * 100)}%"


def last_completed_round(state: SeminarState) -> SeminarRound | None:
    completed = [r for r in state.rounds if r.status == "completed"]
    return completed[-1] if completed else None


def print_round_summary(rnd: SeminarRound, agents: dict[str, AgentProfile]) -> None:
    """Print one round: agent previews, clusters, consensus facts and next focus."""
    console.print(Rule(f"[bold cyan]Round {rnd.round_index}[/bold cyan] [dim]({rnd.status})[/dim]"))
    for item in rnd.inputs:
        agent = agents.get(item.agent_id)
        console.print(
            Panel(
                _preview(item.content),
                title=f"[bold]{_agent_name(item.agent_id, agents)}[/bold]",
                border_style=(agent.color if agent and agent.color else "dim"),
            )
        )

    if rnd.status != "completed":
        return

    arbitration = rnd.arbitration
    if arbitration.clusters:
        table = Table(title=f"Convergence: {_percent(arbitration.convergence_score)}", show_lines=True)
        table.add_column("Cluster", style="bold")
        table.add_column("Core argument")
        table.add_column("Supporters")
        table.add_column("Strength", justify="right")
        for cluster in arbitration.clusters:
            table.add_row(
                cluster.label,
                cluster.core_argument,
                ", ".join(_agent_name(a, agents) for a in cluster.supporting_agent_ids),
                f"{cluster.strength:g}%",
            )
        console.print(table)
    else:
        console.print(Text(f"Convergence: {_percent(arbitration.convergence_score)}", style="dim"))

    for fact in arbitration.consensus_facts:
        console.print(f"[green]  consensus:[/green] {fact}")
    if arbitration.next_round_focus:
        console.print(f"[yellow]  next focus:[/yellow] {arbitration.next_round_focus}")


def render_report(state: SeminarState, agents: dict[str, AgentProfile]) -> str:
    """Build the markdown consensus report for a finished (or paused) seminar."""
    final = last_completed_round(state)
    score = final.arbitration.convergence_score if final else 0.0

    lines: list[str] = [
        f"# Final Consensus: {state.topic}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Status:** {state.status}",
        f"**Panel:** {', '.join(_agent_name(a, agents) for a in state.config.active_agent_ids)}",
        f"**Arbiter:** {_agent_name(state.config.arbiter_id, agents)}",
        f"**Threshold:** {_percent(state.config.consensus_threshold)}",
        "",
        "## Executive Summary",
        "",
        f"After {len(state.rounds)} rounds of debate, the panel has reached a convergence score of "
        f"**{_percent(score)}**.",
        "",
        "## Agreed Facts",
        "",
    ]

    if final and final.arbitration.consensus_facts:
        lines += [f"- {fact}" for fact in final.arbitration.consensus_facts]
    else:
        lines.append("No complete consensus facts recorded.")
    lines.append("")

    lines += ["## Key Perspectives", ""]
    if final:
        for cluster in final.arbitration.clusters:
            lines += [f"### {cluster.label}", "", cluster.core_argument, ""]

    if state.error:
        lines += ["## Error", "", state.error, ""]

    lines += ["---", "", "## Transcript", ""]
    for rnd in state.rounds:
        lines.append(f"### Round {rnd.round_index} ({rnd.status})")
        lines.append("")
        for item in rnd.inputs:
            lines += [f"#### {_agent_name(item.agent_id, agents)}", "", item.content, ""]
        if rnd.status == "completed":
            lines.append(
                f"*Convergence: {_percent(rnd.arbitration.convergence_score)} | "
                f"Next focus: {rnd.arbitration.next_round_focus}*"
            )
            lines.append("")

    return "\n".join(lines)


def print_report(state: SeminarState, agents: dict[str, AgentProfile]) -> None:
    """Print the consensus report to the console using Rich markdown."""
    console.print(Rule("[bold green]Consensus Report[/bold green]"))
    console.print(Markdown(render_report(state, agents)))


def save_report(
    state: SeminarState,
    agents: dict[str, AgentProfile],
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the consensus report as a markdown file.

    Args:
        state: Final seminar state.
        agents: Agent profiles, used to show display names.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic. Used by inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(state.topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    filepath.write_text(render_report(state, agents), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath
