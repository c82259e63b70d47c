"""Click CLI: loads settings, selects the panel and arbiter, runs the seminar, renders output."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from polymath.engine import SeminarEngine
from polymath.healthcheck import run_health_checks
from polymath.inbox import TopicRequest, archive_topic, ensure_dirs, load_topic, scan_inbox
from polymath.llm import LLMClient
from polymath.models import SeminarConfig, SeminarState
from polymath.output import print_report, print_round_summary, save_report
from polymath.state import SeminarStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _determine_panel(config: AppConfig, agents_arg: str | list[str] | None) -> list[str]:
    """Panel agent ids: --agents (or frontmatter) overrides the configured default panel.

    Unknown ids are dropped with a warning; order is preserved.
    """
    if isinstance(agents_arg, str):
        requested = [a.strip() for a in agents_arg.split(",") if a.strip()]
    elif agents_arg:
        requested = list(agents_arg)
    else:
        requested = list(config.defaults.default_panel)

    panel: list[str] = []
    for agent_id in requested:
        if agent_id not in config.settings.agents:
            logger.warning("Agent '%s' not found in settings, skipping", agent_id)
        elif agent_id not in panel:
            panel.append(agent_id)
    return panel


def _pick_arbiter(config: AppConfig, panel: list[str], arbiter_arg: str | None) -> str | None:
    """Arbiter precedence: explicit choice > configured default > first panel member."""
    agents = config.settings.agents
    if arbiter_arg:
        return arbiter_arg if arbiter_arg in agents else None
    if config.defaults.arbiter and config.defaults.arbiter in agents:
        return config.defaults.arbiter
    return panel[0] if panel else None


def _check_agents(client: LLMClient, config: AppConfig, agent_ids: list[str]) -> list[str]:
    """Ping the agents, print results, and ask what to do on failures.

    Returns the ids that passed. Exits if the user declines to continue.
    """
    console.print("\n[bold]Checking agents...[/bold]")
    results = asyncio.run(run_health_checks(client, config.settings, agent_ids))

    failed: list[str] = []
    for agent_id in agent_ids:
        ok, err = results[agent_id]
        if ok:
            console.print(f"  [green]OK  [/green] {agent_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {agent_id}: {short_err}")
            failed.append(agent_id)

    if not failed:
        console.print()
        return agent_ids

    console.print(f"\n[yellow]{len(failed)} agent(s) failed:[/yellow] {', '.join(failed)}")
    if not click.confirm("Continue without the failing agents?", default=True):
        sys.exit(0)

    console.print()
    return [a for a in agent_ids if a not in failed]


def _progress_listener(store: SeminarStore):
    """Print a line whenever a round starts, completes or fails."""
    seen: dict[int, str] = {}

    def on_change(state: SeminarState) -> None:
        for rnd in state.rounds:
            if seen.get(rnd.round_index) == rnd.status:
                continue
            seen[rnd.round_index] = rnd.status
            if rnd.status == "processing":
                console.print(f"[cyan]>>[/cyan] Round {rnd.round_index}: agents are debating...")
            elif rnd.status == "completed":
                console.print(
                    f"[green]OK[/green] Round {rnd.round_index} complete "
                    f"(convergence {rnd.arbitration.convergence_score:.2f})"
                )
            elif rnd.status == "failed":
                console.print(f"[red]FAIL[/red] Round {rnd.round_index}")

    return store.subscribe(on_change)


async def _run_single(
    request: TopicRequest,
    config: AppConfig,
    client: LLMClient,
    panel: list[str],
    arbiter_id: str,
    max_rounds: int,
    threshold: float,
    output_dir: Path,
    slug_override: str | None = None,
) -> SeminarState:
    """Run one seminar, print it, save the report, and return the final state."""
    agents = config.settings.agents
    store = SeminarStore()
    engine = SeminarEngine(
        get_state=store.get,
        update_state=store.update,
        get_settings=lambda: config.settings,
        llm=client,
        prompts=config.prompts,
    )

    seminar_config = SeminarConfig(
        max_rounds=max_rounds,
        consensus_threshold=threshold,
        arbiter_id=arbiter_id,
        active_agent_ids=panel,
    )

    topic = request.topic
    console.print(f"\n[bold cyan]Polymath[/bold cyan]: {len(panel)} agents, up to {max_rounds} rounds")
    console.print(f"Panel: {', '.join(agents[a].name for a in panel)}")
    console.print(f"Arbiter: {agents[arbiter_id].name} (threshold {threshold:.2f})")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    unsubscribe = _progress_listener(store)
    try:
        await engine.start_seminar(topic, seminar_config)
    finally:
        unsubscribe()

    state = store.get()
    for rnd in state.rounds:
        print_round_summary(rnd, agents)
    print_report(state, agents)

    if state.error:
        console.print(f"\n[bold red]Error:[/bold red] {state.error}")

    saved_path = save_report(state, agents, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return state


def _resolve_run(
    config: AppConfig,
    agents_arg: str | list[str] | None,
    arbiter_arg: str | None,
) -> tuple[list[str], str]:
    """Validate panel and arbiter; raises click.UsageError when unusable."""
    panel = _determine_panel(config, agents_arg)
    if len(panel) < 2:
        raise click.UsageError(f"Need at least 2 agents in the panel, got {len(panel)}. Check --agents.")
    arbiter_id = _pick_arbiter(config, panel, arbiter_arg)
    if arbiter_id is None:
        raise click.UsageError(f"Arbiter '{arbiter_arg}' not found in settings.")
    return panel, arbiter_id


async def _run_inbox(
    config: AppConfig,
    client: LLMClient,
    inbox_dir: Path,
    archive_dir: Path,
    agents_cli: str | None,
    arbiter_cli: str | None,
    max_rounds_cli: int | None,
    threshold_cli: float | None,
    output_dir: Path,
) -> None:
    """Process all .md topic files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            request = load_topic(file_path)
            panel, arbiter_id = _resolve_run(
                config,
                agents_cli if agents_cli is not None else (request.agents or None),
                arbiter_cli if arbiter_cli is not None else request.arbiter,
            )
            state = await _run_single(
                request=request,
                config=config,
                client=client,
                panel=panel,
                arbiter_id=arbiter_id,
                max_rounds=(
                    max_rounds_cli if max_rounds_cli is not None
                    else request.max_rounds if request.max_rounds is not None
                    else config.defaults.max_rounds
                ),
                threshold=(
                    threshold_cli if threshold_cli is not None
                    else request.threshold if request.threshold is not None
                    else config.defaults.consensus_threshold
                ),
                output_dir=output_dir,
                slug_override=file_path.stem,
            )
        except (ValueError, click.UsageError) as exc:
            logger.error("Failed: %s -- %s", file_path.name, exc)
            archive_topic(file_path, archive_dir, failed=True)
            continue

        failed = state.status != "completed" or state.error is not None
        archived = archive_topic(file_path, archive_dir, failed=failed)
        click.echo(f"Processed: {file_path.name} -> {state.status} (archived: {archived.name})")


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True, dir_okay=False), help="Read the topic from a .md file")
@click.option("--agents", default=None, help="Comma-separated agent ids (default: configured panel)")
@click.option("--arbiter", default=None, help="Agent id used as arbiter (default: from config)")
@click.option("--max-rounds", type=click.IntRange(min=1), default=None, help="Maximum number of rounds")
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None,
              help="Consensus threshold between 0 and 1")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all .md files in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None, help="Override inbox folder path")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str | None,
    topic_file: str | None,
    agents: str | None,
    arbiter: str | None,
    max_rounds: int | None,
    threshold: float | None,
    output_path: str | None,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Polymath -- multi-agent seminar that debates a topic toward consensus.

    \b
    Examples:
      polymath "Is strong AI achievable with transformers alone?"
      polymath "Remote or office?" --agents skeptic,visionary --arbiter arbiter
      polymath --file topic.md --max-rounds 3 --threshold 0.9
      polymath --inbox
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    client = LLMClient()

    if use_inbox:
        asyncio.run(
            _run_inbox(
                config=config,
                client=client,
                inbox_dir=Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir,
                archive_dir=config.inbox.archive_dir,
                agents_cli=agents,
                arbiter_cli=arbiter,
                max_rounds_cli=max_rounds,
                threshold_cli=threshold,
                output_dir=output_dir,
            )
        )
        return

    if topic_file:
        try:
            request = load_topic(Path(topic_file))
        except ValueError as exc:
            raise click.UsageError(str(exc)) from exc
    elif topic:
        request = TopicRequest(topic=topic, source=Path("cli"))
    else:
        raise click.UsageError("Provide a TOPIC argument, --file, or --inbox.")

    panel, arbiter_id = _resolve_run(
        config,
        agents if agents is not None else (request.agents or None),
        arbiter if arbiter is not None else request.arbiter,
    )

    if not skip_health_check:
        working = _check_agents(client, config, list(dict.fromkeys([*panel, arbiter_id])))
        if arbiter_id not in working:
            console.print(f"[bold red]Error:[/bold red] Arbiter '{arbiter_id}' failed the health check.")
            sys.exit(1)
        panel = [a for a in panel if a in working]
        if len(panel) < 2:
            console.print("[bold red]Error:[/bold red] Fewer than 2 agents passed the health check.")
            sys.exit(1)

    state = asyncio.run(
        _run_single(
            request=request,
            config=config,
            client=client,
            panel=panel,
            arbiter_id=arbiter_id,
            max_rounds=max_rounds or request.max_rounds or config.defaults.max_rounds,
            threshold=(
                threshold if threshold is not None
                else request.threshold if request.threshold is not None
                else config.defaults.consensus_threshold
            ),
            output_dir=output_dir,
        )
    )

    if state.status != "completed" or state.error:
        sys.exit(1)


if __name__ == "__main__":
    main()
