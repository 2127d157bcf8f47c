"""Click CLI entrypoint — `ralph <subcommand>`.

    ralph run [WORKSPACE]      supervise the agent until done, stuck, or capped
    ralph parse [WORKSPACE]    stream-json on stdin -> signal words on stdout
    ralph status [WORKSPACE]   checklist progress from RALPH_TASK.md
    ralph logs [WORKSPACE]     tail .ralph/activity.log (or errors.log)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime

import click

from ralph.defaults import resolve_workspace


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S")


@click.group()
@click.version_option(package_name="ralph-loop")
@click.option("--verbose", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """ralph — keep a coding agent working in fresh contexts until the task is done."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


# =========================================================================
# Loop
# =========================================================================

@cli.command()
@click.argument("workspace", required=False)
@click.option("-n", "--iterations", "max_iterations", type=int, default=None, help="Max iterations (default: 20)")
@click.option("-m", "--model", default=None, help="Model to use (default: opus-4.5-thinking)")
@click.option("--branch", default=None, help="Create and work on a new branch")
@click.option("--pr", "open_pr", is_flag=True, help="Open PR when complete (requires --branch)")
@click.option("-y", "--yes", "skip_confirm", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def run(
    ctx: click.Context,
    workspace: str | None,
    max_iterations: int | None,
    model: str | None,
    branch: str | None,
    open_pr: bool,
    skip_confirm: bool,
) -> None:
    """Run the agent loop on WORKSPACE (default: current directory)."""
    from ralph.config import load_config
    from ralph.fs import ensure_ralph_dir, head_lines
    from ralph.loop import LoopController, SetupError, check_prerequisites
    from ralph.task import count_criteria

    try:
        config = load_config(
            workspace,
            model=model,
            max_iterations=max_iterations,
            branch=branch,
            open_pr=open_pr,
            skip_confirm=skip_confirm,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    try:
        check_prerequisites(config)
        ensure_ralph_dir(config.workspace)
    except SetupError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        raise click.ClickException(f"Cannot create {config.ralph_dir}: {exc}") from exc

    click.echo(f"Workspace: {config.workspace}")
    click.echo(f"Task:      {config.task_file}")
    click.echo(f"Model:     {config.model}")
    click.echo(f"Agent bin: {config.agent_bin}")
    click.echo(f"Max iter:  {config.max_iterations}")
    if config.branch:
        click.echo(f"Branch:    {config.branch}")
    if config.open_pr:
        click.echo("Open PR:   Yes")
    click.echo("")

    rule = "─" * 63
    click.echo("📋 Task Summary:")
    click.echo(rule)
    for line in head_lines(config.task_file, 30):
        click.echo(line)
    click.echo(rule)
    click.echo("")

    criteria = count_criteria(config.task_file)
    click.echo(
        f"Progress: {criteria.done} / {criteria.total} criteria complete "
        f"({criteria.remaining} remaining)"
    )
    click.echo("")
    if criteria.complete:
        click.echo("🎉 Task already complete! All criteria are checked.")
        return

    if not config.skip_confirm:
        click.echo("This will run the agent locally to work on this task.")
        click.echo("The agent will be rotated when context fills up (~80k tokens).")
        if not click.confirm("Start Ralph loop?", default=False):
            click.echo("Aborted.")
            return

    try:
        result = LoopController(config).run()
    except SetupError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.exit(result.exit_code)


# =========================================================================
# Stream parser
# =========================================================================

@cli.command()
@click.argument("workspace", required=False)
def parse(workspace: str | None) -> None:
    """Parse agent stream-json from stdin; print WARN/ROTATE/GUTTER/COMPLETE on stdout."""
    from ralph.parser import EventProcessor, pump

    ws = resolve_workspace(workspace)
    stdin = click.get_text_stream("stdin", encoding="utf-8", errors="replace")
    try:
        processor = EventProcessor(ws)
    except OSError as exc:
        # Keep the upstream agent from blocking on a full pipe
        for _ in stdin:
            pass
        click.echo(f"[{_ts()}] ERROR: cannot write logs under {ws}: {exc}; stream parsing disabled.", err=True)
        sys.exit(1)

    for sig in pump(stdin, processor):
        click.echo(sig)


# =========================================================================
# Inspection
# =========================================================================

@cli.command()
@click.argument("workspace", required=False)
def status(workspace: str | None) -> None:
    """Show checklist progress for WORKSPACE."""
    from ralph.defaults import TASK_FILE_NAME
    from ralph.task import count_criteria

    task_file = resolve_workspace(workspace) / TASK_FILE_NAME
    if not task_file.is_file():
        raise click.ClickException(f"Task file not found: {task_file}")
    criteria = count_criteria(task_file)
    click.echo(
        f"Progress: {criteria.done} / {criteria.total} criteria complete "
        f"({criteria.remaining} remaining)"
    )


@cli.command()
@click.argument("workspace", required=False)
@click.option("--errors", is_flag=True, help="Show errors.log instead of activity.log")
@click.option("-n", "--lines", default=40, type=int, help="Number of trailing lines")
@click.option("-f", "--follow", is_flag=True, help="Keep printing new lines")
@click.option("--last-session", "session_only", is_flag=True, help="Only the most recent agent session")
def logs(workspace: str | None, errors: bool, lines: int, follow: bool, session_only: bool) -> None:
    """Tail the session logs for WORKSPACE."""
    from ralph.defaults import resolve_ralph_dir
    from ralph.logs import show_session_log

    show_session_log(
        resolve_ralph_dir(workspace),
        errors=errors,
        lines=lines,
        follow=follow,
        session_only=session_only,
    )
