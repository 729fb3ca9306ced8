"""
devstrap — CLI entrypoint.

Usage:
    devstrap                      provision this machine
    devstrap plan                 show what would change
    devstrap config check
    python -m devstrap.main --help
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from devstrap import __version__
from devstrap.core.observability.logging_config import resolve_level, setup_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="devstrap")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: $DEVSTRAP_CONFIG or ~/.config/devstrap/config.yml).",
)
@click.option(
    "--dotfiles-repo",
    default=None,
    metavar="URL",
    help="Dotfiles repository to clone (overrides $DEVSTRAP_DOTFILES_REPO and config).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    dotfiles_repo: str | None,
) -> None:
    """devstrap — provision a fresh Ubuntu / WSL development machine.

    Without a subcommand, runs the full provisioning pipeline.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["dotfiles_repo"] = dotfiles_repo

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        quiet_third_party=not debug,
    )

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Evaluate guards but don't change anything.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.pass_context
def run(ctx: click.Context, as_json: bool = False, dry_run: bool = False, mock: bool = False) -> None:
    """Run the provisioning pipeline.

    Examples:

        devstrap run

        devstrap --dotfiles-repo https://github.com/me/dotfiles.git run

        devstrap run --dry-run
    """
    from devstrap.core.use_cases.provision import provision

    result = provision(
        config_path=ctx.obj.get("config_path"),
        dotfiles_repo=ctx.obj.get("dotfiles_repo"),
        dry_run=dry_run,
        mock_mode=mock,
        emit=(lambda message: None) if as_json else None,
    )
    _finish(ctx, result, as_json)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """Show what a run would do, without changing anything."""
    from devstrap.core.use_cases.provision import provision

    result = provision(
        config_path=ctx.obj.get("config_path"),
        dotfiles_repo=ctx.obj.get("dotfiles_repo"),
        dry_run=True,
        emit=(lambda message: None) if as_json else None,
    )
    _finish(ctx, result, as_json)


def _finish(ctx: click.Context, result, as_json: bool) -> None:
    """Print the run summary and exit with the pipeline's exit code."""
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    if ctx.obj.get("verbose") or report.dry_run:
        click.echo()
        for stage in report.stages:
            _echo_stage(stage, verbose=ctx.obj.get("verbose", False))

    if not report.ok:
        click.echo()
        click.secho(
            f"❌ Stage '{report.failed_stage}' failed (exit {report.exit_code})",
            fg="red",
            bold=True,
        )
        if report.error:
            for line in report.error.strip().split("\n")[-5:]:
                click.echo(f"   │ {line}")
        remaining = report.stages_total - len(report.stages)
        if remaining:
            click.echo(f"   {remaining} later stage(s) not run. Fix the problem and re-run devstrap.")
        sys.exit(report.exit_code)


def _echo_stage(stage, verbose: bool) -> None:
    color = {"ok": "green", "skipped": "yellow", "failed": "red"}.get(stage.status, "white")
    click.secho(f"   {stage.stage} ", fg=color, bold=True, nl=False)
    click.echo(f"({stage.status}, {stage.succeeded}/{stage.total} ran)")
    for receipt in stage.receipts:
        if receipt.ok:
            click.secho(f"     ✓ {receipt.action_id}", fg="green")
            if verbose and receipt.output:
                for line in receipt.output.split("\n")[:10]:
                    click.echo(f"       │ {line}")
        elif receipt.failed:
            click.secho(f"     ✗ {receipt.action_id}", fg="red")
        else:
            click.secho(f"     ⊘ {receipt.action_id} ", fg="yellow", nl=False)
            click.echo(f"({receipt.output})")


@cli.command()
def stages() -> None:
    """List the provisioning stages in run order."""
    from devstrap.core.stages import ALL_STAGES

    for index, stage in enumerate(ALL_STAGES, start=1):
        click.secho(f"  {index}. {stage.name:<14}", fg="cyan", nl=False)
        click.echo(f" {stage.description}")


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate the settings file."""
    from devstrap.core.use_cases.config_check import check_config

    result = check_config(
        config_path=ctx.obj.get("config_path"),
        dotfiles_repo=ctx.obj.get("dotfiles_repo"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.settings is not None
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Config:   {result.config_path or '(built-in defaults)'}")
        click.echo(f"   Dotfiles: {result.settings.dotfiles.repo}")
        click.echo(f"   Packages: {len(result.settings.packages.utilities)} via {result.settings.packages.frontend}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("-n", "--limit", default=10, show_default=True, help="Number of runs to show.")
@click.pass_context
def history(ctx: click.Context, as_json: bool, limit: int) -> None:
    """Show recent provisioning runs."""
    from devstrap.core.use_cases.history import get_history

    result = get_history(config_path=ctx.obj.get("config_path"), limit=limit)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.entries:
        click.echo("No runs recorded yet.")
        return

    click.secho(f"\n📜 Last {len(result.entries)} of {result.total} runs", fg="cyan", bold=True)
    for entry in reversed(result.entries):
        color = "green" if entry.status == "ok" else "red"
        mode = " [dry-run]" if entry.dry_run else ""
        click.echo(f"   {entry.timestamp}  {entry.run_id}{mode}  ", nl=False)
        click.secho(entry.status, fg=color, nl=False)
        detail = f"  ({entry.stages_completed}/{entry.stages_total} stages"
        if entry.failed_stage:
            detail += f", failed at {entry.failed_stage}, exit {entry.exit_code}"
        click.echo(detail + ")")
    click.echo()


if __name__ == "__main__":
    cli()
