"""Main CLI entry point using Typer."""

import logging
import signal
import sys
import threading
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from .. import runtime
from ..errors import ConfigError, StoreUnavailable
from ..models.pass_result import PassPhase, PassResult, PassStatus, SweepOutcome
from ..store.cache import MemoryCache
from ..store.candidates import CandidateStore
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="janitor",
    help="Resource Janitor - mark, notify and sweep untagged or expired cloud resources",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global options, set by the callback
config_path: Optional[str] = None
log_override: Optional[str] = None
verbose_logging = False

STATUS_STYLES = {
    PassStatus.COMPLETED: "green",
    PassStatus.PARTIAL: "yellow",
    PassStatus.FAILED: "red",
    PassStatus.RUNNING: "white",
}


@app.callback()
def main(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config file (default: ./config.yml or $JANITOR_CONFIG)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Resource Janitor - mark, notify and sweep untagged or expired cloud resources."""
    global config_path, log_override, verbose_logging

    config_path = config_file
    verbose_logging = verbose
    log_override = "ERROR" if quiet else ("DEBUG" if verbose else None)

    # Setup logging until the config says otherwise
    setup_logging(level=log_override or "INFO", verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


def load_config() -> Config:
    """Load the config or exit with code 1."""
    try:
        config = Config.load(config_path)
    except ConfigError as e:
        console.print(f"✗ Invalid configuration:\n{e}", style="bold red")
        raise typer.Exit(code=1)

    setup_logging(level=log_override or config.log_level, verbose=verbose_logging)
    return config


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """SIGINT and SIGTERM stop passes at the next page boundary."""

    def _cancel(signum, frame):
        logger.warning(f"Received signal {signum}, stopping after the current page")
        cancel_event.set()

    signal.signal(signal.SIGINT, _cancel)
    signal.signal(signal.SIGTERM, _cancel)


def print_results(results: List[PassResult]) -> None:
    """Render pass results as a table."""
    table = Table(title="Pass Results", show_header=True, header_style="bold magenta")
    table.add_column("Account", style="cyan")
    table.add_column("Kind")
    table.add_column("Phase")
    table.add_column("Status")
    table.add_column("Listed", justify="right")
    table.add_column("Non-compliant", justify="right")
    table.add_column("Recorded", justify="right")
    table.add_column("Retracted", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Dry run", justify="right")
    table.add_column("Duration", justify="right")

    for result in results:
        style = STATUS_STYLES[result.status]
        duration = result.duration_seconds
        table.add_row(
            result.account,
            result.kind,
            result.phase.value,
            f"[{style}]{result.status.value}[/{style}]",
            str(result.listed),
            str(result.non_compliant),
            str(result.recorded),
            str(result.retracted),
            str(result.count(SweepOutcome.DELETED)),
            str(result.count(SweepOutcome.DRY_RUN)),
            f"{duration:.1f}s" if duration is not None else "-",
        )

    console.print(table)


def candidates_table(store: CandidateStore, owners: List[str], title: str = "Candidates") -> Tuple[Table, int]:
    """Render the candidates of ``owners`` with their lease state.

    Returns:
        Tuple of (table, number of rows)
    """
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Owner", style="cyan")
    table.add_column("Account")
    table.add_column("Kind")
    table.add_column("ID")
    table.add_column("TTL")
    table.add_column("Lease")

    total = 0
    for name in owners:
        for candidate in store.list_candidates(name):
            lease = "[yellow]active[/yellow]" if store.lease_alive(candidate.id) else "[red]expired[/red]"
            table.add_row(
                name or "(none)",
                candidate.account,
                candidate.candidate_type,
                candidate.id,
                candidate.ttl or "-",
                lease,
            )
            total += 1
    return table, total


def run_phase(phase: PassPhase, account: Optional[str], kinds: Optional[List[str]], dry_run: bool = False) -> None:
    config = load_config()
    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)

    try:
        cache = runtime.build_cache(config)
        controllers = runtime.build_controllers(
            config, cache, cancel_event=cancel_event, account=account, dry_run=dry_run
        )
        if not controllers:
            console.print("No matching accounts or clusters configured", style="yellow")
            raise typer.Exit(code=1)

        results = runtime.run_passes(controllers, phase, kinds)
    except typer.Exit:
        raise
    except StoreUnavailable as e:
        console.print(f"✗ Candidate store unavailable: {e}", style="bold red")
        raise typer.Exit(code=2)
    except Exception as e:
        console.print(f"✗ Error during {phase.value}: {e}", style="bold red")
        logger.exception(f"Error in {phase.value} command")
        raise typer.Exit(code=1)

    print_results(results)
    if any(r.status is PassStatus.FAILED for r in results):
        raise typer.Exit(code=1)


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"resource-janitor version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


@app.command()
def mark(
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Only this account or cluster"),
    kind: Optional[List[str]] = typer.Option(None, "--kind", "-k", help="Only these resource kinds (repeatable)"),
):
    """Classify resources and record non-compliant candidates.

    Examples:
        janitor mark
        janitor mark --account sandbox --kind ec2 --kind ebs
    """
    run_phase(PassPhase.MARK, account, kind or None)


@app.command()
def sweep(
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Only this account or cluster"),
    kind: Optional[List[str]] = typer.Option(None, "--kind", "-k", help="Only these resource kinds (repeatable)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be deleted without deleting"),
):
    """Delete candidates whose grace period has expired.

    Deletion only happens for accounts with delete_enabled: true.
    """
    run_phase(PassPhase.SWEEP, account, kind or None, dry_run=dry_run)


@app.command()
def notify():
    """Send every owner a digest of their candidates."""
    config = load_config()

    try:
        cache = runtime.build_cache(config)
        notifier = runtime.build_notifier(config, cache)
        if notifier is None:
            console.print("✗ Slack is not configured (slack.token missing)", style="bold red")
            raise typer.Exit(code=1)

        if not notifier.validate():
            console.print(f"✗ Default owner '{config.slack.default_owner}' not found in Slack", style="bold red")
            raise typer.Exit(code=1)

        delivered = notifier.collect()
    except typer.Exit:
        raise
    except StoreUnavailable as e:
        console.print(f"✗ Candidate store unavailable: {e}", style="bold red")
        raise typer.Exit(code=2)

    console.print(f"✓ Notified {len(delivered)} owners ({sum(delivered.values())} messages)", style="green")


@app.command()
def candidates(
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Only this owner (use '' for unowned)"),
):
    """List stored candidates and their lease state."""
    config = load_config()

    try:
        cache = runtime.build_cache(config)
        store = runtime.build_store(config, cache)
        owners = [owner] if owner is not None else store.list_owners()
        table, total = candidates_table(store, owners)
    except StoreUnavailable as e:
        console.print(f"✗ Candidate store unavailable: {e}", style="bold red")
        raise typer.Exit(code=2)

    if total == 0:
        console.print("No candidates recorded", style="green")
        return
    console.print(table)


@app.command("test")
def preview_mark(
    account: str = typer.Argument(..., help="AWS account or Kubernetes cluster name"),
    kind: Optional[List[str]] = typer.Option(None, "--kind", "-k", help="Only these resource kinds (repeatable)"),
):
    """Preview a Mark pass without touching Redis.

    Runs one Mark pass for a single account or cluster against an in-memory
    store with debug logging, then lists what would have been recorded.
    Nothing is written and nothing is deleted. Use it to tune not_tags.

    Examples:
        janitor test sandbox
        janitor test dev-cluster --kind namespace
    """
    config = load_config()
    setup_logging(level="DEBUG", verbose=verbose_logging)

    cache = MemoryCache()
    try:
        controllers = runtime.build_controllers(config, cache, account=account, dry_run=True)
        if not controllers:
            console.print(f"✗ '{account}' is not a configured account or cluster", style="bold red")
            raise typer.Exit(code=1)

        logger.info(f"Doing a test mark run for {account}")
        results = runtime.run_passes(controllers, PassPhase.MARK, kind or None)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error during test mark: {e}", style="bold red")
        logger.exception("Error in test command")
        raise typer.Exit(code=1)

    print_results(results)

    store = runtime.build_store(config, cache)
    table, total = candidates_table(store, store.list_owners(), title=f"Would be recorded for {account}")
    if total == 0:
        console.print("Nothing would be recorded", style="green")
    else:
        console.print(table)

    if any(r.status is PassStatus.FAILED for r in results):
        raise typer.Exit(code=1)


# Config commands group
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate():
    """Load and validate the configuration file."""
    config = load_config()
    console.print(
        f"✓ Configuration valid: {len(config.aws)} AWS accounts, {len(config.kubernetes)} Kubernetes clusters",
        style="green",
    )


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
