import argparse
import logging
from dataclasses import asdict
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import daemon
from .config import Config
from .constants import APP_NAME
from .errors import VcsError

logger = logging.getLogger(APP_NAME)
console = Console()


def run_now(config: Config) -> None:
    """Runs a single synchronization cycle and prints a per-repository summary.

    Args:
        config (Config): The loaded configuration.
    """
    with console.status("[bold blue]Synchronizing content...[/bold blue]", spinner="dots"):
        results = daemon.run_cycle(config)

    table = Table(title="Content Sync")
    table.add_column("Repository", style="cyan")
    table.add_column("Result")

    for directory, result in results.items():
        if result is None:
            table.add_row(directory, "[bold red]FAILED / SKIPPED[/bold red]")
        elif result:
            table.add_row(directory, "[bold green]PUBLISHED[/bold green]")
        else:
            table.add_row(directory, "[dim]unchanged[/dim]")

    console.print(table)


def show_status(config: Config) -> None:
    """Shows where each configured repository lives and whether it is clean.

    Args:
        config (Config): The loaded configuration.
    """
    workflow, _ = daemon.build_workflow(config)
    backend = workflow.backend

    table = Table(title="Repositories")
    table.add_column("Directory", style="cyan")
    table.add_column("Branch")
    table.add_column("Path")
    table.add_column("State")

    for descriptor in config.repositories:
        path = backend.working_tree(descriptor)
        if not path.exists():
            state = "[yellow]not cloned[/yellow]"
        else:
            try:
                dirty = backend.has_uncommitted_changes(descriptor)
                state = "[red]dirty[/red]" if dirty else "[green]clean[/green]"
            except VcsError as e:
                state = f"[bold red]error:[/bold red] {e.op}"
        table.add_row(descriptor.directory, descriptor.branch, str(path), state)

    console.print(table)


def show_config(config: Config) -> None:
    """Prints the effective configuration with the token masked.

    Args:
        config (Config): The loaded configuration.
    """
    data = asdict(config)
    if data["git"]["token"]:
        data["git"]["token"] = "********"
    console.print(data)


def main() -> None:
    """Entry point of the `content-sync` command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Refresh content files in git repositories and publish changes.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to a config file (default: ~/.config/content-sync/config.toml)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.add_parser("now", help="Run one synchronization cycle")
    subparsers.add_parser("watch", help="Run the scheduler loop in the foreground")
    subparsers.add_parser("status", help="Show configured repositories")
    subparsers.add_parser("config", help="Print the effective configuration")

    args = parser.parse_args()

    if args.command == "watch":
        daemon.main(interactive=False, config_path=args.config)
        return

    config = Config.load(args.config)

    if args.command == "now":
        daemon.setup_logging(True, config)
        run_now(config)
        return
    elif args.command == "status":
        show_status(config)
        return
    elif args.command == "config":
        show_config(config)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
