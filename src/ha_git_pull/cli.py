import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import daemon
from .config import Config
from .constants import APP_NAME, OPTIONS_FILE, WORK_TREE
from .git_wrapper import GitRepo, is_repository

logger = logging.getLogger(APP_NAME)
console = Console()


def show_status(config: Config, work_tree: Path) -> None:
    """Displays the repository state of the work tree."""
    if not is_repository(work_tree):
        console.print(
            Panel(
                f"[cyan]{work_tree}[/cyan] is not a git repository.\n"
                "The next run will back it up and clone "
                f"[bold]{config.repository or '(no repository configured)'}[/bold].",
                title="Repository Status",
                expand=False,
                border_style="yellow",
            )
        )
        return

    repo = GitRepo(work_tree)
    state = repo.state(config.git.remote)

    content = Text()
    content.append(f"Commit:  {state.commit[:12]}\n")
    content.append(f"Branch:  {state.branch}\n")
    content.append(f"Remote:  {config.git.remote} -> {state.remote_url or 'unset'}")

    if state.remote_url != config.repository:
        content.append("\n\n⚠ WARNING: ", style="bold yellow")
        content.append(
            f"Remote does not match configured repository {config.repository}",
            style="yellow",
        )
    if config.git.branch and config.git.branch != state.branch:
        content.append(
            f"\nNext run switches to branch {config.git.branch}.", style="dim"
        )

    console.print(Panel(content, title="Repository Status", expand=False))


def show_config(config: Config) -> None:
    """Displays the effective configuration, secrets masked."""
    table = Table(title="ha-git-pull Configuration", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Value", style="yellow")

    table.add_row("", "repository", config.repository or "[red]unset[/red]")
    table.add_row("git", "remote", config.git.remote)
    table.add_row("", "branch", config.git.branch or "(current)")
    table.add_row("", "command", config.git.command.value)
    table.add_row("", "prune", str(config.git.prune).lower())
    table.add_row(
        "deployment", "key", "(set)" if config.deployment.key else "(none)"
    )
    table.add_row("", "key_protocol", config.deployment.key_protocol)
    table.add_row("", "user", config.deployment.user or "(none)")
    table.add_row("", "password", "********" if config.deployment.password else "(none)")
    table.add_row("restart", "auto", str(config.restart.auto).lower())
    table.add_row("", "ignore", ", ".join(config.restart.ignore) or "[]")
    table.add_row("repeat", "active", str(config.repeat.active).lower())
    table.add_row("", "interval", f"{config.repeat.interval}s")

    console.print(table)


def main() -> None:
    """Main entry point for the ha-git-pull CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep a Home-Assistant config directory in sync with git.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=OPTIONS_FILE,
        help=f"Options file (.json or .toml, default: {OPTIONS_FILE})",
    )
    parser.add_argument(
        "--work-tree",
        type=Path,
        default=WORK_TREE,
        help=f"Directory to keep in sync (default: {WORK_TREE})",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the sync loop (default)")
    subparsers.add_parser("once", help="Run a single sync pass and exit")
    subparsers.add_parser("status", help="Show the work tree's repository state")
    subparsers.add_parser("config", help="Show the effective configuration")

    args = parser.parse_args()

    if args.command == "status":
        show_status(Config.load(args.config), args.work_tree)
        return
    elif args.command == "config":
        show_config(Config.load(args.config))
        return
    elif args.command == "once":
        sys.exit(daemon.main(args.config, args.work_tree, once=True, interactive=True))

    sys.exit(daemon.main(args.config, args.work_tree))


if __name__ == "__main__":
    main()
