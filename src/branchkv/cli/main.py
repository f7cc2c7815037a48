"""Main CLI entry point for branchkv.

Staging lives in memory, so every mutating command stages and commits
within the same invocation.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from branchkv.constants import (
    DEFAULT_BRANCH,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    REPO_ENV,
    SHORT_HASH_LENGTH,
)
from branchkv.errors import BackendIOError, BranchKVError, RepositoryNotFoundError
from branchkv.repository import Repository

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(
    name="branchkv",
    help="Versioned key-value store with branches",
    add_completion=False,
)


def _repo_option() -> Optional[Path]:
    return typer.Option(
        None,
        "--repo",
        "-r",
        envvar=REPO_ENV,
        help="Repository path (default: current directory)",
    )


def _message_option() -> str:
    return typer.Option(..., "--message", "-m", help="Commit message")


def _error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}", style="red")


@contextmanager
def _session(repo_path: Optional[Path]) -> Iterator[Repository]:
    """Open the repository, close it on exit and map errors to exit codes."""
    path = repo_path or Path.cwd()
    try:
        repo = Repository.open(path)
    except RepositoryNotFoundError:
        _error("Not a branchkv repository")
        err_console.print(f"  No repository found at {Path(path).absolute()}", style="dim")
        err_console.print(
            "\nRun [bold]branchkv init[/bold] to initialize a repository",
            style="yellow",
        )
        raise typer.Exit(EXIT_USER_ERROR)
    except BackendIOError as e:
        _error(str(e))
        raise typer.Exit(EXIT_SYSTEM_ERROR)

    try:
        yield repo
    except BackendIOError as e:
        _error(str(e))
        raise typer.Exit(EXIT_SYSTEM_ERROR)
    except BranchKVError as e:
        _error(str(e))
        raise typer.Exit(EXIT_USER_ERROR)
    finally:
        repo.close()


def _short(commit_hash: Optional[str]) -> str:
    return commit_hash[:SHORT_HASH_LENGTH] if commit_hash else "(no commits)"


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log repository operations to stderr",
    ),
) -> None:
    """Versioned key-value store with branches."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


@app.command()
def version() -> None:
    """Show branchkv version."""
    from branchkv import __version__
    typer.echo(f"branchkv version {__version__}")


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        envvar=REPO_ENV,
        help="Where to create the repository (default: current directory)",
    ),
    branch: str = typer.Option(
        DEFAULT_BRANCH,
        "--branch",
        "-b",
        help="Name of the initial branch",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress output except errors",
    ),
) -> None:
    """Initialize a branchkv repository."""
    target = path or Path.cwd()
    try:
        repo = Repository.init(target, branch=branch)
    except BackendIOError as e:
        _error(f"Failed to initialize repository: {e}")
        raise typer.Exit(EXIT_SYSTEM_ERROR)
    except BranchKVError as e:
        _error(str(e))
        raise typer.Exit(EXIT_USER_ERROR)

    with repo:
        if not quiet:
            success_message = f"""[bold green]✓[/bold green] Initialized branchkv repository

[dim]Storage location:[/dim] {repo.path}
[dim]Active branch:[/dim]    {repo.active_branch}

[bold]Next steps:[/bold]
  1. Store a key: [cyan]branchkv set greeting hello -m "First key"[/cyan]
  2. Read it back: [cyan]branchkv get greeting[/cyan]
  3. Branch off:   [cyan]branchkv branch experiment[/cyan]
"""
            console.print(Panel(success_message, border_style="green", title="branchkv Initialized"))


@app.command()
def branches(repo_path: Optional[Path] = _repo_option()) -> None:
    """List branches; the active one is marked with *."""
    with _session(repo_path) as repo:
        for name in repo.branches():
            if name == repo.active_branch:
                console.print(f"* [bold green]{name}[/bold green]")
            else:
                console.print(f"  {name}")


@app.command()
def branch(
    name: str = typer.Argument(..., help="Name of the new branch"),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Create a branch at the current head (does not switch to it)."""
    with _session(repo_path) as repo:
        repo.branch(name)
        console.print(f"[green]Created branch[/green] [bold]{name}[/bold] from {repo.active_branch}")


@app.command()
def switch(
    name: str = typer.Argument(..., help="Branch to switch to"),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Switch the active branch."""
    with _session(repo_path) as repo:
        repo.switch_branch(name)
        console.print(f"Switched to branch [bold]{name}[/bold]")


@app.command("remove-branch")
def remove_branch(
    name: str = typer.Argument(..., help="Branch to delete"),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Delete a branch. Its commits are kept."""
    with _session(repo_path) as repo:
        repo.remove_branch(name)
        console.print(f"[yellow]Removed branch[/yellow] [bold]{name}[/bold]")


@app.command()
def keys(repo_path: Optional[Path] = _repo_option()) -> None:
    """List keys on the active branch."""
    with _session(repo_path) as repo:
        names = repo.keys()
        if not names:
            console.print("[dim]No keys[/dim]")
            return
        for key in names:
            typer.echo(key)


@app.command()
def get(
    key: str = typer.Argument(..., help="Key to read"),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Print the value of a key."""
    with _session(repo_path) as repo:
        typer.echo(repo.value(key))


@app.command("set")
def set_key(
    key: str = typer.Argument(..., help="Key to write"),
    value: Optional[str] = typer.Argument(None, help="Value (UTF-8 text)"),
    from_file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="Read the value from a file instead",
    ),
    message: str = _message_option(),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Set a key and commit."""
    if (value is None) == (from_file is None):
        _error("Provide exactly one of VALUE or --file")
        raise typer.Exit(EXIT_USER_ERROR)

    data = from_file.read_bytes() if from_file is not None else value.encode("utf-8")  # type: ignore[union-attr]

    with _session(repo_path) as repo:
        repo.insert_key(key, data)
        if not repo.key_changed(key):
            console.print(f"[dim]{key} unchanged, nothing committed[/dim]")
            return
        commit_hash = repo.commit(message)
        console.print(
            f"[bold green]>[/bold green] Committed [bold cyan]{_short(commit_hash)}[/bold cyan] "
            f"on {repo.active_branch}: set {key}"
        )


@app.command()
def rm(
    key: str = typer.Argument(..., help="Key to remove"),
    message: str = _message_option(),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Remove a key and commit."""
    with _session(repo_path) as repo:
        repo.remove_key(key)
        commit_hash = repo.commit(message)
        console.print(
            f"[bold green]>[/bold green] Committed [bold cyan]{_short(commit_hash)}[/bold cyan] "
            f"on {repo.active_branch}: removed {key}"
        )


@app.command()
def clear(
    message: str = _message_option(),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Remove every key and commit."""
    with _session(repo_path) as repo:
        count = len(repo)
        repo.remove()
        commit_hash = repo.commit(message)
        console.print(
            f"[bold green]>[/bold green] Committed [bold cyan]{_short(commit_hash)}[/bold cyan] "
            f"on {repo.active_branch}: removed {count} key(s)"
        )


@app.command()
def rollback(repo_path: Optional[Path] = _repo_option()) -> None:
    """Drop the head commit of the active branch."""
    with _session(repo_path) as repo:
        new_head = repo.rollback()
        console.print(f"Branch [bold]{repo.active_branch}[/bold] is now at {_short(new_head)}")


@app.command()
def log(
    max_count: Optional[int] = typer.Option(
        None,
        "--max-count",
        "-n",
        help="Limit number of commits to show",
    ),
    oneline: bool = typer.Option(
        False,
        "--oneline",
        help="Show each commit on a single line",
    ),
    repo_path: Optional[Path] = _repo_option(),
) -> None:
    """Show commit history of the active branch."""
    with _session(repo_path) as repo:
        commits = repo.history(limit=max_count)
        if not commits:
            console.print("[dim]No commits yet[/dim]")
            return

        for i, commit in enumerate(commits):
            message = commit["message"]
            if oneline:
                first_line = message.split("\n")[0]
                console.print(f"[yellow]{_short(commit['hash'])}[/yellow] {first_line}")
                continue

            date_str = datetime.fromisoformat(commit["timestamp"]).strftime("%Y-%m-%d %H:%M:%S")
            console.print(f"[bold yellow]commit {commit['hash']}[/bold yellow]")
            if commit["parent"]:
                console.print(f"[dim]Parent: {_short(commit['parent'])}[/dim]")
            else:
                console.print("[dim]Parent: (root commit)[/dim]")
            console.print(f"[bold]Author:[/bold] {commit['author']}")
            console.print(f"[bold]Date:[/bold]   {date_str}")
            console.print()
            for line in message.split("\n"):
                console.print(f"    {line}")
            if i < len(commits) - 1:
                console.print()


if __name__ == "__main__":
    app()
