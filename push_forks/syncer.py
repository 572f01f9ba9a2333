"""
Main push logic for keeping forks of Homebrew and its taps in sync.

This module resolves each repository's fork remote, pushes the configured
branches to it, and drives the two phases of a run: the Homebrew
repository first, then every installed tap.
"""

import configparser
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from git.exc import GitCommandError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cancel import CancellationToken
from .config import PushForksConfig
from .git_ops import (
    BranchNotFoundError,
    GitRepository,
    PushRejectedError,
    configure_git,
    git_error_text,
)

console = Console()
err_console = Console(stderr=True)


class SkipReason(Enum):
    """Why a repository was not pushed."""

    NOT_A_REPOSITORY = "not a git repository"
    NO_FORK_REMOTE = "no fork remote"
    AMBIGUOUS_FORK_REMOTE = "more than one fork remote"


@dataclass
class RemoteResolution:
    """Result of looking for a repository's fork remote."""

    remote: str | None
    skip_reason: SkipReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.remote is not None


@dataclass
class PushResult:
    """Result of pushing a repository's branches."""

    success: bool
    branches_pushed: list[str] = field(default_factory=list)
    failed_branch: str | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class RepositoryTarget:
    """A repository to push and the branches to push for it, in order."""

    path: Path
    branches: list[str]
    label: str


@dataclass
class RepositoryOutcome:
    """What happened to a single repository during a run."""

    target: RepositoryTarget
    resolution: RemoteResolution
    push: PushResult | None = None

    @property
    def pushed(self) -> bool:
        return self.push is not None and self.push.success


@dataclass
class RunSummary:
    """Outcomes of a run, in processing order."""

    outcomes: list[RepositoryOutcome] = field(default_factory=list)

    @property
    def pushed(self) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if o.pushed]

    @property
    def skipped(self) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if not o.resolution.ok]

    @property
    def failed(self) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if o.push is not None and not o.push.success]


def resolve_fork_remote(path: Path, upstream_remote: str = "origin") -> RemoteResolution:
    """
    Find the single remote of a repository that is not the upstream remote.

    Zero or several such remotes means the repository is skipped; there is
    no attempt to pick between several forks.
    """
    path = Path(path)
    if not path.is_dir():
        return RemoteResolution(
            None, SkipReason.NOT_A_REPOSITORY, f"{path} does not exist"
        )

    try:
        remotes = GitRepository(path).remote_names()
    except (ValueError, GitCommandError, configparser.Error) as e:
        return RemoteResolution(None, SkipReason.NOT_A_REPOSITORY, str(e))

    forks = [name for name in remotes if name != upstream_remote]
    if not forks:
        return RemoteResolution(
            None, SkipReason.NO_FORK_REMOTE, f"no remotes other than {upstream_remote}"
        )
    if len(forks) > 1:
        return RemoteResolution(
            None,
            SkipReason.AMBIGUOUS_FORK_REMOTE,
            f"more than one remote other than {upstream_remote}: {', '.join(forks)}",
        )
    return RemoteResolution(forks[0])


def push_branches(
    path: Path,
    remote: str,
    branches: list[str],
    verbose: bool = False,
    cancel: CancellationToken | None = None,
) -> PushResult:
    """
    Check out and push each branch to the fork remote, in order.

    Stops at the first branch that cannot be checked out or pushed. The
    working tree is left on the last branch that was checked out.
    """
    try:
        repository = GitRepository(path)
    except ValueError as e:
        return PushResult(success=False, errors=[str(e)])

    result = PushResult(success=True)
    for branch in branches:
        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            repository.checkout(branch, verbose=verbose)
        except BranchNotFoundError as e:
            result.success = False
            result.failed_branch = branch
            result.errors.append(str(e))
            break
        except GitCommandError as e:
            result.success = False
            result.failed_branch = branch
            result.errors.append(f"Checkout of '{branch}' failed: {git_error_text(e)}")
            break

        try:
            summaries = repository.push_with_lease(remote, branch, verbose=verbose)
        except PushRejectedError as e:
            result.success = False
            result.failed_branch = branch
            result.errors.append(str(e))
            break
        except GitCommandError as e:
            result.success = False
            result.failed_branch = branch
            result.errors.append(f"Push of '{branch}' to '{remote}' failed: {git_error_text(e)}")
            break

        if verbose:
            for summary in summaries:
                console.print(f"    [green]✓[/green] {branch} → {remote} {escape(summary)}")
        result.branches_pushed.append(branch)

    if verbose and result.branches_pushed:
        console.print(f"    [dim]Left on branch {repository.get_current_branch()}[/dim]")
    return result


def discover_taps(taps_root: Path, exclude_suffix: str) -> list[Path]:
    """
    List tap checkouts, which live exactly two levels below the taps root.

    Hidden entries (.DS_Store and friends), plain files, and taps whose name
    ends with exclude_suffix are left out. Results are sorted by
    <user>/<repo> so runs are reproducible.
    """
    taps_root = Path(taps_root)
    if not taps_root.is_dir():
        return []

    taps = []
    for user_dir in sorted(taps_root.iterdir()):
        if user_dir.name.startswith(".") or not user_dir.is_dir():
            continue
        for tap_dir in sorted(user_dir.iterdir()):
            if tap_dir.name.startswith(".") or not tap_dir.is_dir():
                continue
            if tap_dir.name.endswith(exclude_suffix):
                continue
            taps.append(tap_dir)
    return taps


class ForkPusher:
    """Pushes the Homebrew repository and installed taps to their forks."""

    def __init__(self, config: PushForksConfig, cancel: CancellationToken | None = None):
        self.config = config
        self.cancel = cancel or CancellationToken()

    def _say(self, message: str) -> None:
        if self.config.verbose:
            console.print(message)

    def primary_target(self) -> RepositoryTarget:
        return RepositoryTarget(
            path=self.config.repository_path,
            branches=list(self.config.primary_branches),
            label="Homebrew/brew",
        )

    def tap_targets(self) -> list[RepositoryTarget]:
        taps = discover_taps(self.config.taps_root, self.config.command_name)
        return [
            RepositoryTarget(
                path=tap,
                branches=list(self.config.tap_branches),
                label=f"{tap.parent.name}/{tap.name}",
            )
            for tap in taps
        ]

    def run(self) -> RunSummary:
        """Run both phases: the Homebrew repository first, then every tap."""
        configure_git(self.config.git_path, self.config.git_shim)
        summary = RunSummary()

        if self.config.dry_run:
            console.print("[yellow]DRY RUN - No branches will be checked out or pushed[/yellow]")

        self._say("\n[bold]Pushing Homebrew repository...[/bold]")
        self.cancel.raise_if_cancelled()
        summary.outcomes.append(self.process(self.primary_target()))

        self._say("\n[bold]Pushing taps...[/bold]")
        for target in self.tap_targets():
            self.cancel.raise_if_cancelled()
            summary.outcomes.append(self.process(target))

        if self.config.verbose:
            self._print_summary(summary)
        return summary

    def process(self, target: RepositoryTarget) -> RepositoryOutcome:
        """Resolve the fork remote of one repository and push its branches."""
        self._say(f"  [cyan]{target.label}[/cyan] ({escape(str(target.path))})")

        resolution = resolve_fork_remote(target.path, self.config.upstream_remote)
        if not resolution.ok:
            self._say(f"    [yellow]Skipping: {escape(resolution.detail)}[/yellow]")
            return RepositoryOutcome(target, resolution)

        if self.config.dry_run:
            console.print(
                f"  [dim]Would push {', '.join(target.branches)} of {target.label} "
                f"to {resolution.remote}[/dim]"
            )
            return RepositoryOutcome(target, resolution)

        self._say(f"    Pushing {', '.join(target.branches)} to [cyan]{resolution.remote}[/cyan]")
        result = push_branches(
            target.path,
            resolution.remote,
            target.branches,
            verbose=self.config.verbose,
            cancel=self.cancel,
        )
        for error in result.errors:
            err_console.print(f"[red]{target.label}: {escape(error)}[/red]")

        return RepositoryOutcome(target, resolution, result)

    def _print_summary(self, summary: RunSummary) -> None:
        """Print a table of what happened to every repository."""
        table = Table(title=f"Repositories ({len(summary.outcomes)})")
        table.add_column("Repository", style="cyan")
        table.add_column("Remote")
        table.add_column("Result")

        for outcome in summary.outcomes:
            if not outcome.resolution.ok:
                result = f"[yellow]skipped: {escape(outcome.resolution.detail)}[/yellow]"
            elif outcome.push is None:
                result = "[dim]dry run[/dim]"
            elif outcome.push.success:
                result = f"[green]pushed {', '.join(outcome.push.branches_pushed)}[/green]"
            else:
                result = f"[red]failed on {outcome.push.failed_branch or 'open'}[/red]"
            table.add_row(outcome.target.label, outcome.resolution.remote or "-", result)

        console.print()
        console.print(table)
