"""
Git operations for push-forks.

Provides a thin wrapper around GitPython covering the three things the
command does to a repository: list its remotes, check out a branch, and
push that branch to a fork with lease protection.
"""

import functools
import os
import shutil
import subprocess
from pathlib import Path

import git
from git import Repo
from git.exc import GitCommandError, GitCommandNotFound, InvalidGitRepositoryError, NoSuchPathError
from rich.console import Console
from rich.markup import escape

from .errors import PushForksError

console = Console()

# Porcelain flag git prints for a ref it refused to update
REJECTED_FLAG = "!"


class BranchNotFoundError(Exception):
    """Raised when a branch to push does not exist locally."""


class PushRejectedError(Exception):
    """Raised when git reports that a push did not update the remote."""


@functools.cache
def resolve_git_executable(preferred: Path | None = None, shim: Path | None = None) -> str:
    """
    Find the git executable to use, once per process.

    Order: an explicitly configured path, Homebrew's git shim, then git on
    PATH. The first hit is cached and reused for the rest of the run.
    """
    for candidate in (preferred, shim):
        if candidate is not None and candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)

    found = shutil.which("git")
    if found is None:
        raise PushForksError("Could not find a git executable")
    return found


def configure_git(preferred: Path | None = None, shim: Path | None = None) -> str:
    """Point GitPython at the resolved git executable."""
    executable = resolve_git_executable(preferred, shim)
    try:
        git.refresh(executable)
    except GitCommandNotFound as e:
        raise PushForksError(f"Bad git executable {executable}: {e}") from e
    return executable


class GitRepository:
    """Wrapper around a git repository for fork pushing."""

    def __init__(self, path: Path):
        """Initialize repository wrapper."""
        self.path = Path(path).resolve()
        try:
            self.repo = Repo(self.path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise ValueError(f"Not a valid git repository: {self.path}") from e

    def get_current_branch(self) -> str:
        """Get the current branch name."""
        return self.repo.active_branch.name

    def remote_names(self) -> list[str]:
        """Get the names of all configured remotes, in git's order."""
        return [remote.name for remote in self.repo.remotes]

    def has_branch(self, branch: str) -> bool:
        """Check if a local branch exists."""
        return branch in self.repo.heads

    def checkout(self, branch: str, verbose: bool = False) -> None:
        """Switch the working tree to a local branch."""
        if not self.has_branch(branch):
            raise BranchNotFoundError(f"Branch '{branch}' does not exist in {self.path}")
        self.repo.git.checkout(branch, quiet=not verbose)

    def push_with_lease(self, remote: str, branch: str, verbose: bool = False) -> list[str]:
        """
        Push a branch to a remote using --force-with-lease.

        The remote branch is only overwritten if it still points where our
        remote-tracking ref says it does. The git child is terminated if the
        push is interrupted.

        Returns the summary lines git reported for the pushed refs.
        """
        args = ["--porcelain", "--force-with-lease"]
        args += ["--verbose", "--progress"] if verbose else ["--quiet"]

        handle = self.repo.git.push(*args, "--", remote, branch, as_process=True, universal_newlines=True)
        process = handle.proc
        try:
            stdout, stderr = process.communicate()
        except BaseException:
            terminate_process(process)
            raise

        if verbose:
            for line in stderr.splitlines():
                console.print(f"    [dim]{escape(line)}[/dim]")

        refs = parse_porcelain(stdout)
        rejected = [summary for flag, summary in refs if flag == REJECTED_FLAG]
        if rejected:
            raise PushRejectedError(
                f"Push of '{branch}' to '{remote}' was rejected: {'; '.join(rejected)}"
            )
        if process.returncode != 0:
            raise GitCommandError(handle.args, process.returncode, stderr, stdout)

        return [summary for _, summary in refs]


def parse_porcelain(output: str) -> list[tuple[str, str]]:
    """Extract (flag, summary) pairs from `git push --porcelain` ref lines."""
    refs = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) == 3 and len(parts[0]) == 1:
            refs.append((parts[0], parts[2].strip()))
    return refs


def terminate_process(process: subprocess.Popen, timeout: float = 5.0) -> None:
    """Stop a child process, escalating to SIGKILL if it lingers."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def git_error_text(error: GitCommandError) -> str:
    """Extract git's own error output from a failed command."""
    stderr = (error.stderr or "").strip()
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:") :].strip()
    return stderr.strip("'").strip() or str(error)
