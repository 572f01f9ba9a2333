"""Pytest configuration and fixtures for push_forks tests."""

import tempfile
from pathlib import Path

import pytest
from git import Repo

from push_forks.git_ops import resolve_git_executable


def init_repo(path: Path, branches: tuple[str, ...] = ("master",)) -> Repo:
    """Create a git repository with one commit and the given local branches."""
    path.mkdir(parents=True)

    repo = Repo.init(path)

    # Configure git user
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit
    readme = path / "README.md"
    readme.write_text(f"# {path.name}\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Default branch name depends on the user's git config
    repo.git.branch("-M", "master")
    for branch in branches:
        if branch != "master":
            repo.git.branch(branch)

    return repo


def init_fork(path: Path) -> Repo:
    """Create a bare repository acting as a personal fork."""
    path.mkdir(parents=True)
    return Repo.init(path, bare=True)


def fork_heads(fork: Path) -> dict[str, str]:
    """Map branch name to commit hash for every branch in a bare fork."""
    return {head.name: head.commit.hexsha for head in Repo(fork).heads}


@pytest.fixture(autouse=True)
def clear_git_executable_cache():
    """Each test resolves the git executable afresh."""
    resolve_git_executable.cache_clear()
    yield
    resolve_git_executable.cache_clear()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fork_repo(temp_dir: Path):
    """Create a bare repository to push to."""
    fork_path = temp_dir / "forks" / "brew.git"
    init_fork(fork_path)
    yield fork_path


@pytest.fixture
def brew_repo(temp_dir: Path, fork_repo: Path):
    """Create a Homebrew-like checkout with master, stable and one fork remote."""
    repo_path = temp_dir / "Homebrew"
    repo = init_repo(repo_path, branches=("master", "stable"))
    repo.create_remote("origin", "https://github.com/Homebrew/brew.git")
    repo.create_remote("myfork", str(fork_repo))
    yield repo_path


@pytest.fixture
def taps_root(temp_dir: Path):
    """Create an empty Library/Taps directory."""
    root = temp_dir / "Library" / "Taps"
    root.mkdir(parents=True)
    yield root
