"""Shared fixtures: isolated environment, real git repositories and a fake runner."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from git_muster.core import CommandOutcome, CommandResult, CommandRunner

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_IDENTITY = (
    "-c",
    "user.name=Test User",
    "-c",
    "user.email=test@example.com",
    "-c",
    "commit.gpgsign=false",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's git config and git-muster settings out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("GIT_MUSTER_ROOTS", "GIT_MUSTER_TIMEOUT", "GIT_MUSTER_WORKERS", "GIT_MUSTER_GIT"):
        monkeypatch.delenv(key, raising=False)


def git(cwd: Path, *args: str) -> str:
    """Run git for test setup, failing loudly."""
    completed = subprocess.run(
        ["git", *GIT_IDENTITY, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


def make_repo(path: Path, branch: str = "main") -> Path:
    """Create an empty repository whose HEAD points at ``branch``."""
    path.mkdir(parents=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    return path


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write, stage and commit a file; return the new HEAD revision."""
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def remotes_dir(tmp_path: Path) -> Path:
    path = tmp_path / "remotes"
    path.mkdir()
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


def make_published_repo(workspace: Path, remotes_dir: Path, name: str) -> Path:
    """Create a repository with one commit pushed to a bare origin."""
    bare = remotes_dir / f"{name}.git"
    bare.mkdir()
    git(bare, "init", "-q", "--bare")

    repo = make_repo(workspace / name)
    commit_file(repo, "README.md", f"# {name}\n", "Initial commit")
    git(repo, "remote", "add", "origin", str(bare))
    git(repo, "push", "-q", "-u", "origin", "main")
    return repo


class RecordingRunner(CommandRunner):
    """Real runner that remembers every command it ran."""

    def __init__(self, timeout: float = 10.0):
        super().__init__(timeout)
        self.calls: list[tuple[Path, tuple[str, ...]]] = []

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        self.calls.append((Path(cwd), tuple(args)))
        return super().run(args, cwd)

    def git_calls(self, repo: Path, subcommand: str) -> list[tuple[str, ...]]:
        return [args for cwd, args in self.calls if cwd == repo and args[1:2] == (subcommand,)]


Response = str | CommandResult | list[str | CommandResult]


class FakeRunner:
    """Runner answering git commands from a per-repository table.

    ``responses`` maps a repository directory name to a mapping of git
    argument tuples (without the executable) to either output text (a
    successful run) or a full CommandResult. A list answers successive
    calls in order, repeating its last entry. Unknown commands fail with
    exit status 128, like git does for unresolvable refs.
    """

    def __init__(self, responses: Mapping[str, Mapping[tuple[str, ...], Response]]):
        self.responses = responses
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        argv = tuple(args)
        repo_name = Path(cwd).name
        self.calls.append((repo_name, argv[1:]))
        response = self.responses.get(repo_name, {}).get(argv[1:])
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if response is None:
            return CommandResult(argv, CommandOutcome.NON_ZERO_EXIT, "fatal: bad revision", 128)
        if isinstance(response, CommandResult):
            return response
        return CommandResult(argv, CommandOutcome.SUCCESS, response, 0)

    def count(self, repo_name: str, subcommand: str) -> int:
        return sum(
            1 for name, args in self.calls if name == repo_name and args[:1] == (subcommand,)
        )


def failed(output: str = "error", returncode: int = 1) -> CommandResult:
    return CommandResult(("git",), CommandOutcome.NON_ZERO_EXIT, output, returncode)


def repo_responses(
    *,
    porcelain: str = "",
    branch: str = "main",
    head: str = "1111111",
    upstream: str | None = "1111111",
    remote_url: str | None = "git@example.com:team/repo.git",
    **extra: Response,
) -> dict[tuple[str, ...], Response]:
    """Responses describing one repository for FakeRunner."""
    responses: dict[tuple[str, ...], Response] = {
        ("status", "--porcelain"): porcelain,
        ("rev-parse", "--abbrev-ref", "HEAD"): branch,
        ("rev-parse", "HEAD"): head,
    }
    if upstream is not None:
        responses[("rev-parse", "--verify", "--quiet", f"origin/{branch}^{{commit}}")] = upstream
    if remote_url is not None:
        responses[("config", "--get", "remote.origin.url")] = remote_url
    for key, value in extra.items():
        responses[tuple(key.split())] = value
    return responses


def make_fake_repos(base: Path, *names: str) -> list[Path]:
    """Create directories that look like repositories to the scanner."""
    paths = []
    for name in names:
        path = base / name
        (path / ".git").mkdir(parents=True)
        paths.append(path)
    return paths
