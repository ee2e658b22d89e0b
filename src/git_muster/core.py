"""
git-muster: Muster every Git repository under a directory.

A tool for inspecting and synchronizing a whole tree of working copies at
once - status, fetch, push, and listings of uncommitted or unpushed work
across your entire development directory. Dirty repositories are never pushed.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, replace
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

import click
import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from typer.core import TyperGroup

from ._version import __version__
from .formatters import OutputFormatter
from .log_setup import setup_logging
from .schema import get_tool_schema

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0
DEFAULT_WORKERS = 1
GIT_METADATA_NAME = ".git"
HIDDEN_PREFIX = "."
# Never let git block on an interactive credential prompt.
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}

SKIP_UNCOMMITTED = "skipped - uncommitted changes"
SKIP_UNKNOWN_TREE = "skipped - working tree state unknown"

# =============================================================================
# Errors
# =============================================================================


class GitMusterError(Exception):
    """Base class for git-muster errors."""


class InvalidBaseDirectoryError(GitMusterError):
    """The directory to scan does not exist or is not a directory."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Not a directory: {path}")


# =============================================================================
# Domain Models
# =============================================================================


class Action(StrEnum):
    """Batch action applied to every discovered repository."""

    STATUS = "status"
    FETCH = "fetch"
    PUSH = "push"
    UNCOMMITTED = "uncommitted"
    UNPUSHED = "unpushed"


class CommandOutcome(StrEnum):
    """How an external command ended."""

    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    LAUNCH_FAILED = "launch_failed"


class OperationOutcome(StrEnum):
    """Per-repository outcome of a fetch or push."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CommandResult:
    """Result of one external command.

    ``raw_output`` holds stdout with stderr merged in. ``value`` is the
    trimmed output for a successful run and ``None`` for every kind of
    failure, so callers that only care about "got a value or not" never
    need to look at ``outcome``.
    """

    args: tuple[str, ...]
    outcome: CommandOutcome
    raw_output: str = ""
    returncode: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == CommandOutcome.SUCCESS

    @property
    def output(self) -> str:
        return self.raw_output.strip()

    @property
    def value(self) -> str | None:
        return self.output if self.ok else None

    @property
    def lines(self) -> tuple[str, ...]:
        """Non-blank output lines, otherwise unmodified."""
        return tuple(line for line in self.raw_output.splitlines() if line.strip())

    def describe_failure(self) -> str:
        """Human-readable reason for a failed command."""
        match self.outcome:
            case CommandOutcome.SUCCESS:
                return ""
            case CommandOutcome.TIMEOUT:
                return self.output or "timed out"
            case CommandOutcome.LAUNCH_FAILED:
                return f"could not launch {self.args[0] if self.args else 'command'}: {self.output}"
            case _:
                return self.output or f"exit status {self.returncode}"


@dataclass(frozen=True)
class RepositoryStatus:
    """Snapshot of a single repository, built fresh on every probe."""

    path: Path
    name: str
    is_repository: bool = True
    has_uncommitted_changes: bool = False
    has_unpushed_commits: bool = False
    current_branch: str | None = None
    remote_url: str | None = None
    working_tree_known: bool = True
    error_message: str = ""

    @property
    def is_clean(self) -> bool:
        return (
            self.is_repository
            and not self.error_message
            and not self.has_uncommitted_changes
            and not self.has_unpushed_commits
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": str(self.path),
            "name": self.name,
            "is_repository": self.is_repository,
            "current_branch": self.current_branch,
            "remote_url": self.remote_url,
            "has_uncommitted_changes": self.has_uncommitted_changes,
            "has_unpushed_commits": self.has_unpushed_commits,
            "working_tree_known": self.working_tree_known,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class OperationResult:
    """Result of a fetch or push against one repository."""

    path: Path
    name: str
    operation: str
    outcome: OperationOutcome
    message: str = ""
    error: str = ""

    @property
    def success(self) -> bool:
        return self.outcome == OperationOutcome.SUCCESS

    @property
    def skipped(self) -> bool:
        return self.outcome == OperationOutcome.SKIPPED

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "operation": self.operation,
            "outcome": self.outcome.value,
            "success": self.success,
            "message": self.message,
            "error": self.error,
        }


@dataclass(frozen=True)
class ChangeListing:
    """Raw status or log lines listed under one repository."""

    status: RepositoryStatus
    lines: tuple[str, ...] = ()
    error: str = ""

    @property
    def path(self) -> Path:
        return self.status.path

    @property
    def name(self) -> str:
        return self.status.name

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.status.current_branch,
            "lines": list(self.lines),
            "error": self.error,
        }


@dataclass
class BatchSummary:
    """Summary of a status pass."""

    total: int = 0
    clean: int = 0
    dirty: int = 0
    unpushed: int = 0
    no_branch: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_statuses(cls, statuses: Sequence[RepositoryStatus]) -> BatchSummary:
        """Build a summary from probed statuses."""
        summary = cls(total=len(statuses))
        for status in statuses:
            if status.error_message or not status.is_repository:
                summary.errors += 1
                continue
            if status.is_clean:
                summary.clean += 1
            if status.has_uncommitted_changes:
                summary.dirty += 1
            if status.has_unpushed_commits:
                summary.unpushed += 1
            if status.current_branch is None:
                summary.no_branch += 1
        return summary


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to the orchestrator."""

    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS
    git_executable: str = "git"

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load settings from GIT_MUSTER_* environment variables.

        Invalid values are logged and replaced by the defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            timeout=_env_number(env, "GIT_MUSTER_TIMEOUT", float, DEFAULT_TIMEOUT),
            workers=_env_number(env, "GIT_MUSTER_WORKERS", int, DEFAULT_WORKERS),
            git_executable=env.get("GIT_MUSTER_GIT") or "git",
        )

    def override(self, *, timeout: float | None = None, workers: int | None = None) -> Settings:
        """Return a copy with the given (non-None) values replaced."""
        changes: dict[str, Any] = {}
        if timeout is not None:
            changes["timeout"] = timeout
        if workers is not None:
            changes["workers"] = workers
        return replace(self, **changes) if changes else self


def _env_number(env: Mapping[str, str], key: str, convert: Callable[[str], T], default: T) -> T:
    raw = env.get(key)
    if not raw:
        return default
    try:
        value = convert(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", key, raw)
        return default
    if value <= 0:  # type: ignore[operator]
        logger.warning("Ignoring non-positive %s=%r", key, raw)
        return default
    return value


def load_roots_file(roots_file: Path) -> list[Path]:
    """Load base directories from a file (one path per line).

    Supports:
    - Comments starting with #
    - Environment variables: $HOME, ${HOME}, $DEV_ROOT, etc.
    - Tilde expansion: ~/path
    """
    roots = []
    try:
        with open(roots_file.expanduser()) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    expanded = os.path.expandvars(line)
                    path = Path(expanded).expanduser()
                    if path.is_dir():
                        roots.append(path)
                    else:
                        logger.debug("Ignoring missing root %s from %s", path, roots_file)
    except FileNotFoundError:
        logger.warning("Roots file not found: %s", roots_file)
    return roots


def resolve_roots_file() -> Path | None:
    """Auto-resolve the roots file.

    Priority order:
    1. $GIT_MUSTER_ROOTS environment variable
    2. ~/.config/git-muster/roots (XDG-compliant)
    """
    env_roots = os.environ.get("GIT_MUSTER_ROOTS")
    if env_roots:
        env_path = Path(env_roots).expanduser()
        if env_path.is_file():
            return env_path

    xdg_path = Path.home() / ".config" / "git-muster" / "roots"
    if xdg_path.is_file():
        return xdg_path

    return None


# =============================================================================
# Command Runner
# =============================================================================


class CommandRunner:
    """Run external commands with merged output and a hard timeout."""

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, extra_env: Mapping[str, str] | None = None
    ):
        self.timeout = timeout
        self.extra_env = dict(extra_env or {})

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        """Run ``args`` in ``cwd``; never raises.

        On timeout the child is killed and reaped before returning.
        """
        argv = tuple(args)
        env = {**os.environ, **self.extra_env} if self.extra_env else None
        logger.debug("Running %s in %s", " ".join(argv), cwd)
        try:
            completed = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Timed out after %ss: %s", self.timeout, " ".join(argv))
            return CommandResult(
                argv, CommandOutcome.TIMEOUT, f"timed out after {self.timeout:g}s"
            )
        except (OSError, ValueError) as e:
            logger.debug("Could not launch %s: %s", " ".join(argv), e)
            return CommandResult(argv, CommandOutcome.LAUNCH_FAILED, str(e))

        output = completed.stdout or ""
        if completed.returncode != 0:
            logger.debug("Exit status %d from %s", completed.returncode, " ".join(argv))
            return CommandResult(argv, CommandOutcome.NON_ZERO_EXIT, output, completed.returncode)
        return CommandResult(argv, CommandOutcome.SUCCESS, output, 0)


# =============================================================================
# Repository Discovery
# =============================================================================


def is_repository(directory: Path) -> bool:
    """Check whether ``directory`` itself holds Git metadata.

    Only the directory is inspected; parents are never searched.
    """
    try:
        return (Path(directory) / GIT_METADATA_NAME).exists()
    except OSError:
        return False


class RepositoryScanner:
    """Find repository roots below a base directory."""

    def __init__(self, hidden_prefix: str = HIDDEN_PREFIX):
        self.hidden_prefix = hidden_prefix

    def find_repositories(self, base: Path) -> list[Path]:
        """Depth-first search for repository roots in lexical order.

        Hidden directories are skipped and repositories are not searched for
        nested repositories. The base directory itself is never reported.
        Symlinks that point back into the scanned tree are not followed, so a
        repository is always reported under its real path.
        """
        base = Path(base).expanduser().absolute()
        base_real = _real_path(base)
        repositories: list[Path] = []
        visited = {base_real}
        stack = list(reversed(self._subdirectories(base)))

        while stack:
            directory = stack.pop()
            real = _real_path(directory)
            if real in visited:
                continue
            if directory.is_symlink() and self._reachable_from(base_real, real):
                continue
            visited.add(real)

            if is_repository(directory):
                repositories.append(directory)
                continue
            stack.extend(reversed(self._subdirectories(directory)))

        return repositories

    def _reachable_from(self, base_real: Path, real: Path) -> bool:
        """Whether the walk reaches ``real`` on its own from ``base_real``."""
        try:
            parts = real.relative_to(base_real).parts
        except ValueError:
            return False
        return not any(part.startswith(self.hidden_prefix) for part in parts)

    def _subdirectories(self, directory: Path) -> list[Path]:
        names = []
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.name.startswith(self.hidden_prefix):
                        continue
                    try:
                        if entry.is_dir():
                            names.append(entry.name)
                    except OSError as e:
                        logger.debug("Skipping unreadable entry %s: %s", entry.path, e)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            return []
        return [directory / name for name in sorted(names)]


def _real_path(path: Path) -> Path:
    return Path(os.path.realpath(path))


# =============================================================================
# Git Operations (Low-level)
# =============================================================================


class GitOperations:
    """Logical Git operations for a single repository."""

    def __init__(self, repo_path: Path, runner: CommandRunner, git_executable: str = "git"):
        self.repo_path = repo_path
        self.runner = runner
        self.git_executable = git_executable

    def _run(self, *args: str) -> CommandResult:
        """Run a git command in the repository."""
        return self.runner.run([self.git_executable, *args], self.repo_path)

    def status_porcelain(self) -> CommandResult:
        return self._run("status", "--porcelain")

    def get_current_branch(self) -> str | None:
        """Get current branch name, or None when detached or unresolvable."""
        branch = self._run("rev-parse", "--abbrev-ref", "HEAD").value
        if not branch or branch == "HEAD":
            return None
        return branch

    def get_head_revision(self) -> str | None:
        return self._run("rev-parse", "HEAD").value or None

    def get_remote_revision(self, branch: str) -> str | None:
        """Get the tip of origin/<branch> as last fetched."""
        result = self._run("rev-parse", "--verify", "--quiet", f"origin/{branch}^{{commit}}")
        return result.value or None

    def get_remote_url(self) -> str | None:
        return self._run("config", "--get", "remote.origin.url").value or None

    def fetch(self) -> CommandResult:
        return self._run("fetch")

    def push(self) -> CommandResult:
        return self._run("push")

    def log_unpushed(self, branch: str) -> CommandResult:
        """List local commits not on origin/<branch>, one line each."""
        return self._run("log", "--oneline", f"origin/{branch}..HEAD")


# =============================================================================
# Status Probe
# =============================================================================


class StatusProbe:
    """Derive a RepositoryStatus for one repository root."""

    def __init__(self, runner: CommandRunner, git_executable: str = "git"):
        self.runner = runner
        self.git_executable = git_executable

    def operations(self, path: Path) -> GitOperations:
        return GitOperations(path, self.runner, self.git_executable)

    def probe(self, root: Path) -> RepositoryStatus:
        """Probe ``root``; failing steps degrade to False/None, never abort."""
        path = Path(root).absolute()
        if not is_repository(path):
            return RepositoryStatus(
                path=path, name=path.name, is_repository=False, working_tree_known=False
            )

        ops = self.operations(path)
        try:
            tree = ops.status_porcelain()
            if not tree.ok:
                logger.warning(
                    "Could not read working tree of %s: %s", path, tree.describe_failure()
                )
            dirty = bool(tree.value)
            branch = ops.get_current_branch()
            remote_url = ops.get_remote_url()
            unpushed = self._has_unpushed_commits(ops, branch)
        except Exception as e:
            logger.warning("Could not probe %s: %s", path, e)
            return RepositoryStatus(
                path=path, name=path.name, working_tree_known=False, error_message=str(e)
            )

        return RepositoryStatus(
            path=path,
            name=path.name,
            has_uncommitted_changes=dirty,
            has_unpushed_commits=unpushed,
            current_branch=branch,
            remote_url=remote_url,
            working_tree_known=tree.ok,
        )

    @staticmethod
    def _has_unpushed_commits(ops: GitOperations, branch: str | None) -> bool:
        # Revision inequality, not an ahead count: a branch that is only
        # behind origin/<branch> also reports True.
        if branch is None:
            return False
        local = ops.get_head_revision()
        if local is None:
            return False
        remote = ops.get_remote_revision(branch)
        if remote is None:
            return False
        return local != remote


# =============================================================================
# Batch Orchestrator
# =============================================================================


class BatchOrchestrator:
    """Apply one action to every repository below a base directory."""

    def __init__(
        self,
        settings: Settings | None = None,
        runner: CommandRunner | None = None,
        scanner: RepositoryScanner | None = None,
    ):
        self.settings = settings or Settings()
        self.runner = runner or CommandRunner(self.settings.timeout, extra_env=GIT_ENV)
        self.scanner = scanner or RepositoryScanner()
        self.probe = StatusProbe(self.runner, self.settings.git_executable)

    def discover(self, base: Path) -> list[Path]:
        """Find repository roots below ``base``."""
        base_path = Path(base).expanduser()
        if not base_path.is_dir():
            raise InvalidBaseDirectoryError(base_path)
        repos = self.scanner.find_repositories(base_path)
        logger.debug("Found %d repositories under %s", len(repos), base_path)
        return repos

    def run(self, action: Action, base: Path) -> list:
        """Dispatch ``action`` by name."""
        handlers: dict[Action, Callable[[Path], list]] = {
            Action.STATUS: self.status,
            Action.FETCH: self.fetch,
            Action.PUSH: self.push,
            Action.UNCOMMITTED: self.list_uncommitted,
            Action.UNPUSHED: self.list_unpushed,
        }
        return handlers[Action(action)](base)

    def status(self, base: Path) -> list[RepositoryStatus]:
        return self._execute(self.probe.probe, self.discover(base))

    def fetch(self, base: Path) -> list[OperationResult]:
        return self._execute(self._fetch_one, self.discover(base))

    def push(self, base: Path) -> list[OperationResult]:
        """Push every clean repository; dirty ones are skipped, never pushed."""
        return self._execute(self._push_one, self.discover(base))

    def list_uncommitted(self, base: Path) -> list[ChangeListing]:
        listings = self._execute(self._uncommitted_one, self.discover(base))
        return [listing for listing in listings if listing is not None]

    def list_unpushed(self, base: Path) -> list[ChangeListing]:
        listings = self._execute(self._unpushed_one, self.discover(base))
        return [listing for listing in listings if listing is not None]

    def _execute(self, operation: Callable[[Path], T], repos: list[Path]) -> list[T]:
        """Run ``operation`` per repository, returning results in scan order."""
        if self.settings.workers <= 1 or len(repos) <= 1:
            return [operation(repo) for repo in repos]

        with ThreadPoolExecutor(max_workers=self.settings.workers) as executor:
            futures = [executor.submit(operation, repo) for repo in repos]
            try:
                return [future.result() for future in futures]
            except KeyboardInterrupt:
                # Pending repositories are dropped; running git calls finish
                # or hit their own timeout while the pool shuts down.
                for future in futures:
                    future.cancel()
                raise

    def _fetch_one(self, path: Path) -> OperationResult:
        try:
            result = self.probe.operations(path).fetch()
        except Exception as e:
            logger.warning("Fetch failed for %s: %s", path, e)
            return _operation_result(path, "fetch", OperationOutcome.FAILED, error=str(e))
        return _command_operation_result(path, "fetch", result)

    def _push_one(self, path: Path) -> OperationResult:
        # Probe and push stay in one task so the decision uses this probe.
        try:
            status = self.probe.probe(path)
            if status.error_message:
                return _operation_result(
                    path, "push", OperationOutcome.FAILED, error=status.error_message
                )
            if not status.is_repository:
                return _operation_result(
                    path, "push", OperationOutcome.FAILED, error="not a git repository"
                )
            if status.has_uncommitted_changes:
                logger.info("Not pushing %s: uncommitted changes", path)
                return _operation_result(
                    path, "push", OperationOutcome.SKIPPED, message=SKIP_UNCOMMITTED
                )
            if not status.working_tree_known:
                logger.warning("Not pushing %s: working tree state unknown", path)
                return _operation_result(
                    path, "push", OperationOutcome.SKIPPED, message=SKIP_UNKNOWN_TREE
                )
            result = self.probe.operations(path).push()
        except Exception as e:
            logger.warning("Push failed for %s: %s", path, e)
            return _operation_result(path, "push", OperationOutcome.FAILED, error=str(e))
        return _command_operation_result(path, "push", result)

    def _uncommitted_one(self, path: Path) -> ChangeListing | None:
        try:
            status = self.probe.probe(path)
            if not status.has_uncommitted_changes:
                return None
            result = self.probe.operations(path).status_porcelain()
        except Exception as e:
            logger.warning("Could not list changes in %s: %s", path, e)
            return ChangeListing(_failed_status(path, e), error=str(e))
        return _listing(status, result)

    def _unpushed_one(self, path: Path) -> ChangeListing | None:
        try:
            status = self.probe.probe(path)
            if not status.has_unpushed_commits or status.current_branch is None:
                return None
            result = self.probe.operations(path).log_unpushed(status.current_branch)
        except Exception as e:
            logger.warning("Could not list commits in %s: %s", path, e)
            return ChangeListing(_failed_status(path, e), error=str(e))
        return _listing(status, result)


def _operation_result(
    path: Path, operation: str, outcome: OperationOutcome, message: str = "", error: str = ""
) -> OperationResult:
    return OperationResult(
        path=path,
        name=path.name,
        operation=operation,
        outcome=outcome,
        message=message,
        error=error,
    )


def _command_operation_result(path: Path, operation: str, result: CommandResult) -> OperationResult:
    if result.ok:
        return _operation_result(path, operation, OperationOutcome.SUCCESS, message=result.output)
    logger.info("%s failed for %s: %s", operation.title(), path, result.describe_failure())
    return _operation_result(
        path, operation, OperationOutcome.FAILED, error=result.describe_failure()
    )


def _listing(status: RepositoryStatus, result: CommandResult) -> ChangeListing:
    # Failure output is reported as the error only, never as listed lines.
    if not result.ok:
        logger.warning("Could not list %s: %s", status.path, result.describe_failure())
        return ChangeListing(status, error=result.describe_failure())
    return ChangeListing(status, lines=result.lines)


def _failed_status(path: Path, error: Exception) -> RepositoryStatus:
    return RepositoryStatus(path=path, name=path.name, error_message=str(error))


# =============================================================================
# CLI Application
# =============================================================================


class UsageOnUnknownCommand(TyperGroup):
    """Print usage to stdout when the command name is not recognized."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError:
            typer.echo(ctx.get_help())
            raise


app = typer.Typer(
    name="git-muster",
    cls=UsageOnUnknownCommand,
    help="Inspect and synchronize every Git repository under a directory.",
)

PROGRESS_LABELS = {
    Action.STATUS: "Analyzing",
    Action.FETCH: "Fetching",
    Action.PUSH: "Pushing",
    Action.UNCOMMITTED: "Looking for uncommitted changes in",
    Action.UNPUSHED: "Looking for unpushed commits in",
}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-muster {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output machine-readable tool schema",
    ),
):
    """git-muster: Inspect and synchronize every Git repository under a directory."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        # No command: usage goes to stdout and the exit status stays 0.
        typer.echo(ctx.get_help())
        raise typer.Exit()


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def resolve_bases(path: Path | None, roots: Path | None) -> list[Path]:
    """Pick the base directories for this run.

    An explicit --roots file wins, then the path argument, then an
    auto-resolved roots file, then the current directory.
    """
    if roots is None and path is not None:
        return [path]
    resolved_roots = roots or resolve_roots_file()
    if resolved_roots:
        root_paths = load_roots_file(resolved_roots)
        if not root_paths:
            raise GitMusterError(f"No valid roots found in {resolved_roots}")
        return root_paths
    return [Path(".")]


def run_batch(
    action: Action,
    path: Path | None,
    roots: Path | None,
    json_output: bool,
    workers: int | None,
    timeout: float | None,
    verbose: bool,
) -> None:
    """Shared body of the batch commands."""
    setup_logging(verbose)
    console, formatter = get_console_and_formatter(json_output)
    orchestrator = BatchOrchestrator(Settings.from_env().override(timeout=timeout, workers=workers))

    batches: list[tuple[Path, list]] = []
    try:
        for base in resolve_bases(path, roots):
            if json_output:
                results = orchestrator.run(action, base)
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                    transient=True,
                ) as progress:
                    progress.add_task(f"{PROGRESS_LABELS[action]} {base}...", total=None)
                    results = orchestrator.run(action, base)
            batches.append((base.expanduser().absolute(), results))
    except GitMusterError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/]")
        raise typer.Exit(130)

    formatter.print_batches(action, batches)


PATH_ARGUMENT = typer.Argument(
    None,
    help="Base directory to scan for repositories (default: current directory)",
)
JSON_OPTION = typer.Option(False, "--json", "-j", help="Output as JSON")
WORKERS_OPTION = typer.Option(
    None,
    "--workers",
    "-w",
    min=1,
    help="Repositories processed at once (default: 1, or $GIT_MUSTER_WORKERS)",
)
TIMEOUT_OPTION = typer.Option(
    None,
    "--timeout",
    "-t",
    min=0.1,
    help="Seconds before a single git command is abandoned (default: 10)",
)
ROOTS_OPTION = typer.Option(
    None,
    "--roots",
    "-r",
    help="File containing base directories (one per line)",
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Log every git command")


@app.command()
def status(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    workers: int = WORKERS_OPTION,
    timeout: float = TIMEOUT_OPTION,
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show branch, remote, and dirty/unpushed state of every repository."""
    run_batch(Action.STATUS, path, roots, json_output, workers, timeout, verbose)


@app.command()
def fetch(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    workers: int = WORKERS_OPTION,
    timeout: float = TIMEOUT_OPTION,
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Fetch every repository."""
    run_batch(Action.FETCH, path, roots, json_output, workers, timeout, verbose)


@app.command()
def push(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    workers: int = WORKERS_OPTION,
    timeout: float = TIMEOUT_OPTION,
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Push every repository (skips repositories with uncommitted changes)."""
    run_batch(Action.PUSH, path, roots, json_output, workers, timeout, verbose)


@app.command()
def uncommitted(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    workers: int = WORKERS_OPTION,
    timeout: float = TIMEOUT_OPTION,
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show repositories with uncommitted changes and list the changes."""
    run_batch(Action.UNCOMMITTED, path, roots, json_output, workers, timeout, verbose)


@app.command()
def unpushed(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    workers: int = WORKERS_OPTION,
    timeout: float = TIMEOUT_OPTION,
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show repositories with unpushed commits and list the commits."""
    run_batch(Action.UNPUSHED, path, roots, json_output, workers, timeout, verbose)


@app.command(name="list")
def list_repos(
    path: Path = PATH_ARGUMENT,
    json_output: bool = JSON_OPTION,
    paths_only: bool = typer.Option(
        False,
        "--paths",
        "-p",
        help="Output only paths (one per line, for piping to fzf etc.)",
    ),
    roots: Path = ROOTS_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """List all discovered repositories."""
    setup_logging(verbose)
    console, formatter = get_console_and_formatter(json_output)
    orchestrator = BatchOrchestrator(Settings.from_env())

    try:
        discovered = [
            (base.expanduser().absolute(), orchestrator.discover(base))
            for base in resolve_bases(path, roots)
        ]
    except GitMusterError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    if paths_only:
        for _, repos in discovered:
            for repo in repos:
                print(repo)
    else:
        formatter.print_repo_lists(discovered)
