"""git-muster: Inspect and synchronize every Git repository under a directory."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .core import (
    Action,
    BatchOrchestrator,
    BatchSummary,
    ChangeListing,
    CommandOutcome,
    CommandResult,
    CommandRunner,
    GitMusterError,
    GitOperations,
    InvalidBaseDirectoryError,
    OperationOutcome,
    OperationResult,
    RepositoryScanner,
    RepositoryStatus,
    Settings,
    StatusProbe,
    app,
    is_repository,
    load_roots_file,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "Action",
    "BatchSummary",
    "ChangeListing",
    "CommandOutcome",
    "CommandResult",
    "OperationOutcome",
    "OperationResult",
    "RepositoryStatus",
    "Settings",
    # Errors
    "GitMusterError",
    "InvalidBaseDirectoryError",
    # Operations
    "BatchOrchestrator",
    "CommandRunner",
    "GitOperations",
    "RepositoryScanner",
    "StatusProbe",
    # Functions
    "get_tool_schema",
    "is_repository",
    "load_roots_file",
]
