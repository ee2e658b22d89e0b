"""Machine-readable tool schema for scripts and AI agents."""

from __future__ import annotations

from ._version import __version__

_COMMON_PROPERTIES = {
    "path": {
        "type": "string",
        "description": "Base directory to scan for repositories (default: current directory)",
        "default": ".",
    },
    "json": {
        "type": "boolean",
        "description": "Output as JSON for machine parsing",
        "default": False,
    },
    "workers": {
        "type": "integer",
        "description": "Repositories processed at once; 1 runs sequentially",
        "default": 1,
        "minimum": 1,
    },
    "timeout": {
        "type": "number",
        "description": "Seconds before a single git command is abandoned",
        "default": 10,
    },
    "roots": {
        "type": "string",
        "description": "Path to roots file. Auto-resolved from: $GIT_MUSTER_ROOTS → ~/.config/git-muster/roots",
    },
}

_STATUS_ITEM = {
    "type": "object",
    "properties": {
        "path": {"type": "string"},
        "name": {"type": "string"},
        "is_repository": {"type": "boolean"},
        "current_branch": {"type": ["string", "null"]},
        "remote_url": {"type": ["string", "null"]},
        "has_uncommitted_changes": {"type": "boolean"},
        "has_unpushed_commits": {"type": "boolean"},
        "working_tree_known": {"type": "boolean"},
        "error_message": {"type": "string"},
    },
}

_OPERATION_OUTPUT = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "name": {"type": "string"},
                    "operation": {"type": "string"},
                    "outcome": {"type": "string", "enum": ["success", "failed", "skipped"]},
                    "success": {"type": "boolean"},
                    "message": {"type": "string"},
                    "error": {"type": "string"},
                },
            },
        },
        "summary": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "success": {"type": "integer"},
                "failed": {"type": "integer"},
                "skipped": {"type": "integer"},
            },
        },
    },
}

_LISTING_OUTPUT = {
    "type": "object",
    "properties": {
        "repositories": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "name": {"type": "string"},
                    "branch": {"type": ["string", "null"]},
                    "lines": {"type": "array", "items": {"type": "string"}},
                    "error": {"type": "string"},
                },
            },
        }
    },
}


def _tool(name: str, description: str, output_schema: dict, **extra_properties: dict) -> dict:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": {**_COMMON_PROPERTIES, **extra_properties},
            "required": [],
        },
        "outputSchema": output_schema,
    }


def get_tool_schema() -> dict:
    """Generate the tool schema."""
    return {
        "name": "git-muster",
        "version": __version__,
        "description": "Inspect and synchronize every Git repository under a directory tree. Repositories are discovered by a .git entry; hidden directories and the inside of repositories are not searched. Repositories with uncommitted changes are never pushed.",
        "usage": "git-muster <command> [path] [options]",
        "tools": [
            _tool(
                "status",
                "Show branch, origin URL, uncommitted-change flag and unpushed flag for every repository. Unpushed means HEAD differs from origin/<branch> as last fetched, so a repository that is only behind is also reported. Does not fetch.",
                {
                    "type": "object",
                    "properties": {
                        "repositories": {"type": "array", "items": _STATUS_ITEM},
                        "summary": {
                            "type": "object",
                            "properties": {
                                "total": {"type": "integer"},
                                "clean": {"type": "integer"},
                                "dirty": {"type": "integer"},
                                "unpushed": {"type": "integer"},
                                "no_branch": {"type": "integer"},
                                "errors": {"type": "integer"},
                            },
                        },
                    },
                },
            ),
            _tool(
                "fetch",
                "Run 'git fetch' in every repository. Failures are reported per repository and never stop the batch.",
                _OPERATION_OUTPUT,
            ),
            _tool(
                "push",
                "Run 'git push' in every repository without uncommitted changes. Dirty repositories are reported as skipped; there is no override.",
                _OPERATION_OUTPUT,
            ),
            _tool(
                "uncommitted",
                "List repositories with uncommitted changes with the raw 'git status --porcelain' lines of each.",
                _LISTING_OUTPUT,
            ),
            _tool(
                "unpushed",
                "List repositories with unpushed commits with the raw 'git log --oneline origin/<branch>..HEAD' lines of each.",
                _LISTING_OUTPUT,
            ),
            {
                "name": "list",
                "description": "List discovered repository roots without running git.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": _COMMON_PROPERTIES["path"],
                        "json": _COMMON_PROPERTIES["json"],
                        "roots": _COMMON_PROPERTIES["roots"],
                        "paths": {
                            "type": "boolean",
                            "description": "Output only paths, one per line",
                            "default": False,
                        },
                    },
                    "required": [],
                },
            },
        ],
    }
