"""Tests for the CLI functionality."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import commit_file, make_fake_repos, make_published_repo, make_repo, requires_git
from git_muster import __version__
from git_muster.core import app

runner = CliRunner()


def test_no_command_prints_usage_and_succeeds() -> None:
    result = runner.invoke(app, [])

    assert result.exit_code == 0
    assert "uncommitted" in result.stdout
    assert "unpushed" in result.stdout


def test_unknown_command_is_a_usage_error() -> None:
    result = runner.invoke(app, ["frobnicate"])

    assert result.exit_code == 2
    assert "uncommitted" in result.stdout
    assert "unpushed" in result.stdout


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_schema_lists_every_command() -> None:
    result = runner.invoke(app, ["--schema"])

    assert result.exit_code == 0
    schema = json.loads(result.stdout)
    assert [tool["name"] for tool in schema["tools"]] == [
        "status",
        "fetch",
        "push",
        "uncommitted",
        "unpushed",
        "list",
    ]


def test_invalid_base_directory_exits_non_zero(tmp_path: Path) -> None:
    result = runner.invoke(app, ["status", str(tmp_path / "missing")])

    assert result.exit_code == 1
    assert "Not a directory" in result.stdout


def test_list_paths(tmp_path: Path) -> None:
    repos = make_fake_repos(tmp_path, "b", "a", ".hidden")

    result = runner.invoke(app, ["list", str(tmp_path), "--paths"])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [str(repos[1]), str(repos[0])]


def test_list_json(tmp_path: Path) -> None:
    make_fake_repos(tmp_path, "one", "outer", "outer/inner")

    result = runner.invoke(app, ["list", str(tmp_path), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["count"] == 2
    assert [r["name"] for r in payload["repositories"]] == ["one", "outer"]


def test_roots_file_scans_every_root(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    make_fake_repos(first, "alpha")
    make_fake_repos(second, "beta")
    roots_file = tmp_path / "roots"
    roots_file.write_text(f"# workspaces\n{first}\n\n{second}\n{tmp_path / 'gone'}\n")

    result = runner.invoke(app, ["list", "--roots", str(roots_file), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [root["root"] for root in payload["roots"]] == [str(first), str(second)]
    assert [root["repositories"][0]["name"] for root in payload["roots"]] == ["alpha", "beta"]


def test_empty_roots_file_is_an_error(tmp_path: Path) -> None:
    roots_file = tmp_path / "roots"
    roots_file.write_text("# nothing here\n")

    result = runner.invoke(app, ["status", "--roots", str(roots_file)])

    assert result.exit_code == 1
    assert "No valid roots" in result.stdout


@requires_git
def test_status_json(workspace: Path, remotes_dir: Path) -> None:
    make_published_repo(workspace, remotes_dir, "repoA")
    repo_b = make_repo(workspace / "repoB")
    commit_file(repo_b, "b.txt", "b\n", "Initial commit")
    (repo_b / "untracked.txt").write_text("scratch\n")

    result = runner.invoke(app, ["status", str(workspace), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    repo_a, repo_b_status = payload["repositories"]
    assert repo_a["name"] == "repoA"
    assert repo_a["current_branch"] == "main"
    assert repo_a["remote_url"] == str(remotes_dir / "repoA.git")
    assert repo_a["has_uncommitted_changes"] is False
    assert repo_a["has_unpushed_commits"] is False
    assert repo_b_status["has_uncommitted_changes"] is True
    assert repo_b_status["remote_url"] is None
    assert payload["summary"]["total"] == 2
    assert payload["summary"]["dirty"] == 1


@requires_git
def test_status_table(workspace: Path, remotes_dir: Path) -> None:
    make_published_repo(workspace, remotes_dir, "repoA")

    result = runner.invoke(app, ["status", str(workspace)])

    assert result.exit_code == 0
    assert "repoA" in result.stdout
    assert "main" in result.stdout


@requires_git
def test_push_json_skips_dirty_repository(workspace: Path, remotes_dir: Path) -> None:
    make_published_repo(workspace, remotes_dir, "repoA")
    repo_b = make_published_repo(workspace, remotes_dir, "repoB")
    (repo_b / "README.md").write_text("edited\n")

    result = runner.invoke(app, ["push", str(workspace), "--json", "--workers", "2"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    outcomes = {r["name"]: r["outcome"] for r in payload["results"]}
    assert outcomes == {"repoA": "success", "repoB": "skipped"}
    assert payload["summary"] == {"total": 2, "success": 1, "failed": 0, "skipped": 1}


@requires_git
def test_uncommitted_prints_raw_status_lines(workspace: Path, remotes_dir: Path) -> None:
    repo = make_published_repo(workspace, remotes_dir, "docs")
    (repo / "[draft].md").write_text("new\n")

    result = runner.invoke(app, ["uncommitted", str(workspace)])

    assert result.exit_code == 0
    assert "docs" in result.stdout
    assert '?? "[draft].md"' in result.stdout or "?? [draft].md" in result.stdout


@requires_git
def test_unpushed_prints_log_lines(workspace: Path, remotes_dir: Path) -> None:
    repo = make_published_repo(workspace, remotes_dir, "api")
    commit_file(repo, "api.py", "z = 3\n", "Wire up endpoint")

    result = runner.invoke(app, ["unpushed", str(workspace)])

    assert result.exit_code == 0
    assert "Wire up endpoint" in result.stdout


@requires_git
def test_fetch_reports_failure_for_missing_remote(workspace: Path, remotes_dir: Path) -> None:
    make_published_repo(workspace, remotes_dir, "good")
    orphan = make_published_repo(workspace, remotes_dir, "orphan")
    (remotes_dir / "orphan.git").rename(remotes_dir / "moved.git")

    result = runner.invoke(app, ["fetch", str(workspace), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    outcomes = {r["name"]: r["outcome"] for r in payload["results"]}
    assert outcomes == {"good": "success", "orphan": "failed"}
    assert orphan.name in result.stdout
