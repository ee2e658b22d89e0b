"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from .core import Action, BatchSummary, ChangeListing, OperationResult, RepositoryStatus


LISTING_TITLES = {
    "uncommitted": "Repositories with Uncommitted Changes",
    "unpushed": "Repositories with Unpushed Commits",
}


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_batches(self, action: Action, batches: list[tuple[Path, list]]):
        """Print the results of one action over one or more base directories."""
        from .core import Action

        if self.use_json:
            payloads = [self._batch_payload(action, results) for _, results in batches]
            if len(batches) == 1:
                self._print_json(payloads[0])
            else:
                self._print_json(
                    {
                        "roots": [
                            {"root": str(root), **payload}
                            for (root, _), payload in zip(batches, payloads)
                        ]
                    }
                )
            return

        for root, results in batches:
            match action:
                case Action.STATUS:
                    self.print_status_list(results, root)
                case Action.FETCH | Action.PUSH:
                    self.print_operation_results(results, action.value, root)
                case _:
                    self.print_change_listings(results, action.value, root)

    def _batch_payload(self, action: Action, results: list) -> dict[str, Any]:
        from .core import Action, BatchSummary

        if action == Action.STATUS:
            return {
                "repositories": [s.to_dict() for s in results],
                "summary": BatchSummary.from_statuses(results).to_dict(),
            }
        if action in (Action.FETCH, Action.PUSH):
            return {
                "results": [r.to_dict() for r in results],
                "summary": {
                    "total": len(results),
                    "success": sum(1 for r in results if r.success),
                    "failed": sum(1 for r in results if not r.success and not r.skipped),
                    "skipped": sum(1 for r in results if r.skipped),
                },
            }
        return {"repositories": [listing.to_dict() for listing in results]}

    def _print_json(self, payload: dict):
        self.console.print(
            json.dumps(payload, indent=2, default=str),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )

    def _get_relative_path(self, path: Path, root: Path) -> str:
        """Get relative path from root."""
        try:
            return str(path.relative_to(root))
        except ValueError:
            return str(path)

    def print_status_list(self, statuses: list[RepositoryStatus], root_path: Path):
        """Print one row per repository: name, branch, remote, uncommitted, unpushed."""
        from .core import BatchSummary

        if not statuses:
            self.console.print(f"[dim]No repositories found in {root_path}[/]")
            return

        table = Table(title=f"Repository Status: {root_path}")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Branch")
        table.add_column("Remote")
        table.add_column("Uncommitted", justify="center")
        table.add_column("Unpushed", justify="center")

        for status in statuses:
            repo_display = self._get_relative_path(status.path, root_path)
            if status.error_message:
                table.add_row(
                    f"[red]{repo_display}[/]",
                    "[dim]unknown[/]",
                    "[dim]unknown[/]",
                    f"[red]✗ {status.error_message[:20]}[/]",
                    "",
                )
                continue
            table.add_row(
                repo_display,
                self._get_branch_display(status),
                status.remote_url or "[dim]none[/]",
                self._flag(status.has_uncommitted_changes)
                if status.working_tree_known
                else "[red]?[/]",
                self._flag(status.has_unpushed_commits),
            )

        self.console.print(table)
        self.console.print()
        self._print_summary(BatchSummary.from_statuses(statuses))

    def _get_branch_display(self, status: RepositoryStatus) -> str:
        if status.current_branch is None:
            return "[dim]unknown[/]"
        return f"[green]{status.current_branch}[/]"

    @staticmethod
    def _flag(value: bool) -> str:
        return "[yellow]YES[/]" if value else "[green]NO[/]"

    def _print_summary(self, summary: BatchSummary):
        """Print summary."""
        parts = [f"[bold]Total:[/] {summary.total}"]

        if summary.clean > 0:
            parts.append(f"[green]✓ Clean:[/] {summary.clean}")
        if summary.dirty > 0:
            parts.append(f"[yellow]✎ Uncommitted:[/] {summary.dirty}")
        if summary.unpushed > 0:
            parts.append(f"[yellow]⬆ Unpushed:[/] {summary.unpushed}")
        if summary.no_branch > 0:
            parts.append(f"[dim]No branch:[/] {summary.no_branch}")
        if summary.errors > 0:
            parts.append(f"[red]✗ Errors:[/] {summary.errors}")

        self.console.print(" | ".join(parts))

    def print_operation_results(
        self, results: list[OperationResult], operation: str, root_path: Path
    ):
        """Print fetch/push results as a table."""
        if not results:
            self.console.print(f"[dim]No repositories to {operation} in {root_path}[/]")
            return

        table = Table(title=f"{operation.title()} Results: {root_path}")
        table.add_column("Repository", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        success_count = 0
        for result in results:
            repo_display = self._get_relative_path(result.path, root_path)
            if result.success:
                success_count += 1
                status = "[green]✓[/]"
                message = result.message[:50] if result.message else "OK"
            elif result.skipped:
                status = "[yellow]⚠[/]"
                message = f"[yellow]{result.message}[/]"
            else:
                status = "[red]✗[/]"
                message = f"[red]{result.error[:50]}[/]" if result.error else "Failed"

            table.add_row(repo_display, status, message)

        self.console.print(table)
        skipped = sum(1 for r in results if r.skipped)
        line = f"\n[bold]Success:[/] {success_count}/{len(results)}"
        if skipped:
            line += f" [yellow]({skipped} skipped)[/]"
        self.console.print(line)

    def print_change_listings(self, listings: list[ChangeListing], kind: str, root_path: Path):
        """Print each repository followed by its raw status or log lines."""
        self.console.print(f"[bold]=== {LISTING_TITLES.get(kind, kind)}: {root_path} ===[/]")
        if not listings:
            self.console.print(f"[dim]No repositories with {kind} work[/]")
            return

        for listing in listings:
            self.console.print()
            self.console.print(
                f"[bold cyan]{self._get_relative_path(listing.path, root_path)}[/] "
                f"[dim]({listing.path})[/]"
            )
            if listing.error:
                self.console.print(f"   [red]✗ {listing.error}[/]")
            for line in listing.lines:
                # Raw git output: no markup, highlighting or wrapping.
                self.console.print(f"   {line}", markup=False, highlight=False, soft_wrap=True)

    def print_repo_lists(self, discovered: list[tuple[Path, list[Path]]]):
        """Print discovered repository roots."""
        if self.use_json:
            payloads = [
                {
                    "root": str(root),
                    "count": len(repos),
                    "repositories": [{"path": str(r), "name": r.name} for r in repos],
                }
                for root, repos in discovered
            ]
            self._print_json(payloads[0] if len(payloads) == 1 else {"roots": payloads})
            return

        for root, repos in discovered:
            self.console.print(f"[bold]Found {len(repos)} repositories in {root}[/]\n")
            for repo in repos:
                self.console.print(
                    f"  [cyan]{self._get_relative_path(repo, root)}[/]", highlight=False
                )
