"""
ShiftCI FORMATTER
-----------------
Renders migration reports using 'rich'.
Profile panel, verdict table, credential inventory, generated YAML and
staged audit logs.
"""

from typing import Any, Dict, List, Optional
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

_STATUS_STYLE = {
    "active": "green",
    "maintenance": "yellow",
    "deprecated": "red",
    "abandoned": "bold red",
    "unknown": "magenta",
}

_READINESS_STYLE = {
    "ready": "green",
    "needs-preparation": "yellow",
    "significant-work-needed": "red",
}

_PRIORITY_STYLE = {"high": "bold red", "medium": "yellow", "low": "dim"}


class ShiftFormatter:
    """
    Renders migration reports for a single Jenkinsfile or a batch.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_report(self, result: Dict[str, Any], verbose: bool = False):
        """
        Renders the full report for one analyzed file.

        Args:
            result: Result dict from MigrationEngine.analyze_file()
            verbose: If True, shows the staged audit trail.
        """
        status = result.get("status", "UNKNOWN")
        file_path = result.get("file_path", "Unknown")

        if status in ["ENGINE_ERROR", "FILE_NOT_FOUND", "SECURITY_ERROR", "INPUT_TOO_LARGE"]:
            self.display_error(file_path, result.get("error", "Unknown error"), status)
            return
        if status == "IGNORED":
            self.console.print(f"[dim]Skipped {file_path} (ignored by config)[/dim]")
            return

        profile = result["profile"]
        summary = result["summary"]
        readiness = summary["migration_readiness"]
        color = _READINESS_STYLE.get(readiness, "white")

        self.console.print(Panel(
            f"[bold]Pipeline:[/bold] {profile['pipeline_kind']}  "
            f"[bold]Tier:[/bold] {profile['complexity_tier']}  "
            f"[bold]Lines:[/bold] {profile['line_count']}  "
            f"[bold]Features:[/bold] {profile['feature_count']}\n"
            f"[bold]Readiness:[/bold] [{color}]{readiness}[/{color}]  "
            f"[bold]Score:[/bold] {summary['migration_score']}/100",
            title=f"[bold {color}]{file_path}[/bold {color}]",
            border_style=color,
            expand=True
        ))

        for warning in profile.get("warnings", []):
            self.console.print(f"[yellow]⚠️  {warning}[/yellow]")

        self.render_verdicts(result.get("verdicts", []))
        self.render_recommendations(result.get("recommendations", []))

        if result.get("variables"):
            self.render_variables(result["variables"])

        validation = result.get("validation", {})
        for error in validation.get("errors", []):
            self.console.print(f"[bold red]❌ {error}[/bold red]")

        lint = result.get("lint", {})
        if lint.get("status") == "degraded":
            self.console.print(f"[yellow]CI lint unavailable: {lint.get('error')}[/yellow]")
        elif lint.get("status") == "ok" and lint.get("data"):
            ok = lint["data"].get("valid")
            self.console.print("[green]✅ GitLab CI lint passed[/green]" if ok
                               else f"[red]GitLab CI lint failed: {lint['data'].get('errors')}[/red]")

        advisory = result.get("advisory", {})
        if advisory.get("status") == "ok":
            self.console.print(Panel(Markdown(advisory["data"]), title="Advisory", border_style="cyan"))

        if verbose:
            self._render_staged_logs(result.get("logic_logs", []), file_path)

    def render_verdicts(self, verdicts: List[Dict[str, Any]]):
        if not verdicts:
            self.console.print("[dim]No Jenkins features detected.[/dim]")
            return
        table = Table(title="Feature Compatibility", show_lines=False)
        table.add_column("Feature", style="bold")
        table.add_column("Category")
        table.add_column("Status")
        table.add_column("GitLab Equivalent")
        table.add_column("Risks", justify="right")
        table.add_column("Effort")
        for v in verdicts:
            status = v["compatibility"]["status"]
            style = _STATUS_STYLE.get(status, "white")
            table.add_row(
                v["feature"]["display_name"],
                v["feature"]["category"],
                f"[{style}]{status}[/{style}]",
                v["compatibility"].get("target_equivalent") or "[dim]-[/dim]",
                str(len(v["risks"])),
                v["migration_path"]["estimated_effort"],
            )
        self.console.print(table)

    def render_recommendations(self, recommendations: List[Dict[str, Any]], limit: int = 10):
        if not recommendations:
            return
        tree = Tree("[bold cyan]Recommendations[/bold cyan]")
        for rec in recommendations[:limit]:
            style = _PRIORITY_STYLE.get(rec["priority"], "white")
            node = tree.add(f"[{style}]{rec['priority'].upper()}[/{style}] {rec['title']}")
            if rec.get("description"):
                node.add(f"[dim]{rec['description']}[/dim]")
        if len(recommendations) > limit:
            tree.add(f"[dim]... {len(recommendations) - limit} more[/dim]")
        self.console.print(tree)

    def render_variables(self, variables: List[Dict[str, Any]]):
        table = Table(title="GitLab CI/CD Variables")
        table.add_column("Key", style="bold cyan")
        table.add_column("Jenkins ID")
        table.add_column("Type")
        table.add_column("Masked", justify="center")
        table.add_column("Protected", justify="center")
        table.add_column("Scope")
        for spec in variables:
            table.add_row(
                spec["proposed_key"],
                spec["original_id"],
                spec["type"],
                "✔" if spec["masked"] else "",
                "✔" if spec["protected"] else "",
                spec["environment_scope"],
            )
        self.console.print(table)

    def render_yaml(self, content: str, title: str = ".gitlab-ci.yml"):
        self.console.print(Panel(
            Syntax(content, "yaml", theme="monokai", line_numbers=True),
            title=f"[bold]{title}[/bold]",
            border_style="cyan"
        ))

    def render_markdown(self, content: str):
        self.console.print(Markdown(content))

    def _render_staged_logs(self, logs: List[str], file_path: str):
        tree = Tree(f"[bold]Audit trail: {file_path}[/bold]")
        for log in logs:
            if log.startswith("ERROR"):
                tree.add(f"[red]{log}[/red]")
            elif log.startswith("WARNING"):
                tree.add(f"[yellow]{log}[/yellow]")
            else:
                tree.add(log)
        self.console.print(tree)

    def print_final_table(self, results: List[Dict[str, Any]]):
        """Batch summary: one row per file."""
        table = Table(title="Migration Summary")
        table.add_column("File", style="bold")
        table.add_column("Status")
        table.add_column("Tier")
        table.add_column("Features", justify="right")
        table.add_column("Credentials", justify="right")
        table.add_column("Readiness")
        for r in results:
            profile = r.get("profile") or {}
            summary = r.get("summary") or {}
            readiness = summary.get("migration_readiness", "-")
            style = _READINESS_STYLE.get(readiness, "white")
            table.add_row(
                r.get("file_path", "?"),
                r.get("status", "?"),
                profile.get("complexity_tier", "-"),
                str(profile.get("feature_count", "-")),
                str(len(r.get("credentials", []))),
                f"[{style}]{readiness}[/{style}]",
            )
        self.console.print(table)

    def display_error(self, file_path: str, error: str, status: str):
        self.console.print(Panel(
            f"[bold red]{status}[/bold red]\n{error}",
            title=f"[red]{file_path}[/red]",
            border_style="red"
        ))
