"""
EXPLAIN COMMAND
---------------
Shows the knowledge base entry for a Jenkins feature key.
"""
from rich.markdown import Markdown
from rich.panel import Panel

from shiftci.core.knowledge import assess_compatibility, list_all
from shiftci.core.verdicts import analyze


def handle_explain_command(args, console):
    """
    Explains a specific feature or lists known features.
    """
    key = args.feature

    if not key:
        console.print("[bold cyan]Known Jenkins features:[/bold cyan]")
        for entry in list_all():
            console.print(f" - [bold]{entry.key}[/bold]: {entry.status.value}")
        console.print("\n[dim]Usage: shiftci explain <feature>[/dim]")
        return 0

    entry = assess_compatibility(key)
    verdict = analyze(key)

    risks = "\n".join(f"- **{r.severity.value}** {r.type.value}: {r.description}" for r in verdict.risks) or "- none"
    steps = "\n".join(f"{i}. {s}" for i, s in enumerate(verdict.migration_path.steps, start=1))
    alternatives = ", ".join(entry.alternatives) or "none"

    content = f"""
**Status:** {entry.status.value}

**GitLab equivalent:** {entry.target_equivalent or "none"}

**Alternatives:** {alternatives}

### Notes
{entry.notes}

### Risks
{risks}

### Migration path ({verdict.migration_path.complexity}, effort {verdict.migration_path.estimated_effort})
{steps}
"""
    if entry.documentation:
        content += f"\n[Documentation]({entry.documentation})\n"

    console.print(Panel(
        Markdown(content),
        title=f"[bold magenta]📜 Feature: {verdict.feature.display_name} ({key})[/bold magenta]",
        border_style="magenta"
    ))
    return 0
