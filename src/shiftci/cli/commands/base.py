"""
SHIFTCI CLI HELPERS
-------------------
Target collection, argument checks and the shared console.
"""

import os
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.panel import Panel

from shiftci import __version__
from shiftci.core.knowledge import KNOWLEDGE_BASE_VERSION

# Shared console for every command
console = Console()

DEFAULT_PATTERN = "Jenkinsfile*"


def get_console():
    return console


def add_standard_flags(sub):
    """Helper to inject path arguments and shared options into sub-parsers."""
    sub.add_argument("path", nargs="*", metavar="TARGET", help="Jenkinsfile(s) or directories to process ('-' for stdin)")
    sub.add_argument("--pattern", default=DEFAULT_PATTERN, help="File name pattern used inside directories")
    sub.add_argument("-h", "--help", action="store_true")
    sub.add_argument("--verbose", action="store_true", help="Show staged audit logs")


def validate_required_arg(value, arg_name: str, context: str, examples: list):
    """Prints a usage panel and returns False when a Jenkinsfile target is missing."""
    if value:
        return True

    lines = [
        f"[bold red]❌ No {arg_name} given[/bold red]",
        "",
        f"[bold]shiftci {context}[/bold] needs at least one Jenkinsfile, directory or '-' for stdin.",
    ]
    if examples:
        lines.append("")
        lines.append("[dim italic]Examples:[/dim italic]")
        lines.extend(f"  [cyan]{ex}[/cyan]" for ex in examples)

    console.print(Panel("\n".join(lines), border_style="red", title="[bold yellow]Missing Target[/bold yellow]", expand=False))
    return False


def normalize_paths(raw_paths):
    """Splits comma-joined targets: ["a,b", "c"] -> ["a", "b", "c"]."""
    return [part.strip() for raw in raw_paths or [] for part in raw.split(",") if part.strip()]


def collect_targets(paths: List[str], pattern: str = DEFAULT_PATTERN) -> List[str]:
    """
    Expands directories into matching Jenkinsfiles (sorted, relative to cwd).
    Files, '-' and missing paths pass through unchanged.
    """
    targets = []
    for target in paths:
        if target != "-" and os.path.isdir(target):
            found = sorted(p for p in Path(target).rglob(pattern) if p.is_file())
            targets.extend(os.path.relpath(p) for p in found)
        else:
            targets.append(target)
    return targets


def read_stdin() -> str:
    return sys.stdin.read()


def print_version():
    console.print(f"[bold cyan]ShiftCI[/bold cyan] {__version__} (knowledge base {KNOWLEDGE_BASE_VERSION})")
