#!/usr/bin/env python3
"""
ShiftCI CLI
-----------
Jenkins -> GitLab CI migration analysis and conversion.

Commands are modular (shiftci/cli/commands/); this module only parses
arguments, configures logging and dispatches.
"""

import sys
import argparse
import logging

from shiftci.core.engine import MigrationEngine
from shiftci.core.errors import ShiftCIError
from shiftci.ui.formatter import ShiftFormatter

from shiftci.cli.commands.base import (
    get_console,
    print_version,
    add_standard_flags,
    validate_required_arg,
    normalize_paths,
)
from shiftci.cli.commands.scan import handle_scan_command, handle_checklist_command
from shiftci.cli.commands.convert import handle_convert_command
from shiftci.cli.commands.secrets import handle_secrets_command
from shiftci.cli.commands.explain import handle_explain_command

console = get_console()
logger = logging.getLogger("shiftci.cli")

ENGINE_COMMANDS = ("scan", "convert", "secrets", "checklist")


def print_help():
    """
    Displays the main help menu.
    """
    from rich.table import Table
    console.print("\n[bold cyan]┌─ COMMANDS[/bold cyan]")
    cmd_table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
    cmd_table.add_column(style="bold green", width=12)
    cmd_table.add_column(style="white")
    cmd_table.add_row("scan", "Profile a Jenkinsfile and report GitLab compatibility (read-only)")
    cmd_table.add_row("convert", "Generate .gitlab-ci.yml, variable templates and checklist")
    cmd_table.add_row("secrets", "Inventory credentials and propose CI/CD variables")
    cmd_table.add_row("checklist", "Render the Markdown migration checklist")
    cmd_table.add_row("explain", "Show compatibility details for a Jenkins feature")
    cmd_table.add_row("version", "Display version info")
    console.print(cmd_table)

    console.print("\n[bold cyan]┌─ GLOBAL OPTIONS[/bold cyan]")
    opt_table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
    opt_table.add_column(style="yellow", width=24)
    opt_table.add_column(style="dim white")
    opt_table.add_row("-h, --help", "Display usage information")
    opt_table.add_row("-v, --version", "Display version information")
    opt_table.add_row("--verbose", "Show staged audit logs")
    opt_table.add_row("--pattern GLOB", "Jenkinsfile name pattern inside directories (Default: Jenkinsfile*)")
    console.print(opt_table)
    console.print("\n[bold magenta]💡 TIP[/bold magenta]")
    console.print("   Override the GitLab instance: [dim]SHIFTCI_GITLAB_URL=<url> shiftci convert ...[/dim]\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shiftci", add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-v", "--version", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    # SCAN
    scan_parser = subparsers.add_parser("scan", add_help=False)
    add_standard_flags(scan_parser)
    scan_parser.add_argument("--output", choices=["text", "json", "sarif"], default="text", help="Output format")
    scan_parser.add_argument("--advise", action="store_true", help="Request advisory text from the configured service")

    # CONVERT
    convert_parser = subparsers.add_parser("convert", add_help=False)
    add_standard_flags(convert_parser)
    convert_parser.add_argument("--dry-run", action="store_true", help="Print the YAML instead of writing files")
    convert_parser.add_argument("--out-dir", default=".", help="Directory for generated files")
    convert_parser.add_argument("--lint", action="store_true", help="Validate with the GitLab CI Lint API")
    convert_parser.add_argument("--advise", action="store_true", help="Request advisory text from the configured service")
    convert_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    # SECRETS
    secrets_parser = subparsers.add_parser("secrets", add_help=False)
    add_standard_flags(secrets_parser)
    secrets_parser.add_argument("--emit", choices=["table", "env", "script", "json"], default="table")

    # CHECKLIST
    checklist_parser = subparsers.add_parser("checklist", add_help=False)
    add_standard_flags(checklist_parser)
    checklist_parser.add_argument("--write", action="store_true", help="Write MIGRATION_CHECKLIST.md")
    checklist_parser.add_argument("--out-dir", default=".")

    # EXPLAIN
    explain_parser = subparsers.add_parser("explain", add_help=False)
    explain_parser.add_argument("feature", nargs="?", help="Feature key to explain (e.g., maven, hipchat)")
    explain_parser.add_argument("-h", "--help", action="store_true")

    subparsers.add_parser("version", add_help=False)
    return parser


def main(argv=None):
    """
    Primary orchestration logic for the CLI.
    """
    argv = sys.argv[1:] if argv is None else argv

    # Default: WARNING, Verbose: INFO
    log_level = logging.INFO if "--verbose" in argv else logging.WARNING
    logging.basicConfig(level=log_level, format="%(message)s")

    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)

    if unknown:
        console.print(f"[red]Error: Unrecognized arguments: {unknown}[/red]")
        print_help()
        return 1

    # Machine-readable output must stay clean
    if getattr(args, "output", "text") in ("json", "sarif") or getattr(args, "emit", "table") != "table":
        logging.getLogger().setLevel(logging.ERROR)

    if hasattr(args, "path") and args.path:
        args.path = normalize_paths(args.path)

    if args.version or args.command == "version":
        print_version()
        return 0

    if args.help or not args.command:
        if args.command in ENGINE_COMMANDS:
            console.print(f"\n[bold green]USAGE:[/bold green] [bold white]shiftci {args.command} <target...>[/bold white] [options]")
        elif args.command == "explain":
            console.print("\n[bold green]USAGE:[/bold green] [bold white]shiftci explain [feature][/bold white]")
        else:
            print_help()
        return 0

    if args.command == "explain":
        return handle_explain_command(args, console)

    if not validate_required_arg(args.path, "path", args.command,
                                 [f"shiftci {args.command} Jenkinsfile", f"shiftci {args.command} ."]):
        return 1

    try:
        engine = MigrationEngine(workspace_path=".", app_name="ShiftCI")
        formatter = ShiftFormatter(console)

        if args.command == "scan":
            return handle_scan_command(args, engine, formatter)
        if args.command == "convert":
            return handle_convert_command(args, engine, formatter)
        if args.command == "secrets":
            return handle_secrets_command(args, engine, formatter)
        if args.command == "checklist":
            return handle_checklist_command(args, engine, formatter)
    except (ShiftCIError, OSError) as e:
        console.print(f"[bold red]Fatal Error:[/bold red] {e}")
        logger.debug("Command failed", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
