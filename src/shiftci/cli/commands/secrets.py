"""
SECRETS COMMAND
---------------
Inventories Jenkins credentials and proposes GitLab CI/CD variables.
Can emit the .env template or the provisioning script on stdout.
"""
import json

from rich.markup import escape

from shiftci.cli.commands.base import get_console
from shiftci.cli.commands.scan import run_targets


def handle_secrets_command(args, engine, formatter):
    console = get_console()
    results = run_targets(args, engine)
    exit_code = 0

    for result in results:
        if "variables" not in result:
            formatter.display_report(result)
            exit_code = 1
            continue

        validation = result["variables_validation"]
        if not validation["valid"]:
            exit_code = 1

        emit = getattr(args, "emit", "table")
        if emit == "env":
            print(result["env_file"], end="")
        elif emit == "script":
            print(result["provisioning_script"], end="")
        elif emit == "json":
            print(json.dumps({
                "file_path": result["file_path"],
                "credentials": result["credentials"],
                "variables": result["variables"],
                "validation": validation,
                "usage": result["credential_usage"],
            }, indent=2))
        else:
            console.print(f"\n[bold]{result['file_path']}[/bold]")
            if not result["variables"]:
                console.print("[green]No credential references found.[/green]")
                continue
            formatter.render_variables(result["variables"])
            if getattr(args, "verbose", False):
                for window in result["credential_audit"]:
                    console.print(f"[dim]{escape(window)}[/dim]\n")
            for advice in result["credential_usage"]["advice"]:
                console.print(f"[cyan]💡 {advice}[/cyan]")
            for error in validation["errors"]:
                console.print(f"[red]❌ {error}[/red]")
            for warning in validation["warnings"]:
                console.print(f"[yellow]⚠️  {warning}[/yellow]")

    return exit_code
