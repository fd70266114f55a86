"""
CONVERT COMMAND
---------------
Generates .gitlab-ci.yml (plus variable artifacts and checklist) from a
Jenkinsfile. --dry-run prints the YAML instead of writing files.
"""
import time

from shiftci.cli.commands.base import get_console
from shiftci.cli.commands.scan import run_targets
from shiftci.ui.reporters import JSONReporter


def handle_convert_command(args, engine, formatter):
    """
    Handles 'convert' subcommand execution.
    Exit code 1 when any generated document fails validation or lint.
    """
    console = get_console()
    start_time = time.time()
    results = run_targets(args, engine, lint=getattr(args, "lint", False), advise=getattr(args, "advise", False))

    if len(results) > 1 and not args.dry_run:
        console.print("[yellow]Multiple targets: writing each result to its own directory is not supported; "
                      "use --dry-run or convert one Jenkinsfile at a time.[/yellow]")
        return 1

    is_json = getattr(args, "output", "text") == "json"
    exit_code = 0

    for result in results:
        if "gitlab_ci" not in result:
            if not is_json:
                formatter.display_report(result)
            exit_code = 1
            continue

        if not result["success"]:
            exit_code = 1
        lint = result.get("lint", {})
        if lint.get("status") == "ok" and not (lint.get("data") or {}).get("valid", True):
            exit_code = 1

        if is_json:
            continue

        if args.dry_run:
            formatter.render_yaml(result["gitlab_ci"], title=f".gitlab-ci.yml ({result['file_path']})")
            formatter.display_report(result, verbose=getattr(args, "verbose", False))
        else:
            written = engine.write_outputs(result, args.out_dir)
            formatter.display_report(result, verbose=getattr(args, "verbose", False))
            for key, path in written.items():
                console.print(f"[green]✅ Wrote {path}[/green]")

    if is_json:
        data = {
            "processed_files": results,
            "converted_count": sum(1 for r in results if r.get("status") == "CONVERTED"),
        }
        print(JSONReporter().generate(data, time.time() - start_time))

    return exit_code
