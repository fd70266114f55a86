"""
SCAN COMMAND
------------
Audits Jenkinsfiles for GitLab CI compatibility (read-only).
Also hosts the 'checklist' command, which renders the same analysis as a
Markdown migration checklist.
"""
import os
import time

from shiftci.cli.commands.base import collect_targets, get_console, read_stdin
from shiftci.ui.reporters import JSONReporter, SARIFReporter


def run_targets(args, engine, lint: bool = False, advise: bool = False):
    """Analyzes every target and returns the list of result dicts."""
    results = []
    for target in collect_targets(args.path, getattr(args, "pattern", "Jenkinsfile*")):
        if target == "-":
            results.append(engine.analyze_text(read_stdin(), source_name="<stdin>", lint=lint, advise=advise))
        elif os.path.isfile(target):
            results.append(engine.analyze_file(os.path.relpath(target), lint=lint, advise=advise))
        else:
            get_console().print(f"[red]❌ File not found: {target}[/red]")
            results.append({"success": False, "file_path": target, "status": "FILE_NOT_FOUND",
                            "error": "File not found"})
    return results


def handle_scan_command(args, engine, formatter):
    """
    Handles 'scan' subcommand execution.
    Exit code 1 when any file failed or needs significant work.
    """
    start_time = time.time()
    results = run_targets(args, engine, advise=getattr(args, "advise", False))

    output_fmt = getattr(args, 'output', 'text')
    if output_fmt in ["json", "sarif"]:
        data = {
            "processed_files": results,
            "converted_count": sum(1 for r in results if r.get("status") == "CONVERTED"),
        }
        if output_fmt == "json":
            print(JSONReporter().generate(data, time.time() - start_time))
        else:
            print(SARIFReporter().generate(data))
    elif len(results) == 1:
        formatter.display_report(results[0], verbose=getattr(args, 'verbose', False))
    else:
        formatter.print_final_table(results)

    failing = [
        r for r in results
        if not r.get("success")
        or (r.get("summary") or {}).get("migration_readiness") == "significant-work-needed"
    ]
    return 1 if failing else 0


def handle_checklist_command(args, engine, formatter):
    """Prints (or writes with --write) the Markdown migration checklist."""
    console = get_console()
    results = run_targets(args, engine)
    exit_code = 0
    for result in results:
        checklist = result.get("checklist")
        if not checklist:
            formatter.display_report(result)
            exit_code = 1
            continue
        if getattr(args, "write", False):
            path = engine.write_artifact("checklist", checklist, getattr(args, "out_dir", "."))
            console.print(f"[green]✅ Checklist written to {path}[/green]")
        else:
            formatter.render_markdown(checklist)
    return exit_code
