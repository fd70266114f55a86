"""
ShiftCI REPORTERS
-----------------
Structured output generators for CI/CD integration.
"""
import json
import time
from typing import Any, Dict, List

from shiftci import __version__

# Risk severity -> SARIF level
_LEVELS = {"critical": "error", "high": "error", "medium": "warning", "low": "note"}


class JSONReporter:
    """Generates a standard JSON report of the execution."""

    def generate(self, results: Dict[str, Any], duration: float) -> str:
        processed = results.get("processed_files", [])

        total_risks = 0
        total_credentials = 0
        for f in processed:
            total_risks += sum(len(v.get("risks", [])) for v in f.get("verdicts", []))
            total_credentials += len(f.get("credentials", []))

        report = {
            "metadata": {
                "tool": "shiftci",
                "version": __version__,
                "timestamp": time.time(),
                "duration_seconds": duration
            },
            "summary": {
                "total_files": len(processed),
                "converted_files": results.get("converted_count", 0),
                "total_risks": total_risks,
                "total_credentials": total_credentials
            },
            "results": processed
        }
        return json.dumps(report, indent=2)


class SARIFReporter:
    """Generates GitHub Advanced Security compatible SARIF 2.1.0 output."""

    def generate(self, results: Dict[str, Any]) -> str:
        sarif_results: List[Dict[str, Any]] = []
        rules: List[Dict[str, Any]] = []
        rule_indices: Dict[str, int] = {}

        def register(rule_id: str, name: str, text: str, level: str) -> int:
            if rule_id not in rule_indices:
                rule_indices[rule_id] = len(rules)
                rules.append({
                    "id": rule_id,
                    "name": name,
                    "shortDescription": {"text": text},
                    "defaultConfiguration": {"level": level}
                })
            return rule_indices[rule_id]

        def location(uri: str, line: int) -> List[Dict[str, Any]]:
            return [{
                "physicalLocation": {
                    "artifactLocation": {"uri": uri},
                    "region": {"startLine": max(1, line)}
                }
            }]

        for file_data in results.get("processed_files", []):
            file_path = file_data.get("file_path", "unknown")

            for verdict in file_data.get("verdicts", []):
                key = verdict["feature"]["key"]
                for risk in verdict.get("risks", []):
                    rule_id = f"shiftci/{risk['type']}"
                    level = _LEVELS.get(risk["severity"], "warning")
                    index = register(rule_id, f"{risk['type']} risk", f"Migration {risk['type']} risk", level)
                    sarif_results.append({
                        "ruleId": rule_id,
                        "ruleIndex": index,
                        "level": level,
                        "message": {"text": f"[{key}] {risk['description']}"},
                        "locations": location(file_path, 1)
                    })

            for hit in file_data.get("credentials", []):
                rule_id = "shiftci/credential-reference"
                index = register(rule_id, "Credential reference",
                                 "Jenkins credential must be recreated as a GitLab CI/CD variable", "note")
                sarif_results.append({
                    "ruleId": rule_id,
                    "ruleIndex": index,
                    "level": "note",
                    "message": {"text": f"Credential '{hit['id']}' ({hit['kind']})"},
                    "locations": location(file_path, hit.get("line", 1))
                })

            for error in file_data.get("validation", {}).get("errors", []):
                rule_id = "shiftci/invalid-output"
                index = register(rule_id, "Invalid generated configuration",
                                 "Generated .gitlab-ci.yml failed structural validation", "error")
                sarif_results.append({
                    "ruleId": rule_id,
                    "ruleIndex": index,
                    "level": "error",
                    "message": {"text": error},
                    "locations": location(file_path, 1)
                })

        sarif = {
            "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
            "version": "2.1.0",
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": "ShiftCI",
                            "version": __version__,
                            "rules": rules
                        }
                    },
                    "results": sarif_results
                }
            ]
        }

        return json.dumps(sarif, indent=2)
