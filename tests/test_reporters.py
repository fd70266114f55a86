import json
import os
import shutil
import tempfile
import unittest
from unittest import mock

from shiftci.core.engine import MigrationEngine
from shiftci.ui.reporters import JSONReporter, SARIFReporter

from jenkinsfiles import CREDENTIALS_ON_LINE_5, SCRIPTED_COMPLEX


@mock.patch.dict(os.environ, {}, clear=True)
class TestReporters(unittest.TestCase):
    def setUp(self):
        self.root = tempfile.mkdtemp()
        engine = MigrationEngine(self.root)
        self.results = {
            "processed_files": [
                engine.analyze_text(CREDENTIALS_ON_LINE_5, source_name="app/Jenkinsfile"),
                engine.analyze_text(SCRIPTED_COMPLEX, source_name="infra/Jenkinsfile"),
            ],
            "converted_count": 2,
        }

    def tearDown(self):
        shutil.rmtree(self.root)

    def test_json_report(self):
        report = json.loads(JSONReporter().generate(self.results, 0.5))
        self.assertEqual(report["metadata"]["tool"], "shiftci")
        self.assertEqual(report["summary"]["total_files"], 2)
        self.assertEqual(report["summary"]["converted_files"], 2)
        self.assertEqual(report["summary"]["total_credentials"], 2)
        self.assertGreater(report["summary"]["total_risks"], 0)
        self.assertEqual(len(report["results"]), 2)

    def test_sarif_report(self):
        sarif = json.loads(SARIFReporter().generate(self.results))
        self.assertEqual(sarif["version"], "2.1.0")
        run = sarif["runs"][0]
        rule_ids = [r["id"] for r in run["rules"]]
        self.assertEqual(len(rule_ids), len(set(rule_ids)))
        self.assertIn("shiftci/security", rule_ids)
        self.assertIn("shiftci/credential-reference", rule_ids)

        credential = [r for r in run["results"] if r["ruleId"] == "shiftci/credential-reference"][0]
        location = credential["locations"][0]["physicalLocation"]
        self.assertEqual(location["artifactLocation"]["uri"], "app/Jenkinsfile")
        self.assertEqual(location["region"]["startLine"], 5)
        for result in run["results"]:
            self.assertEqual(rule_ids[result["ruleIndex"]], result["ruleId"])

    def test_empty_results(self):
        sarif = json.loads(SARIFReporter().generate({"processed_files": []}))
        self.assertEqual(sarif["runs"][0]["results"], [])


if __name__ == "__main__":
    unittest.main()
