import unittest
from datetime import datetime, timezone

import yaml

from shiftci.core.secrets import map_to_variables
from shiftci.core.synthesizer import (
    CANONICAL_STAGES,
    GENERATED_ON_PREFIX,
    place_stage,
    render,
    select_stages,
    strip_generated_on,
    synthesize,
    validate_document,
)
from shiftci.core.verdicts import analyze_all
from shiftci.models import JobSpec, PipelineKind, TargetDocument, Tier
from shiftci.parsers.credentials import extract_credentials
from shiftci.parsers.scanner import scan

from jenkinsfiles import DECLARATIVE_DIRECTIVES, DECLARATIVE_MAVEN, SCRIPTED_COMPLEX


def build(text):
    profile = scan(text)
    specs = map_to_variables(extract_credentials(text))
    return synthesize(profile, analyze_all(profile), specs)


class TestStageSelection(unittest.TestCase):
    def test_table(self):
        self.assertEqual(select_stages(Tier.SIMPLE, PipelineKind.SCRIPTED), ("build", "test"))
        self.assertEqual(select_stages(Tier.MEDIUM, PipelineKind.DECLARATIVE),
                         ("build", "test", "quality", "deploy"))
        self.assertEqual(select_stages(Tier.MEDIUM, PipelineKind.SCRIPTED),
                         ("prepare", "build", "test", "quality", "deploy"))
        self.assertEqual(select_stages(Tier.COMPLEX, PipelineKind.UNKNOWN), CANONICAL_STAGES)

    def test_place_stage_falls_back_to_earlier_stage(self):
        doc = TargetDocument(stages=("build", "test"))
        self.assertEqual(place_stage(doc, "test"), "test")
        self.assertEqual(place_stage(doc, "package"), "test")
        self.assertEqual(place_stage(doc, "prepare"), "build")


class TestSynthesize(unittest.TestCase):
    def test_simple_maven(self):
        doc = build(DECLARATIVE_MAVEN)
        self.assertEqual(doc.stages, ("build", "test"))
        self.assertEqual(list(doc.jobs), ["build:app", "test:unit"])
        self.assertEqual(doc.default_image, "maven:3.8-openjdk-11")
        self.assertIn("MAVEN_OPTS", doc.variables)
        self.assertIn("mvn -B test", doc.jobs["test:unit"].script)
        self.assertIn("junit", doc.jobs["test:unit"].artifacts["reports"])
        self.assertTrue(doc.validation.valid)

    def test_complex_scripted(self):
        doc = build(SCRIPTED_COMPLEX)
        self.assertEqual(doc.stages, CANONICAL_STAGES)
        for name in ("build:app", "test:unit", "deploy:staging", "package:docker", "quality:sonar", "notify:slack"):
            self.assertIn(name, doc.jobs)
        self.assertEqual(doc.jobs["notify:slack"].stage, "cleanup")
        self.assertEqual(doc.jobs["deploy:staging"].only, ("main", "develop"))
        self.assertIn("Code-Quality.gitlab-ci.yml", doc.include)
        self.assertIn("Security/Container-Scanning.gitlab-ci.yml", doc.include)
        for name in ("SONAR_TOKEN", "SLACK_WEBHOOK_URL", "REGISTRY_TOKEN"):
            self.assertIn(name, doc.required_variables)
        self.assertTrue(any(note.startswith("Scripted pipeline detected") for note in doc.notes))
        self.assertTrue(doc.validation.valid, doc.validation.errors)

    def test_every_job_uses_a_declared_stage(self):
        for text in (DECLARATIVE_MAVEN, SCRIPTED_COMPLEX, DECLARATIVE_DIRECTIVES, ""):
            doc = build(text)
            for name, job in doc.jobs.items():
                self.assertIn(job.stage, doc.stages, name)

    def test_directives(self):
        doc = build(DECLARATIVE_DIRECTIVES)
        self.assertEqual(doc.stages, ("build", "test", "quality", "deploy"))
        self.assertEqual(doc.variables["TARGET_ENV"], "staging")
        self.assertEqual(doc.variables["SKIP_TESTS"], "false")
        self.assertEqual(doc.variables["REGION"], "eu-west-1")
        self.assertEqual(doc.variables["APP_NAME"], "shop")
        self.assertNotIn("DB_PASSWORD", doc.variables)
        self.assertIn("DB_PASSWORD", doc.required_variables)
        self.assertEqual(len(doc.workflow_rules), 3)

        matrix = doc.jobs["test:matrix"]
        self.assertEqual(matrix.parallel_matrix, (("JDK", ("11", "17")),))
        self.assertEqual(doc.jobs["deploy:staging"].only, ("release",))
        self.assertEqual(doc.jobs["notify:slack"].stage, "deploy")
        for job in doc.jobs.values():
            self.assertEqual(job.retry, 2)
            self.assertEqual(job.timeout, "120 minutes")
        self.assertTrue(doc.validation.valid)

    def test_placeholder_scripts(self):
        doc = build("pipeline {\n  agent any\n}")
        self.assertIn('echo "Add your build commands here"', doc.jobs["build:app"].script)

    def test_retired_features_get_review_notes(self):
        doc = build("sh 'mvn package'\nhipchatSend 'done'\n@Library('shared') _")
        notes = "\n".join(doc.notes)
        self.assertIn("MANUAL REVIEW: HipChat is abandoned (consider slack)", notes)
        self.assertIn("MANUAL REVIEW: Shared Library is unknown", notes)

    def test_deterministic(self):
        self.assertEqual(build(SCRIPTED_COMPLEX), build(SCRIPTED_COMPLEX))


class TestValidateDocument(unittest.TestCase):
    def test_empty_document(self):
        result = validate_document(TargetDocument(stages=()))
        self.assertFalse(result.valid)
        self.assertIn("No stages defined", result.errors)
        self.assertIn("No jobs defined", result.errors)

    def test_undeclared_stage(self):
        doc = TargetDocument(stages=("build",), jobs={"ship": JobSpec(stage="deploy", script=("./ship.sh",))})
        result = validate_document(doc)
        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ("Job 'ship' references undefined stage 'deploy'",))

    def test_undefined_variable_is_a_warning(self):
        doc = TargetDocument(stages=("build",), variables={"KNOWN": "1"}, jobs={
            "build": JobSpec(stage="build", script=("echo $KNOWN ${UNKNOWN} $CI_COMMIT_SHA",)),
        })
        result = validate_document(doc)
        self.assertTrue(result.valid)
        self.assertEqual(result.warnings, ("Job 'build' uses undefined variable $UNKNOWN",))


class TestRender(unittest.TestCase):
    def setUp(self):
        self.doc = build(SCRIPTED_COMPLEX)

    def test_header_and_structure(self):
        text = render(self.doc, generated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        lines = text.split("\n")
        self.assertEqual(lines[0], "# GitLab CI configuration converted from Jenkinsfile")
        self.assertEqual(lines[1], GENERATED_ON_PREFIX + "2024-01-01T00:00:00+00:00")
        self.assertIn("#   - SONAR_TOKEN", text)

        loaded = yaml.safe_load(text)
        keys = list(loaded)
        self.assertEqual(loaded["stages"], list(CANONICAL_STAGES))
        self.assertLess(keys.index("include"), keys.index("stages"))
        self.assertLess(keys.index("stages"), keys.index("build:app"))
        self.assertEqual(loaded["include"][0], {"template": "Code-Quality.gitlab-ci.yml"})
        self.assertEqual(loaded["build:app"]["stage"], "build")

    def test_only_timestamp_differs(self):
        first = render(self.doc, generated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        second = render(self.doc, generated_at=datetime(2025, 6, 1, tzinfo=timezone.utc))
        self.assertNotEqual(first, second)
        self.assertEqual(strip_generated_on(first), strip_generated_on(second))

    def test_matrix_rendering(self):
        loaded = yaml.safe_load(render(build(DECLARATIVE_DIRECTIVES)))
        self.assertEqual(loaded["test:matrix"]["parallel"], {"matrix": [{"JDK": ["11", "17"]}]})
        self.assertEqual(loaded["variables"]["SKIP_TESTS"], "false")
        self.assertEqual(loaded["deploy:staging"]["only"], ["release"])


if __name__ == "__main__":
    unittest.main()
