import time
import unittest

from shiftci.models import PipelineKind, Tier
from shiftci.parsers.pipeline import brace_index, find_blocks
from shiftci.parsers.scanner import (
    FEATURE_PATTERNS,
    MANY_FEATURES_WARNING,
    SCRIPTED_PIPELINE_WARNING,
    derive_tier,
    detect_kind,
    scan,
)

from jenkinsfiles import DECLARATIVE_DIRECTIVES, DECLARATIVE_MAVEN, SCRIPTED_COMPLEX


class TestPipelineKind(unittest.TestCase):
    def test_declarative(self):
        self.assertEqual(detect_kind(DECLARATIVE_MAVEN), PipelineKind.DECLARATIVE)

    def test_scripted(self):
        self.assertEqual(detect_kind("node('linux') {\n  sh 'make'\n}"), PipelineKind.SCRIPTED)

    def test_scripted_dominates_declarative(self):
        """Both markers present -> scripted"""
        text = "pipeline {\n  agent any\n}\nnode {\n  sh 'make'\n}"
        self.assertEqual(detect_kind(text), PipelineKind.SCRIPTED)

    def test_no_markers(self):
        self.assertEqual(detect_kind("echo hello"), PipelineKind.UNKNOWN)


class TestTierDerivation(unittest.TestCase):
    def test_thresholds(self):
        cases = [
            (PipelineKind.DECLARATIVE, 5, 100, Tier.SIMPLE),
            (PipelineKind.DECLARATIVE, 6, 10, Tier.MEDIUM),
            (PipelineKind.DECLARATIVE, 11, 10, Tier.COMPLEX),
            (PipelineKind.SCRIPTED, 0, 10, Tier.MEDIUM),
            (PipelineKind.SCRIPTED, 6, 10, Tier.COMPLEX),
            (PipelineKind.DECLARATIVE, 0, 101, Tier.MEDIUM),
            (PipelineKind.DECLARATIVE, 9, 101, Tier.COMPLEX),
            (PipelineKind.UNKNOWN, 0, 201, Tier.COMPLEX),
        ]
        for kind, features, lines, expected in cases:
            with self.subTest(kind=kind, features=features, lines=lines):
                self.assertEqual(derive_tier(kind, features, lines), expected)

    def test_more_features_never_lowers_tier(self):
        for kind in PipelineKind:
            ranks = [derive_tier(kind, n, 50).rank for n in range(0, 20)]
            self.assertEqual(ranks, sorted(ranks))

    def test_more_lines_never_lowers_tier(self):
        for kind in PipelineKind:
            for features in (0, 3, 5, 6, 8, 9, 11, 20):
                with self.subTest(kind=kind, features=features):
                    ranks = [derive_tier(kind, features, n).rank for n in range(1, 301)]
                    self.assertEqual(ranks, sorted(ranks))


class TestScan(unittest.TestCase):
    def test_empty_text(self):
        profile = scan("")
        self.assertEqual(profile.line_count, 1)
        self.assertEqual(profile.feature_count, 0)
        self.assertEqual(profile.complexity_tier, Tier.SIMPLE)
        self.assertEqual(profile.warnings, ())
        self.assertEqual(profile.pipeline_kind, PipelineKind.UNKNOWN)

    def test_simple_declarative(self):
        profile = scan(DECLARATIVE_MAVEN)
        self.assertEqual(profile.feature_keys, ["maven", "junit"])
        self.assertEqual(profile.complexity_tier, Tier.SIMPLE)
        self.assertEqual(profile.warnings, ())

    def test_scripted_twelve_features_is_complex(self):
        profile = scan(SCRIPTED_COMPLEX)
        self.assertEqual(profile.pipeline_kind, PipelineKind.SCRIPTED)
        self.assertEqual(profile.feature_count, 12)
        self.assertEqual(profile.complexity_tier, Tier.COMPLEX)
        self.assertIn(SCRIPTED_PIPELINE_WARNING, profile.warnings)
        self.assertNotIn(MANY_FEATURES_WARNING, profile.warnings)

    def test_hits_follow_pattern_table_order(self):
        profile = scan(SCRIPTED_COMPLEX)
        table_order = [p.key for p in FEATURE_PATTERNS]
        indices = [table_order.index(k) for k in profile.feature_keys]
        self.assertEqual(indices, sorted(indices))

    def test_repeated_usage_reported_once(self):
        text = "sh 'mvn clean'\nsh 'mvn test'\nsh 'mvn deploy'"
        self.assertEqual(scan(text).feature_keys, ["maven"])

    def test_many_features_warning(self):
        text = "\n".join([
            "sh 'mvn package'", "sh './gradlew build'", "sh 'npm install'", "junit 'x.xml'",
            "jacoco()", "cobertura()", "findbugs()", "withVault([])", "sh 'trivy image x'",
            "sshagent(['k'])", "sh 'docker build .'", "sh 'kubectl apply'", "sh 'helm install x'",
            "slackSend channel: 'c'", "hipchatSend 'x'", "archiveArtifacts 'x'",
        ])
        profile = scan(text)
        self.assertGreater(profile.feature_count, 15)
        self.assertIn(MANY_FEATURES_WARNING, profile.warnings)

    def test_deterministic(self):
        self.assertEqual(scan(SCRIPTED_COMPLEX), scan(SCRIPTED_COMPLEX))

    def test_garbage_input_does_not_raise(self):
        profile = scan("}}}{{{ ((( '\"\x00")
        self.assertEqual(profile.pipeline_kind, PipelineKind.UNKNOWN)


class TestDirectiveExtraction(unittest.TestCase):
    def setUp(self):
        self.details = scan(DECLARATIVE_DIRECTIVES).details

    def test_parameters(self):
        params = {p.name: p for p in self.details.parameters}
        self.assertEqual(list(params), ["TARGET_ENV", "SKIP_TESTS", "REGION", "DB_PASSWORD"])
        self.assertEqual(params["TARGET_ENV"].default, "staging")
        self.assertEqual(params["SKIP_TESTS"].type, "boolean")
        self.assertEqual(params["SKIP_TESTS"].default, "false")
        self.assertEqual(params["REGION"].choices, ("eu-west-1", "us-east-1"))
        self.assertEqual(params["REGION"].default, "eu-west-1")
        self.assertEqual(params["DB_PASSWORD"].type, "password")

    def test_environment(self):
        self.assertEqual(dict(self.details.environment), {"APP_NAME": "shop", "LOG_LEVEL": "info"})

    def test_matrix_axes(self):
        self.assertEqual(self.details.matrix_axes, (("JDK", ("11", "17")),))

    def test_options(self):
        self.assertEqual(self.details.timeout_minutes, 120)
        self.assertEqual(self.details.retry, 3)
        self.assertEqual(dict(self.details.build_discarder), {"num_to_keep": 10, "artifact_days_to_keep": 7})

    def test_post_and_when(self):
        post = dict(self.details.post_actions)
        self.assertEqual(list(post), ["always", "failure"])
        self.assertEqual(post["always"], ("cleanWs()",))
        self.assertEqual(self.details.when_conditions, (("branch", "release"),))

    def test_parallel_stages(self):
        declarative = """stage('Checks') {
    parallel {
        stage('Lint') { steps { sh 'make lint' } }
        stage('Unit Tests') { steps { sh 'make test' } }
    }
}"""
        scripted = "parallel('unit': { sh 'make test' }, 'lint': { sh 'make lint' })"
        self.assertEqual(scan(declarative).details.parallel_stages, ("Lint", "Unit Tests"))
        self.assertEqual(scan(scripted).details.parallel_stages, ("unit", "lint"))

    def test_unbalanced_braces_yield_empty_fields(self):
        details = scan("parameters {\n  string(name: 'X'\nenvironment {").details
        self.assertEqual(details.parameters, ())
        self.assertEqual(details.environment, ())

    def test_nested_blocks_reported_once(self):
        text = "when {\n  branch 'main'\n  when { branch 'dev' }\n}\nwhen { branch 'release' }"
        self.assertEqual(
            scan(text).details.when_conditions,
            (("branch", "main"), ("branch", "dev"), ("branch", "release")),
        )

    def test_environment_ignores_blank_lines(self):
        text = "environment {" + "\n" * 500 + "  A = 'x'\n}"
        self.assertEqual(scan(text).details.environment, (("A", "x"),))


class TestBraceMatching(unittest.TestCase):
    def test_index_pairs_nearest_open_brace(self):
        self.assertEqual(brace_index("{ { } }"), {0: 6, 2: 4})
        self.assertEqual(brace_index("} { { }"), {4: 6})

    def test_find_blocks_skips_unmatched_headers(self):
        self.assertEqual(find_blocks("post { post {\n x }", r"\bpost"), ["\n x "])

    def test_scan_time_grows_linearly(self):
        def best_of_three(text):
            timings = []
            for _ in range(3):
                start = time.perf_counter()
                scan(text)
                timings.append(time.perf_counter() - start)
            return min(timings)

        for unit in ("when {\n", "stage('x') { when { branch 'a' }\n"):
            with self.subTest(unit=unit):
                small = best_of_three(unit * 4000)
                large = best_of_three(unit * 16000)
                # 4x the input; a quadratic pass would take about 16x
                self.assertLess(large, max(small, 0.005) * 10)


if __name__ == "__main__":
    unittest.main()
