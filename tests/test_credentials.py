import unittest

from shiftci.models import CredentialKind
from shiftci.parsers.credentials import (
    CONTEXT_LIMIT,
    analyze_credential_usage,
    credential_context,
    extract_credentials,
)

from jenkinsfiles import CREDENTIALS_ON_LINE_5, DECLARATIVE_MAVEN


class TestCredentialExtraction(unittest.TestCase):
    def test_credentials_helper_line_number(self):
        hits = extract_credentials(CREDENTIALS_ON_LINE_5)
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits[0].id, "API_TOKEN")
        self.assertEqual(hits[0].line, 5)
        self.assertEqual(hits[0].context, "API = credentials('API_TOKEN')")

    def test_no_credentials(self):
        self.assertEqual(extract_credentials(DECLARATIVE_MAVEN), [])
        self.assertEqual(extract_credentials(""), [])

    def test_binding_kinds(self):
        cases = {
            "usernamePassword(credentialsId: 'hub', usernameVariable: 'U', passwordVariable: 'P')":
                CredentialKind.USERNAME_PASSWORD,
            "string(credentialsId: 'slack-token', variable: 'T')": CredentialKind.SECRET_TEXT,
            "file(credentialsId: 'gcp-key', variable: 'GCP')": CredentialKind.FILE,
            "kubeconfigFile(credentialsId: 'kube', variable: 'KUBECONFIG')": CredentialKind.FILE,
            "sshUserPrivateKey(credentialsId: 'git-ssh', keyFileVariable: 'KEY')": CredentialKind.SSH_KEY,
            "sshagent(['deploy-key']) {": CredentialKind.SSH_KEY,
            "certificate(credentialsId: 'signing', keystoreVariable: 'KS')": CredentialKind.CERTIFICATE,
            "docker.withRegistry('https://registry.example.com', 'registry-creds') {":
                CredentialKind.USERNAME_PASSWORD,
            "withAWS(credentials: 'aws-ci', region: 'eu-west-1') {": CredentialKind.UNKNOWN,
        }
        for line, kind in cases.items():
            with self.subTest(line=line):
                hits = extract_credentials(line)
                self.assertEqual(len(hits), 1)
                self.assertEqual(hits[0].kind, kind)

    def test_multiple_bindings_on_one_line_ordered_by_column(self):
        line = ("withCredentials([usernamePassword(credentialsId: 'docker-hub', usernameVariable: 'U', "
                "passwordVariable: 'P'), file(credentialsId: 'kubeconfig-prod', variable: 'KUBECONFIG')]) {")
        hits = extract_credentials(line)
        self.assertEqual([h.id for h in hits], ["docker-hub", "kubeconfig-prod"])
        self.assertEqual([h.kind for h in hits], [CredentialKind.USERNAME_PASSWORD, CredentialKind.FILE])

    def test_same_id_at_several_call_sites(self):
        text = "A = credentials('API_TOKEN')\n\nB = credentials('API_TOKEN')"
        hits = extract_credentials(text)
        self.assertEqual([(h.id, h.line) for h in hits], [("API_TOKEN", 1), ("API_TOKEN", 3)])

    def test_context_truncated(self):
        line = "    X = credentials('LONG') // " + "x" * 200
        hit = extract_credentials(line)[0]
        self.assertEqual(len(hit.context), CONTEXT_LIMIT)
        self.assertTrue(hit.context.endswith("..."))
        self.assertTrue(hit.context.startswith("X = credentials"))


class TestCredentialUsage(unittest.TestCase):
    def test_summary(self):
        text = ("string(credentialsId: 'slack-token', variable: 'T')\n"
                "file(credentialsId: 'gcp-key', variable: 'GCP')\n"
                "file(credentialsId: 'gcp-key', variable: 'GCP')")
        usage = analyze_credential_usage(extract_credentials(text))
        self.assertEqual(usage["total"], 3)
        self.assertEqual(usage["unique"], 2)
        self.assertEqual(usage["by_kind"]["file"], 2)
        self.assertEqual(usage["by_kind"]["secretText"], 1)
        self.assertEqual(usage["potential_secrets"], ["gcp-key", "slack-token"])
        self.assertTrue(any("file-type" in a for a in usage["advice"]))

    def test_context_excerpt_marks_hit_line(self):
        hit = extract_credentials(CREDENTIALS_ON_LINE_5)[0]
        excerpt = credential_context(CREDENTIALS_ON_LINE_5, hit, radius=1).split("\n")
        self.assertEqual(len(excerpt), 3)
        self.assertTrue(excerpt[1].startswith(">   5 | "))


if __name__ == "__main__":
    unittest.main()
