import json
import unittest
import urllib.error
from unittest import mock

from shiftci.integrations.advisor import AdvisorClient
from shiftci.integrations.http import MAX_ATTEMPTS, post_json
from shiftci.integrations.lint import LintClient
from shiftci.models import Priority, Recommendation


def response(body):
    """urlopen() context manager returning the given JSON-able body."""
    cm = mock.MagicMock()
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    cm.__enter__.return_value.read.return_value = raw
    return cm


def http_error(code):
    return urllib.error.HTTPError("http://svc", code, "error", {}, None)


class TestPostJson(unittest.TestCase):
    @mock.patch("urllib.request.urlopen")
    def test_success(self, urlopen):
        urlopen.return_value = response({"ok": True})
        result = post_json("http://svc/api", {"a": 1}, timeout=3)
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"ok": True})

        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(json.loads(request.data), {"a": 1})
        self.assertEqual(urlopen.call_args[1]["timeout"], 3)

    @mock.patch("urllib.request.urlopen")
    def test_transient_failure_retried_once(self, urlopen):
        urlopen.side_effect = [urllib.error.URLError("connection refused"), response({"ok": True})]
        result = post_json("http://svc/api", {}, timeout=1)
        self.assertTrue(result.ok)
        self.assertEqual(urlopen.call_count, 2)

    @mock.patch("urllib.request.urlopen")
    def test_persistent_failure_degrades(self, urlopen):
        urlopen.side_effect = http_error(503)
        result = post_json("http://svc/api", {}, timeout=1)
        self.assertEqual(result.status, "degraded")
        self.assertEqual(result.error, "HTTP 503")
        self.assertEqual(urlopen.call_count, MAX_ATTEMPTS)

    @mock.patch("urllib.request.urlopen")
    def test_client_error_not_retried(self, urlopen):
        urlopen.side_effect = http_error(400)
        result = post_json("http://svc/api", {}, timeout=1)
        self.assertEqual(result.status, "degraded")
        self.assertEqual(urlopen.call_count, 1)

    @mock.patch("urllib.request.urlopen")
    def test_rate_limit(self, urlopen):
        urlopen.side_effect = http_error(429)
        result = post_json("http://svc/api", {}, timeout=1)
        self.assertEqual(result.error, "Rate limit exceeded")

    @mock.patch("urllib.request.urlopen")
    def test_invalid_json(self, urlopen):
        urlopen.return_value = response(b"<html>")
        result = post_json("http://svc/api", {}, timeout=1)
        self.assertEqual(result.status, "degraded")
        self.assertIn("Invalid JSON", result.error)


class TestLintClient(unittest.TestCase):
    @mock.patch("urllib.request.urlopen")
    def test_empty_content_short_circuits(self, urlopen):
        result = LintClient().lint("   ")
        self.assertTrue(result.ok)
        self.assertFalse(result.data["valid"])
        urlopen.assert_not_called()

    @mock.patch("urllib.request.urlopen")
    def test_valid(self, urlopen):
        urlopen.return_value = response({"valid": True, "errors": [], "warnings": ["deprecated key"]})
        client = LintClient("https://gitlab.example.com/", token="secret")
        result = client.lint("stages: [build]\n")

        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"valid": True, "errors": [], "warnings": ["deprecated key"]})
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://gitlab.example.com/api/v4/ci/lint")
        self.assertEqual(request.get_header("Private-token"), "secret")
        self.assertTrue(json.loads(request.data)["include_merged_yaml"])

    @mock.patch("urllib.request.urlopen")
    def test_invalid(self, urlopen):
        urlopen.return_value = response({"valid": False, "errors": ["jobs config should contain at least one visible job"]})
        result = LintClient().lint("stages: []\n")
        self.assertTrue(result.ok)
        self.assertFalse(result.data["valid"])
        self.assertEqual(len(result.data["errors"]), 1)

    @mock.patch("urllib.request.urlopen")
    def test_unreachable(self, urlopen):
        urlopen.side_effect = urllib.error.URLError("no route to host")
        result = LintClient().lint("stages: [build]\n")
        self.assertEqual(result.status, "degraded")
        self.assertEqual(result.error, "no route to host")


class TestAdvisorClient(unittest.TestCase):
    def setUp(self):
        self.recs = [Recommendation("hipchat", "Replace HipChat", "Use Slack", Priority.HIGH, "notification")]

    @mock.patch("urllib.request.urlopen")
    def test_skipped_without_url(self, urlopen):
        result = AdvisorClient().advise(self.recs)
        self.assertEqual(result.status, "skipped")
        urlopen.assert_not_called()

    @mock.patch("urllib.request.urlopen")
    def test_advice_text(self, urlopen):
        urlopen.return_value = response({"text": "Start with the notification jobs."})
        result = AdvisorClient("http://advisor/v1").advise(self.recs, context={"migration_score": 50})
        self.assertTrue(result.ok)
        self.assertEqual(result.data, "Start with the notification jobs.")
        payload = json.loads(urlopen.call_args[0][0].data)
        self.assertEqual(payload["recommendations"][0]["priority"], "high")
        self.assertEqual(payload["context"], {"migration_score": 50})

    @mock.patch("urllib.request.urlopen")
    def test_missing_text_degrades(self, urlopen):
        urlopen.return_value = response({})
        result = AdvisorClient("http://advisor/v1").advise(self.recs)
        self.assertEqual(result.status, "degraded")


if __name__ == "__main__":
    unittest.main()
