import unittest
from unittest.mock import MagicMock, patch

import requests

from hitcounter import cli
from hitcounter.server.database import StoreUnavailable


class TestSendTest(unittest.TestCase):
    @patch("hitcounter.cli.requests.post")
    def test_success(self, post):
        post.return_value = MagicMock(ok=True, status_code=200)
        post.return_value.json.return_value = {"success": True}
        self.assertEqual(cli.cmd_send_test("http://localhost:3000/log"), 0)
        _, kwargs = post.call_args
        self.assertEqual(kwargs["json"]["project"], "test-website")

    @patch("hitcounter.cli.requests.post")
    def test_error_response(self, post):
        post.return_value = MagicMock(ok=False, status_code=500)
        post.return_value.json.return_value = {"error": "Failed to save log data"}
        self.assertEqual(cli.cmd_send_test("http://localhost:3000/log"), 1)

    @patch("hitcounter.cli.requests.post", side_effect=requests.ConnectionError("refused"))
    def test_connection_refused(self, _post):
        self.assertEqual(cli.cmd_send_test("http://localhost:3000/log"), 1)


class TestRun(unittest.TestCase):
    @patch("hitcounter.cli.create_app")
    @patch("hitcounter.cli.EventStore")
    def test_refuses_to_start_without_store(self, store_cls, create_app):
        store_cls.return_value.connect.side_effect = StoreUnavailable("cannot reach MongoDB")
        self.assertEqual(cli.cmd_run(cli.Config(), host=None, port=None), 1)
        create_app.assert_not_called()

    @patch("hitcounter.cli.signal.signal")
    @patch("hitcounter.cli.create_app")
    @patch("hitcounter.cli.EventStore")
    def test_store_closed_after_serving(self, store_cls, create_app, _signal):
        self.assertEqual(cli.cmd_run(cli.Config(), host="127.0.0.1", port="8081"), 0)
        create_app.return_value.run.assert_called_once_with(host="127.0.0.1", port=8081, debug=False)
        store_cls.return_value.close.assert_called_once()


class TestParser(unittest.TestCase):
    def test_subcommands(self):
        ap = cli.build_parser()
        self.assertEqual(ap.parse_args(["report", "--hours", "6"]).hours, 6)
        self.assertEqual(ap.parse_args(["send-test"]).url, "http://localhost:3000/log")


if __name__ == "__main__":
    unittest.main()
