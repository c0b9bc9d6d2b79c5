import unittest
from unittest.mock import MagicMock, patch

from notification import worker
from notification.exceptions import DeliveryConfigError
from notification.processor import ProcessingResult


class TestWorkerCli(unittest.TestCase):

    def test_parser_subcommands(self):
        parser = worker.build_parser()
        args = parser.parse_args(["rq", "--burst", "--queues", "notifications", "low"])
        self.assertEqual(args.command, "rq")
        self.assertTrue(args.burst)
        self.assertEqual(args.queues, ["notifications", "low"])

        with self.assertRaises(SystemExit):
            parser.parse_args([])

    @patch("notification.worker.AppContext")
    @patch("notification.worker.load_config")
    def test_process_runs_processor_once(self, mock_load_config, mock_context_cls):
        context = mock_context_cls.build.return_value
        context.processor.process_due.return_value = ProcessingResult(processed=2, succeeded=2)

        self.assertEqual(worker.main(["process"]), 0)
        context.processor.process_due.assert_called_once_with()

    @patch("notification.worker.run_cleanup", return_value={"deactivated_subscriptions": 0})
    @patch("notification.worker.AppContext")
    @patch("notification.worker.load_config")
    def test_cleanup(self, mock_load_config, mock_context_cls, mock_cleanup):
        self.assertEqual(worker.main(["cleanup"]), 0)
        context = mock_context_cls.build.return_value
        mock_cleanup.assert_called_once_with(context.session_factory, context.config)

    @patch("notification.worker.rotate_secrets", side_effect=DeliveryConfigError("placeholder"))
    @patch("notification.worker.AppContext")
    @patch("notification.worker.load_config")
    def test_rejected_rotation_exit_code(self, mock_load_config, mock_context_cls, mock_rotate):
        code = worker.main([
            "rotate-secrets", "--shared-secret", "x", "--gateway-key", "y", "--updated-by", "ops"
        ])
        self.assertEqual(code, 2)

    @patch("notification.worker.start_rq_worker")
    @patch("notification.worker.load_config")
    def test_rq_uses_configured_redis(self, mock_load_config, mock_start):
        mock_load_config.return_value = MagicMock()
        mock_load_config.return_value.notifications.redis_url = "redis://queue:6379/2"

        self.assertEqual(worker.main(["rq", "--burst"]), 0)
        mock_start.assert_called_once_with("redis://queue:6379/2", True, ["notifications"])


if __name__ == "__main__":
    unittest.main()
