"""CLI tests for verify, probe and show-config commands."""

import json
import sys
import tempfile
import unittest
from concurrent.futures import Future
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

sys.path.insert(0, str(Path(__file__).parent.parent))

from gi_verifier.cli import cli, setup_logging
from gi_verifier.config_loader import DEFAULT_CONFIG
from gi_verifier.errors import VerificationFailedError
from gi_verifier.models import ExtractionResult, Source


def _done(result=None, error=None):
    future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return future


GENUINE = ExtractionResult(
    "GI-1",
    Source.PRIMARY,
    attributes={"Region": "Kashmir"},
    authorized_user="Jane Doe",
    artisan="John Roe",
)


@patch("gi_verifier.cli.setup_logging")
@patch("gi_verifier.cli.ensure_directories")
@patch("gi_verifier.cli.load_config", return_value={"logging": {}})
class TestCliVerify(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    @patch("gi_verifier.cli.VerificationService")
    def test_verify_prints_results(self, mock_service_cls, *_mocks):
        service = MagicMock()
        service.scrape_product.side_effect = lambda code: _done(
            GENUINE if code == "GI-1" else ExtractionResult.invalid_for(code, Source.SECONDARY)
        )
        mock_service_cls.from_config.return_value = service

        result = self.runner.invoke(cli, ["verify", "GI-1", "GI-2"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("GI-1: verified (source: primary)", result.output)
        self.assertIn("authorized_user: Jane Doe", result.output)
        self.assertIn("Region: Kashmir", result.output)
        self.assertIn("GI-2: NOT GENUINE (source: secondary)", result.output)
        self.assertEqual([c.args[0] for c in service.scrape_product.call_args_list], ["GI-1", "GI-2"])
        self.assertIsNone(mock_service_cls.from_config.call_args.kwargs["headless"])

    @patch("gi_verifier.cli.VerificationService")
    def test_verify_json_and_failure_exit_code(self, mock_service_cls, *_mocks):
        service = MagicMock()
        failure = VerificationFailedError("GI-3", RuntimeError("p down"), RuntimeError("s down"))
        service.scrape_product.side_effect = lambda code: (
            _done(GENUINE) if code == "GI-1" else _done(error=failure)
        )
        mock_service_cls.from_config.return_value = service

        result = self.runner.invoke(cli, ["verify", "GI-1", "GI-3", "--json", "--no-headless"])

        self.assertEqual(result.exit_code, 1)
        payload = json.loads(result.stdout)
        self.assertEqual(payload["results"][0]["product_code"], "GI-1")
        self.assertNotIn("image_url", payload["results"][0])
        self.assertEqual(payload["errors"][0]["product_code"], "GI-3")
        self.assertIn("s down", payload["errors"][0]["error"])
        self.assertFalse(mock_service_cls.from_config.call_args.kwargs["headless"])

    @patch("gi_verifier.cli.build_scraper")
    def test_probe_runs_single_source(self, mock_build_scraper, *_mocks):
        scraper = MagicMock()
        scraper.extract.return_value = ExtractionResult.invalid_for("GI-4", Source.SECONDARY)
        mock_build_scraper.return_value = scraper

        result = self.runner.invoke(cli, ["probe", "GI-4", "--source", "secondary"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(mock_build_scraper.call_args.args[0], "secondary")
        self.assertEqual(json.loads(result.stdout)["invalid"], True)

    @patch("gi_verifier.cli.build_scraper")
    def test_probe_failure_exits_nonzero(self, mock_build_scraper, *_mocks):
        scraper = MagicMock()
        scraper.extract.side_effect = RuntimeError("navigation timeout")
        mock_build_scraper.return_value = scraper

        result = self.runner.invoke(cli, ["probe", "GI-5"])

        self.assertEqual(result.exit_code, 1)
        self.assertEqual(mock_build_scraper.call_args.args[0], "primary")

    def test_show_config_dumps_yaml(self, mock_load_config, *_mocks):
        mock_load_config.return_value = DEFAULT_CONFIG

        result = self.runner.invoke(cli, ["show-config"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("cdiptqccgi.com", result.output)
        self.assertIn("secondary_attempts: 2", result.output)


class TestSetupLogging(unittest.TestCase):

    @patch("gi_verifier.cli.logger")
    def test_empty_file_disables_file_sink(self, mock_logger):
        setup_logging({"logging": {"level": "debug", "file": None}})

        mock_logger.remove.assert_called_once_with()
        self.assertEqual(mock_logger.add.call_count, 1)
        self.assertIs(mock_logger.add.call_args.args[0], sys.stderr)
        self.assertEqual(mock_logger.add.call_args.kwargs["level"], "DEBUG")

    @patch("gi_verifier.cli.logger")
    def test_file_sink_rotates_with_thread_names(self, mock_logger):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = str(Path(tmp) / "logs" / "verifier.log")
            setup_logging({"logging": {"file": log_file, "rotation": "1 day"}})

            self.assertTrue(Path(log_file).parent.is_dir())

        file_call = mock_logger.add.call_args_list[1]
        self.assertEqual(file_call.args[0], log_file)
        self.assertEqual(file_call.kwargs["rotation"], "1 day")
        self.assertEqual(file_call.kwargs["level"], "INFO")
        self.assertIn("{thread.name}", file_call.kwargs["format"])


if __name__ == "__main__":
    unittest.main()
