#!/usr/bin/env python3
"""Tests for the command-line interface."""

import importlib.util
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from showscribe import cli
from showscribe.service import ShowScribeService
from showscribe.stores import InMemoryCounterStore

parent_conftest_path = Path(__file__).resolve().parents[2] / "conftest.py"
spec = importlib.util.spec_from_file_location("parent_conftest", parent_conftest_path)
parent_conftest = importlib.util.module_from_spec(spec)
spec.loader.exec_module(parent_conftest)

StubProvider = parent_conftest.StubProvider
TEST_TRANSCRIPT = parent_conftest.TEST_TRANSCRIPT

pytestmark = [pytest.mark.unit]


@patch("showscribe.cli.apply_log_level")
class TestMain(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.provider = StubProvider()
        self.factory_configs = []

    def _factory(self, cfg):
        self.factory_configs.append(cfg)
        return ShowScribeService(cfg, self.provider, InMemoryCounterStore())

    def _path(self, name, content=None):
        path = os.path.join(self.temp_dir.name, name)
        if content is not None:
            mode = "wb" if isinstance(content, bytes) else "w"
            with open(path, mode) as f:
                f.write(content)
        return path

    def test_generate_writes_json(self, mock_apply):
        transcript = self._path("episode.txt", TEST_TRANSCRIPT)
        output = self._path("notes.json")

        code = cli.main(
            ["generate", transcript, "--output", output], service_factory=self._factory
        )

        self.assertEqual(code, 0)
        with open(output, encoding="utf-8") as f:
            notes = json.load(f)
        self.assertIn("guestBio", notes)
        self.assertEqual(notes["metadata"]["totalTokens"], 600)
        mock_apply.assert_called_once_with("INFO", log_file=None, json_logs=False)

    def test_generate_prints_to_stdout(self, mock_apply):
        transcript = self._path("episode.txt", TEST_TRANSCRIPT)
        with patch("builtins.print") as mock_print:
            code = cli.main(["generate", transcript], service_factory=self._factory)
        self.assertEqual(code, 0)
        self.assertIn('"title"', mock_print.call_args.args[0])

    def test_generate_empty_transcript(self, mock_apply):
        transcript = self._path("empty.txt", "  \n")
        self.assertEqual(cli.main(["generate", transcript], service_factory=self._factory), 1)
        self.assertEqual(self.provider.chat_calls, [])

    def test_generate_missing_file(self, mock_apply):
        missing = self._path("missing.txt")
        self.assertEqual(cli.main(["generate", missing], service_factory=self._factory), 1)

    def test_transcribe(self, mock_apply):
        audio = self._path("episode.mp3", b"fake mp3")
        output = self._path("transcript.json")
        code = cli.main(
            ["--config", self._path("c.yaml", f"temp_dir: {self.temp_dir.name}\n"),
             "transcribe", audio, "--output", output],
            service_factory=self._factory,
        )
        self.assertEqual(code, 0)
        with open(output, encoding="utf-8") as f:
            result = json.load(f)
        self.assertEqual(result["transcript"], TEST_TRANSCRIPT)
        self.assertEqual(result["metadata"]["fileSize"], len(b"fake mp3"))

    def test_transcribe_unsupported_type(self, mock_apply):
        audio = self._path("episode.flac", b"flac")
        self.assertEqual(cli.main(["transcribe", audio], service_factory=self._factory), 1)

    def test_serve(self, mock_apply):
        serve_fn = Mock()
        code = cli.main(
            ["serve", "--host", "0.0.0.0", "--port", "9000"],
            service_factory=self._factory,
            serve_fn=serve_fn,
        )
        self.assertEqual(code, 0)
        service, host, port = serve_fn.call_args.args
        self.assertIsInstance(service, ShowScribeService)
        self.assertEqual((host, port), ("0.0.0.0", 9000))

    def test_config_file_and_overrides(self, mock_apply):
        config_path = self._path("config.yaml", "daily_cost_cap: 1.5\nlog_level: WARNING\n")
        log_file = self._path("run.log")
        cli.main(
            ["--config", config_path, "--log-level", "DEBUG", "--log-file", log_file,
             "--json-logs", "serve"],
            service_factory=self._factory,
            serve_fn=Mock(),
        )
        cfg = self.factory_configs[0]
        self.assertEqual(cfg.daily_cost_cap, 1.5)
        self.assertEqual(cfg.log_level, "DEBUG")
        mock_apply.assert_called_once_with("DEBUG", log_file=log_file, json_logs=True)

    def test_invalid_config_value(self, mock_apply):
        config_path = self._path("config.yaml", "daily_cost_cap: -1\n")
        code = cli.main(["--config", config_path, "serve"], service_factory=self._factory)
        self.assertEqual(code, 1)
        self.assertEqual(self.factory_configs, [])

    def test_missing_config_file(self, mock_apply):
        code = cli.main(
            ["--config", self._path("missing.yaml"), "serve"], service_factory=self._factory
        )
        self.assertEqual(code, 1)

    def test_service_factory_error(self, mock_apply):
        from showscribe.exceptions import ProviderConfigError

        def failing_factory(cfg):
            raise ProviderConfigError("API key missing", config_key="openai_api_key")

        self.assertEqual(cli.main(["serve"], service_factory=failing_factory), 1)


class TestParseArgs(unittest.TestCase):
    def test_command_required(self):
        with self.assertRaises(SystemExit):
            cli.parse_args([])

    def test_serve_defaults(self):
        args = cli.parse_args(["serve"])
        self.assertEqual((args.host, args.port), ("127.0.0.1", 8000))


if __name__ == "__main__":
    unittest.main()
