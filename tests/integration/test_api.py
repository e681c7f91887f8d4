#!/usr/bin/env python3
"""Integration tests for the HTTP API.

The FastAPI app runs in-process through TestClient with the real service,
intake pipeline, job registry and rate limiter; only the provider and the
async dispatcher are stubbed.
"""

import base64
import importlib.util
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from showscribe.api import create_app
from showscribe.exceptions import CostExceededError
from showscribe.jobs import JobStatus
from showscribe.service import ShowScribeService
from showscribe.stores import InMemoryCounterStore

parent_conftest_path = Path(__file__).resolve().parents[1] / "conftest.py"
spec = importlib.util.spec_from_file_location("parent_conftest", parent_conftest_path)
parent_conftest = importlib.util.module_from_spec(spec)
spec.loader.exec_module(parent_conftest)

StubProvider = parent_conftest.StubProvider
TEST_BLOB_URL = parent_conftest.TEST_BLOB_URL
TEST_TRANSCRIPT = parent_conftest.TEST_TRANSCRIPT
create_test_config = parent_conftest.create_test_config

pytestmark = [pytest.mark.integration]

SMALL_LIMIT_MB = 0.001


class _ApiTestCase(unittest.TestCase):
    client_address = "203.0.113.10"

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.provider = StubProvider()
        self.dispatcher = Mock()
        self.make_client()

    def make_client(self, raise_server_exceptions=True, **overrides):
        settings = {"temp_dir": self.temp_dir.name, "rate_limit_max_requests": 100}
        settings.update(overrides)
        self.cfg = create_test_config(**settings)
        self.service = ShowScribeService(
            self.cfg, self.provider, InMemoryCounterStore(), dispatcher=self.dispatcher
        )
        self.client = TestClient(
            create_app(self.service), raise_server_exceptions=raise_server_exceptions
        )
        return self.client

    def post(self, path, **kwargs):
        headers = kwargs.pop("headers", {})
        headers.setdefault("X-Forwarded-For", self.client_address)
        return self.client.post(path, headers=headers, **kwargs)

    def get(self, path, **kwargs):
        headers = kwargs.pop("headers", {})
        headers.setdefault("X-Forwarded-For", self.client_address)
        return self.client.get(path, headers=headers, **kwargs)

    def assert_error(self, response, status, code, message=None):
        self.assertEqual(response.status_code, status, response.text)
        error = response.json()["error"]
        self.assertEqual(error["code"], code)
        if message is not None:
            self.assertEqual(error["message"], message)
        return error


class TestHealth(_ApiTestCase):
    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")


class TestGenerateEndpoint(_ApiTestCase):
    def test_generate(self):
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(
            set(body), {"title", "summary", "highlights", "guestBio", "socialCaptions", "metadata"}
        )
        self.assertEqual(set(body["socialCaptions"]), {"twitter", "linkedin", "instagram"})
        self.assertEqual(body["metadata"]["totalTokens"], 600)
        self.assertIn("costUSD", body["metadata"])
        self.assertIn("totalLatencyMs", body["metadata"])

    def test_empty_transcript(self):
        response = self.post("/api/generate", json={"transcript": "   "})
        self.assert_error(response, 400, "INVALID_INPUT", "No transcript provided")
        self.assertEqual(self.provider.chat_calls, [])

    def test_missing_transcript(self):
        response = self.post("/api/generate", json={})
        self.assert_error(response, 400, "INVALID_INPUT", "No transcript provided")

    def test_malformed_body(self):
        response = self.post(
            "/api/generate", content=b"not json", headers={"Content-Type": "application/json"}
        )
        self.assert_error(response, 400, "INVALID_INPUT", "Invalid request body")

    def test_cost_exceeded(self):
        self.provider.failures["title"] = CostExceededError(5.0, 0.01, 5.0, retry_after=3600)
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assert_error(
            response, 429, "COST_EXCEEDED", "Daily cost limit reached. Please try again later."
        )
        self.assertEqual(response.headers["Retry-After"], "3600")

    def test_generation_failure_is_opaque(self):
        self.provider.failures["summary"] = RuntimeError("upstream said: secret-detail")
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        error = self.assert_error(response, 500, "INTERNAL_ERROR", "Internal server error")
        self.assertNotIn("secret-detail", response.text)
        self.assertNotIn("summary", error["message"])

    def test_unexpected_error(self):
        self.make_client(raise_server_exceptions=False)
        self.service.orchestrator = Mock()
        self.service.orchestrator.generate.side_effect = KeyError("boom")
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assert_error(response, 500, "INTERNAL_ERROR", "Internal server error")


class TestUploadEndpoint(_ApiTestCase):
    def test_small_upload(self):
        response = self.post(
            "/api/upload", files={"file": ("episode.mp3", b"mp3 bytes", "audio/mpeg")}
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["transcript"], TEST_TRANSCRIPT)
        self.assertEqual(body["metadata"]["fileSize"], len(b"mp3 bytes"))
        self.assertEqual(os.listdir(self.temp_dir.name), [])

    def test_no_file(self):
        response = self.post("/api/upload", data={"other": "x"})
        self.assert_error(response, 400, "INVALID_INPUT", "No file uploaded")

    def test_invalid_type(self):
        response = self.post("/api/upload", files={"file": ("a.ogg", b"ogg", "audio/ogg")})
        self.assert_error(
            response, 400, "INVALID_INPUT", "Invalid file type. Only MP3 and WAV files are allowed"
        )

    def test_upload_over_limit_rejected_before_processing(self):
        self.make_client(
            max_upload_size_mb=SMALL_LIMIT_MB,
            sync_size_threshold_mb=SMALL_LIMIT_MB,
            transcription_size_limit_mb=SMALL_LIMIT_MB,
        )
        self.service.pipeline.process = Mock()
        response = self.post(
            "/api/upload", files={"file": ("long.mp3", b"\1" * 2000, "audio/mpeg")}
        )
        self.assert_error(response, 400, "INVALID_INPUT", "File too large. Maximum size is 0.001MB")
        self.service.pipeline.process.assert_not_called()
        self.assertEqual(self.provider.transcribe_calls, [])

    def test_large_upload_is_queued(self):
        self.make_client(sync_size_threshold_mb=SMALL_LIMIT_MB)
        response = self.post(
            "/api/upload", files={"file": ("long.mp3", b"\1" * 2000, "audio/mpeg")}
        )
        self.assertEqual(response.status_code, 202, response.text)
        body = response.json()
        self.assertEqual(body["status"], "pending")
        self.dispatcher.publish.assert_called_once()

        status = self.get("/api/queue-status", params={"id": body["queueId"]})
        self.assertEqual(status.status_code, 200)
        self.assertEqual(status.json()["status"], "pending")

    def test_too_large_for_transcription(self):
        self.make_client(
            transcription_size_limit_mb=SMALL_LIMIT_MB, compress_compressed_over_mb=SMALL_LIMIT_MB
        )
        self.service.pipeline.compressor = None
        self.service.pipeline.dispatcher = None
        response = self.post(
            "/api/upload", files={"file": ("long.mp3", b"\1" * 2000, "audio/mpeg")}
        )
        self.assert_error(response, 413, "TOO_LARGE")


class TestIngestEndpoint(_ApiTestCase):
    def test_large_reference_is_queued_without_fetching(self):
        response = self.post(
            "/api/ingest",
            json={
                "url": TEST_BLOB_URL,
                "filename": "long.mp3",
                "contentType": "audio/mpeg",
                "size": 50 * 1024 * 1024,
            },
        )
        self.assertEqual(response.status_code, 202, response.text)
        payload = self.dispatcher.publish.call_args.args[0]
        self.assertEqual(payload["blobUrl"], TEST_BLOB_URL)

    def test_reference_over_upload_limit(self):
        response = self.post(
            "/api/ingest",
            json={"url": TEST_BLOB_URL, "filename": "x.mp3", "size": 200 * 1024 * 1024},
        )
        self.assert_error(response, 400, "INVALID_INPUT", "File too large. Maximum size is 100MB")

    def test_missing_url(self):
        response = self.post("/api/ingest", json={"filename": "x.mp3"})
        self.assert_error(response, 400, "INVALID_INPUT", "Invalid request body")


class TestQueueEndpoints(_ApiTestCase):
    def _file_data(self):
        return base64.b64encode(b"mp3 bytes").decode("ascii")

    def test_status_requires_id(self):
        self.assert_error(self.get("/api/queue-status"), 400, "INVALID_INPUT", "Queue ID required")

    def test_status_unknown_job(self):
        self.assert_error(self.get("/api/queue-status", params={"id": "nope"}), 404, "NOT_FOUND")

    def test_worker_completes_job(self):
        self.service.job_queue.create_job("job-1")
        body = {
            "queueId": "job-1",
            "filename": "episode.mp3",
            "contentType": "audio/mpeg",
            "fileData": self._file_data(),
        }
        response = self.post("/api/worker/long-job", json=body)
        self.assertEqual(response.json(), {"success": True, "status": "completed"})

        status = self.get("/api/queue-status", params={"id": "job-1"}).json()
        self.assertEqual(status["status"], "completed")
        self.assertEqual(status["result"]["transcript"], TEST_TRANSCRIPT)

        # redelivery is acknowledged without a second transcription
        again = self.post("/api/worker/long-job", json=body)
        self.assertEqual(again.json(), {"success": True, "status": "completed"})
        self.assertEqual(len(self.provider.transcribe_calls), 1)

    def test_worker_failure_is_recorded(self):
        self.provider.transcription_error = RuntimeError("provider exploded")
        self.service.job_queue.create_job("job-2")
        response = self.post(
            "/api/worker/long-job",
            json={"queueId": "job-2", "filename": "a.mp3", "fileData": self._file_data()},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": False, "status": "failed"})
        job = self.service.job_queue.get_job("job-2")
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error, "Internal server error")

    def test_worker_requires_queue_id(self):
        response = self.post("/api/worker/long-job", json={"filename": "a.mp3"})
        self.assert_error(response, 400, "INVALID_INPUT")


class TestRateLimiting(_ApiTestCase):
    def setUp(self):
        super().setUp()
        self.make_client(rate_limit_max_requests=3)

    def test_fourth_request_is_rejected(self):
        for _ in range(3):
            response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
            self.assertEqual(response.status_code, 200)
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assert_error(response, 429, "RATE_LIMITED")
        retry_after = int(response.headers["Retry-After"])
        self.assertGreaterEqual(retry_after, 1)
        self.assertLessEqual(retry_after, 600)
        self.assertEqual(len(self.provider.chat_calls), 15)

    def test_rejected_requests_count_before_validation(self):
        for _ in range(3):
            self.post("/api/generate", json={"transcript": ""})
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assertEqual(response.status_code, 429)

    def test_clients_are_limited_separately(self):
        for _ in range(3):
            self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        response = self.post(
            "/api/generate",
            json={"transcript": TEST_TRANSCRIPT},
            headers={"X-Forwarded-For": "198.51.100.77"},
        )
        self.assertEqual(response.status_code, 200)

    def test_private_addresses_bypass(self):
        for _ in range(5):
            response = self.post(
                "/api/generate",
                json={"transcript": TEST_TRANSCRIPT},
                headers={"X-Forwarded-For": "10.0.0.5"},
            )
            self.assertEqual(response.status_code, 200)

    def test_status_polling_and_worker_are_exempt(self):
        for _ in range(5):
            self.get("/api/queue-status", params={"id": "nope"})
            self.post("/api/worker/long-job", json={"queueId": "nope"})
        response = self.post("/api/generate", json={"transcript": TEST_TRANSCRIPT})
        self.assertEqual(response.status_code, 200)

    def test_health_is_exempt(self):
        for _ in range(5):
            self.assertEqual(self.client.get("/health").status_code, 200)


if __name__ == "__main__":
    unittest.main()
