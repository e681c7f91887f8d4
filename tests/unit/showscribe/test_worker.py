#!/usr/bin/env python3
"""Tests for the async worker callback."""

import base64
import importlib.util
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

import pytest

from showscribe.exceptions import FetchFailedError, InvalidInputError
from showscribe.intake import IntakeResult, MediaIntakePipeline, QueuedIntake
from showscribe.jobs import JobQueue, JobStatus
from showscribe.worker import process_queued_job, upload_from_payload

parent_conftest_path = Path(__file__).resolve().parents[2] / "conftest.py"
spec = importlib.util.spec_from_file_location("parent_conftest", parent_conftest_path)
parent_conftest = importlib.util.module_from_spec(spec)
spec.loader.exec_module(parent_conftest)

StubProvider = parent_conftest.StubProvider
TEST_BLOB_URL = parent_conftest.TEST_BLOB_URL
TEST_TRANSCRIPT = parent_conftest.TEST_TRANSCRIPT
create_test_config = parent_conftest.create_test_config

pytestmark = [pytest.mark.unit]

AUDIO = b"fake mp3 bytes"


def _payload(queue_id, **extra):
    payload = {
        "queueId": queue_id,
        "filename": "episode.mp3",
        "contentType": "audio/mpeg",
        "fileData": base64.b64encode(AUDIO).decode("ascii"),
    }
    payload.update(extra)
    return payload


class TestUploadFromPayload(unittest.TestCase):
    def test_inline_data(self):
        upload = upload_from_payload(_payload("q"))
        self.assertEqual(upload.data, AUDIO)
        self.assertEqual(upload.filename, "episode.mp3")
        self.assertEqual(upload.content_type, "audio/mpeg")

    def test_reference(self):
        upload = upload_from_payload({"queueId": "q", "filename": "a.mp3", "blobUrl": TEST_BLOB_URL})
        self.assertTrue(upload.is_reference)
        self.assertEqual(upload.blob_url, TEST_BLOB_URL)

    def test_invalid_base64(self):
        with self.assertRaises(InvalidInputError):
            upload_from_payload(_payload("q", fileData="not base64!!"))

    def test_neither_data_nor_reference(self):
        with self.assertRaises(InvalidInputError):
            upload_from_payload({"queueId": "q", "filename": "a.mp3"})


class TestProcessQueuedJob(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.queue = JobQueue()
        self.provider = StubProvider()
        self.pipeline = MediaIntakePipeline(
            create_test_config(temp_dir=self.temp_dir.name), self.provider, job_queue=self.queue
        )

    def test_completes_job(self):
        self.queue.create_job("job-1")
        ack = process_queued_job(self.queue, self.pipeline, "job-1", _payload("job-1"))

        self.assertEqual(ack.to_response(), {"success": True, "status": "completed"})
        job = self.queue.get_job("job-1")
        self.assertEqual(job.status, JobStatus.COMPLETED)
        self.assertEqual(job.result["transcript"], TEST_TRANSCRIPT)
        self.assertIn("metadata", job.result)
        self.assertIsNone(job.error)
        self.assertEqual(os.listdir(self.temp_dir.name), [])

    def test_redelivery_of_completed_job_is_not_reprocessed(self):
        self.queue.create_job("job-1")
        process_queued_job(self.queue, self.pipeline, "job-1", _payload("job-1"))
        first = self.queue.get_job("job-1")

        ack = process_queued_job(self.queue, self.pipeline, "job-1", _payload("job-1"))

        self.assertTrue(ack.success)
        self.assertEqual(ack.status, "completed")
        self.assertEqual(len(self.provider.transcribe_calls), 1)
        self.assertEqual(self.queue.get_job("job-1"), first)

    def test_redelivery_of_failed_job_is_not_reprocessed(self):
        self.queue.create_job("job-1")
        self.queue.update_status("job-1", JobStatus.FAILED, error="boom")
        ack = process_queued_job(self.queue, self.pipeline, "job-1", _payload("job-1"))
        self.assertEqual(ack.to_response(), {"success": False, "status": "failed"})
        self.assertEqual(self.provider.transcribe_calls, [])

    def test_unknown_job_is_ignored(self):
        ack = process_queued_job(self.queue, self.pipeline, "missing", _payload("missing"))
        self.assertEqual(ack.to_response(), {"success": False, "status": "ignored"})
        self.assertIsNone(self.queue.get_job("missing"))
        self.assertEqual(self.provider.transcribe_calls, [])

    def test_user_facing_failure_is_recorded(self):
        self.queue.create_job("job-1")
        payload = _payload("job-1", filename="episode.ogg", contentType="audio/ogg")
        ack = process_queued_job(self.queue, self.pipeline, "job-1", payload)

        self.assertFalse(ack.success)
        job = self.queue.get_job("job-1")
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error, "Invalid file type. Only MP3 and WAV files are allowed")

    def test_provider_failure_is_opaque(self):
        self.provider.transcription_error = RuntimeError("secret upstream detail")
        self.queue.create_job("job-1")
        ack = process_queued_job(self.queue, self.pipeline, "job-1", _payload("job-1"))

        self.assertEqual(ack.status, "failed")
        job = self.queue.get_job("job-1")
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.error, "Internal server error")

    def test_internal_error_message_is_opaque(self):
        pipeline = Mock()
        pipeline.process.side_effect = FetchFailedError("fetch of https://internal/... failed")
        self.queue.create_job("job-1")
        process_queued_job(self.queue, pipeline, "job-1", _payload("job-1"))
        self.assertEqual(self.queue.get_job("job-1").error, "Internal server error")

    def test_pipeline_runs_synchronously(self):
        pipeline = Mock()
        pipeline.process.return_value = IntakeResult(transcript="t", metadata={})
        self.queue.create_job("job-1")
        process_queued_job(self.queue, pipeline, "job-1", _payload("job-1"))
        self.assertTrue(pipeline.process.call_args.kwargs["force_sync"])

    def test_deferred_outcome_marks_job_failed(self):
        pipeline = Mock()
        pipeline.process.return_value = QueuedIntake(queue_id="other")
        self.queue.create_job("job-1")
        ack = process_queued_job(self.queue, pipeline, "job-1", _payload("job-1"))
        self.assertFalse(ack.success)
        self.assertEqual(self.queue.get_job("job-1").status, JobStatus.FAILED)


if __name__ == "__main__":
    unittest.main()
