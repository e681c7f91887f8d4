"""Service API for programmatic use of showscribe.

``ShowScribeService`` wires the configured components together and exposes
the boundary operations the HTTP layer, the CLI and embedding applications call:

- ``generate(transcript)``: show-notes for a transcript
- ``ingest(upload)``: transcript for an uploaded/referenced audio file, or a job id
- ``job_status(id)``: state of a deferred job
- ``process_queued_job(id, payload)``: worker callback of the async dispatcher

Example:
    >>> from showscribe import config, service
    >>> cfg = config.Config(**config.load_config_file("config.yaml"))
    >>> svc = service.create_service(cfg)
    >>> notes = svc.generate(open("transcript.txt").read())
    >>> print(notes.title)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from . import config
from .cost_tracking import DailyCostCounter
from .dispatch import QueueDispatcher, create_dispatcher
from .exceptions import JobNotFoundError
from .intake import IntakeOutcome, MediaIntakePipeline, MediaUpload
from .jobs import Job, JobQueue
from .orchestrator import ShowNotesOrchestrator
from .preprocessing.audio.factory import create_audio_compressor
from .rate_limit import RateLimiter
from .schemas.show_notes import GenerationResult
from .stores.base import CounterStore
from .stores.factory import create_counter_store
from .utils.redaction import redact_secrets
from .worker import WorkerAck, process_queued_job

logger = logging.getLogger(__name__)


class ShowScribeService:
    """Request-orchestration core with its collaborators.

    Args:
        cfg: Configuration
        provider: Provider offering ``chat_complete`` and ``transcribe``
        store: Counter store shared by the cost cap and the rate limiter
        job_queue: Registry for deferred jobs
        dispatcher: Async dispatcher (None processes large media inline)
        pipeline: Intake pipeline; built from the other collaborators when omitted
        rate_limiter: Admission gate; built from ``store`` when omitted
    """

    def __init__(
        self,
        cfg: config.Config,
        provider: Any,
        store: CounterStore,
        job_queue: Optional[JobQueue] = None,
        dispatcher: Optional[QueueDispatcher] = None,
        pipeline: Optional[MediaIntakePipeline] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.cfg = cfg
        self.provider = provider
        self.store = store
        self.job_queue = job_queue if job_queue is not None else JobQueue()
        self.orchestrator = ShowNotesOrchestrator(
            provider, sla_latency_seconds=cfg.sla_latency_seconds
        )
        self.pipeline = pipeline or MediaIntakePipeline(
            cfg,
            provider,
            job_queue=self.job_queue,
            dispatcher=dispatcher,
            compressor=create_audio_compressor(cfg),
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            store,
            window_seconds=cfg.rate_limit_window_seconds,
            max_requests=cfg.rate_limit_max_requests,
            trusted_hosts=cfg.rate_limit_trusted_hosts,
        )

    def generate(self, transcript: Optional[str]) -> GenerationResult:
        """Generate show-notes for a transcript (see ``ShowNotesOrchestrator.generate``)."""
        return self.orchestrator.generate(transcript)

    def ingest(self, upload: MediaUpload) -> IntakeOutcome:
        """Transcribe an uploaded or referenced audio file, or defer it to a job."""
        return self.pipeline.process(upload)

    def job_status(self, job_id: str) -> Job:
        """Return the job with ``job_id``.

        Raises:
            JobNotFoundError: If this instance does not know the job
        """
        job = self.job_queue.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def process_queued_job(self, queue_id: str, payload: Mapping[str, Any]) -> WorkerAck:
        """Worker callback: run a deferred job and record its outcome."""
        return process_queued_job(self.job_queue, self.pipeline, queue_id, payload)


def create_service(cfg: config.Config) -> ShowScribeService:
    """Build a service with the production collaborators selected by ``cfg``.

    Raises:
        ProviderConfigError: If the OpenAI API key is missing
    """
    from .providers.openai.openai_provider import OpenAIProvider

    logger.info("Starting showscribe with config: %s", redact_secrets(cfg.model_dump()))
    store = create_counter_store(cfg)
    cost_counter = DailyCostCounter(
        store, daily_cap=cfg.daily_cost_cap, retention_days=cfg.cost_retention_days
    )
    provider = OpenAIProvider(cfg, cost_counter)
    return ShowScribeService(cfg, provider, store, dispatcher=create_dispatcher(cfg))


def create_service_from_config_file(config_path: str | Path) -> ShowScribeService:
    """Load a JSON/YAML config file and build the service.

    Raises:
        ValueError: If the config file is missing or invalid
    """
    cfg = config.Config(**config.load_config_file(str(config_path)))
    return create_service(cfg)
