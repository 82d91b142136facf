# This project was developed with assistance from AI tools.
"""AI answer service adapter.

Single answers are a direct request/response against the configured
``answer_generation`` model. Batch jobs run as background asyncio tasks
inside this process and are observed through ``poll_status``; the caller
never awaits the job itself. A job stays queryable until the caller
releases it with ``release_job`` or, once finished, until the retention
window has passed.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from ..core.config import Settings
from ..inference.client import get_task_completion
from .answer_prompts import build_answer_prompt
from .extraction import parse_json_reply

logger = logging.getLogger(__name__)

BATCH_ITEM_PENDING = "pending"
BATCH_ITEM_COMPLETED = "completed"
BATCH_ITEM_FAILED = "failed"


class AnswerServiceError(Exception):
    """Raised when the model call fails or its reply is unusable."""


class UnknownBatchJob(AnswerServiceError):
    """The job id was never issued, or the job has been released."""


@dataclass(frozen=True)
class GeneratedAnswer:
    answer: str
    confidence: float


@dataclass(frozen=True)
class BatchItem:
    question_id: int
    question_text: str


@dataclass
class BatchItemStatus:
    status: str = BATCH_ITEM_PENDING
    answer: str | None = None
    confidence: float | None = None
    error: str | None = None


@dataclass
class _BatchJob:
    items: dict[int, BatchItemStatus] = field(default_factory=dict)
    finished_at: float | None = None


def _parse_answer(raw: str) -> GeneratedAnswer:
    try:
        payload = parse_json_reply(raw)
    except ValueError as exc:
        raise AnswerServiceError("Model returned malformed answer JSON") from exc

    answer = str(payload.get("answer") or "").strip()
    if not answer:
        raise AnswerServiceError("Model returned an empty answer")
    try:
        confidence = float(payload.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    return GeneratedAnswer(answer=answer, confidence=min(max(confidence, 0.0), 1.0))


class AnswerService:
    """Generates questionnaire answers via the inference client."""

    def __init__(self, batch_concurrency: int = 4, job_retention_seconds: float = 3600.0):
        self._jobs: dict[str, _BatchJob] = {}
        self._tasks: set[asyncio.Task] = set()
        self._semaphore_size = batch_concurrency
        self._retention = job_retention_seconds

    async def generate(self, question_text: str, context: str = "") -> GeneratedAnswer:
        """Answer one question. Raises AnswerServiceError on any failure."""
        messages = build_answer_prompt(question_text, context)
        try:
            raw = await get_task_completion("answer_generation", messages)
        except Exception as exc:
            raise AnswerServiceError(f"Answer generation call failed: {exc}") from exc
        return _parse_answer(raw)

    async def generate_batch(self, items: list[BatchItem], context: str = "") -> str:
        """Start a background job answering ``items``. Returns the job id."""
        self._evict_expired()
        job_id = uuid.uuid4().hex
        job = _BatchJob(items={item.question_id: BatchItemStatus() for item in items})
        self._jobs[job_id] = job

        task = asyncio.create_task(self._run_batch(job, items, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Batch job %s started for %d questions", job_id, len(items))
        return job_id

    async def poll_status(self, job_id: str) -> dict[int, BatchItemStatus]:
        """Snapshot of per-question status for a job."""
        job = self._jobs.get(job_id)
        if job is None:
            raise UnknownBatchJob(f"Unknown batch job: {job_id}")
        return {qid: BatchItemStatus(**vars(s)) for qid, s in job.items.items()}

    def release_job(self, job_id: str) -> None:
        """Forget a job whose results have been applied. Unknown ids are ignored."""
        if self._jobs.pop(job_id, None) is not None:
            logger.debug("Batch job %s released", job_id)

    def _evict_expired(self) -> None:
        cutoff = time.monotonic() - self._retention
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.finished_at is not None and job.finished_at <= cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.info("Evicted %d finished batch jobs past retention", len(expired))

    async def _run_batch(self, job: _BatchJob, items: list[BatchItem], context: str) -> None:
        semaphore = asyncio.Semaphore(self._semaphore_size)

        async def _answer(item: BatchItem) -> None:
            async with semaphore:
                status = job.items[item.question_id]
                try:
                    result = await self.generate(item.question_text, context)
                except AnswerServiceError as exc:
                    logger.warning("Batch item %s failed: %s", item.question_id, exc)
                    status.status = BATCH_ITEM_FAILED
                    status.error = str(exc)
                    return
                status.answer = result.answer
                status.confidence = result.confidence
                status.status = BATCH_ITEM_COMPLETED

        try:
            await asyncio.gather(*(_answer(item) for item in items))
        finally:
            job.finished_at = time.monotonic()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_service: AnswerService | None = None


def init_answer_service(cfg: Settings) -> AnswerService:
    """Initialise the singleton (called once from app lifespan)."""
    global _service  # noqa: PLW0603
    _service = AnswerService(job_retention_seconds=cfg.BATCH_JOB_RETENTION_SECONDS)
    logger.info("AnswerService initialised")
    return _service


def get_answer_service() -> AnswerService:
    """Return the initialised AnswerService singleton."""
    if _service is None:
        raise RuntimeError("AnswerService not initialised -- call init_answer_service() first")
    return _service
