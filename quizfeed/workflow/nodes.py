import functools
import logging
from typing import Any, Dict

import httpx
from pydantic import ValidationError

from quizfeed.config import Settings
from quizfeed.core.logging import setup_job_logger
from quizfeed.errors import (
    OutputParseError,
    PayloadTooLargeError,
    PipelineError,
    SourceFetchError,
    SourceNotFoundError,
    StoreError,
)
from quizfeed.gemini_client import GeminiClient
from quizfeed.models.job import JobStatus, transition
from quizfeed.models.question import MCQItem, question_row
from quizfeed.models.state import GraphState
from quizfeed.store import SupabaseStore
from quizfeed.workflow.parsing import ParseFailed, parse_questions
from quizfeed.workflow.utils import build_prompt, encode_base64_chunked, resolve_mime_type

logger = logging.getLogger(__name__)


def pipeline_step(stage: str):
    """Run a node, turning any raised fault into an error on the state."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, state: GraphState) -> Dict[str, Any]:
            job_logger = setup_job_logger(state["run_id"])
            job_logger.info(f"Stage: {stage}")
            try:
                update = await func(self, state)
            except PipelineError as e:
                job_logger.error(f"{stage} failed: {e}")
                return {"error": str(e), "current_stage": stage}
            except Exception as e:
                job_logger.error(f"{stage} failed unexpectedly: {e}", exc_info=True)
                return {"error": str(e) or type(e).__name__, "current_stage": stage}
            update["current_stage"] = stage
            return update
        return wrapper
    return decorator


class PipelineNodes:
    """The steps of one MCQ generation run, bound to their collaborators."""

    def __init__(self, settings: Settings, store: SupabaseStore, gemini: GeminiClient, http: httpx.AsyncClient):
        self.settings = settings
        self.store = store
        self.gemini = gemini
        self.http = http

    async def _set_status(self, state: GraphState, target: JobStatus) -> Dict[str, Any]:
        """Patch the job status, retrying before reporting the failure."""
        job_id = state["job_id"]
        status = transition(state["job_status"], target)
        attempts = max(1, self.settings.STATUS_UPDATE_ATTEMPTS)
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                await self.store.update_job_status(job_id, status)
                return {"job_status": status}
            except (StoreError, httpx.HTTPError) as e:
                last_error = e
                logger.warning(f"Status update {status} for job {job_id} failed (attempt {attempt}/{attempts}): {e}")
        raise StoreError(f"Could not mark job {job_id} as {status}: {last_error}")

    @pipeline_step("acquire_job")
    async def acquire_job(self, state: GraphState) -> Dict[str, Any]:
        job_logger = setup_job_logger(state["run_id"])
        job_id = state.get("job_id")
        if not job_id:
            job = await self.store.create_job(state["file_id"])
            job_logger.info(f"Created job {job.id} for file {state['file_id']}")
            return {"job_id": job.id, "job_status": job.status}

        job = await self.store.get_job(job_id)
        if job is None:
            raise SourceNotFoundError(f"Job {job_id} not found")
        if job.file_id and job.file_id != state["file_id"]:
            job_logger.warning(f"Job {job_id} belongs to file {job.file_id}, not {state['file_id']}")
        # Reject reuse of a job that already started or finished
        transition(job.status, JobStatus.PROCESSING)
        return {"job_id": job.id, "job_status": job.status}

    @pipeline_step("mark_processing")
    async def mark_processing(self, state: GraphState) -> Dict[str, Any]:
        return await self._set_status(state, JobStatus.PROCESSING)

    @pipeline_step("resolve_source")
    async def resolve_source(self, state: GraphState) -> Dict[str, Any]:
        file = await self.store.get_file(state["file_id"])
        if file is None:
            raise SourceNotFoundError(f"File {state['file_id']} not found")
        mime_type = resolve_mime_type(file)
        setup_job_logger(state["run_id"]).info(f"Source {file.public_url} resolved as {mime_type}")
        return {"file": file, "mime_type": mime_type}

    @pipeline_step("fetch_source")
    async def fetch_source(self, state: GraphState) -> Dict[str, Any]:
        limit = self.settings.MAX_FILE_BYTES
        url = state["file"].public_url
        buffer = bytearray()
        try:
            async with self.http.stream("GET", url, follow_redirects=True) as response:
                if not response.is_success:
                    await response.aread()
                    raise SourceFetchError(f"Failed to fetch file ({response.status_code}): {response.text}")
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > limit:
                        raise PayloadTooLargeError(len(buffer), limit)
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Failed to fetch file: {e}") from e

        setup_job_logger(state["run_id"]).info(f"Fetched {len(buffer)} bytes")
        return {"content": bytes(buffer)}

    @pipeline_step("encode_source")
    async def encode_source(self, state: GraphState) -> Dict[str, Any]:
        encoded = encode_base64_chunked(state["content"], self.settings.ENCODE_CHUNK_SIZE)
        return {"encoded": encoded, "content": None}

    @pipeline_step("generate_questions")
    async def generate_questions(self, state: GraphState) -> Dict[str, Any]:
        prompt = build_prompt(self.settings.QUESTION_COUNT)
        raw_text = await self.gemini.generate(prompt, state["mime_type"], state["encoded"])
        setup_job_logger(state["run_id"]).info(f"Model returned {len(raw_text)} characters")
        return {"raw_text": raw_text, "encoded": None}

    @pipeline_step("parse_output")
    async def parse_output(self, state: GraphState) -> Dict[str, Any]:
        result = parse_questions(state["raw_text"])
        if isinstance(result, ParseFailed):
            raise OutputParseError(result.reason, result.raw)
        setup_job_logger(state["run_id"]).info(f"Parsed {len(result.items)} questions")
        return {"items": result.items}

    @pipeline_step("persist_questions")
    async def persist_questions(self, state: GraphState) -> Dict[str, Any]:
        job_logger = setup_job_logger(state["run_id"])
        file_id = state["file_id"]
        inserted = skipped = failed = 0

        for index, item in enumerate(state["items"]):
            try:
                MCQItem.model_validate(item)
            except ValidationError as e:
                if self.settings.STRICT_QUESTION_VALIDATION:
                    skipped += 1
                    job_logger.warning(f"Skipping malformed question {index}: {e}")
                    continue
                job_logger.warning(f"Question {index} is malformed, storing as-is: {e}")

            # Inserts are independent, one failure does not stop the rest
            try:
                await self.store.insert_question(question_row(file_id, item))
                inserted += 1
            except (StoreError, httpx.HTTPError) as e:
                failed += 1
                job_logger.error(f"Failed to insert question {index}: {e}")

        job_logger.info(f"Stored {inserted} questions ({skipped} skipped, {failed} failed)")
        return {"inserted": inserted, "skipped": skipped, "failed_inserts": failed}

    @pipeline_step("mark_done")
    async def mark_done(self, state: GraphState) -> Dict[str, Any]:
        return await self._set_status(state, JobStatus.DONE)

    async def mark_failed(self, state: GraphState) -> Dict[str, Any]:
        """Move a processing job to failed, keeping the first error."""
        job_logger = setup_job_logger(state["run_id"])
        if state.get("job_status") != JobStatus.PROCESSING:
            job_logger.error(f"Job {state.get('job_id')} left as {state.get('job_status')}: {state.get('error')}")
            return {}

        try:
            update = await self._set_status(state, JobStatus.FAILED)
        except PipelineError as e:
            job_logger.error(f"Could not mark job {state['job_id']} failed: {e}")
            return {}
        job_logger.info(f"Job {state['job_id']} marked failed")
        return update
