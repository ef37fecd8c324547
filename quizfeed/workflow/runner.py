import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

import httpx

from quizfeed.config import Settings
from quizfeed.core.config import ERROR_CACHE
from quizfeed.core.logging import release_job_logger, setup_job_logger
from quizfeed.gemini_client import GeminiClient
from quizfeed.models.state import GraphState
from quizfeed.schemas import GenerationResult
from quizfeed.store import SupabaseStore
from quizfeed.workflow.graph import create_workflow
from quizfeed.workflow.nodes import PipelineNodes

logger = logging.getLogger(__name__)


class GenerationPipeline:
    """Turns an uploaded file into stored MCQs and drives its job status."""

    def __init__(self, settings: Settings, store: SupabaseStore, gemini: GeminiClient, http: httpx.AsyncClient):
        self.settings = settings
        self.workflow = create_workflow(PipelineNodes(settings, store, gemini, http))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http: httpx.AsyncClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "GenerationPipeline":
        return cls(settings, SupabaseStore(settings, http), GeminiClient(settings, http, sleep=sleep), http)

    async def generate(self, file_id: str, job_id: Optional[str] = None) -> GenerationResult:
        """Execute the workflow for one file."""
        if not file_id:
            logger.warning("Generation requested without a file_id")
            return GenerationResult(ok=False, error="file_id is required")

        run_id = uuid.uuid4().hex
        job_logger = setup_job_logger(run_id)
        job_logger.info(f"Generating questions for file {file_id} (job {job_id or 'new'})")

        initial_state = GraphState(
            run_id=run_id,
            file_id=file_id,
            job_id=job_id,
            job_status=None,
            inserted=0,
            skipped=0,
            failed_inserts=0,
            current_stage="acquire_job",
            error=None,
        )

        try:
            state = await self.workflow.ainvoke(initial_state)
        except Exception as e:
            job_logger.error(f"Workflow error: {e}", exc_info=True)
            return GenerationResult(ok=False, error=str(e))
        finally:
            release_job_logger(job_logger)

        if state.get("error"):
            if state.get("job_id"):
                ERROR_CACHE[state["job_id"]] = state["error"]
            logger.error(f"Generation for file {file_id} failed at {state.get('current_stage')}: {state['error']}")
            return GenerationResult(ok=False, job_id=state.get("job_id"), error=state["error"])

        logger.info(f"Job {state['job_id']} done with {state.get('inserted', 0)} questions")
        return GenerationResult(ok=True, job_id=state["job_id"])
