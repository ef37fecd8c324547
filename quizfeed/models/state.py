from typing import Any, List, TypedDict

from quizfeed.models.job import JobStatus
from quizfeed.models.question import FileRecord


class GraphState(TypedDict, total=False):
    """State model for the MCQ generation graph."""
    run_id: str
    file_id: str
    job_id: str | None
    job_status: JobStatus | None
    file: FileRecord | None
    mime_type: str | None
    content: bytes | None
    encoded: str | None
    raw_text: str | None
    items: List[Any] | None
    inserted: int
    skipped: int
    failed_inserts: int
    current_stage: str
    error: str | None
