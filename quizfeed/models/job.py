from enum import Enum
from datetime import datetime
from typing import Dict, FrozenSet, Optional
from pydantic import BaseModel, ConfigDict

from quizfeed.errors import InvalidTransitionError


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    def __str__(self):
        return self.value


# done and failed are terminal
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.FAILED}),
    JobStatus.DONE: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def transition(current: JobStatus, target: JobStatus) -> JobStatus:
    """Return the target status, or raise if the move is not allowed."""
    if target not in ALLOWED_TRANSITIONS[JobStatus(current)]:
        raise InvalidTransitionError(JobStatus(current), JobStatus(target))
    return JobStatus(target)


def is_terminal(status: JobStatus) -> bool:
    return not ALLOWED_TRANSITIONS[JobStatus(status)]


class Job(BaseModel):
    """A jobs row as stored in the relational store."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    file_id: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    created_at: Optional[datetime] = None
