from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from quizfeed.models.question import Question


class GenerateRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    file_id: str = Field(..., min_length=1, description="Id of the files row to generate questions from.")
    job_id: Optional[str] = Field(None, description="Existing queued job to run instead of creating one.")


class GenerationResult(BaseModel):
    """Outcome of one pipeline run."""
    ok: bool
    job_id: Optional[str] = None
    error: Optional[str] = None

    def to_response(self) -> dict:
        if self.ok:
            return {"ok": True, "job_id": self.job_id}
        return {"ok": False, "error": self.error}


class JobStatusResponse(BaseModel):
    job_id: str
    file_id: Optional[str] = None
    status: str
    error: Optional[str] = None


class QuestionPage(BaseModel):
    items: List[Question]
    next_offset: Optional[int] = None
