from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTIONS_PER_QUESTION = 4


class FileRecord(BaseModel):
    """An uploaded source document, created by the upload flow."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    storage_path: Optional[str] = None
    public_url: str
    mime_type: Optional[str] = None


class MCQItem(BaseModel):
    """Shape a well-formed generated question is expected to have."""
    question: str = Field(..., min_length=1)
    options: List[str]
    answer_index: int

    @field_validator("options")
    def check_option_count(cls, v):
        if len(v) != OPTIONS_PER_QUESTION:
            raise ValueError(f"expected {OPTIONS_PER_QUESTION} options, got {len(v)}")
        return v

    @model_validator(mode="after")
    def check_answer_index(self):
        if not 0 <= self.answer_index < len(self.options):
            raise ValueError(f"answer_index {self.answer_index} out of range")
        return self


class Question(BaseModel):
    """An mcqs row as read back by the feed."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    file_id: Optional[str] = None
    question: Optional[str] = None
    options: Optional[List[Any]] = None
    answer_index: Optional[int] = None
    created_at: Optional[datetime] = None


def question_row(file_id: str, item: Any) -> Dict[str, Any]:
    """Build an mcqs row from a provider item, copying its fields verbatim."""
    fields = item if isinstance(item, dict) else {}
    return {
        "file_id": file_id,
        "question": fields.get("question"),
        "options": fields.get("options"),
        "answer_index": fields.get("answer_index"),
    }
