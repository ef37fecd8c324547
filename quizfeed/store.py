import logging
from typing import Any, Dict, List, Optional

import httpx

from quizfeed.config import Settings
from quizfeed.errors import StoreError
from quizfeed.models.job import Job, JobStatus
from quizfeed.models.question import FileRecord, Question

logger = logging.getLogger(__name__)


class SupabaseStore:
    """Jobs, files and mcqs tables behind the Supabase REST (PostgREST) API."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient):
        self.base_url = settings.rest_url
        self.http = http
        key = settings.SUPABASE_SERVICE_ROLE_KEY
        self.headers = {
            "Content-Type": "application/json",
            "apikey": key,
            "Authorization": f"Bearer {key}",
        }

    def _url(self, table: str) -> str:
        return f"{self.base_url}/{table}"

    async def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await self.http.get(self._url(table), headers=self.headers, params=params)
        if response.is_error:
            raise StoreError(
                f"Reading {table} failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def create_job(self, file_id: str) -> Job:
        """Insert a queued job and return the row the store assigned."""
        response = await self.http.post(
            self._url("jobs"),
            headers={**self.headers, "Prefer": "return=representation"},
            json={"file_id": file_id, "status": JobStatus.QUEUED.value},
        )
        if response.is_error:
            raise StoreError(response.text or "Failed to create job", status_code=response.status_code)

        try:
            rows = response.json()
        except ValueError:
            rows = []
        if not rows:
            raise StoreError("No job created")
        return Job.model_validate(rows[0])

    async def get_job(self, job_id: str) -> Optional[Job]:
        rows = await self._select("jobs", {"id": f"eq.{job_id}", "select": "*"})
        return Job.model_validate(rows[0]) if rows else None

    async def update_job_status(self, job_id: str, status: JobStatus) -> None:
        response = await self.http.patch(
            self._url("jobs"),
            headers=self.headers,
            params={"id": f"eq.{job_id}"},
            json={"status": JobStatus(status).value},
        )
        if response.is_error:
            raise StoreError(
                f"Updating job {job_id} to {status} failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

    async def get_file(self, file_id: str) -> Optional[FileRecord]:
        rows = await self._select(
            "files",
            {"id": f"eq.{file_id}", "select": "id,public_url,mime_type,storage_path"},
        )
        return FileRecord.model_validate(rows[0]) if rows else None

    async def insert_question(self, row: Dict[str, Any]) -> None:
        response = await self.http.post(self._url("mcqs"), headers=self.headers, json=row)
        if response.is_error:
            raise StoreError(
                f"Inserting question failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

    async def list_questions(self, offset: int, limit: int, file_id: Optional[str] = None) -> List[Question]:
        """Newest questions first, one feed page at a time."""
        params = {
            "select": "*",
            "order": "created_at.desc",
            "offset": offset,
            "limit": limit,
        }
        if file_id:
            params["file_id"] = f"eq.{file_id}"
        rows = await self._select("mcqs", params)
        return [Question.model_validate(row) for row in rows]
