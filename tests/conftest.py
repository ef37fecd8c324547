import json
import os
import sys
from itertools import count

import httpx
import pytest
from rich.console import Console
from rich.live import Live
from rich.table import Table

# Add the project root directory to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from quizfeed.config import Settings  # noqa: E402
from quizfeed.workflow.runner import GenerationPipeline  # noqa: E402

SUPABASE_URL = "http://supabase.test"
GEMINI_API_BASE = "http://gemini.test/v1beta"
SERVICE_KEY = "service-role-key"
GEMINI_KEY = "gemini-key"

CATEGORIES = ["unit", "integration", "api"]


def pytest_configure(config):
    """Add custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")


class TestProgress:
    __test__ = False

    def __init__(self):
        self.table = self._new_table()
        self.stats = {name: {"total": 0, "passed": 0, "failed": 0, "duration": 0.0} for name in CATEGORIES}
        self.live = None

    def start(self):
        """Start the live display"""
        try:
            self.refresh_table()
            self.live = Live(self.table, console=Console(stderr=True), refresh_per_second=4)
            self.live.start()
        except Exception:
            self.live = None

    def stop(self):
        """Stop the live display"""
        if self.live:
            self.refresh_table()
            self.live.stop()
            self.live = None

    @staticmethod
    def _new_table():
        table = Table(show_header=True, header_style="bold magenta")
        for column in ("Category", "Total", "Passed", "Failed", "Duration"):
            table.add_column(column)
        return table

    def refresh_table(self):
        # Rich keeps cells per column, so clearing rows alone desyncs the table
        self.table = self._new_table()
        for category, stats in self.stats.items():
            self.table.add_row(
                category,
                str(stats["total"]),
                f"[green]{stats['passed']}[/]",
                f"[red]{stats['failed']}[/]",
                f"{stats['duration']:.2f}s"
            )
        if self.live:
            self.live.update(self.table)

    def update_stats(self, category, passed, duration):
        stats = self.stats[category]
        stats["total"] += 1
        stats["passed" if passed else "failed"] += 1
        stats["duration"] += duration
        self.refresh_table()


test_progress = TestProgress()


@pytest.fixture(scope="session", autouse=True)
def progress_tracker():
    test_progress.start()
    yield test_progress
    test_progress.stop()


def pytest_runtest_logreport(report):
    """Update progress after each test"""
    if report.when != "call":
        return
    # Categories follow the test directory layout
    category = next((name for name in CATEGORIES if f"/{name}/" in f"/{report.nodeid}"), "unit")
    test_progress.update_stats(category, report.passed, report.duration)


def provider_payload(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class FakeBackend:
    """In-memory stand-in for Supabase REST, the storage host and Gemini."""

    def __init__(self):
        self._ids = count(1)
        self._clock = count(1)
        self.jobs = {}
        self.status_history = {}
        self.files = {}
        self.mcqs = []
        self.blobs = {}
        self.redirects = {}
        self.provider_queue = []
        self.provider_calls = []
        self.rest_headers = []
        self.fail_job_insert = None
        self.empty_job_insert = False
        self.failing_statuses = set()
        self.failing_mcq_inserts = set()
        self.mcq_attempts = 0

    # -- setup helpers ---------------------------------------------------

    def add_file(self, file_id, public_url, content, mime_type=None, storage_path=None):
        self.files[file_id] = {
            "id": file_id,
            "public_url": public_url,
            "mime_type": mime_type,
            "storage_path": storage_path,
        }
        self.blobs[public_url] = content

    def add_redirect(self, url, location, status_code=302):
        self.redirects[url] = (status_code, location)

    def add_job(self, job_id, file_id, status="queued"):
        self.jobs[job_id] = {"id": job_id, "file_id": file_id, "status": status}
        self.status_history[job_id] = [status]

    def queue_text(self, text):
        self.provider_queue.append(httpx.Response(200, json=provider_payload(text)))

    def queue_questions(self, questions):
        self.queue_text(json.dumps(questions))

    def queue_error(self, status_code, body):
        self.provider_queue.append(httpx.Response(status_code, text=body))

    def queue_exception(self, exc):
        self.provider_queue.append(exc)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    # -- request routing -------------------------------------------------

    def handler(self, request):
        if request.url.host == "supabase.test":
            self.rest_headers.append(request.headers)
            return self._rest(request)
        if request.url.host == "gemini.test":
            return self._gemini(request)
        url = str(request.url)
        if url in self.redirects:
            status_code, location = self.redirects[url]
            headers = {"Location": location} if location else {}
            return httpx.Response(status_code, headers=headers)
        if url in self.blobs:
            return httpx.Response(200, content=self.blobs[url])
        return httpx.Response(404, text="Object not found")

    @staticmethod
    def _filter_value(request, name):
        value = request.url.params.get(name)
        return value[len("eq."):] if value and value.startswith("eq.") else None

    def _rest(self, request):
        table = request.url.path.rsplit("/", 1)[-1]
        method = request.method

        if table == "jobs" and method == "POST":
            if self.fail_job_insert:
                return httpx.Response(500, text=self.fail_job_insert)
            if self.empty_job_insert:
                return httpx.Response(201, json=[])
            body = json.loads(request.content)
            job_id = f"job-{next(self._ids)}"
            self.add_job(job_id, body["file_id"], body["status"])
            if request.headers.get("Prefer") == "return=representation":
                return httpx.Response(201, json=[self.jobs[job_id]])
            return httpx.Response(201)

        if table == "jobs" and method == "GET":
            job = self.jobs.get(self._filter_value(request, "id"))
            return httpx.Response(200, json=[job] if job else [])

        if table == "jobs" and method == "PATCH":
            job_id = self._filter_value(request, "id")
            status = json.loads(request.content)["status"]
            if status in self.failing_statuses:
                return httpx.Response(503, text="store unavailable")
            if job_id in self.jobs:
                self.jobs[job_id]["status"] = status
                self.status_history[job_id].append(status)
            return httpx.Response(204)

        if table == "files" and method == "GET":
            row = self.files.get(self._filter_value(request, "id"))
            return httpx.Response(200, json=[row] if row else [])

        if table == "mcqs" and method == "POST":
            attempt = self.mcq_attempts
            self.mcq_attempts += 1
            if attempt in self.failing_mcq_inserts:
                return httpx.Response(500, text="insert rejected")
            row = json.loads(request.content)
            row["id"] = f"q-{next(self._ids)}"
            tick = next(self._clock)
            row["created_at"] = f"2024-01-01T00:{tick // 60:02d}:{tick % 60:02d}+00:00"
            self.mcqs.append(row)
            return httpx.Response(201)

        if table == "mcqs" and method == "GET":
            rows = list(self.mcqs)
            file_id = self._filter_value(request, "file_id")
            if file_id:
                rows = [row for row in rows if row["file_id"] == file_id]
            rows.sort(key=lambda row: row["created_at"], reverse=True)
            offset = int(request.url.params.get("offset", 0))
            limit = int(request.url.params.get("limit", len(rows)))
            return httpx.Response(200, json=rows[offset:offset + limit])

        return httpx.Response(404, text=f"unknown resource {table}")

    def _gemini(self, request):
        self.provider_calls.append({"params": dict(request.url.params), "body": json.loads(request.content)})
        if not self.provider_queue:
            return httpx.Response(200, json=provider_payload("[]"))
        outcome = self.provider_queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepRecorder:
    """Replacement for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def settings():
    return Settings(
        SUPABASE_URL=SUPABASE_URL,
        SUPABASE_SERVICE_ROLE_KEY=SERVICE_KEY,
        GEMINI_API_KEY=GEMINI_KEY,
        GEMINI_API_BASE=GEMINI_API_BASE,
    )


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def run_pipeline(backend, settings, sleeper):
    """Run the generation pipeline once against the fake backend."""
    async def run(file_id, job_id=None, **overrides):
        run_settings = settings.model_copy(update=overrides) if overrides else settings
        async with backend.client() as http:
            pipeline = GenerationPipeline.from_settings(run_settings, http, sleep=sleeper)
            return await pipeline.generate(file_id, job_id)
    return run


@pytest.fixture
def make_questions():
    """Build n well-formed question items."""
    def build(n):
        return [
            {
                "question": f"Question {i}?",
                "options": ["alpha", "beta", "gamma", "delta"],
                "answer_index": i % 4,
            }
            for i in range(n)
        ]
    return build
