from pathlib import Path
from dotenv import load_dotenv
from cachetools import TTLCache

# Load environment variables
load_dotenv()

# Directory Configuration
BASE_DIR = Path(__file__).parent.parent.parent
LOGS_DIR = BASE_DIR / "logs"

# Ensure directories exist
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Source file handling
MIME_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

# Gemini rejects larger inline payloads
MAX_FILE_BYTES = 20 * 1024 * 1024
ENCODE_CHUNK_SIZE = 8 * 1024

QUESTION_COUNT = 30

MCQ_PROMPT = """You are an expert teacher writing a quiz from the attached study material.

Generate exactly {count} multiple-choice questions that test the subject matter of the material.
Rules:
1. Every question must have exactly 4 options.
2. "answer_index" is the zero-based index of the single correct option.
3. Ask only about the content itself. Do not ask about the file, its layout, page numbers or formatting.
4. Respond with a JSON array ONLY, no prose and no Markdown, using this shape:
[{{"question": "...", "options": ["...", "...", "...", "..."], "answer_index": 0}}]"""

# Cache Configuration
# Last fatal error per job id, the jobs table only stores the status
ERROR_CACHE = TTLCache(maxsize=1000, ttl=3600)
