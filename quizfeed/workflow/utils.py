import base64
from typing import Optional

from quizfeed.core.config import DEFAULT_MIME_TYPE, ENCODE_CHUNK_SIZE, MCQ_PROMPT, MIME_TYPES, QUESTION_COUNT
from quizfeed.models.question import FileRecord


def infer_mime_type(storage_path: Optional[str]) -> str:
    """Guess a MIME type from the storage path's extension."""
    if not storage_path or "." not in storage_path:
        return DEFAULT_MIME_TYPE
    suffix = storage_path.rsplit(".", 1)[-1].lower()
    return MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


def resolve_mime_type(file: FileRecord) -> str:
    """Use the stored MIME type when present, otherwise infer it."""
    return file.mime_type or infer_mime_type(file.storage_path)


def encode_base64_chunked(data: bytes, chunk_size: int = ENCODE_CHUNK_SIZE) -> str:
    """Base64-encode data chunk by chunk with output identical to a single pass.

    Bytes that do not fill a 3-byte group are carried into the next chunk so
    no padding is emitted mid-stream.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    view = memoryview(data)
    parts = []
    carry = b""
    for start in range(0, len(view), chunk_size):
        block = carry + bytes(view[start:start + chunk_size])
        usable = len(block) - len(block) % 3
        parts.append(base64.b64encode(block[:usable]))
        carry = block[usable:]
    if carry:
        parts.append(base64.b64encode(carry))
    return b"".join(parts).decode("ascii")


def build_prompt(count: int = QUESTION_COUNT) -> str:
    return MCQ_PROMPT.format(count=count)
