from typing import Optional


class PipelineError(Exception):
    """Base class for fatal generation pipeline failures."""


class StoreError(PipelineError):
    """The relational store rejected a request or returned no row."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SourceNotFoundError(PipelineError):
    """A referenced file or job row does not exist."""


class SourceFetchError(PipelineError):
    """The uploaded file could not be downloaded from its public URL."""


class PayloadTooLargeError(PipelineError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large: {size:,} bytes exceeds the {limit:,} byte "
            f"({limit / (1024 * 1024):g} MiB) limit for question generation"
        )


class ProviderError(PipelineError):
    """The generation provider failed; body holds the provider's raw error text."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "", retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.retryable = retryable


class OutputParseError(PipelineError):
    def __init__(self, reason: str, raw: str):
        self.reason = reason
        self.raw = raw
        super().__init__(f"Could not parse questions from model output ({reason}). Raw output: {raw}")


class InvalidTransitionError(PipelineError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid job status transition: {current} -> {target}")
