"""
Recover the question array from free-form model output.

The model is asked for a bare JSON array but may wrap it in a Markdown
```json fence or surround it with prose. Each strategy is a pure function
over the text that returns the decoded JSON value or raises ValueError;
parse_questions tries them in order.
"""

import json
import re
from typing import Any, Callable, List, Literal, Tuple, Union

from langsmith import traceable
from pydantic import BaseModel

FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
EMBEDDED_ARRAY_START_RE = re.compile(r"\[\s*\{")


class Parsed(BaseModel):
    kind: Literal["parsed"] = "parsed"
    items: List[Any]


class ParseFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str
    raw: str


ParseResult = Union[Parsed, ParseFailed]


def parse_direct(text: str) -> Any:
    return json.loads(text)


def parse_fenced(text: str) -> Any:
    match = FENCED_JSON_RE.search(text)
    if not match:
        raise ValueError("no ```json block found")
    return json.loads(match.group(1))


def parse_embedded(text: str) -> Any:
    decoder = json.JSONDecoder()
    for match in EMBEDDED_ARRAY_START_RE.finditer(text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        return value
    raise ValueError("no JSON array of objects found")


STRATEGIES: Tuple[Tuple[str, Callable[[str], Any]], ...] = (
    ("direct", parse_direct),
    ("fenced", parse_fenced),
    ("embedded", parse_embedded),
)


@traceable(name="parse_questions")
def parse_questions(text: str) -> ParseResult:
    """Parse model output into a list of question items."""
    errors = []
    for name, strategy in STRATEGIES:
        try:
            value = strategy(text)
        except ValueError as e:
            errors.append(f"{name}: {e}")
            continue

        if not isinstance(value, list):
            return ParseFailed(reason=f"expected a JSON array, got {type(value).__name__}", raw=text)
        return Parsed(items=value)

    return ParseFailed(reason="; ".join(errors), raw=text)
