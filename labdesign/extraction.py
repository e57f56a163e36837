"""
Response Extractor & Validator

Generated text is prose around (at most) one structured payload. This module
turns it into a validated artifact or a typed failure, never a partial object:

    1. find_json_region   - first top-level balanced {...} or [...] region
    2. parse_json_region  - json.loads on that region
    3. validate_payload   - pydantic validation against the artifact schema

The scanner tracks string literals and escapes, so braces inside strings do
not count, and it is indifferent to markdown code fences around the payload.
"""

import json
import logging
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import GenerationFormatError, SchemaViolationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

RegionKind = Literal["object", "array"]

_OPENERS = {"object": "{", "array": "["}
_PAIRS = {"{": "}", "[": "]"}

# Max chars of generated text echoed into error details
SNIPPET_LIMIT = 500


def _snippet(text: str) -> str:
    if len(text) <= SNIPPET_LIMIT:
        return text
    return text[:SNIPPET_LIMIT] + "..."


def find_json_region(text: str, kind: RegionKind = "object") -> str:
    """
    Return the first top-level balanced region of the requested kind.

    Args:
        text: Raw generated text.
        kind: 'object' for {...}, 'array' for [...].

    Returns:
        The region substring, brackets included.

    Raises:
        GenerationFormatError: no opening bracket, or it is never closed.
    """
    opener = _OPENERS[kind]
    start = text.find(opener)
    if start == -1:
        raise GenerationFormatError(
            f"No JSON {kind} found in generated text",
            substring=_snippet(text),
        )

    stack = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _PAIRS:
            stack.append(_PAIRS[ch])
        elif ch in ("}", "]"):
            if not stack or stack[-1] != ch:
                raise GenerationFormatError(
                    f"Mismatched '{ch}' at offset {i} in generated JSON {kind}",
                    substring=_snippet(text[start:i + 1]),
                )
            stack.pop()
            if not stack:
                return text[start:i + 1]

    raise GenerationFormatError(
        f"Unterminated JSON {kind} in generated text",
        substring=_snippet(text[start:]),
    )


def parse_json_region(region: str) -> Any:
    """
    Parse a bracketed region as JSON.

    Raises:
        GenerationFormatError: the region is not valid JSON. The offending
            substring is carried in details.
    """
    try:
        return json.loads(region)
    except json.JSONDecodeError as e:
        raise GenerationFormatError(
            f"Generated JSON is malformed: {e.msg} (line {e.lineno}, column {e.colno})",
            substring=_snippet(region),
        ) from e


def format_loc(loc: tuple) -> str:
    """
    Render a pydantic error location as a field path.

    ('zones', 0, 'position', 'x') -> 'zones[0].position.x'
    """
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "<root>"


def _schema_violation(e: ValidationError, schema_name: str) -> SchemaViolationError:
    violations = [
        {"field_path": format_loc(err["loc"]), "constraint": err["msg"], "type": err["type"]}
        for err in e.errors()
    ]
    first = violations[0]
    return SchemaViolationError(
        f"{schema_name} failed validation at {first['field_path']}: {first['constraint']}",
        field_path=first["field_path"],
        constraint=first["constraint"],
        violations=violations,
    )


def validate_payload(data: Any, schema: type[T]) -> T:
    """
    Validate parsed JSON against an artifact schema.

    Raises:
        SchemaViolationError: with the first failing field path, its
            constraint, and every violation pydantic reported.
    """
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise _schema_violation(e, schema.__name__) from e


def validate_payload_list(data: Any, item_schema: type[T]) -> list[T]:
    """Validate a JSON array where every element must satisfy item_schema."""
    try:
        return TypeAdapter(list[item_schema]).validate_python(data)
    except ValidationError as e:
        raise _schema_violation(e, f"list[{item_schema.__name__}]") from e


def extract_model(text: str, schema: type[T]) -> T:
    """Find, parse and validate a single object artifact in generated text."""
    data = parse_json_region(find_json_region(text, "object"))
    result = validate_payload(data, schema)
    logger.debug("extracted %s from %d chars", schema.__name__, len(text))
    return result


def extract_model_list(text: str, item_schema: type[T]) -> list[T]:
    """Find, parse and validate an array artifact in generated text."""
    data = parse_json_region(find_json_region(text, "array"))
    result = validate_payload_list(data, item_schema)
    logger.debug("extracted %d %s from %d chars", len(result), item_schema.__name__, len(text))
    return result
