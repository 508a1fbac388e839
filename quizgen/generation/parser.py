"""Recovery-oriented parsing of model output into raw question dicts.

Models wrap JSON in markdown fences, add chatter before and after it, leave
trailing commas and put raw newlines inside strings. The parser applies a
fixed sequence of recovery strategies before giving up:

1. Take the first fenced code block if there is one.
2. Trim to the start of the JSON value.
3. Bound the value by scanning for the matching close bracket.
4. Parse strictly.
5. On failure, repair common defects and parse once more.

The parsed document is then searched for the question list in the shapes
models are known to return.
"""

import json
import logging
import re
from typing import Any, List

from ..errors import ParseError
from ..text_utils import CONTROL_CHARS_PATTERN, extract_code_block
from ..type_mapping import QUESTION_MARKER_KEYS, STEM_MARKER_KEYS

logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_LENGTH = 500

TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")

OPENING_BRACKETS = "{["
CLOSING_BRACKETS = "}]"

# Wrapper objects that hold the question list, in lookup order
NESTED_CONTAINER_KEYS = ("quiz", "data")

STRING_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def extract_json_candidate(text: str) -> str:
    """Narrow raw model output down to the text of one JSON value.

    Args:
        text: Raw model output

    Returns:
        The candidate JSON text (may still be malformed)
    """
    block = extract_code_block(text)
    if block is not None:
        text = block

    text = text.strip()

    # A leading "[" is a bare array only if it bounds to parseable JSON;
    # otherwise it is prose such as "[Note]" before the object
    if text.startswith("["):
        array = text[: find_json_end(text)]
        if _is_json(array) or _is_json(repair_json(array)):
            return array

    json_start = text.find("{")
    if json_start > 0:
        text = text[json_start:]

    if text[:1] in OPENING_BRACKETS:
        text = text[: find_json_end(text)]

    return text


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def find_json_end(text: str) -> int:
    """Find where the JSON value starting at ``text[0]`` ends.

    Tracks bracket depth outside string literals, honoring backslash escapes
    inside strings, so braces inside string values do not count.

    Returns:
        Index just past the matching close bracket, or ``len(text)`` if the
        value never closes
    """
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char in OPENING_BRACKETS:
            depth += 1
        elif char in CLOSING_BRACKETS:
            depth -= 1
            if depth == 0:
                return i + 1

    return len(text)


def escape_string_newlines(text: str) -> str:
    """Escape raw line breaks and tabs that occur inside string literals."""
    result = []
    in_string = False
    escape_next = False

    for char in text:
        if escape_next:
            escape_next = False
            result.append(char)
            continue
        if char == "\\" and in_string:
            escape_next = True
            result.append(char)
            continue
        if char == '"':
            in_string = not in_string
        elif in_string and char in STRING_ESCAPES:
            result.append(STRING_ESCAPES[char])
            continue
        result.append(char)

    return "".join(result)


def repair_json(text: str) -> str:
    """Apply the known repairs for malformed model JSON.

    Repairs run in order: trailing commas, raw newlines inside strings,
    control characters, then single-quoted strings (only when the text has
    no double quotes at all).
    """
    text = TRAILING_COMMA_PATTERN.sub(r"\1", text)
    text = escape_string_newlines(text)
    text = CONTROL_CHARS_PATTERN.sub("", text)
    if '"' not in text and "'" in text:
        text = text.replace("'", '"')
    return text


def _looks_like_question(item: Any, marker_keys: tuple) -> bool:
    return isinstance(item, dict) and any(key in item for key in marker_keys)


def extract_questions(data: Any) -> List[Any]:
    """Locate the question list inside a parsed response.

    Accepted shapes, in order: ``{"questions": [...]}``,
    ``{"quiz": {"questions": [...]}}``, ``{"data": {"questions": [...]}}``,
    a bare array of question objects, and finally any top-level list whose
    first item has a stem.

    Raises:
        ParseError: If no question list is found (code ``invalid_format``)
    """
    if isinstance(data, dict):
        if isinstance(data.get("questions"), list):
            return data["questions"]

        for container_key in NESTED_CONTAINER_KEYS:
            container = data.get(container_key)
            if isinstance(container, dict) and isinstance(
                container.get("questions"), list
            ):
                return container["questions"]

        for value in data.values():
            if isinstance(value, list) and value:
                if _looks_like_question(value[0], STEM_MARKER_KEYS):
                    return value

    elif isinstance(data, list):
        if data and _looks_like_question(data[0], QUESTION_MARKER_KEYS):
            return data

    data_keys: Any = list(data.keys()) if isinstance(data, dict) else "not_object"
    raise ParseError(
        "AI response does not contain questions in a recognized format. "
        "Please try again.",
        code="invalid_format",
        data={"data_keys": data_keys},
    )


class ResponseParser:
    """Turns raw model text into a list of raw question dicts."""

    def parse(self, raw_text: str) -> List[Any]:
        """
        Parse model output into raw question items.

        Args:
            raw_text: Model output as returned by the completion API

        Returns:
            Non-empty list of raw question items (not yet validated)

        Raises:
            ParseError: ``json_error`` if no strategy yields valid JSON,
                ``invalid_format`` if the JSON holds no question list,
                ``no_questions`` if the question list is empty
        """
        candidate = extract_json_candidate(raw_text or "")
        data = self._load(candidate, raw_text or "")

        questions = extract_questions(data)
        if not questions:
            raise ParseError(
                "The AI response did not contain any questions. "
                "Please try again with different content.",
                code="no_questions",
            )

        logger.debug(f"Parsed {len(questions)} raw questions from model output")
        return questions

    def _load(self, candidate: str, original: str) -> Any:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as first_error:
            error: json.JSONDecodeError = first_error

        repaired = repair_json(candidate)
        if repaired != candidate:
            try:
                data = json.loads(repaired)
                logger.info("Recovered model output after JSON repair")
                return data
            except json.JSONDecodeError as repair_error:
                error = repair_error

        logger.warning(f"Failed to parse model output as JSON: {error.msg}")
        raise ParseError(
            f"Failed to parse AI response: {error.msg}. The AI may have "
            "returned an invalid format. Please try again.",
            code="json_error",
            data={
                "response_preview": original[:RESPONSE_PREVIEW_LENGTH],
                "json_error": str(error),
            },
        )

