"""Shared text utility functions for the quiz generation service.

Provides the markup stripping, sanitization and code-fence handling used by
the content normalizer, the response parser and the question validator.
"""

import html
import re
from typing import Optional

# Fenced code block anywhere in the text: ```json ... ``` or ``` ... ```
CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Bodies of these elements are never readable text
SCRIPT_STYLE_PATTERN = re.compile(
    r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)

# Opening/closing tags and HTML comments; a bare "<" in prose is left alone
TAG_PATTERN = re.compile(r"<!--.*?-->|</?[a-zA-Z][^<>]*>", re.DOTALL)

# Control characters to strip (except newlines, tabs, carriage returns)
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

WHITESPACE_PATTERN = re.compile(r"\s+")


def extract_code_block(text: str) -> Optional[str]:
    """Return the content of the first fenced code block, if any.

    LLMs often wrap JSON responses in markdown code blocks like:
    ```json
    {...}
    ```

    Args:
        text: Raw text that may contain a fenced code block

    Returns:
        The block's inner text, or None if no complete block is present
    """
    if not text:
        return None

    match = CODE_BLOCK_PATTERN.search(text)
    if match:
        return match.group(1)
    return None


def strip_tags(text: str) -> str:
    """Remove HTML/XML tags, comments and script/style bodies."""
    text = SCRIPT_STYLE_PATTERN.sub("", text)
    return TAG_PATTERN.sub("", text)


def strip_markup(text: str) -> str:
    """Reduce markup to plain readable text, decoding HTML entities."""
    return html.unescape(strip_tags(text))


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def sanitize_text(value: Optional[str]) -> str:
    """Sanitize model-produced free text for storage and display.

    Strips tags and control characters and trims surrounding whitespace.
    Line breaks inside the text are preserved.

    Args:
        value: Raw text (non-strings are converted, None becomes "")

    Returns:
        Sanitized text
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)

    value = strip_tags(value)
    value = CONTROL_CHARS_PATTERN.sub("", value)
    return value.strip()
