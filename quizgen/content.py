"""Content normalization for question generation.

Turns raw source text (typed, pasted, or extracted from a PDF or Word
document) into the bounded plain text that is embedded in the prompt.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .config import settings
from .errors import ContentError
from .models import ContentInfo, ContentType, estimate_tokens
from .text_utils import collapse_whitespace, strip_markup

logger = logging.getLogger(__name__)

# Only cut at a sentence boundary inside the last 10% of the budget
SENTENCE_BOUNDARY_WINDOW = 0.9

# Meaningful-content thresholds
MIN_WORD_COUNT = 20
MIN_LETTER_RATIO = 0.5
MIN_UNIQUE_LINE_RATIO = 0.5
REPETITION_CHECK_MIN_LINES = 10

WORD_PATTERN = re.compile(r"[A-Za-z'-]+")
LETTER_PATTERN = re.compile(r"[A-Za-z]")

# PDF extraction artifacts
FORM_FEED_PATTERN = re.compile(r"\f")
HORIZONTAL_SPACE_PATTERN = re.compile(r"[^\S\n]+")
EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")
PAGE_NUMBER_LINE_PATTERN = re.compile(r"^\s*\d+\s*$", re.MULTILINE)
PAGE_X_OF_Y_PATTERN = re.compile(r"page\s+\d+\s+(?:of|/)\s+\d+", re.IGNORECASE)
HYPHENATED_BREAK_PATTERN = re.compile(r"(\w)-\n(\w)")

# Word extraction artifacts
LINE_ENDING_PATTERN = re.compile(r"\r\n?")
BLANK_LINE_PATTERN = re.compile(r"^[^\S\n]+$", re.MULTILINE)


@dataclass(frozen=True)
class NormalizedContent:
    """Normalized source text plus facts needed for reporting."""

    text: str
    was_truncated: bool
    char_count: int
    token_estimate: int

    def to_content_info(self) -> ContentInfo:
        return ContentInfo(
            was_truncated=self.was_truncated,
            char_count=self.char_count,
            token_estimate=self.token_estimate,
        )


class ContentNormalizer:
    """Cleans, validates and truncates source content.

    Attributes:
        max_length: Maximum characters kept after normalization
        min_length: Minimum characters required by ``prepare``
    """

    def __init__(
        self,
        max_length: Optional[int] = None,
        min_length: Optional[int] = None,
    ):
        """Initialize the normalizer.

        Args:
            max_length: Character budget (default: settings.max_content_length)
            min_length: Minimum length for ``prepare`` (default:
                settings.min_content_length)
        """
        self.max_length = (
            max_length if max_length is not None else settings.max_content_length
        )
        self.min_length = (
            min_length if min_length is not None else settings.min_content_length
        )

    def normalize(self, raw: str) -> NormalizedContent:
        """Strip markup, collapse whitespace, and truncate to the budget.

        Args:
            raw: Raw source text

        Returns:
            NormalizedContent with the cleaned text and truncation flag

        Raises:
            ContentError: If nothing remains after cleaning
        """
        text = collapse_whitespace(strip_markup(raw or ""))

        if not text:
            raise ContentError(
                "Content is required for question generation.",
                code="empty_content",
            )

        text, was_truncated = self.truncate(text)
        if was_truncated:
            logger.info(
                f"Content truncated to {len(text)} characters "
                f"(budget {self.max_length})"
            )

        return NormalizedContent(
            text=text,
            was_truncated=was_truncated,
            char_count=len(text),
            token_estimate=estimate_tokens(text),
        )

    def truncate(self, text: str) -> tuple[str, bool]:
        """Cut ``text`` to the character budget.

        Prefers to end just after the last period when that period falls in
        the final 10% of the budget, so the prompt does not end mid-sentence.

        Returns:
            Tuple of (text, was_truncated)
        """
        if len(text) <= self.max_length:
            return text, False

        text = text[: self.max_length]
        last_period = text.rfind(".")
        if last_period != -1 and last_period > self.max_length * SENTENCE_BOUNDARY_WINDOW:
            text = text[: last_period + 1]
        return text, True

    def prepare(
        self, raw: str, content_type: ContentType = ContentType.TEXT
    ) -> NormalizedContent:
        """Clean content by source type, then normalize and sanity-check it.

        Args:
            raw: Raw source text
            content_type: Origin of the text (plain text, PDF or Word)

        Returns:
            NormalizedContent ready for prompt compilation

        Raises:
            ContentError: If the content is empty, too short, or does not
                look like meaningful prose
        """
        if not raw or not raw.strip():
            raise ContentError(
                "No content provided for question generation.",
                code="empty_content",
            )

        if content_type == ContentType.PDF:
            raw = clean_pdf_text(raw)
        elif content_type == ContentType.DOCX:
            raw = clean_docx_text(raw)

        normalized = self.normalize(raw)

        if normalized.char_count < self.min_length:
            raise ContentError(
                "Content is too short for question generation. "
                f"Please provide at least {self.min_length} characters.",
                code="content_too_short",
                data={"char_count": normalized.char_count, "min_length": self.min_length},
            )

        # Repetition is a line-level property, so check the pre-collapse text
        if not is_meaningful_content(normalized.text, original=raw):
            raise ContentError(
                "The provided content does not appear to contain meaningful "
                "text for question generation.",
                code="invalid_content",
            )

        return normalized


def clean_pdf_text(content: str) -> str:
    """Remove common PDF extraction artifacts."""
    content = FORM_FEED_PATTERN.sub("\n\n", content)
    content = HORIZONTAL_SPACE_PATTERN.sub(" ", content)
    content = EXCESS_NEWLINES_PATTERN.sub("\n\n", content)
    content = PAGE_NUMBER_LINE_PATTERN.sub("", content)
    content = PAGE_X_OF_Y_PATTERN.sub("", content)
    return HYPHENATED_BREAK_PATTERN.sub(r"\1\2", content)


def clean_docx_text(content: str) -> str:
    """Remove common Word extraction artifacts."""
    content = LINE_ENDING_PATTERN.sub("\n", content)
    content = HORIZONTAL_SPACE_PATTERN.sub(" ", content)
    content = BLANK_LINE_PATTERN.sub("", content)
    return EXCESS_NEWLINES_PATTERN.sub("\n\n", content)


def is_meaningful_content(text: str, original: Optional[str] = None) -> bool:
    """Heuristic check that text is prose rather than noise.

    Args:
        text: Normalized text
        original: Text before whitespace collapsing, used for the
            repeated-line check (defaults to ``text``)

    Returns:
        True if the content looks usable for question generation
    """
    if len(WORD_PATTERN.findall(text)) < MIN_WORD_COUNT:
        return False

    letters = len(LETTER_PATTERN.findall(text))
    if text and letters / len(text) < MIN_LETTER_RATIO:
        return False

    source = original if original is not None else text
    lines = [line.strip() for line in source.split("\n") if line.strip()]
    if len(lines) > REPETITION_CHECK_MIN_LINES:
        if len(set(lines)) < len(lines) * MIN_UNIQUE_LINE_RATIO:
            return False

    return True
