"""Data models for quiz question generation."""

import enum
import math
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import QuizGenerationError


class QuestionType(str, enum.Enum):
    """Question formats the generator can produce."""

    MC = "mc"  # Multiple choice, exactly one correct answer
    MA = "ma"  # Multiple answer, one or more correct answers
    TF = "tf"  # True/False


class DifficultyLevel(str, enum.Enum):
    """Difficulty levels for generated questions."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class ContentType(str, enum.Enum):
    """Where the source text came from, which decides how it is cleaned."""

    TEXT = "text"
    PDF = "pdf"
    DOCX = "docx"


DEFAULT_COUNT = 5
DEFAULT_ANSWER_COUNT = 4
MIN_COUNT, MAX_COUNT = 1, 100
MIN_ANSWER_COUNT, MAX_ANSWER_COUNT = 3, 6

# Estimation constants for GenerationEstimate
PROMPT_OVERHEAD_TOKENS = 1500  # System prompt with examples
TOKENS_PER_QUESTION = 200


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token for English text."""
    return int(math.ceil(len(text) / 4))


def _to_count(value: Any) -> int:
    try:
        return abs(int(value))
    except (TypeError, ValueError):
        return 0


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def _filter_enum_values(value: Any, enum_cls: type[enum.Enum]) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, enum.Enum)):
        value = [value]
    valid = []
    for item in value:
        raw = item.value if isinstance(item, enum.Enum) else item
        try:
            valid.append(enum_cls(str(raw).lower()))
        except ValueError:
            continue
    return valid


class GenerationRequest(BaseModel):
    """Parameters for one generation run. Immutable once validated."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Source text to generate questions from")
    count: int = Field(DEFAULT_COUNT, ge=MIN_COUNT, le=MAX_COUNT)
    types: FrozenSet[QuestionType] = Field(
        default_factory=lambda: frozenset({QuestionType.MC})
    )
    difficulty: FrozenSet[DifficultyLevel] = Field(
        default_factory=lambda: frozenset({DifficultyLevel.MEDIUM})
    )
    answer_count: int = Field(
        DEFAULT_ANSWER_COUNT, ge=MIN_ANSWER_COUNT, le=MAX_ANSWER_COUNT
    )
    generate_feedback: bool = True
    requester_id: Optional[str] = None
    content_type: ContentType = ContentType.TEXT

    @field_validator("types", "difficulty")
    @classmethod
    def validate_non_empty(cls, v: FrozenSet[Any]) -> FrozenSet[Any]:
        """Reject empty type/difficulty selections."""
        if not v:
            raise ValueError("at least one value is required")
        return v

    @field_validator("requester_id", mode="before")
    @classmethod
    def coerce_requester_id(cls, v: Any) -> Any:
        """Accept integer user IDs as well as string identifiers."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def ordered_types(self) -> List[QuestionType]:
        """Requested types in canonical order (mc, ma, tf)."""
        return [qt for qt in QuestionType if qt in self.types]

    @property
    def ordered_difficulties(self) -> List[DifficultyLevel]:
        """Requested difficulties in canonical order (easy..expert)."""
        return [dl for dl in DifficultyLevel if dl in self.difficulty]

    @classmethod
    def from_params(
        cls, content: str, params: Optional[Mapping[str, Any]] = None
    ) -> "GenerationRequest":
        """Build a request from loosely-typed parameters.

        Out-of-range counts are clamped, unknown types and difficulties are
        dropped, and empty selections fall back to the defaults.

        Args:
            content: Source text
            params: Raw parameters (count, types, difficulty, answer_count,
                generate_feedback, requester_id/user_id, content_type)

        Returns:
            A validated GenerationRequest
        """
        params = params or {}

        types = _filter_enum_values(params.get("types"), QuestionType)
        difficulty = _filter_enum_values(params.get("difficulty"), DifficultyLevel)
        content_types = _filter_enum_values(params.get("content_type"), ContentType)
        requester_id = params.get("requester_id", params.get("user_id")) or None

        return cls(
            content=content,
            count=_clamp(
                _to_count(params.get("count", DEFAULT_COUNT)), MIN_COUNT, MAX_COUNT
            ),
            types=frozenset(types or [QuestionType.MC]),
            difficulty=frozenset(difficulty or [DifficultyLevel.MEDIUM]),
            answer_count=_clamp(
                _to_count(params.get("answer_count", DEFAULT_ANSWER_COUNT)),
                MIN_ANSWER_COUNT,
                MAX_ANSWER_COUNT,
            ),
            generate_feedback=bool(params.get("generate_feedback", True)),
            requester_id=requester_id,
            content_type=content_types[0] if content_types else ContentType.TEXT,
        )


class Answer(BaseModel):
    """One selectable option of a generated question."""

    text: str = Field(..., min_length=1)
    is_correct: bool = False
    feedback: str = ""


class GeneratedQuestion(BaseModel):
    """A fully normalized question that passed structural validation."""

    type: QuestionType
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    stem: str = Field(..., min_length=1)
    answers: List[Answer] = Field(..., min_length=2)
    feedback_correct: str = ""
    feedback_incorrect: str = ""

    @property
    def correct_count(self) -> int:
        """Number of answers flagged correct."""
        return sum(1 for answer in self.answers if answer.is_correct)


class ValidationIssue(BaseModel):
    """A structural problem found in one raw question of a batch."""

    index: int = Field(..., ge=1, description="1-based position in the raw batch")
    code: str
    message: str


class TokenUsage(BaseModel):
    """Token usage reported by the provider for one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_usage(cls, usage: Optional[Mapping[str, Any]]) -> "TokenUsage":
        """Build from the ``usage`` object of a completion envelope."""
        if not isinstance(usage, Mapping):
            return cls()
        prompt = _to_count(usage.get("prompt_tokens"))
        completion = _to_count(usage.get("completion_tokens"))
        total = _to_count(usage.get("total_tokens")) or prompt + completion
        return cls(
            prompt_tokens=prompt, completion_tokens=completion, total_tokens=total
        )


class ContentInfo(BaseModel):
    """Facts about the normalized source content."""

    was_truncated: bool = False
    char_count: int = 0
    token_estimate: int = 0


class GenerationResult(BaseModel):
    """Terminal output of one successful pipeline run."""

    questions: List[GeneratedQuestion]
    total_generated: int
    valid_count: int
    invalid_count: int
    partial_success: bool
    validation_errors: List[ValidationIssue] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    content_info: Optional[ContentInfo] = None

    def to_response(self) -> Dict[str, Any]:
        """Render the outbound response shape returned to callers."""
        response: Dict[str, Any] = {
            "questions": [q.model_dump(mode="json") for q in self.questions],
            "token_usage": self.token_usage.model_dump(),
            "validation": {
                "total_generated": self.total_generated,
                "valid_count": self.valid_count,
                "invalid_count": self.invalid_count,
                "partial_success": self.partial_success,
                "validation_errors": [
                    issue.model_dump() for issue in self.validation_errors
                ],
            },
        }
        if self.content_info is not None:
            response["content_info"] = self.content_info.model_dump()
        return response


class GenerationEstimate(BaseModel):
    """Pre-flight estimate of a generation request's size and cost."""

    content_length: int
    will_truncate: bool
    truncated_length: int
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    question_count: int

    @classmethod
    def for_content(
        cls, content: str, count: int, max_content_length: int
    ) -> "GenerationEstimate":
        """Estimate token usage for generating ``count`` questions."""
        content_length = len(content)
        will_truncate = content_length > max_content_length
        prompt_tokens = estimate_tokens(content) + PROMPT_OVERHEAD_TOKENS
        completion_tokens = count * TOKENS_PER_QUESTION
        return cls(
            content_length=content_length,
            will_truncate=will_truncate,
            truncated_length=max_content_length if will_truncate else content_length,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            question_count=count,
        )


@dataclass(frozen=True)
class GenerationOutcome:
    """Either a GenerationResult or the typed error that prevented one.

    Exactly one of ``result`` and ``error`` is set. Callers branch on
    ``ok`` or call ``unwrap()`` to get the result or re-raise the error.
    """

    result: Optional[GenerationResult] = None
    error: Optional[QuizGenerationError] = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("GenerationOutcome needs exactly one of result/error")

    @classmethod
    def success(cls, result: GenerationResult) -> "GenerationOutcome":
        return cls(result=result)

    @classmethod
    def failure(cls, error: QuizGenerationError) -> "GenerationOutcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.result is not None

    def unwrap(self) -> GenerationResult:
        """Return the result, raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result
