"""Structural validation of raw questions returned by the model.

Each raw item is normalized through the alias tables in
``quizgen.type_mapping`` and then checked on its own. An invalid item is
recorded as a ``ValidationIssue`` and skipped; it never discards the rest
of the batch.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..errors import QuestionValidationError
from ..models import (
    Answer,
    GeneratedQuestion,
    QuestionType,
    ValidationIssue,
)
from ..text_utils import sanitize_text
from ..type_mapping import (
    ANSWER_FIELD_ALIASES,
    QUESTION_FIELD_ALIASES,
    QUESTION_TYPES,
    coerce_bool,
    first_present,
    normalize_difficulty,
    normalize_question_type,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("type", "stem", "answers")
MIN_ANSWERS = 2
SINGLE_CORRECT_TYPES = frozenset({QuestionType.MC, QuestionType.TF})
ERROR_SUMMARY_LIMIT = 3


class ValidationReport(BaseModel):
    """Valid questions of a batch plus the issues found in the rest."""

    questions: List[GeneratedQuestion]
    total_generated: int
    valid_count: int
    invalid_count: int
    validation_errors: List[ValidationIssue] = Field(default_factory=list)
    partial_success: bool = False


def normalize_answer(answer: Any) -> Optional[Dict[str, Any]]:
    """Map one raw answer onto ``text``/``is_correct``/``feedback``.

    Bare strings become incorrect answers. Returns None for answers with no
    text field at all.
    """
    if isinstance(answer, str):
        return {"text": answer, "is_correct": False, "feedback": ""}
    if not isinstance(answer, dict):
        return None

    text = first_present(answer, ANSWER_FIELD_ALIASES["text"])
    if text is None:
        return None

    return {
        "text": text,
        "is_correct": coerce_bool(
            first_present(answer, ANSWER_FIELD_ALIASES["is_correct"]) or False
        ),
        "feedback": first_present(answer, ANSWER_FIELD_ALIASES["feedback"]) or "",
    }


def normalize_question_fields(question: Any) -> Any:
    """Rename aliased fields of a raw question to their canonical names.

    Non-dict items are returned unchanged so validation can reject them.
    """
    if not isinstance(question, dict):
        return question

    normalized = dict(question)
    for canonical, aliases in QUESTION_FIELD_ALIASES.items():
        value = first_present(question, aliases)
        if value is not None:
            normalized[canonical] = value

    if normalized.get("type") is not None:
        normalized["type"] = normalize_question_type(normalized["type"])

    answers = normalized.get("answers")
    if isinstance(answers, list):
        normalized["answers"] = [
            answer
            for answer in (normalize_answer(a) for a in answers)
            if answer is not None
        ]

    return normalized


def validate_question(question: Any, index: int) -> GeneratedQuestion:
    """Validate one normalized question.

    Args:
        question: Output of ``normalize_question_fields``
        index: 1-based position in the raw batch

    Returns:
        The sanitized GeneratedQuestion

    Raises:
        QuestionValidationError: With the item-level code (``invalid_question``,
            ``missing_field``, ``invalid_type``, ``invalid_answers``,
            ``incorrect_count`` or ``no_correct``)
    """
    if not isinstance(question, dict):
        raise QuestionValidationError(
            f"Question {index} is not an object.", code="invalid_question"
        )

    for field in REQUIRED_FIELDS:
        if not question.get(field):
            raise QuestionValidationError(
                f"Question {index} is missing required field: {field}",
                code="missing_field",
            )

    if not isinstance(question["answers"], list):
        raise QuestionValidationError(
            f"Question {index} answers must be a list.", code="invalid_answers"
        )

    if question["type"] not in QUESTION_TYPES:
        raise QuestionValidationError(
            f"Question {index} has an invalid type.", code="invalid_type"
        )
    question_type = QuestionType(question["type"])

    answers = [
        Answer(
            text=sanitize_text(answer["text"]),
            is_correct=answer["is_correct"],
            feedback=sanitize_text(answer["feedback"]),
        )
        for answer in question["answers"]
        if isinstance(answer, dict) and sanitize_text(answer.get("text"))
    ]

    if len(answers) < MIN_ANSWERS:
        raise QuestionValidationError(
            f"Question {index} must have at least {MIN_ANSWERS} answers.",
            code="invalid_answers",
        )

    correct_count = sum(1 for answer in answers if answer.is_correct)
    if question_type in SINGLE_CORRECT_TYPES and correct_count != 1:
        raise QuestionValidationError(
            f"Question {index} must have exactly one correct answer.",
            code="incorrect_count",
        )
    if question_type == QuestionType.MA and correct_count < 1:
        raise QuestionValidationError(
            f"Question {index} must have at least one correct answer.",
            code="no_correct",
        )

    stem = sanitize_text(question["stem"])
    if not stem:
        raise QuestionValidationError(
            f"Question {index} is missing required field: stem",
            code="missing_field",
        )

    return GeneratedQuestion(
        type=question_type,
        difficulty=normalize_difficulty(question.get("difficulty")),
        stem=stem,
        answers=answers,
        feedback_correct=sanitize_text(question.get("feedback_correct")),
        feedback_incorrect=sanitize_text(question.get("feedback_incorrect")),
    )


class QuestionValidator:
    """Validates a batch of raw questions with partial-success accounting."""

    def validate(self, raw_questions: List[Any]) -> ValidationReport:
        """
        Validate every raw question in the batch.

        Args:
            raw_questions: Question items extracted by the response parser

        Returns:
            ValidationReport with the valid questions and per-item issues

        Raises:
            QuestionValidationError: ``no_valid_questions`` if every item
                failed validation
        """
        valid: List[GeneratedQuestion] = []
        issues: List[ValidationIssue] = []

        for position, raw in enumerate(raw_questions, start=1):
            try:
                valid.append(validate_question(normalize_question_fields(raw), position))
            except QuestionValidationError as e:
                issues.append(
                    ValidationIssue(index=position, code=e.code, message=e.message)
                )

        total = len(raw_questions)

        if not valid:
            summary = "; ".join(
                f"Q{issue.index}: {issue.message}"
                for issue in issues[:ERROR_SUMMARY_LIMIT]
            )
            logger.warning(f"No valid questions in batch of {total}: {summary}")
            raise QuestionValidationError(
                f"No valid questions could be generated. Issues: {summary}",
                code="no_valid_questions",
                data={
                    "total_generated": total,
                    "validation_errors": [issue.model_dump() for issue in issues],
                },
            )

        if issues:
            logger.info(
                f"Validated {len(valid)}/{total} questions; "
                f"{len(issues)} rejected"
            )

        return ValidationReport(
            questions=valid,
            total_generated=total,
            valid_count=len(valid),
            invalid_count=len(issues),
            validation_errors=issues,
            partial_success=len(issues) > 0,
        )
