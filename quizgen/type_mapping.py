"""Alias tables for normalizing model output to canonical field names.

Models do not reliably follow the requested JSON schema: the stem may come
back as ``question``, answers as ``options``, the type as
``multiple_choice``. These tables map every accepted spelling to the
canonical key or value. They are applied once per raw question, before any
type-specific validation runs.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from .models import DifficultyLevel, QuestionType

# Canonical question type values
QUESTION_TYPES = [qt.value for qt in QuestionType]

# Question-level keys: canonical key -> accepted keys, in priority order
STEM_KEYS: Tuple[str, ...] = ("stem", "question", "text", "prompt")
ANSWERS_KEYS: Tuple[str, ...] = ("answers", "options", "choices")
FEEDBACK_CORRECT_KEYS: Tuple[str, ...] = (
    "feedback_correct",
    "correct_feedback",
    "feedbackCorrect",
)
FEEDBACK_INCORRECT_KEYS: Tuple[str, ...] = (
    "feedback_incorrect",
    "incorrect_feedback",
    "feedbackIncorrect",
    "explanation",
)

QUESTION_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "stem": STEM_KEYS,
    "answers": ANSWERS_KEYS,
    "feedback_correct": FEEDBACK_CORRECT_KEYS,
    "feedback_incorrect": FEEDBACK_INCORRECT_KEYS,
}

# Answer-level keys
ANSWER_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "text": ("text", "answer", "content", "option"),
    "is_correct": ("is_correct", "correct", "isCorrect"),
    "feedback": ("feedback", "explanation"),
}

# Keys that mark a dict as question-like during response extraction
QUESTION_MARKER_KEYS: Tuple[str, ...] = ("stem", "question", "type")
STEM_MARKER_KEYS: Tuple[str, ...] = ("stem", "question")

QUESTION_TYPE_ALIASES: Dict[str, str] = {
    "multiple_choice": QuestionType.MC.value,
    "multiple-choice": QuestionType.MC.value,
    "multiplechoice": QuestionType.MC.value,
    "single_choice": QuestionType.MC.value,
    "multiple_answer": QuestionType.MA.value,
    "multiple-answer": QuestionType.MA.value,
    "multipleanswer": QuestionType.MA.value,
    "multi_select": QuestionType.MA.value,
    "true_false": QuestionType.TF.value,
    "true-false": QuestionType.TF.value,
    "truefalse": QuestionType.TF.value,
    "boolean": QuestionType.TF.value,
    # Canonical values map to themselves
    QuestionType.MC.value: QuestionType.MC.value,
    QuestionType.MA.value: QuestionType.MA.value,
    QuestionType.TF.value: QuestionType.TF.value,
}

FALSE_STRINGS = frozenset({"", "0", "false", "no", "n", "off", "incorrect"})


def first_present(data: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    """Return the value of the first key in ``keys`` that is set (not None).

    Args:
        data: Raw mapping from model output
        keys: Accepted keys in priority order

    Returns:
        The first non-None value, or None if no key is set
    """
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def normalize_question_type(question_type: Any) -> str:
    """Normalize a question type string to its canonical value.

    Lookup is case-insensitive and ignores surrounding whitespace. Unknown
    values are returned lowercased so validation can report them.

    Mapping examples::

        "multiple_choice" -> "mc"
        "Multi_Select"    -> "ma"
        "boolean"         -> "tf"
        "essay"           -> "essay"  (unrecognized, rejected later)

    Args:
        question_type: Raw type value from model output

    Returns:
        Canonical type string, or the lowercased input if unrecognized
    """
    raw = str(question_type).strip().lower()
    return QUESTION_TYPE_ALIASES.get(raw, raw)


def normalize_difficulty(difficulty: Optional[Any]) -> DifficultyLevel:
    """Normalize a difficulty value, defaulting to medium when unrecognized.

    Args:
        difficulty: Raw difficulty value (may be None)

    Returns:
        The matching DifficultyLevel, or MEDIUM
    """
    if difficulty is None:
        return DifficultyLevel.MEDIUM
    try:
        return DifficultyLevel(str(difficulty).strip().lower())
    except ValueError:
        return DifficultyLevel.MEDIUM


def coerce_bool(value: Any) -> bool:
    """Interpret a model-supplied correctness flag.

    Strings such as ``"false"`` or ``"0"`` are treated as False rather than
    truthy non-empty strings.
    """
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)
