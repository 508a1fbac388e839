"""Quiz question generation from source text with a hosted LLM."""

from .errors import QuizGenerationError
from .models import (
    DifficultyLevel,
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
    QuestionType,
)
from .pipeline import QuestionGenerationPipeline

__version__ = "0.1.0"

__all__ = [
    "DifficultyLevel",
    "GenerationOutcome",
    "GenerationRequest",
    "GenerationResult",
    "QuestionGenerationPipeline",
    "QuestionType",
    "QuizGenerationError",
]
