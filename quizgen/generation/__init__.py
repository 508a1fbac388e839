"""Prompt compilation, response parsing and question validation."""

from .parser import ResponseParser
from .prompts import CompiledPrompt, PromptCompiler
from .validator import QuestionValidator, ValidationReport

__all__ = [
    "CompiledPrompt",
    "PromptCompiler",
    "QuestionValidator",
    "ResponseParser",
    "ValidationReport",
]
