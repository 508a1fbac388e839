"""Tests for prompt compilation."""

import json

from quizgen.generation.prompts import (
    PromptCompiler,
    build_difficulty_instructions,
    build_example_questions,
    build_json_structure,
    build_type_instructions,
)
from quizgen.models import DifficultyLevel, GenerationRequest, QuestionType


def make_request(**kwargs) -> GenerationRequest:
    kwargs.setdefault("content", "Source text.")
    return GenerationRequest(**kwargs)


class TestPromptCompiler:
    """Tests for PromptCompiler.compile()."""

    def test_content_embedded_verbatim_between_rules(self):
        """Test that the source content appears unchanged in the user message."""
        content = "Mitochondria produce ATP. {Braces} and \"quotes\" stay."
        prompt = PromptCompiler().compile(content, make_request(count=3))

        assert f"---\n\n{content}\n\n---" in prompt.user
        assert prompt.user.startswith("Generate 3 quiz questions")
        assert "Output only valid JSON" in prompt.user

    def test_compilation_is_deterministic(self):
        """Test that equal inputs produce byte-identical prompts."""
        request_a = make_request(
            types=frozenset({QuestionType.TF, QuestionType.MC, QuestionType.MA}),
            difficulty=frozenset({DifficultyLevel.HARD, DifficultyLevel.EASY}),
        )
        request_b = make_request(
            types=frozenset({QuestionType.MA, QuestionType.MC, QuestionType.TF}),
            difficulty=frozenset({DifficultyLevel.EASY, DifficultyLevel.HARD}),
        )
        compiler = PromptCompiler()

        assert compiler.compile("text", request_a) == compiler.compile("text", request_b)

    def test_output_contract_present(self):
        """Test that the raw-JSON output contract is stated."""
        prompt = PromptCompiler().compile("text", make_request())

        assert "ONLY valid JSON" in prompt.system
        assert "starts with { and ends with }" in prompt.system
        assert "no code fences" in prompt.system

    def test_types_listed_in_canonical_order(self):
        """Test that requested types are listed mc, ma, tf."""
        request = make_request(types=frozenset({QuestionType.TF, QuestionType.MC}))
        prompt = PromptCompiler().compile("text", request)

        assert "question types specified: MC, TF" in prompt.system
        assert prompt.system.index("Multiple Choice (MC) example") < prompt.system.index(
            "True/False (TF) example"
        )
        assert "Multiple Answer (MA) example" not in prompt.system

    def test_feedback_fields_only_when_requested(self):
        """Test that feedback fields are omitted when feedback is disabled."""
        with_feedback = PromptCompiler().compile("text", make_request())
        without_feedback = PromptCompiler().compile(
            "text", make_request(generate_feedback=False)
        )

        assert '"feedback_correct"' in with_feedback.system
        assert '"feedback_correct"' not in without_feedback.system
        assert '"feedback"' not in without_feedback.system
        assert "No Feedback Required" in without_feedback.system


class TestTypeInstructions:
    """Tests for per-type structural rules."""

    def test_mc_rule(self):
        """Test the multiple choice rule uses the answer count."""
        rules = build_type_instructions([QuestionType.MC], 5)
        assert rules == "- MC (Multiple Choice): exactly ONE correct answer, exactly 5 options total"

    def test_ma_rule_range(self):
        """Test the multiple answer correct-count range."""
        assert "2-3 correct answers, exactly 4 options" in build_type_instructions(
            [QuestionType.MA], 4
        )
        assert "2-2 correct answers, exactly 3 options" in build_type_instructions(
            [QuestionType.MA], 3
        )

    def test_tf_rule(self):
        """Test the true/false rule."""
        rules = build_type_instructions([QuestionType.TF], 4)
        assert 'exactly 2 options with text "True" and "False"' in rules


class TestDifficultyInstructions:
    """Tests for difficulty distribution text."""

    def test_single_level(self):
        """Test that one level asks for uniform difficulty."""
        text = build_difficulty_instructions([DifficultyLevel.HARD], 10)
        assert text == "All questions should be Hard difficulty."

    def test_multiple_levels_use_ceiling(self):
        """Test that each level gets ceil(count / levels) questions."""
        text = build_difficulty_instructions(
            [DifficultyLevel.EASY, DifficultyLevel.MEDIUM, DifficultyLevel.EXPERT], 10
        )
        assert "Easy: approximately 4 questions" in text
        assert "Medium: approximately 4 questions" in text
        assert "Expert: approximately 4 questions" in text


class TestExamplesAndStructure:
    """Tests for rendered JSON shapes."""

    def test_json_structure_is_valid_json(self):
        """Test that the structure template parses as JSON."""
        structure = json.loads(build_json_structure(True))
        question = structure["questions"][0]

        assert set(question) == {
            "type",
            "difficulty",
            "stem",
            "answers",
            "feedback_correct",
            "feedback_incorrect",
        }
        assert "feedback" in question["answers"][0]

    def test_examples_without_feedback(self):
        """Test that examples drop feedback fields on request."""
        text = build_example_questions([QuestionType.MC], generate_feedback=False)
        example = json.loads(text.split("\n", 1)[1])

        assert "feedback_correct" not in example
        assert all("feedback" not in answer for answer in example["answers"])
        assert sum(answer["is_correct"] for answer in example["answers"]) == 1
