"""Prompt templates for quiz question generation.

Prompt compilation is a pure function of the source content and the
generation request: the same inputs always produce byte-identical prompts.
Requested types and difficulties are rendered in canonical enum order so
set ordering never leaks into the prompt.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List

from ..models import DifficultyLevel, GenerationRequest, QuestionType

SYSTEM_INTRO = (
    "You are an expert educational assessment designer specializing in "
    "creating effective quiz questions that test genuine understanding, "
    "not mere recall."
)

OUTPUT_FORMAT_CONTRACT = (
    "You MUST output ONLY valid JSON with no markdown formatting, no code "
    "blocks, and no additional text. The response must be a single JSON "
    "object that starts with { and ends with }."
)

QUALITY_GUIDELINES = """1. **Question Stems**:
   - Write clear, concise questions that test understanding
   - Avoid negative phrasing (e.g., "Which is NOT...")
   - Ensure one unambiguous correct answer (or correct set for MA)
   - Test application and comprehension, not just memorization

2. **Answer Options**:
   - Make distractors plausible but clearly incorrect
   - Avoid "all of the above" or "none of the above"
   - Keep options similar in length and structure
   - Avoid grammatical clues that give away the answer"""

FEEDBACK_GUIDELINES = """3. **Feedback**:
   - Explain WHY each answer is correct or incorrect
   - Reference specific concepts from the content
   - Help learners understand their mistakes"""

NO_FEEDBACK_GUIDELINES = (
    "3. **No Feedback Required**: Do not include feedback fields - only "
    "stem, type, difficulty, and answers with text and is_correct."
)

DIFFICULTY_GUIDELINES = """4. **Difficulty Levels** (distractors must match the difficulty):
   - **Easy**: Tests direct recall or basic understanding
     * Distractors are obviously wrong to anyone who read the material
     * Questions focus on key definitions, main concepts, or explicit facts
   - **Medium**: Requires application or analysis
     * Distractors are plausible but distinguishable with careful thought
     * May include common misconceptions
   - **Hard**: Demands synthesis, evaluation, or complex application
     * Distractors are highly plausible and need deep understanding to eliminate
     * Include subtle distinctions and near-correct options
   - **Expert**: Tests advanced mastery and professional-level knowledge
     * Distractors are extremely plausible, often true in other contexts
     * Questions target distinctions that novices would miss"""

TYPE_LABELS: Dict[QuestionType, str] = {
    QuestionType.MC: "Multiple Choice (MC)",
    QuestionType.MA: "Multiple Answer (MA)",
    QuestionType.TF: "True/False (TF)",
}

# Worked examples, one per question type. Feedback fields are removed when
# the request does not ask for feedback.
EXAMPLE_QUESTIONS: Dict[QuestionType, Dict[str, Any]] = {
    QuestionType.MC: {
        "type": "mc",
        "difficulty": "medium",
        "stem": "Which gas do plants absorb from the air to carry out photosynthesis?",
        "answers": [
            {
                "text": "Carbon dioxide",
                "is_correct": True,
                "feedback": "Correct! Plants fix carbon dioxide into sugars during photosynthesis.",
            },
            {
                "text": "Oxygen",
                "is_correct": False,
                "feedback": "Incorrect. Oxygen is released by photosynthesis, not absorbed for it.",
            },
            {
                "text": "Nitrogen",
                "is_correct": False,
                "feedback": "Incorrect. Nitrogen is taken up mainly through the roots as nitrates.",
            },
            {
                "text": "Hydrogen",
                "is_correct": False,
                "feedback": "Incorrect. Hydrogen comes from splitting water, not from the air.",
            },
        ],
        "feedback_correct": "Well done! Carbon dioxide is the carbon source for photosynthesis.",
        "feedback_incorrect": "Plants absorb carbon dioxide through their stomata and convert it into glucose.",
    },
    QuestionType.MA: {
        "type": "ma",
        "difficulty": "hard",
        "stem": "Which of the following are renewable energy sources? Select all that apply.",
        "answers": [
            {
                "text": "Solar power",
                "is_correct": True,
                "feedback": "Correct! Sunlight is replenished continuously.",
            },
            {
                "text": "Wind power",
                "is_correct": True,
                "feedback": "Correct! Wind is driven by ongoing solar heating of the atmosphere.",
            },
            {
                "text": "Natural gas",
                "is_correct": False,
                "feedback": "Incorrect. Natural gas is a fossil fuel formed over millions of years.",
            },
            {
                "text": "Geothermal heat",
                "is_correct": True,
                "feedback": "Correct! Heat from the Earth's interior is effectively inexhaustible.",
            },
            {
                "text": "Coal",
                "is_correct": False,
                "feedback": "Incorrect. Coal reserves are finite and not replenished on human timescales.",
            },
        ],
        "feedback_correct": "Great job! You identified every renewable source.",
        "feedback_incorrect": "Solar, wind and geothermal energy are renewable; coal and natural gas are fossil fuels.",
    },
    QuestionType.TF: {
        "type": "tf",
        "difficulty": "easy",
        "stem": "Water boils at 100 degrees Celsius at sea level.",
        "answers": [
            {
                "text": "True",
                "is_correct": True,
                "feedback": "Correct! At standard atmospheric pressure water boils at 100 °C.",
            },
            {
                "text": "False",
                "is_correct": False,
                "feedback": "Incorrect. At sea-level pressure the boiling point of water is 100 °C.",
            },
        ],
        "feedback_correct": "Correct! This is the reference point of the Celsius scale.",
        "feedback_incorrect": "At sea level water boils at 100 °C; the temperature drops at higher altitudes.",
    },
}

QUESTION_FEEDBACK_KEYS = ("feedback_correct", "feedback_incorrect")
ANSWER_FEEDBACK_KEY = "feedback"


@dataclass(frozen=True)
class CompiledPrompt:
    """System and user messages for one chat completion."""

    system: str
    user: str


def build_json_structure(generate_feedback: bool) -> str:
    """Render the JSON shape the model must return."""
    answer: Dict[str, Any] = {"text": "Answer option text", "is_correct": True}
    question: Dict[str, Any] = {
        "type": "mc|ma|tf",
        "difficulty": "easy|medium|hard|expert",
        "stem": "Clear, unambiguous question text",
        "answers": [answer],
    }
    if generate_feedback:
        answer["feedback"] = "Why this option is correct or incorrect"
        question["feedback_correct"] = "Encouraging feedback when answered correctly"
        question["feedback_incorrect"] = (
            "Helpful feedback explaining the correct answer when answered incorrectly"
        )
    return json.dumps({"questions": [question]}, indent=2, ensure_ascii=False)


def build_type_instructions(types: List[QuestionType], answer_count: int) -> str:
    """One structural rule per requested question type."""
    instructions = []
    if QuestionType.MC in types:
        instructions.append(
            f"- MC (Multiple Choice): exactly ONE correct answer, "
            f"exactly {answer_count} options total"
        )
    if QuestionType.MA in types:
        min_correct = min(2, answer_count - 1)
        max_correct = answer_count - 1
        instructions.append(
            f"- MA (Multiple Answer): {min_correct}-{max_correct} correct answers, "
            f"exactly {answer_count} options total"
        )
    if QuestionType.TF in types:
        instructions.append(
            '- TF (True/False): exactly 2 options with text "True" and "False"'
        )
    return "\n".join(instructions)


def build_difficulty_instructions(
    difficulties: List[DifficultyLevel], count: int
) -> str:
    """Describe how questions should be spread across difficulty levels.

    With several levels each gets ``ceil(count / levels)`` questions, so the
    distribution is approximate and the last level may come up short.
    """
    if len(difficulties) == 1:
        return (
            f"All questions should be {difficulties[0].value.capitalize()} difficulty."
        )

    per_difficulty = math.ceil(count / len(difficulties))
    distribution = [
        f"{level.value.capitalize()}: approximately {per_difficulty} questions"
        for level in difficulties
    ]
    return "Distribute questions across difficulty levels:\n- " + "\n- ".join(
        distribution
    )


def _strip_feedback(example: Dict[str, Any]) -> Dict[str, Any]:
    stripped = {k: v for k, v in example.items() if k not in QUESTION_FEEDBACK_KEYS}
    stripped["answers"] = [
        {k: v for k, v in answer.items() if k != ANSWER_FEEDBACK_KEY}
        for answer in example["answers"]
    ]
    return stripped


def build_example_questions(
    types: List[QuestionType], generate_feedback: bool = True
) -> str:
    """Render one worked example per requested type."""
    examples = []
    for question_type in types:
        example = EXAMPLE_QUESTIONS[question_type]
        if not generate_feedback:
            example = _strip_feedback(example)
        examples.append(
            f"{TYPE_LABELS[question_type]} example:\n"
            + json.dumps(example, indent=2, ensure_ascii=False)
        )
    return "\n\n".join(examples)


def build_generation_prompt(content: str, request: GenerationRequest) -> CompiledPrompt:
    """Build the system and user messages for a generation request.

    Args:
        content: Normalized source content, embedded verbatim
        request: Generation parameters

    Returns:
        CompiledPrompt with system and user messages
    """
    types = request.ordered_types
    difficulties = request.ordered_difficulties
    types_str = ", ".join(qt.value.upper() for qt in types)
    feedback_guidelines = (
        FEEDBACK_GUIDELINES if request.generate_feedback else NO_FEEDBACK_GUIDELINES
    )

    sections = [
        SYSTEM_INTRO,
        f"Your task is to generate {request.count} high-quality quiz questions "
        "from the provided educational content.",
        "## Output Format",
        OUTPUT_FORMAT_CONTRACT,
        "## JSON Structure",
        build_json_structure(request.generate_feedback),
        "## Question Type Requirements",
        build_type_instructions(types, request.answer_count),
        "## Difficulty Distribution",
        build_difficulty_instructions(difficulties, request.count),
        "## Quality Guidelines",
        QUALITY_GUIDELINES,
        feedback_guidelines,
        DIFFICULTY_GUIDELINES,
        "## Examples",
        build_example_questions(types, request.generate_feedback),
        "## Important",
        "\n".join(
            [
                f"- Generate EXACTLY {request.count} questions",
                f"- Use ONLY the question types specified: {types_str}",
                "- Base ALL questions on the provided content",
                "- Output raw JSON only - no markdown, no code fences",
            ]
        ),
    ]
    system = "\n\n".join(sections)

    user = (
        f"Generate {request.count} quiz questions from this educational content:"
        f"\n\n---\n\n{content}\n\n---\n\n"
        "Remember: Output only valid JSON, starting with { and ending with }."
    )

    return CompiledPrompt(system=system, user=user)


class PromptCompiler:
    """Compiles generation requests into chat prompts."""

    def compile(self, content: str, request: GenerationRequest) -> CompiledPrompt:
        """Compile the prompt for ``request`` over ``content``."""
        return build_generation_prompt(content, request)
