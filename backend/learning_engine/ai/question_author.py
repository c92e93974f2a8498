"""
Adaptive Learning Engine - Question Author
AI-authored questions for the question bank. There is no deterministic
fallback here, so provider errors reach the caller.
"""
import logging
from typing import Optional

from learning_engine.ai.llm import LLMClient
from learning_engine.ai.telemetry import ai_span
from learning_engine.core.errors import ExternalServiceError
from learning_engine.schemas.assessment import QuestionCreate
from learning_engine.schemas.common import DifficultyLevel, QuestionType

logger = logging.getLogger(__name__)


QUESTION_PROMPT = """Write {count} {difficulty} level assessment questions about "{topic}" in {subject_area}.

Mix multiple_choice and true_false questions. Respond with a JSON array only:
[
  {{
    "question_type": "multiple_choice|true_false",
    "question_text": "...",
    "options": ["...", "...", "...", "..."],
    "correct_answer": "one of the options",
    "explanation": "why the answer is correct"
  }}
]"""


class QuestionAuthor:
    """Generates bank questions with the chat model."""

    SYSTEM_PROMPT = "You are an experienced teacher writing fair, unambiguous assessment questions."

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient(temperature=0.7)

    async def author_questions(
        self,
        subject_area: str,
        topic: str,
        difficulty: DifficultyLevel,
        count: int,
    ) -> list[QuestionCreate]:
        """
        Raises:
            RateLimitedError / ServiceUnavailableError from the provider
            ExternalServiceError if the reply cannot be used
        """
        with ai_span("questions.author", type(self).__name__, {"topic": topic, "count": count}):
            data = await self.client.generate_json(
                QUESTION_PROMPT.format(
                    count=count,
                    difficulty=difficulty.value,
                    topic=topic,
                    subject_area=subject_area,
                ),
                system_prompt=self.SYSTEM_PROMPT,
                component=type(self).__name__,
            )

        if not isinstance(data, list):
            raise ExternalServiceError("AI provider returned questions in an unexpected shape")

        questions = []
        for item in data[:count]:
            if not isinstance(item, dict) or not item.get("question_text"):
                continue
            try:
                question_type = QuestionType(item.get("question_type", "multiple_choice"))
            except ValueError:
                question_type = QuestionType.MULTIPLE_CHOICE
            options = item.get("options") if isinstance(item.get("options"), list) else None
            if question_type == QuestionType.TRUE_FALSE and not options:
                options = ["True", "False"]

            questions.append(QuestionCreate(
                subject_area=subject_area,
                topics=[topic],
                difficulty_level=difficulty,
                question_type=question_type,
                question_text=str(item["question_text"]),
                options=[str(o) for o in options] if options else None,
                correct_answer=item.get("correct_answer"),
                explanation=item.get("explanation"),
            ))

        if not questions:
            raise ExternalServiceError("AI provider returned no usable questions")
        logger.info("Authored %d %s questions on %s", len(questions), difficulty.value, topic)
        return questions
