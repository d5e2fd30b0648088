"""Question generation strategies and the resolver that picks between them."""
import logging
import math
import random
import re
from typing import Optional

import httpx

from study_tools.ai_client import QuizAIClient, TRUE_FALSE_OPTIONS
from study_tools.errors import StudyToolsError, UnknownStrategy
from study_tools.importer import strip_html
from study_tools.models import Question, QuestionType
from study_tools.quiz import create_question_id

logger = logging.getLogger(__name__)

SENTENCE_SPLIT = re.compile(r"[.!?]")
PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
MIN_PARAGRAPH_LENGTH = 50
MIN_FACT_LENGTH = 20
MIN_STATEMENT_LENGTH = 30


class QuestionGenerationStrategy:
    def supports(self, question_type: QuestionType) -> bool:
        raise NotImplementedError

    def is_available(self) -> bool:
        return True

    def generate(self, content: str, count: int) -> list[Question]:
        raise NotImplementedError


class MultipleChoiceStrategy(QuestionGenerationStrategy):
    """Builds one question per paragraph from its first substantial sentence."""

    def supports(self, question_type):
        return question_type == QuestionType.MULTIPLE_CHOICE

    def generate(self, content, count):
        paragraphs = [p.strip() for p in PARAGRAPH_SPLIT.split(_plain_text(content))]
        paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_LENGTH]

        questions = []
        for index, paragraph in enumerate(paragraphs[:count]):
            sentences = [s.strip() for s in SENTENCE_SPLIT.split(paragraph)]
            sentences = [s for s in sentences if len(s) > MIN_FACT_LENGTH]
            if not sentences:
                continue
            fact = sentences[0]
            questions.append(Question(
                id=create_question_id("mcq", index),
                text=f'What best describes the idea presented in: "{fact[:100]}..."?',
                type=QuestionType.MULTIPLE_CHOICE,
                options=(
                    fact,
                    "Automatically generated alternative A",
                    "Automatically generated alternative B",
                    "Automatically generated alternative C",
                ),
                correct_answer=0,
                explanation="This statement appears in the original text.",
            ))
        return questions


class TrueFalseStrategy(QuestionGenerationStrategy):
    """Turns sentences from the material into true statements."""

    def supports(self, question_type):
        return question_type == QuestionType.TRUE_FALSE

    def generate(self, content, count):
        sentences = [s.strip() for s in SENTENCE_SPLIT.split(_plain_text(content))]
        sentences = [s for s in sentences if len(s) > MIN_STATEMENT_LENGTH]
        return [
            Question(
                id=create_question_id("tf", index),
                text=sentence,
                type=QuestionType.TRUE_FALSE,
                options=TRUE_FALSE_OPTIONS,
                correct_answer=0,
                explanation="This statement is true according to the text.",
            )
            for index, sentence in enumerate(sentences[:count])
        ]


class AIQuestionStrategy(QuestionGenerationStrategy):
    question_type: QuestionType
    prefix = ""

    def __init__(self, ai_client: QuizAIClient):
        self.ai_client = ai_client

    def supports(self, question_type):
        return question_type == self.question_type

    def is_available(self):
        return self.ai_client.can_generate()

    def generate(self, content, count):
        drafts = self.ai_client.generate(content, self.question_type, count)
        return [
            Question(
                id=create_question_id(self.prefix, index),
                text=draft.text,
                type=self.question_type,
                options=draft.options,
                correct_answer=draft.correct_answer,
                explanation=draft.explanation,
            )
            for index, draft in enumerate(drafts)
        ]


class AIMultipleChoiceStrategy(AIQuestionStrategy):
    question_type = QuestionType.MULTIPLE_CHOICE
    prefix = "ai-mcq"


class AITrueFalseStrategy(AIQuestionStrategy):
    question_type = QuestionType.TRUE_FALSE
    prefix = "ai-tf"


def _plain_text(content: str) -> str:
    # BeautifulSoup warns on plain text that looks like a path
    if "<" in content and ">" in content:
        return strip_html(content)
    return content


class QuestionGenerator:
    """Tries each registered strategy for a question type in order until one yields questions."""

    def __init__(self, strategies: Optional[list] = None, ai_client: Optional[QuizAIClient] = None,
                 rng: Optional[random.Random] = None):
        self._strategies: dict[QuestionType, list[QuestionGenerationStrategy]] = {}
        self._rng = rng or random.Random()
        if strategies is None:
            strategies = []
            if ai_client is not None:
                strategies += [AIMultipleChoiceStrategy(ai_client), AITrueFalseStrategy(ai_client)]
            strategies += [MultipleChoiceStrategy(), TrueFalseStrategy()]
        for strategy in strategies:
            self.register_strategy(strategy)

    def register_strategy(self, strategy: QuestionGenerationStrategy) -> None:
        for question_type in QuestionType:
            if strategy.supports(question_type):
                self._strategies.setdefault(question_type, []).append(strategy)

    def strategies_for(self, question_type: QuestionType) -> list:
        return list(self._strategies.get(question_type, []))

    def generate_questions(self, content: str, question_type: QuestionType, count: int = 5) -> list[Question]:
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")
        strategies = self._strategies.get(question_type)
        if not strategies:
            raise UnknownStrategy(f"No strategy found for question type: {question_type}")

        for strategy in strategies:
            name = type(strategy).__name__
            if not strategy.is_available():
                logger.debug("%s unavailable, skipping", name)
                continue
            try:
                questions = strategy.generate(content, count)
            except (StudyToolsError, httpx.HTTPError) as e:
                logger.warning("%s failed: %s", name, e)
                continue
            if questions:
                return questions
            logger.debug("%s produced no questions", name)

        raise UnknownStrategy(f"No available strategy produced questions of type: {question_type}")

    def generate_mixed_quiz(self, content: str, total: int = 10) -> list[Question]:
        """About 60% multiple choice, the rest true/false, shuffled together."""
        if total < 1:
            raise ValueError(f"total must be at least 1, got {total}")
        mcq_count = math.ceil(total * 0.6)
        tf_count = total - mcq_count
        questions = self.generate_questions(content, QuestionType.MULTIPLE_CHOICE, mcq_count)
        if tf_count > 0:
            questions = questions + self.generate_questions(content, QuestionType.TRUE_FALSE, tf_count)
        self._rng.shuffle(questions)
        return questions
