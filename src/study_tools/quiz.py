"""Quiz state machine and quiz result history."""
import uuid
from datetime import datetime
from typing import Optional

from study_tools.db import get_connection
from study_tools.errors import IllegalTransition
from study_tools.models import Question, QuizData


class QuizState:
    name = ""

    def start(self, quiz: "Quiz") -> None:
        raise NotImplementedError

    def answer(self, quiz: "Quiz", question_id: str, answer_index: int) -> None:
        raise NotImplementedError

    def complete(self, quiz: "Quiz") -> None:
        raise NotImplementedError

    def review(self, quiz: "Quiz") -> None:
        raise NotImplementedError

    def can_answer(self) -> bool:
        return False

    def can_complete(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class NotStartedState(QuizState):
    name = "NOT_STARTED"

    def start(self, quiz):
        quiz.set_state(IN_PROGRESS)
        quiz.set_current_question_index(0)

    def answer(self, quiz, question_id, answer_index):
        raise IllegalTransition("Cannot answer questions before starting quiz", self.name)

    def complete(self, quiz):
        raise IllegalTransition("Cannot complete quiz before starting", self.name)

    def review(self, quiz):
        raise IllegalTransition("Cannot review quiz before starting", self.name)


class InProgressState(QuizState):
    name = "IN_PROGRESS"

    def start(self, quiz):
        raise IllegalTransition("Quiz already started", self.name)

    def answer(self, quiz, question_id, answer_index):
        quiz.record_answer(question_id, answer_index)
        current = quiz.current_question_index
        if current < len(quiz.quiz.questions) - 1:
            quiz.set_current_question_index(current + 1)

    def complete(self, quiz):
        if not all(quiz.is_answered(q.id) for q in quiz.quiz.questions):
            raise IllegalTransition("Cannot complete quiz with unanswered questions", self.name)
        quiz.set_state(COMPLETED)

    def review(self, quiz):
        raise IllegalTransition("Cannot review quiz while in progress", self.name)

    def can_answer(self):
        return True

    def can_complete(self):
        return True


class CompletedState(QuizState):
    name = "COMPLETED"

    def start(self, quiz):
        raise IllegalTransition("Cannot restart completed quiz", self.name)

    def answer(self, quiz, question_id, answer_index):
        raise IllegalTransition("Cannot answer completed quiz", self.name)

    def complete(self, quiz):
        raise IllegalTransition("Quiz already completed", self.name)

    def review(self, quiz):
        quiz.set_state(REVIEWING)
        quiz.set_current_question_index(0)


class ReviewingState(QuizState):
    name = "REVIEWING"

    def start(self, quiz):
        raise IllegalTransition("Cannot start while reviewing", self.name)

    def answer(self, quiz, question_id, answer_index):
        raise IllegalTransition("Cannot change answers while reviewing", self.name)

    def complete(self, quiz):
        raise IllegalTransition("Quiz already completed", self.name)

    def review(self, quiz):
        pass


NOT_STARTED = NotStartedState()
IN_PROGRESS = InProgressState()
COMPLETED = CompletedState()
REVIEWING = ReviewingState()


class Quiz:
    """One attempt at a quiz. reset() reuses the same instance."""

    def __init__(self, quiz: QuizData):
        self._quiz = quiz
        self._state: QuizState = NOT_STARTED
        self._current_question_index = 0
        self._answers: dict[str, int] = {}

    @property
    def quiz(self) -> QuizData:
        return self._quiz

    @property
    def state(self) -> QuizState:
        return self._state

    def set_state(self, state: QuizState) -> None:
        self._state = state

    @property
    def current_question_index(self) -> int:
        return self._current_question_index

    def set_current_question_index(self, index: int) -> None:
        self._current_question_index = index

    def record_answer(self, question_id: str, answer_index: int) -> None:
        self._answers[question_id] = answer_index

    @property
    def answers(self) -> dict:
        return dict(self._answers)

    def start(self) -> None:
        self._state.start(self)

    def answer_question(self, question_id: str, answer_index: int) -> None:
        self._state.answer(self, question_id, answer_index)

    def complete(self) -> None:
        self._state.complete(self)

    def review(self) -> None:
        self._state.review(self)

    def can_answer(self) -> bool:
        return self._state.can_answer()

    def can_complete(self) -> bool:
        return self._state.can_complete()

    def reset(self) -> None:
        self._state = NOT_STARTED
        self._current_question_index = 0
        self._answers.clear()

    def calculate_score(self) -> int:
        """Percentage of questions answered correctly, rounded to the nearest integer."""
        questions = self._quiz.questions
        if not questions:
            return 0
        correct = sum(1 for q in questions if self._answers.get(q.id) == q.correct_answer)
        return round(correct / len(questions) * 100)

    def get_current_question(self) -> Optional[Question]:
        if 0 <= self._current_question_index < len(self._quiz.questions):
            return self._quiz.questions[self._current_question_index]
        return None

    def is_answered(self, question_id: str) -> bool:
        return question_id in self._answers

    def get_user_answer(self, question_id: str) -> Optional[int]:
        return self._answers.get(question_id)


def create_question_id(prefix: str, index: int) -> str:
    return f"{prefix}-{index}-{uuid.uuid4()}"


def build_quiz(questions: list, title: str, quiz_id: str | None = None) -> QuizData:
    return QuizData(
        id=quiz_id or f"quiz-{uuid.uuid4()}",
        title=title,
        questions=tuple(questions),
        created_at=datetime.now(),
    )


def record_quiz_result(db_path: str, quiz: Quiz) -> int:
    """Store the score of a finished attempt. Returns the stored score."""
    score = quiz.calculate_score()
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO quiz_results (quiz_id, title, score, total_questions, answered, completed_at)
        VALUES (?, ?, ?, ?, ?, ?)""",
        (
            quiz.quiz.id,
            quiz.quiz.title,
            score,
            len(quiz.quiz.questions),
            len(quiz.answers),
            datetime.now().isoformat(),
        ),
    )
    conn.commit()
    conn.close()
    return score


def get_quiz_history(db_path: str, limit: int = 10) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM quiz_results ORDER BY id DESC LIMIT ?", (limit,)
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_average_score(db_path: str) -> float:
    """Mean score over all recorded attempts."""
    conn = get_connection(db_path)
    row = conn.execute("SELECT COUNT(*) as total, AVG(score) as avg FROM quiz_results").fetchone()
    conn.close()
    if row["total"] == 0:
        return 0.0
    return round(row["avg"], 1)
