import logging
from typing import Dict, List, Optional

from quizapi.core.cache import QuizCache
from quizapi.core.errors import ErrorKind, Result, guarded
from quizapi.models.schemas import Answer, Question, Quiz, QuizCreate, QuizResult
from quizapi.services.store import QuizStore

logger = logging.getLogger(__name__)


def correct_answer(question: Question) -> Optional[Answer]:
    # First flagged answer in stored order; questions may carry several.
    return next((a for a in question.answers if a.is_correct), None)


def score_submission(quiz: Quiz, answers: Dict[int, int]) -> QuizResult:
    score = 0
    for question in quiz.questions:
        correct = correct_answer(question)
        if correct is not None and answers.get(question.id) == correct.id:
            score += 1
    return QuizResult(score=score, total=len(quiz.questions))


class QuizService:
    def __init__(self, store: QuizStore, cache: QuizCache, invalidate_on_title_update: bool = False):
        self.store = store
        self.cache = cache
        self.invalidate_on_title_update = invalidate_on_title_update

    @guarded
    def list_quizzes(self) -> Result[List[Quiz]]:
        return Result.success(self.cache.get_all_quizzes())

    @guarded
    def get_quiz(self, quiz_id: int) -> Result[Quiz]:
        quiz = self.cache.get_quiz_by_id(quiz_id)
        if quiz is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Quiz not found")
        return Result.success(quiz)

    @guarded
    def create_quiz(self, data: QuizCreate) -> Result[Quiz]:
        quiz = self.store.save_quiz(data)
        self.cache.invalidate_on_create()
        logger.info(f"Created quiz {quiz.id} with {len(quiz.questions)} questions")
        return Result.success(quiz)

    @guarded
    def update_title(self, quiz_id: int, title: str) -> Result[Quiz]:
        quiz = self.store.update_quiz_title(quiz_id, title)
        if quiz is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Quiz not found")
        if self.invalidate_on_title_update:
            self.cache.invalidate_on_update(quiz_id)
        # Otherwise cached copies keep the old title until their TTL expires.
        return Result.success(quiz)

    @guarded
    def submit(self, quiz_id: int, answers: Dict[int, int]) -> Result[QuizResult]:
        quiz = self.cache.get_quiz_by_id(quiz_id)
        if quiz is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Quiz not found")
        return Result.success(score_submission(quiz, answers))

    @guarded
    def delete_quiz(self, quiz_id: int) -> Result[bool]:
        """Delete a quiz with its questions and answers; ``False`` when there was nothing to delete."""
        removed = self.store.delete_quiz(quiz_id)
        # Also clears entries left behind by a quiz deleted out of band.
        self.cache.invalidate_on_delete(quiz_id)
        if removed:
            logger.info(f"Deleted quiz {quiz_id}")
        return Result.success(removed)
