from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from quizapi.core.cache import QuizCache
from quizapi.core.errors import ErrorKind
from quizapi.models.schemas import Answer, AnswerIn, Question, QuestionIn, Quiz, QuizCreate
from quizapi.services.quiz_service import QuizService, score_submission
from quizapi.services.store import SqlAlchemyStore


def make_quiz():
    """Q1 has answers 1 (correct) and 2; Q2 has answers 3 (correct), 4 and 5."""
    return Quiz(id=1, title="Sample", questions=[
        Question(id=1, quiz_id=1, text="Q1", answers=[
            Answer(id=1, question_id=1, text="a", is_correct=True),
            Answer(id=2, question_id=1, text="b", is_correct=False),
        ]),
        Question(id=2, quiz_id=1, text="Q2", answers=[
            Answer(id=3, question_id=2, text="c", is_correct=True),
            Answer(id=4, question_id=2, text="d", is_correct=False),
            Answer(id=5, question_id=2, text="e", is_correct=False),
        ]),
    ])


@pytest.mark.parametrize("answers,score", [
    ({1: 1, 2: 2}, 1),
    ({1: 1, 2: 3}, 2),
    ({}, 0),
    ({1: 2, 2: 4}, 0),
    ({2: 3}, 1),
    ({1: 1, 2: 3, 99: 1}, 2),
])
def test_score_submission(answers, score):
    result = score_submission(make_quiz(), answers)
    assert (result.score, result.total) == (score, 2)


def test_first_flagged_answer_wins():
    quiz = Quiz(id=1, title="Ambiguous", questions=[
        Question(id=1, quiz_id=1, text="Q", answers=[
            Answer(id=10, question_id=1, text="x", is_correct=True),
            Answer(id=11, question_id=1, text="y", is_correct=True),
        ]),
    ])
    assert score_submission(quiz, {1: 10}).score == 1
    assert score_submission(quiz, {1: 11}).score == 0


def test_question_without_correct_answer_counts_in_total():
    quiz = Quiz(id=1, title="Unkeyed", questions=[
        Question(id=1, quiz_id=1, text="Q", answers=[Answer(id=1, question_id=1, text="x", is_correct=False)]),
    ])
    result = score_submission(quiz, {1: 1})
    assert (result.score, result.total) == (0, 1)


@pytest.fixture
def spy_store(store):
    return MagicMock(wraps=store)


@pytest.fixture
def service(spy_store, cache):
    return QuizService(spy_store, QuizCache(cache, spy_store))


@pytest.fixture
def quiz_data():
    return QuizCreate(title="Python", questions=[
        QuestionIn(text="Function keyword?", answers=[AnswerIn(text="def", is_correct=True), AnswerIn(text="fn")]),
        QuestionIn(text="Immutable?", answers=[AnswerIn(text="tuple", is_correct=True), AnswerIn(text="list"),
                                               AnswerIn(text="dict")]),
    ])


def correct_ids(quiz):
    return {q.id: next(a.id for a in q.answers if a.is_correct) for q in quiz.questions}


def test_submit_scores_cached_quiz(service, spy_store, quiz_data):
    quiz = service.create_quiz(quiz_data).value
    answers = correct_ids(quiz)
    first_question = quiz.questions[0]
    wrong = next(a.id for a in first_question.answers if not a.is_correct)

    result = service.submit(quiz.id, {**answers, first_question.id: wrong})
    assert (result.value.score, result.value.total) == (1, 2)
    result = service.submit(quiz.id, answers)
    assert (result.value.score, result.value.total) == (2, 2)
    assert spy_store.find_quiz_by_id.call_count == 1


def test_submit_unknown_quiz(service):
    result = service.submit(42, {})
    assert result.error.kind is ErrorKind.NOT_FOUND


def test_get_unknown_quiz(service):
    assert service.get_quiz(42).error.kind is ErrorKind.NOT_FOUND


def test_create_invalidates_list(service, quiz_data):
    assert service.list_quizzes().value == []
    created = service.create_quiz(quiz_data).value
    assert service.list_quizzes().value == [created]


def test_title_update_leaves_cache_stale_by_default(service, quiz_data):
    quiz = service.create_quiz(quiz_data).value
    service.get_quiz(quiz.id)
    updated = service.update_title(quiz.id, "Renamed")
    assert updated.value.title == "Renamed"
    assert service.get_quiz(quiz.id).value.title == "Python"


def test_title_update_can_invalidate(spy_store, cache, quiz_data):
    service = QuizService(spy_store, QuizCache(cache, spy_store), invalidate_on_title_update=True)
    quiz = service.create_quiz(quiz_data).value
    service.get_quiz(quiz.id)
    service.list_quizzes()
    service.update_title(quiz.id, "Renamed")
    assert service.get_quiz(quiz.id).value.title == "Renamed"
    assert [q.title for q in service.list_quizzes().value] == ["Renamed"]


def test_title_update_unknown_quiz(service):
    assert service.update_title(42, "x").error.kind is ErrorKind.NOT_FOUND


def test_delete_cascades_and_invalidates(service, store, quiz_data):
    quiz = service.create_quiz(quiz_data).value
    service.get_quiz(quiz.id)
    service.list_quizzes()

    assert service.delete_quiz(quiz.id).value is True
    assert service.get_quiz(quiz.id).error.kind is ErrorKind.NOT_FOUND
    assert service.list_quizzes().value == []
    for question in quiz.questions:
        assert store.delete_question(question.id) is False
        for answer in question.answers:
            assert store.delete_answer(answer.id) is False


def test_delete_missing_quiz_is_negative_result(service):
    result = service.delete_quiz(42)
    assert result.ok
    assert result.value is False


def test_delete_keeps_other_quizzes(service, quiz_data):
    keep = service.create_quiz(quiz_data).value
    drop = service.create_quiz(quiz_data).value
    service.delete_quiz(drop.id)
    assert service.get_quiz(keep.id).value == keep


def test_cache_outage_is_internal_failure(store, broken_cache, quiz_data):
    service = QuizService(store, QuizCache(broken_cache, store))
    assert service.list_quizzes().error.kind is ErrorKind.INTERNAL_FAILURE
    assert service.get_quiz(1).error.kind is ErrorKind.INTERNAL_FAILURE
    assert service.create_quiz(quiz_data).error.kind is ErrorKind.INTERNAL_FAILURE


def test_store_outage_is_internal_failure(cache):
    store = MagicMock(spec=SqlAlchemyStore)
    store.find_quiz_by_id.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
    store.delete_quiz.side_effect = OperationalError("DELETE", {}, Exception("connection lost"))
    service = QuizService(store, QuizCache(cache, store))
    assert service.get_quiz(1).error.kind is ErrorKind.INTERNAL_FAILURE
    assert service.delete_quiz(1).error.kind is ErrorKind.INTERNAL_FAILURE


def test_failed_delete_leaves_quiz_tree_intact(service, store, engine, quiz_data):
    quiz = service.create_quiz(quiz_data).value
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TRIGGER keep_quizzes BEFORE DELETE ON quizzes BEGIN SELECT RAISE(ABORT, 'locked'); END"
        )

    with pytest.raises(SQLAlchemyError):
        store.delete_quiz(quiz.id)
    assert service.delete_quiz(quiz.id).error.kind is ErrorKind.INTERNAL_FAILURE
    assert store.find_quiz_by_id(quiz.id) == quiz
