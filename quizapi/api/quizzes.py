from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from quizapi.api.deps import get_quiz_service
from quizapi.core.auth import require_permission
from quizapi.core.errors import unwrap
from quizapi.models.schemas import Quiz, QuizCreate, QuizResult, QuizSubmission, QuizTitleUpdate
from quizapi.services.quiz_service import QuizService

router = APIRouter()


@router.get("", response_model=List[Quiz], dependencies=[Depends(require_permission("quiz", "read"))])
def list_quizzes(service: QuizService = Depends(get_quiz_service)):
    return unwrap(service.list_quizzes())


@router.post("", response_model=Quiz, status_code=201, dependencies=[Depends(require_permission("quiz", "create"))])
def create_quiz(payload: QuizCreate, service: QuizService = Depends(get_quiz_service)):
    return unwrap(service.create_quiz(payload))


@router.get("/{quiz_id}", response_model=Quiz, dependencies=[Depends(require_permission("quiz", "read"))])
def get_quiz(quiz_id: int, service: QuizService = Depends(get_quiz_service)):
    return unwrap(service.get_quiz(quiz_id))


@router.put("/{quiz_id}", response_model=Quiz, dependencies=[Depends(require_permission("quiz", "update"))])
def update_quiz(quiz_id: int, payload: QuizTitleUpdate, service: QuizService = Depends(get_quiz_service)):
    return unwrap(service.update_title(quiz_id, payload.title))


@router.post("/{quiz_id}/submit", response_model=QuizResult,
             dependencies=[Depends(require_permission("quiz", "submit"))])
def submit_quiz(quiz_id: int, payload: QuizSubmission, service: QuizService = Depends(get_quiz_service)):
    return unwrap(service.submit(quiz_id, payload.answers))


@router.delete("/{quiz_id}", status_code=204, dependencies=[Depends(require_permission("quiz", "delete"))])
def delete_quiz(quiz_id: int, service: QuizService = Depends(get_quiz_service)):
    if not unwrap(service.delete_quiz(quiz_id)):
        raise HTTPException(404, "Quiz not found")
    return Response(status_code=204)
