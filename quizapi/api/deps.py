from fastapi import Request

from quizapi.services.auth_service import AuthService
from quizapi.services.permission_service import PermissionService
from quizapi.services.quiz_service import QuizService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_permission_service(request: Request) -> PermissionService:
    return request.app.state.permission_service


def get_quiz_service(request: Request) -> QuizService:
    return request.app.state.quiz_service
