from fastapi import APIRouter, Depends

from quizapi.api.deps import get_auth_service
from quizapi.core.auth import get_current_user
from quizapi.core.errors import unwrap
from quizapi.models.schemas import AuthResponse, LoginRequest, RegisterRequest, TokenClaims, UserProfile
from quizapi.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    return unwrap(service.register(payload.username, payload.email, payload.password))


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)):
    return unwrap(service.login(payload.username, payload.password))


@router.get("/profile", response_model=UserProfile)
def profile(user: TokenClaims = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):
    return unwrap(service.profile(user.user_id))
