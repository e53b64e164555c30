"""
Transfer records exchanged between the store, the cache, the services and the API.

Records are detached copies of the ORM rows. Parent links are plain ids
(``Question.quiz_id``, ``Answer.question_id``) so a cached quiz is a tree
without back-references.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============= Credentials =============

class Permission(Record):
    id: int
    name: str
    description: Optional[str] = None
    resource: str
    action: str

    @property
    def scope(self) -> str:
        """The ``resource:action`` string carried in token claims."""
        return f"{self.resource}:{self.action}"


class PermissionDetail(Permission):
    role_ids: List[int] = []


class Role(Record):
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[Permission] = []


class RoleDetail(Role):
    user_ids: List[int] = []


class UserRecord(Record):
    id: int
    username: str
    email: str
    password_hash: str
    is_active: bool = True
    roles: List[Role] = []


class UserProfile(BaseModel):
    id: int
    username: str
    email: str
    roles: List[str]
    permissions: List[str]


class TokenClaims(BaseModel):
    user_id: int
    username: str
    email: str
    roles: List[str] = []
    permissions: List[str] = []
    expires_at: Optional[datetime] = None


# ============= Quizzes =============

class Answer(Record):
    id: int
    question_id: int
    text: str
    is_correct: bool


class Question(Record):
    id: int
    quiz_id: int
    text: str
    answers: List[Answer] = []


class Quiz(Record):
    id: int
    title: str
    questions: List[Question] = []


# ============= Requests / Responses =============

class RegisterRequest(BaseModel):
    username: constr(min_length=1, max_length=150)
    email: constr(min_length=3, max_length=255)
    password: constr(min_length=1)


class LoginRequest(BaseModel):
    username: constr(min_length=1)
    password: constr(min_length=1)


class AuthResponse(BaseModel):
    token: str
    user: UserProfile


class PermissionIn(BaseModel):
    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    resource: constr(min_length=1, max_length=100)
    action: constr(min_length=1, max_length=100)


class PermissionUpdate(BaseModel):
    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    resource: Optional[constr(min_length=1, max_length=100)] = None
    action: Optional[constr(min_length=1, max_length=100)] = None


class RoleIn(BaseModel):
    name: constr(min_length=1, max_length=100)
    description: Optional[str] = None
    permission_ids: List[int] = []


class RoleUpdate(BaseModel):
    name: Optional[constr(min_length=1, max_length=100)] = None
    description: Optional[str] = None
    permission_ids: Optional[List[int]] = None


class AnswerIn(BaseModel):
    text: str
    is_correct: bool = False


class QuestionIn(BaseModel):
    text: str
    answers: List[AnswerIn] = []


class QuizCreate(BaseModel):
    title: constr(min_length=1, max_length=255)
    questions: List[QuestionIn] = []


class QuizTitleUpdate(BaseModel):
    title: constr(min_length=1, max_length=255)


class QuizSubmission(BaseModel):
    # question id -> chosen answer id; unanswered questions may be omitted
    answers: Dict[int, int] = Field(default_factory=dict)


class QuizResult(BaseModel):
    score: int
    total: int
