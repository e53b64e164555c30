"""Credential and quiz store backed by SQLAlchemy."""

from typing import Iterable, List, Optional, Protocol

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from quizapi.core.cache import QuizSource
from quizapi.models import orm
from quizapi.models.schemas import (
    Permission, PermissionDetail, PermissionIn, PermissionUpdate, Quiz, QuizCreate, Role, RoleDetail, UserRecord,
)

_quiz_tree = selectinload(orm.Quiz.questions).selectinload(orm.Question.answers)
_role_tree = selectinload(orm.User.roles).selectinload(orm.Role.permissions)


class QuizStore(QuizSource, Protocol):
    def save_quiz(self, data: QuizCreate) -> Quiz: ...

    def update_quiz_title(self, quiz_id: int, title: str) -> Optional[Quiz]: ...

    def delete_quiz(self, quiz_id: int) -> bool: ...


class CredentialStore(Protocol):
    """Users, roles and permissions as consumed by the auth and admin services."""

    def find_user_by_username_or_email(self, username: str, email: Optional[str] = None) -> Optional[UserRecord]: ...

    def find_user_with_roles(self, user_id: int) -> Optional[UserRecord]: ...

    def save_user(self, username: str, email: str, password_hash: str) -> UserRecord: ...

    def add_user_role(self, user_id: int, role_id: int) -> bool: ...

    def remove_user_role(self, user_id: int, role_id: int) -> bool: ...

    def find_all_permissions(self) -> List[PermissionDetail]: ...

    def find_permission_by_id(self, permission_id: int) -> Optional[PermissionDetail]: ...

    def find_permission_by_name(self, name: str) -> Optional[Permission]: ...

    def save_permission(self, data: PermissionIn | PermissionUpdate,
                        permission_id: Optional[int] = None) -> Optional[PermissionDetail]: ...

    def delete_permission(self, permission_id: int) -> bool: ...

    def find_all_roles(self) -> List[RoleDetail]: ...

    def find_role_by_id(self, role_id: int) -> Optional[RoleDetail]: ...

    def find_role_by_name(self, name: str) -> Optional[Role]: ...

    def save_role(self, name: Optional[str] = None, description: Optional[str] = None,
                  permission_ids: Optional[Iterable[int]] = None,
                  role_id: Optional[int] = None) -> Optional[RoleDetail]: ...

    def delete_role(self, role_id: int) -> bool: ...


class SqlAlchemyStore:
    """
    Repository over the relational tables.

    Every method opens its own session and returns detached pydantic records
    (or ``None``/``False`` when the row is absent). Exceptions from the
    database driver propagate as :class:`sqlalchemy.exc.SQLAlchemyError`.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ============= Users =============

    def find_user_by_username_or_email(self, username: str, email: Optional[str] = None) -> Optional[UserRecord]:
        with self.session_factory() as db:
            stmt = select(orm.User).options(_role_tree).where(
                or_(orm.User.username == username, orm.User.email == (email or username))
            ).order_by(orm.User.id).limit(1)
            user = db.scalar(stmt)
            return UserRecord.model_validate(user) if user else None

    def find_user_with_roles(self, user_id: int) -> Optional[UserRecord]:
        with self.session_factory() as db:
            user = db.scalar(select(orm.User).options(_role_tree).where(orm.User.id == user_id))
            return UserRecord.model_validate(user) if user else None

    def save_user(self, username: str, email: str, password_hash: str) -> UserRecord:
        with self.session_factory.begin() as db:
            user = orm.User(username=username, email=email, password_hash=password_hash, is_active=True, roles=[])
            db.add(user)
            db.flush()
            return UserRecord.model_validate(user)

    def add_user_role(self, user_id: int, role_id: int) -> bool:
        with self.session_factory.begin() as db:
            user = db.get(orm.User, user_id)
            role = db.get(orm.Role, role_id)
            if user is None or role is None:
                return False
            if role not in user.roles:
                user.roles.append(role)
            return True

    def remove_user_role(self, user_id: int, role_id: int) -> bool:
        with self.session_factory.begin() as db:
            user = db.get(orm.User, user_id)
            if user is None:
                return False
            user.roles = [r for r in user.roles if r.id != role_id]
            return True

    # ============= Permissions =============

    def _permission_detail(self, db: Session, permission: orm.Permission) -> PermissionDetail:
        role_ids = db.scalars(
            select(orm.role_permissions.c.role_id)
            .where(orm.role_permissions.c.permission_id == permission.id)
            .order_by(orm.role_permissions.c.role_id)
        ).all()
        return PermissionDetail(**Permission.model_validate(permission).model_dump(), role_ids=list(role_ids))

    def find_all_permissions(self) -> List[PermissionDetail]:
        with self.session_factory() as db:
            rows = db.scalars(select(orm.Permission).order_by(orm.Permission.id)).all()
            return [self._permission_detail(db, p) for p in rows]

    def find_permission_by_id(self, permission_id: int) -> Optional[PermissionDetail]:
        with self.session_factory() as db:
            permission = db.get(orm.Permission, permission_id)
            return self._permission_detail(db, permission) if permission else None

    def find_permission_by_name(self, name: str) -> Optional[Permission]:
        with self.session_factory() as db:
            permission = db.scalar(select(orm.Permission).where(orm.Permission.name == name))
            return Permission.model_validate(permission) if permission else None

    def save_permission(self, data: PermissionIn | PermissionUpdate, permission_id: Optional[int] = None) -> Optional[PermissionDetail]:
        """Insert a permission, or update ``permission_id`` in place; ``None`` if it does not exist."""
        with self.session_factory.begin() as db:
            if permission_id is None:
                permission = orm.Permission()
                db.add(permission)
            else:
                permission = db.get(orm.Permission, permission_id)
                if permission is None:
                    return None
            for field, value in data.model_dump(exclude_none=True).items():
                setattr(permission, field, value)
            db.flush()
            return self._permission_detail(db, permission)

    def delete_permission(self, permission_id: int) -> bool:
        with self.session_factory.begin() as db:
            db.execute(delete(orm.role_permissions).where(orm.role_permissions.c.permission_id == permission_id))
            result = db.execute(delete(orm.Permission).where(orm.Permission.id == permission_id))
            return result.rowcount > 0

    # ============= Roles =============

    def _role_detail(self, db: Session, role: orm.Role) -> RoleDetail:
        user_ids = db.scalars(
            select(orm.user_roles.c.user_id).where(orm.user_roles.c.role_id == role.id).order_by(orm.user_roles.c.user_id)
        ).all()
        return RoleDetail(**Role.model_validate(role).model_dump(), user_ids=list(user_ids))

    def find_all_roles(self) -> List[RoleDetail]:
        with self.session_factory() as db:
            rows = db.scalars(select(orm.Role).options(selectinload(orm.Role.permissions)).order_by(orm.Role.id)).all()
            return [self._role_detail(db, r) for r in rows]

    def find_role_by_id(self, role_id: int) -> Optional[RoleDetail]:
        with self.session_factory() as db:
            role = db.scalar(select(orm.Role).options(selectinload(orm.Role.permissions)).where(orm.Role.id == role_id))
            return self._role_detail(db, role) if role else None

    def find_role_by_name(self, name: str) -> Optional[Role]:
        with self.session_factory() as db:
            role = db.scalar(select(orm.Role).options(selectinload(orm.Role.permissions)).where(orm.Role.name == name))
            return Role.model_validate(role) if role else None

    def save_role(self, name: Optional[str] = None, description: Optional[str] = None,
                  permission_ids: Optional[Iterable[int]] = None, role_id: Optional[int] = None) -> Optional[RoleDetail]:
        """
        Insert a role, or update ``role_id`` in place.

        Only the arguments that are not ``None`` are written. Unknown
        permission ids are ignored. Returns ``None`` if ``role_id`` does not
        exist.
        """
        with self.session_factory.begin() as db:
            if role_id is None:
                role = orm.Role(permissions=[])
                db.add(role)
            else:
                role = db.get(orm.Role, role_id)
                if role is None:
                    return None
            if name is not None:
                role.name = name
            if description is not None:
                role.description = description
            if permission_ids is not None:
                ids = list(permission_ids)
                role.permissions = list(db.scalars(
                    select(orm.Permission).where(orm.Permission.id.in_(ids)).order_by(orm.Permission.id)
                ).all()) if ids else []
            db.flush()
            return self._role_detail(db, role)

    def delete_role(self, role_id: int) -> bool:
        with self.session_factory.begin() as db:
            db.execute(delete(orm.user_roles).where(orm.user_roles.c.role_id == role_id))
            db.execute(delete(orm.role_permissions).where(orm.role_permissions.c.role_id == role_id))
            result = db.execute(delete(orm.Role).where(orm.Role.id == role_id))
            return result.rowcount > 0

    # ============= Quizzes =============

    def find_all_quizzes(self) -> List[Quiz]:
        with self.session_factory() as db:
            rows = db.scalars(select(orm.Quiz).options(_quiz_tree).order_by(orm.Quiz.id)).all()
            return [Quiz.model_validate(q) for q in rows]

    def find_quiz_by_id(self, quiz_id: int) -> Optional[Quiz]:
        with self.session_factory() as db:
            quiz = db.scalar(select(orm.Quiz).options(_quiz_tree).where(orm.Quiz.id == quiz_id))
            return Quiz.model_validate(quiz) if quiz else None

    def save_quiz(self, data: QuizCreate) -> Quiz:
        with self.session_factory.begin() as db:
            quiz = orm.Quiz(title=data.title, questions=[
                orm.Question(text=q.text, answers=[
                    orm.Answer(text=a.text, is_correct=a.is_correct) for a in q.answers
                ]) for q in data.questions
            ])
            db.add(quiz)
            db.flush()
            return Quiz.model_validate(quiz)

    def update_quiz_title(self, quiz_id: int, title: str) -> Optional[Quiz]:
        with self.session_factory.begin() as db:
            quiz = db.scalar(select(orm.Quiz).options(_quiz_tree).where(orm.Quiz.id == quiz_id))
            if quiz is None:
                return None
            quiz.title = title
            db.flush()
            return Quiz.model_validate(quiz)

    def delete_quiz(self, quiz_id: int) -> bool:
        """Delete answers, then questions, then the quiz, in one transaction."""
        with self.session_factory.begin() as db:
            question_ids = select(orm.Question.id).where(orm.Question.quiz_id == quiz_id)
            db.execute(delete(orm.Answer).where(orm.Answer.question_id.in_(question_ids)))
            db.execute(delete(orm.Question).where(orm.Question.quiz_id == quiz_id))
            result = db.execute(delete(orm.Quiz).where(orm.Quiz.id == quiz_id))
            return result.rowcount > 0

    def delete_question(self, question_id: int) -> bool:
        with self.session_factory.begin() as db:
            db.execute(delete(orm.Answer).where(orm.Answer.question_id == question_id))
            result = db.execute(delete(orm.Question).where(orm.Question.id == question_id))
            return result.rowcount > 0

    def delete_answer(self, answer_id: int) -> bool:
        with self.session_factory.begin() as db:
            result = db.execute(delete(orm.Answer).where(orm.Answer.id == answer_id))
            return result.rowcount > 0
