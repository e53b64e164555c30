"""Administration of permissions, roles and user role assignments."""

import logging
from typing import List

from quizapi.core.errors import ErrorKind, Result, guarded
from quizapi.models.schemas import (
    PermissionDetail, PermissionIn, PermissionUpdate, RoleDetail, RoleIn, RoleUpdate, UserProfile,
)
from quizapi.services.auth_service import build_profile
from quizapi.services.store import CredentialStore

logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, store: CredentialStore):
        self.store = store

    # ============= Permissions =============

    @guarded
    def create_permission(self, data: PermissionIn) -> Result[PermissionDetail]:
        if self.store.find_permission_by_name(data.name) is not None:
            return Result.failure(ErrorKind.CONFLICT, f"Permission {data.name!r} already exists")
        permission = self.store.save_permission(data)
        logger.info(f"Created permission {permission.scope}")
        return Result.success(permission)

    @guarded
    def list_permissions(self) -> Result[List[PermissionDetail]]:
        return Result.success(self.store.find_all_permissions())

    @guarded
    def get_permission(self, permission_id: int) -> Result[PermissionDetail]:
        permission = self.store.find_permission_by_id(permission_id)
        if permission is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Permission not found")
        return Result.success(permission)

    @guarded
    def update_permission(self, permission_id: int, data: PermissionUpdate) -> Result[PermissionDetail]:
        if data.name is not None:
            existing = self.store.find_permission_by_name(data.name)
            if existing is not None and existing.id != permission_id:
                return Result.failure(ErrorKind.CONFLICT, f"Permission {data.name!r} already exists")
        permission = self.store.save_permission(data, permission_id=permission_id)
        if permission is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Permission not found")
        return Result.success(permission)

    @guarded
    def delete_permission(self, permission_id: int) -> Result[bool]:
        return Result.success(self.store.delete_permission(permission_id))

    # ============= Roles =============

    @guarded
    def create_role(self, data: RoleIn) -> Result[RoleDetail]:
        if self.store.find_role_by_name(data.name) is not None:
            return Result.failure(ErrorKind.CONFLICT, f"Role {data.name!r} already exists")
        role = self.store.save_role(name=data.name, description=data.description, permission_ids=data.permission_ids)
        logger.info(f"Created role {role.name} with {len(role.permissions)} permissions")
        return Result.success(role)

    @guarded
    def list_roles(self) -> Result[List[RoleDetail]]:
        return Result.success(self.store.find_all_roles())

    @guarded
    def get_role(self, role_id: int) -> Result[RoleDetail]:
        role = self.store.find_role_by_id(role_id)
        if role is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Role not found")
        return Result.success(role)

    @guarded
    def update_role(self, role_id: int, data: RoleUpdate) -> Result[RoleDetail]:
        if data.name is not None:
            existing = self.store.find_role_by_name(data.name)
            if existing is not None and existing.id != role_id:
                return Result.failure(ErrorKind.CONFLICT, f"Role {data.name!r} already exists")
        role = self.store.save_role(name=data.name, description=data.description,
                                    permission_ids=data.permission_ids, role_id=role_id)
        if role is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Role not found")
        return Result.success(role)

    @guarded
    def delete_role(self, role_id: int) -> Result[bool]:
        return Result.success(self.store.delete_role(role_id))

    # ============= User roles =============
    # Changes reach a user's authorization only through the next token issued.

    @guarded
    def assign_role(self, user_id: int, role_id: int) -> Result[bool]:
        if not self.store.add_user_role(user_id, role_id):
            return Result.failure(ErrorKind.NOT_FOUND, "User or role not found")
        logger.info(f"Assigned role {role_id} to user {user_id}")
        return Result.success(True)

    @guarded
    def remove_role(self, user_id: int, role_id: int) -> Result[bool]:
        if not self.store.remove_user_role(user_id, role_id):
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        logger.info(f"Removed role {role_id} from user {user_id}")
        return Result.success(True)

    @guarded
    def get_user(self, user_id: int) -> Result[UserProfile]:
        user = self.store.find_user_with_roles(user_id)
        if user is None:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        return Result.success(build_profile(user))
