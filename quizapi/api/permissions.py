from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from quizapi.api.deps import get_permission_service
from quizapi.core.auth import require_permission, require_role
from quizapi.core.errors import unwrap
from quizapi.models.schemas import (
    PermissionDetail, PermissionIn, PermissionUpdate, RoleDetail, RoleIn, RoleUpdate, UserProfile,
)
from quizapi.services.permission_service import PermissionService

router = APIRouter()


@router.post("/permissions", response_model=PermissionDetail, status_code=201,
             dependencies=[Depends(require_permission("permission", "create"))])
def create_permission(payload: PermissionIn, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.create_permission(payload))


@router.get("/permissions", response_model=List[PermissionDetail],
            dependencies=[Depends(require_permission("permission", "read"))])
def list_permissions(service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.list_permissions())


@router.get("/permissions/{permission_id}", response_model=PermissionDetail,
            dependencies=[Depends(require_permission("permission", "read"))])
def get_permission(permission_id: int, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.get_permission(permission_id))


@router.put("/permissions/{permission_id}", response_model=PermissionDetail,
            dependencies=[Depends(require_permission("permission", "update"))])
def update_permission(permission_id: int, payload: PermissionUpdate,
                      service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.update_permission(permission_id, payload))


@router.delete("/permissions/{permission_id}", status_code=204,
               dependencies=[Depends(require_permission("permission", "delete"))])
def delete_permission(permission_id: int, service: PermissionService = Depends(get_permission_service)):
    if not unwrap(service.delete_permission(permission_id)):
        raise HTTPException(404, "Permission not found")
    return Response(status_code=204)


@router.post("/roles", response_model=RoleDetail, status_code=201,
             dependencies=[Depends(require_permission("role", "create"))])
def create_role(payload: RoleIn, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.create_role(payload))


@router.get("/roles", response_model=List[RoleDetail], dependencies=[Depends(require_permission("role", "read"))])
def list_roles(service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.list_roles())


@router.get("/roles/{role_id}", response_model=RoleDetail, dependencies=[Depends(require_permission("role", "read"))])
def get_role(role_id: int, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.get_role(role_id))


@router.put("/roles/{role_id}", response_model=RoleDetail, dependencies=[Depends(require_permission("role", "update"))])
def update_role(role_id: int, payload: RoleUpdate, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.update_role(role_id, payload))


@router.delete("/roles/{role_id}", status_code=204, dependencies=[Depends(require_permission("role", "delete"))])
def delete_role(role_id: int, service: PermissionService = Depends(get_permission_service)):
    if not unwrap(service.delete_role(role_id)):
        raise HTTPException(404, "Role not found")
    return Response(status_code=204)


@router.post("/users/{user_id}/roles/{role_id}", dependencies=[Depends(require_permission("user", "manage"))])
def assign_role(user_id: int, role_id: int, service: PermissionService = Depends(get_permission_service)):
    unwrap(service.assign_role(user_id, role_id))
    return {"message": "Role assigned successfully"}


@router.delete("/users/{user_id}/roles/{role_id}", dependencies=[Depends(require_permission("user", "manage"))])
def remove_role(user_id: int, role_id: int, service: PermissionService = Depends(get_permission_service)):
    unwrap(service.remove_role(user_id, role_id))
    return {"message": "Role removed successfully"}


@router.get("/users/{user_id}", response_model=UserProfile, dependencies=[Depends(require_role("admin"))])
def get_user(user_id: int, service: PermissionService = Depends(get_permission_service)):
    return unwrap(service.get_user(user_id))
