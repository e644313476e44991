"""Profile endpoints for the current user and account administration (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from warden.api.v1.auth import get_current_user, get_store, require_admin
from warden.schemas.auth import (
    AccountPage,
    AccountStats,
    AccountSummary,
    ApiResponse,
    CurrentUser,
    ProfileUpdate,
    RoleUpdateRequest,
)
from warden.services.accounts import MAX_PAGE_SIZE, AccountService
from warden.services.store import AccountStore

router = APIRouter()


def get_account_service(
    store: Annotated[AccountStore, Depends(get_store)],
) -> AccountService:
    return AccountService(store)


ServiceDep = Annotated[AccountService, Depends(get_account_service)]
AdminDep = Annotated[CurrentUser, Depends(require_admin)]


@router.get("/profile", response_model=ApiResponse[AccountSummary])
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: ServiceDep,
) -> ApiResponse[AccountSummary]:
    return ApiResponse(
        message="User profile retrieved successfully",
        data=service.get_profile(current_user.id),
    )


@router.put("/profile", response_model=ApiResponse[AccountSummary])
def update_profile(
    body: ProfileUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: ServiceDep,
) -> ApiResponse[AccountSummary]:
    """Update name, bio and/or phone number; omitted fields are left unchanged."""
    return ApiResponse(
        message="Profile updated successfully",
        data=service.update_profile(current_user.id, body),
    )


@router.get("/", response_model=ApiResponse[AccountPage])
def list_users(
    _admin: AdminDep,
    service: ServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
    role: str | None = None,
    is_active: bool | None = None,
    is_email_verified: bool | None = None,
    search: str | None = None,
) -> ApiResponse[AccountPage]:
    """List accounts, newest first, with optional filters (admin only)."""
    return ApiResponse(
        message="Users retrieved successfully",
        data=service.list_accounts(
            page=page,
            limit=limit,
            role=role,
            is_active=is_active,
            is_email_verified=is_email_verified,
            search=search,
        ),
    )


@router.get("/stats", response_model=ApiResponse[AccountStats])
def user_stats(_admin: AdminDep, service: ServiceDep) -> ApiResponse[AccountStats]:
    return ApiResponse(message="User statistics retrieved successfully", data=service.stats())


@router.get("/{account_id}", response_model=ApiResponse[AccountSummary])
def get_user(account_id: int, _admin: AdminDep, service: ServiceDep) -> ApiResponse[AccountSummary]:
    return ApiResponse(
        message="User retrieved successfully", data=service.get_account(account_id)
    )


@router.put("/{account_id}/role", response_model=ApiResponse[AccountSummary])
def update_role(
    account_id: int,
    body: RoleUpdateRequest,
    admin: AdminDep,
    service: ServiceDep,
) -> ApiResponse[AccountSummary]:
    account = service.set_role(admin.id, account_id, body.role)
    return ApiResponse(message=f"User role updated to {account.role}", data=account)


@router.put("/{account_id}/deactivate", response_model=ApiResponse[AccountSummary])
def deactivate_user(
    account_id: int, admin: AdminDep, service: ServiceDep
) -> ApiResponse[AccountSummary]:
    """Deactivate an account and sign it out everywhere."""
    return ApiResponse(
        message="User deactivated successfully",
        data=service.deactivate(admin.id, account_id),
    )


@router.put("/{account_id}/reactivate", response_model=ApiResponse[AccountSummary])
def reactivate_user(
    account_id: int, admin: AdminDep, service: ServiceDep
) -> ApiResponse[AccountSummary]:
    return ApiResponse(
        message="User reactivated successfully",
        data=service.reactivate(admin.id, account_id),
    )


@router.delete("/{account_id}", response_model=ApiResponse[None])
def delete_user(account_id: int, admin: AdminDep, service: ServiceDep) -> ApiResponse[None]:
    service.delete_account(admin.id, account_id)
    return ApiResponse(message="User deleted successfully")
