"""Account routes for signed-in users."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from auth.database import UserDatabase
from auth.middleware import require_user
from auth.models import User

from .dependencies import get_user_db
from .errors import message_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])

MIN_USERNAME_LENGTH = 3


class AccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChangePasswordRequest(AccountRequest):
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")


class UpdateProfileRequest(AccountRequest):
    username: Optional[str] = None
    email: Optional[EmailStr] = None


class UpdatePlanRequest(AccountRequest):
    plan_id: Optional[str] = Field(None, alias="planId")


@router.get("/profile")
async def get_profile(
    user: User = Depends(require_user),
    user_db: UserDatabase = Depends(get_user_db),
):
    """Current user's public fields with the plan embedded."""
    try:
        profile = await user_db.get_user_profile(user.id)
        if not profile:
            raise message_error(404, "User not found")
        return {"success": True, "user": profile}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Profile error: {e}")
        raise message_error(500, "Internal server error")


@router.put("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(require_user),
    user_db: UserDatabase = Depends(get_user_db),
):
    if not payload.current_password or not payload.new_password:
        raise message_error(400, "Current password and new password are required")

    try:
        result = await user_db.change_password(
            user.id, payload.current_password, payload.new_password
        )
        if not result.ok:
            raise message_error(result.status, result.message)
        logger.info(f"User {user.id} changed their password")
        return {"success": True, "message": result.message}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Change password error: {e}")
        raise message_error(500, "Internal server error")


@router.put("/update-profile")
async def update_profile(
    payload: UpdateProfileRequest,
    user: User = Depends(require_user),
    user_db: UserDatabase = Depends(get_user_db),
):
    """Change username and email."""
    username = (payload.username or "").strip()
    email = (payload.email or "").strip()
    if not username or not email:
        raise message_error(400, "Username and email are required")
    if len(username) < MIN_USERNAME_LENGTH:
        raise message_error(400, f"Username must be at least {MIN_USERNAME_LENGTH} characters long")

    try:
        updated, result = await user_db.update_profile(user.id, username, email)
        if not updated:
            raise message_error(result.status, result.message)
        return {
            "success": True,
            "message": result.message,
            "user": await user_db.get_user_profile(user.id),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update profile error: {e}")
        raise message_error(500, "Internal server error")


@router.post("/update-plan")
async def update_plan(
    payload: UpdatePlanRequest,
    user: User = Depends(require_user),
    user_db: UserDatabase = Depends(get_user_db),
):
    """Switch plan; remaining tries are reset to the new plan's allowance."""
    if not payload.plan_id:
        raise message_error(400, "Plan ID is required")

    try:
        updated, result = await user_db.update_plan(user.id, payload.plan_id)
        if not updated:
            raise message_error(result.status, result.message)
        logger.info(f"User {user.id} switched to plan {payload.plan_id}")
        return {
            "success": True,
            "message": result.message,
            "user": await user_db.get_user_profile(user.id),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update plan error: {e}")
        raise message_error(500, "Internal server error")


@router.delete("/delete-account")
async def delete_account(
    user: User = Depends(require_user),
    user_db: UserDatabase = Depends(get_user_db),
):
    try:
        if not await user_db.delete_user(user.id):
            raise message_error(404, "User not found")
        logger.info(f"User {user.id} deleted their account")
        return {"success": True, "message": "Account deleted successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete account error: {e}")
        raise message_error(500, "Internal server error")
