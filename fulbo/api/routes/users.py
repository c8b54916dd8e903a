"""User profile and user administration route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.database.db import get_db_session
from fulbo.services import user_service
from fulbo.services.user_service import UserNotFoundError
from fulbo.api.auth_dependencies import require_user, require_admin
from fulbo.models.schemas import (
    UserResponse,
    NicknameUpdateRequest,
    AdminFlagRequest,
    WhitelistRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/me", response_model=UserResponse)
async def get_current_user_profile(user: dict = Depends(require_user)):
    """Get the caller's user record."""
    return user


@router.put("/api/users/me/nickname", response_model=UserResponse)
async def update_my_nickname(
    payload: NicknameUpdateRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Set or clear the caller's nickname."""
    try:
        return await user_service.update_nickname(session, user["id"], payload.nickname)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating nickname: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating nickname: {str(e)}")


@router.get("/api/users", response_model=List[UserResponse])
async def list_users(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List users.

    Admins see everybody; other users only see whitelisted players.
    """
    try:
        return await user_service.list_users(session, whitelisted_only=not user.get("is_admin"))
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing users: {str(e)}")


@router.put("/api/users/{user_id}/admin", response_model=UserResponse)
async def set_user_admin(
    user_id: str,
    payload: AdminFlagRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Grant or revoke admin rights (admin only)."""
    try:
        return await user_service.set_admin(session, user_id, payload.is_admin)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating admin flag: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating admin flag: {str(e)}")


@router.put("/api/users/{user_id}/whitelist", response_model=UserResponse)
async def set_user_whitelisted(
    user_id: str,
    payload: WhitelistRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a user to or remove them from the player whitelist (admin only)."""
    try:
        return await user_service.set_whitelisted(session, user_id, payload.is_whitelisted)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating whitelist: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating whitelist: {str(e)}")


@router.delete("/api/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a user and their availability (admin only)."""
    try:
        deleted = await user_service.delete_user(session, user_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="User not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting user: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error deleting user: {str(e)}")
