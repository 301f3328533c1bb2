"""
Integration endpoints: video meeting tokens, AI copy and image uploads.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Query, UploadFile, status
from sqlalchemy.orm import Session

from ...core.exceptions import MeetspaceError
from ...db.database import get_db
from ...db.repositories import EventRepository
from ...schemas.integrations import (
    AIGenerateRequest, AIGenerateResponse, JitsiTokenResponse, UploadResponse
)
from ...services.ai_service import ai_service
from ...services.jitsi_service import jitsi_service
from ...services.media_service import media_service
from ...services.visibility import is_owner
from ..dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])


@router.get("/jitsi/generate-token", response_model=JitsiTokenResponse)
async def generate_jitsi_token(
    room: Optional[str] = Query(None, description="Meeting room name"),
    event_id: Optional[int] = Query(None, description="Event the room belongs to"),
    moderator: bool = Query(False, description="Request moderator rights when no event is given"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Issue a JaaS participant token. When ``event_id`` is given the caller is
    moderator only if they organize that event.
    """
    try:
        if event_id is not None:
            event = EventRepository(db).get_by_id(event_id)
            moderator = event is not None and is_owner(event, current_user)

        return await jitsi_service.generate_token(room, current_user, moderator=moderator)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to generate Jitsi token: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate token: {str(e)}"
        )


@router.post("/ai/generate", response_model=AIGenerateResponse)
async def generate_content(
    request_data: AIGenerateRequest,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    try:
        return await ai_service.generate(
            request_data.category,
            request_data.type,
            request_data.additional_info
        )

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"AI generation error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate content: {str(e)}"
        )


@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    file: UploadFile = File(...),
    folder: str = Form("general"),
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """Upload an image (JPEG, PNG, WebP or GIF, max 5MB)."""
    try:
        data = await file.read()
        result = await media_service.upload_image(data, file.content_type or "", folder)
        logger.info(f"User {current_user['user_id']} uploaded {result['public_id']}")
        return result

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Upload failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload image: {str(e)}"
        )


@router.delete("/upload/{public_id:path}")
async def delete_image(
    public_id: str = Path(..., min_length=1),
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    try:
        deleted = await media_service.delete_image(public_id)
        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
        return {"message": "Image deleted successfully", "public_id": public_id}

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete image {public_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete image: {str(e)}"
        )
