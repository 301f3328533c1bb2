"""
Subscription endpoints for Meetspace.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...db.database import get_db
from ...services.subscription_service import subscription_service
from ..dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/check")
async def check_subscription(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Current plan, event limit and whether another event may be created.
    """
    try:
        quota = subscription_service.get_quota(db, current_user["user_id"])
        return {
            "has_active_subscription": quota["subscription"] is not None,
            **quota,
        }

    except Exception as e:
        logger.error(f"Subscription check failed for user {current_user.get('user_id')}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check subscription: {str(e)}"
        )


@router.get("/plans")
async def list_plans(db: Session = Depends(get_db)):
    try:
        return {"plans": subscription_service.list_plans(db)}

    except Exception as e:
        logger.error(f"Failed to list plans: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list plans: {str(e)}"
        )
