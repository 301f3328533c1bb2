"""
Payment API endpoints for Meetspace.
Checkout initiation, the provider callback and payment lookups.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from ...core.exceptions import MeetspaceError, ProviderError
from ...db.database import get_db
from ...schemas.payment import PaymentInitRequest, PaymentInitResponse
from ...services.payment_service import payment_service
from ..dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payments"])


@router.post("", response_model=PaymentInitResponse)
async def initiate_payment(
    payment_data: PaymentInitRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a pending order and return the provider checkout URL.
    Every response carries X-Request-ID for support correlation.
    """
    request_id = str(uuid.uuid4())
    headers = {"X-Request-ID": request_id}

    try:
        payload = payment_data.model_dump()
        result = await payment_service.initiate_payment(db, payload, current_user, request_id)

        return JSONResponse(
            status_code=status.HTTP_200_OK,
            headers=headers,
            content=PaymentInitResponse(
                message="Payment initialized successfully",
                checkout_url=result.checkout_url,
                order_id=result.order_id,
                tx_ref=result.tx_ref,
                chapa_response_status=result.provider_status,
            ).model_dump()
        )

    except ProviderError as e:
        db.rollback()
        return JSONResponse(
            status_code=e.upstream_status or status.HTTP_500_INTERNAL_SERVER_ERROR,
            headers=headers,
            content={
                "error": "Payment initialization failed",
                "message": e.message,
                "request_id": request_id,
            }
        )
    except MeetspaceError as e:
        db.rollback()
        return JSONResponse(
            status_code=e.status_code,
            headers=headers,
            content={**e.to_dict(), "request_id": request_id}
        )
    except Exception as e:
        db.rollback()
        logger.error(f"[{request_id}] Payment initialization error: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            headers=headers,
            content={
                "error": "Payment initialization failed",
                "message": str(e),
                "request_id": request_id,
            }
        )


@router.get("/callback")
async def payment_callback(
    trx_ref: Optional[str] = Query(None, description="Transaction reference sent by the provider"),
    tx_ref: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Provider return endpoint. Verifies the transaction, completes or fails
    the order and redirects the browser to the matching result page.
    """
    reference = trx_ref or tx_ref
    logger.info(f"Payment callback received for {reference}")

    result = await payment_service.handle_callback(db, reference)
    return RedirectResponse(url=result.redirect_url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{tx_ref}")
async def get_payment(
    tx_ref: str = Path(..., min_length=1),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return await payment_service.get_payment_status(db, tx_ref, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to get payment {tx_ref}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get payment: {str(e)}"
        )
