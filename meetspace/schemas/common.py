"""
Shared response schemas.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Generic message response schema."""
    message: str
    success: bool = True


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: datetime
    service: str
    version: str
    checks: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error_code: str
    error_message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime
