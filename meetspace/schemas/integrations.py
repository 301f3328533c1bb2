"""
Schemas for third-party integrations: Jitsi, AI copy and uploads.
"""

from typing import Optional

from pydantic import BaseModel, Field


class JitsiTokenResponse(BaseModel):
    token: str
    room: str
    app_id: str
    domain: str
    moderator: bool


class AIGenerateRequest(BaseModel):
    category: Optional[str] = None
    type: Optional[str] = Field(None, description="title, shortDescription or description")
    additional_info: Optional[str] = Field(None, alias="additionalInfo", max_length=1000)

    class Config:
        populate_by_name = True


class AIGenerateResponse(BaseModel):
    text: str
    type: str
    is_from_fallback: bool = False


class UploadResponse(BaseModel):
    url: Optional[str]
    public_id: Optional[str]
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
