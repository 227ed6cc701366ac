"""Pydantic read models for the notification admin API."""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class NotificationRecordDTO(BaseModel):
    id: int
    user_id: int
    type: str
    reference: str
    result: Dict[str, Any]
    created_at: datetime


class TestNotificationDTO(BaseModel):
    type: Literal["welcome", "test_email", "test_sms", "test_whatsapp"]
    user_id: int = Field(gt=0)


class ChannelSettingsDTO(BaseModel):
    enabled: bool
    sender: Optional[str] = None
    configured: bool = True


class NotificationSettingsDTO(BaseModel):
    email: ChannelSettingsDTO
    sms: ChannelSettingsDTO
    whatsapp: ChannelSettingsDTO
    frontend_url: str


def record_to_dict(record) -> dict:
    return NotificationRecordDTO(
        id=record.id,
        user_id=record.user_id,
        type=record.type,
        reference=record.reference,
        result=record.result or {},
        created_at=record.created_at,
    ).model_dump(mode="json")
