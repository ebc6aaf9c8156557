"""Pydantic schemas for webhook records and provisioning responses."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookOut(BaseModel):
    webhook_record_id: str
    user_id: str
    repository_id: str
    remote_hook_id: int
    webhook_url: str
    events: list[str]
    active: bool
    is_existing: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RemoteHookOut(BaseModel):
    id: int
    url: str
    events: list[str]
    active: bool


class WebhookProvisionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    is_existing: bool = Field(serialization_alias="isExisting")
    message: str
    webhook: RemoteHookOut
