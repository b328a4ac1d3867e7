"""Support DTOs (pydantic v2, frozen)."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from modules.support.constants import TicketPriority, TicketStatus, TicketType


class CreateTicketDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    email: EmailStr
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    name: str = ""
    type: TicketType = TicketType.SUPPORT
    priority: TicketPriority = TicketPriority.NORMAL
    order_id: Optional[UUID] = None
    item_ids: List[str] = Field(default_factory=list)
    reason: str = ""

    @field_validator("item_ids", mode="before")
    @classmethod
    def stringify_item_ids(cls, v):
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return v


class ReplyDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    message: str = Field(min_length=1)


class TicketStatusDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: TicketStatus


class TicketQueryDTO(BaseModel):
    """``status=all`` means no status filter."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    status: Optional[str] = None
    search: Optional[str] = None
