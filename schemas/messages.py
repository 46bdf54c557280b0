"""Pydantic schemas for message requests and responses."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID


class MessageUpdate(BaseModel):
    """Schema for editing a message."""
    content: str = Field(..., min_length=1)
    user_id: Optional[str] = None


class BatchMessageItem(BaseModel):
    """One message in a batch import."""
    content: str = Field(..., min_length=1)
    sender: Optional[str] = None


class MessageBatchCreate(BaseModel):
    """Schema for importing several messages into an existing thread."""
    thread_id: str
    messages: List[BatchMessageItem]
    user_id: Optional[str] = None


class MessageResponse(BaseModel):
    """Schema for message responses."""
    id: UUID
    thread_id: UUID
    content: str
    sender: str
    files: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class MessageDeleteResponse(BaseModel):
    """Schema for delete confirmations."""
    id: UUID
    thread_id: UUID
    deleted: bool = True


class GenerateResponse(BaseModel):
    """Schema for generate-only responses."""
    answer: str
    context: str
    response_id: str = ""


class TurnResponse(GenerateResponse):
    """Schema for a full conversational turn."""
    thread_id: UUID
    message_id: UUID
