"""Pydantic schemas for thread-related responses."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from uuid import UUID


class ThreadResponse(BaseModel):
    """Schema for thread responses."""
    id: UUID
    user_id: str
    title: Optional[str]
    is_active: bool
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
