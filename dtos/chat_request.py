from pydantic import BaseModel, Field
from typing import List, Optional

class ChatRequest(BaseModel):
    content: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    thread_id: Optional[str] = Field(default=None, description="Target thread; the user's active thread is used when omitted")
    context: Optional[str] = Field(default=None, description="Caller-supplied context used instead of memory recall")
    files: Optional[List[str]] = Field(default=None, description="Attachment references stored on the user message")


class GenerateRequest(BaseModel):
    thread_id: str
    user_message: str = Field(..., min_length=1)
    context: Optional[str] = None
