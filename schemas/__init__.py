from .threads import ThreadResponse
from .messages import (
    MessageUpdate, BatchMessageItem, MessageBatchCreate, MessageResponse,
    MessageDeleteResponse, GenerateResponse, TurnResponse
)

__all__ = ["ThreadResponse",
           "MessageUpdate", "BatchMessageItem", "MessageBatchCreate", "MessageResponse",
           "MessageDeleteResponse", "GenerateResponse", "TurnResponse"]
