from .threads import Thread, Base
from .messages import Message, SYSTEM_SENDER

__all__ = ["Thread", "Message", "SYSTEM_SENDER", "Base"]
