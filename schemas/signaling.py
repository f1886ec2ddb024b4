from pydantic import BaseModel
from typing import Any


class SignalingMessage(BaseModel):
    """One frame on the signaling socket: {"event": "...", "data": ...}."""
    event: str
    data: Any = None
