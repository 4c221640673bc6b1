"""
Message model — the typed unit exchanged over a session.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Message(BaseModel):
    payload: Any
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=_now)
    source: Optional[str] = None  # sender identity, if the sender sets one
