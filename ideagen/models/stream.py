"""
ideagen/models/stream.py

One unit read from the provider's completion stream.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict


class StreamFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    delta: str = ""
    finish_reason: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.finish_reason is not None
