"""Debug entry recorded for every pipeline event."""

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DebugEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    stage: str
    section_index: Optional[int] = None
    unit_index: Optional[int] = None
    unit_type: Optional[str] = None
    prompt: Optional[str] = None
    raw_response: Optional[Any] = None
    parsed_output: Optional[Any] = None
    error: Optional[str] = None
    error_stack: Optional[str] = None
