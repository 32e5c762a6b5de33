from pydantic import BaseModel, Field
from typing import Any, Optional
import uuid

def _rid():
    return uuid.uuid4().hex

class SuccessResponse(BaseModel):
    """Envelope for every successful API response; errors use the handler envelope."""
    success: bool = Field(default=True)
    request_id: str = Field(default_factory=_rid, description="Opaque id for tracing a request in the logs.")
    data: Optional[Any] = None
