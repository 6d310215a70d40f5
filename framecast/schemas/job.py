from typing import Literal

from pydantic import BaseModel

JobStatusValue = Literal["pending", "processing", "completed", "failed", "cancelled"]


class JobStatusResponse(BaseModel):
    """Status of a render job as reported to callers."""
    id: str
    status: JobStatusValue
    progress: int
    message: str
    output_url: str | None = None
