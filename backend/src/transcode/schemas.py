from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.media.models import JobStatus
from src.media.schemas import TranscodeResult


class CallbackStatus(StrEnum):
    """Statuses a worker may report."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TranscodeCallback(BaseModel):
    """Progress or outcome report posted by a transcode worker."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., min_length=1, max_length=100, alias="jobId")
    status: CallbackStatus
    result: TranscodeResult | None = None
    error: str | None = Field(None, max_length=4000)

    @model_validator(mode="after")
    def check_result(self) -> "TranscodeCallback":
        if self.status == CallbackStatus.COMPLETED and self.result is None:
            msg = "A COMPLETED callback must include the transcode result"
            raise ValueError(msg)
        return self


class SweepResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timed_out: list[str] = Field(default_factory=list, alias="timedOut")
    requeued: list[str] = Field(default_factory=list)


class TranscodeStatsResponse(BaseModel):
    counts: dict[JobStatus, int]
    total: int
