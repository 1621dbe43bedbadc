from typing import Any

from pydantic import BaseModel, Field, field_validator

# Event key reserved for automatic view duration reports.
VIEW_EVENT_KEY = "[CLY]_view"


class Event(BaseModel):
    """A single custom event as buffered by the batcher."""

    key: str = Field(..., min_length=1, description="Name or id of the event")
    count: int = Field(1, description="How many times the event occurred")
    sum: float | None = None
    dur: float | None = None
    segmentation: dict[str, Any] | None = None

    # Stamped by the client at record time
    timestamp: int | None = None
    hour: int | None = None
    dow: int | None = None

    @field_validator("count", mode="before")
    @classmethod
    def _default_count(cls, value: Any) -> Any:
        return value or 1

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
