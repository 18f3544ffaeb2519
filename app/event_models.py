from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict
from datetime import datetime, timezone
from enum import Enum


class EventSource(str, Enum):
    """Advertising platforms that publish events."""
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"


class FunnelStage(str, Enum):
    """Position of an event in the conversion pipeline."""
    TOP = "top"
    BOTTOM = "bottom"


class Event(BaseModel):
    """A stored behavioral event. Never mutated after it is written."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    event_id: str = Field(..., alias="eventId", min_length=1, description="Caller-supplied identifier")
    timestamp: datetime = Field(..., description="When the event occurred, as reported by the source")
    version: str = Field(default="v1", description="Payload schema version tag")
    source: EventSource
    funnel_stage: FunnelStage = Field(..., alias="funnelStage")
    event_type: str = Field(..., alias="eventType", min_length=1)
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("payload", "data"),
        description="Source-specific nested document",
    )

    @field_validator("timestamp")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible representation used by the store adapters."""
        return self.model_dump(mode="json", by_alias=True)
