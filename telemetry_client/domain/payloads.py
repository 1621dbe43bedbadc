"""Typed request payloads and the single encoder that flattens them.

Each request kind is its own model with a ``kind`` discriminator. Sub-objects
are JSON encoded into one query-string field, which is how the collector
expects them on the wire.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from .events import Event

# A fully encoded, flat request: field name -> scalar.
Request = dict[str, Any]


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


class BeginSession(BaseModel):
    kind: Literal["begin_session"] = "begin_session"
    metrics: dict[str, Any] = Field(default_factory=dict)

    def encode(self) -> Request:
        return {"begin_session": 1, "metrics": _dumps(self.metrics)}


class SessionDuration(BaseModel):
    kind: Literal["session_duration"] = "session_duration"
    seconds: int = Field(..., ge=0)

    def encode(self) -> Request:
        return {"session_duration": self.seconds}


class EndSession(BaseModel):
    kind: Literal["end_session"] = "end_session"
    seconds: int = Field(..., ge=0)

    def encode(self) -> Request:
        return {"end_session": 1, "session_duration": self.seconds}


class EventsBatch(BaseModel):
    kind: Literal["events"] = "events"
    events: list[Event] = Field(..., min_length=1)

    def encode(self) -> Request:
        return {"events": _dumps([e.to_wire() for e in self.events])}


class UserDetails(BaseModel):
    kind: Literal["user_details"] = "user_details"
    name: str | None = None
    username: str | None = None
    email: str | None = None
    organization: str | None = None
    phone: str | None = None
    picture: str | None = None
    gender: str | None = None
    byear: int | None = None
    custom: dict[str, Any] | None = None

    def encode(self) -> Request:
        details = self.model_dump(exclude_none=True, exclude={"kind"})
        return {"user_details": _dumps(details)}


class CustomPropertiesUpdate(BaseModel):
    kind: Literal["custom_properties"] = "custom_properties"
    custom: dict[str, Any] = Field(..., min_length=1)

    def encode(self) -> Request:
        return {"user_details": _dumps({"custom": self.custom})}


class CrashReport(BaseModel):
    os: str = Field(..., serialization_alias="_os")
    os_version: str = Field(..., serialization_alias="_os_version")
    app_version: str = Field(..., serialization_alias="_app_version")
    error: str = Field(..., serialization_alias="_error")
    run: int = Field(..., serialization_alias="_run")
    nonfatal: bool = Field(..., serialization_alias="_nonfatal")
    not_os_specific: bool = Field(True, serialization_alias="_not_os_specific")
    logs: str | None = Field(None, serialization_alias="_logs")
    custom: dict[str, Any] | None = Field(None, serialization_alias="_custom")


class Crash(BaseModel):
    kind: Literal["crash"] = "crash"
    report: CrashReport

    def encode(self) -> Request:
        return {"crash": _dumps(self.report.model_dump(by_alias=True, exclude_none=True))}


class CampaignConversion(BaseModel):
    kind: Literal["campaign_conversion"] = "campaign_conversion"
    campaign_id: str = Field(..., min_length=1)
    campaign_user: str | None = None

    def encode(self) -> Request:
        req: Request = {"campaign_id": self.campaign_id}
        if self.campaign_user:
            req["campaign_user"] = self.campaign_user
        return req


class DeviceIdMerge(BaseModel):
    kind: Literal["device_id_merge"] = "device_id_merge"
    old_device_id: str = Field(..., min_length=1)

    def encode(self) -> Request:
        return {"old_device_id": self.old_device_id}


Payload = Annotated[
    Union[
        BeginSession,
        SessionDuration,
        EndSession,
        EventsBatch,
        UserDetails,
        CustomPropertiesUpdate,
        Crash,
        CampaignConversion,
        DeviceIdMerge,
    ],
    Field(discriminator="kind"),
]


def encode_payload(payload: BaseModel) -> Request:
    """Flatten a typed payload into the wire field map."""
    encode = getattr(payload, "encode", None)
    if not callable(encode):
        raise TypeError(f"Not a request payload: {type(payload).__name__}")
    return encode()


__all__ = [
    "Request",
    "Payload",
    "BeginSession",
    "SessionDuration",
    "EndSession",
    "EventsBatch",
    "UserDetails",
    "CustomPropertiesUpdate",
    "CrashReport",
    "Crash",
    "CampaignConversion",
    "DeviceIdMerge",
    "encode_payload",
]
