from __future__ import annotations

import time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    CALL_DETAILS = "call_details"
    CALL_STARTED = "call_started"
    UPDATE_ONLY = "update_only"
    RESPONSE_REQUIRED = "response_required"
    REMINDER_REQUIRED = "reminder_required"
    PING_PONG = "ping_pong"

    @classmethod
    def parse(cls, raw: str | None) -> "EventKind | None":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return None


class TranscriptUtterance(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = ""
    content: str = ""


class CallInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    call_id: str | None = None
    metadata: dict[str, Any] | None = None
    retell_llm_dynamic_variables: dict[str, Any] | None = None


class InboundEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    interaction_type: str = ""
    call_id: str | None = None
    call: CallInfo | None = None
    response_id: int | None = None
    transcript: list[TranscriptUtterance] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    retell_llm_dynamic_variables: dict[str, Any] | None = None
    timestamp: int | None = None

    @property
    def kind(self) -> EventKind | None:
        return EventKind.parse(self.interaction_type)

    def last_user_utterance(self) -> str | None:
        if not self.transcript:
            return None
        last = self.transcript[-1]
        if last.role != "user" or not last.content.strip():
            return None
        return last.content


class EndReason(str, Enum):
    SILENCE = "silence"
    MAX_DURATION = "max_duration"
    INCOMPATIBILITY = "incompatibility"
    MISMATCH = "mismatch"


class EndCallMode(str, Enum):
    IMMEDIATE = "immediate"
    AFTER_SPOKEN = "after_spoken"


class EndCallDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: EndReason
    mode: EndCallMode = EndCallMode.AFTER_SPOKEN
    interruptible: bool = False


class OutboundFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ConfigFrame(OutboundFrame):
    response_type: Literal["config"] = "config"
    config: dict[str, bool] = Field(
        default_factory=lambda: {"auto_reconnect": True, "call_details": True}
    )


class PingPongFrame(OutboundFrame):
    response_type: Literal["ping_pong"] = "ping_pong"
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


class ResponseFrame(OutboundFrame):
    response_type: Literal["response"] = "response"
    response_id: int
    content: str
    content_complete: bool
    end_call: bool | None = None
    end_call_after_spoken: bool | None = None
    no_interruption_allowed: bool | None = None
    end_call_reason: str | None = None

    @classmethod
    def chunk(cls, response_id: int, content: str) -> "ResponseFrame":
        return cls(response_id=response_id, content=content, content_complete=False)

    @classmethod
    def completion(cls, response_id: int) -> "ResponseFrame":
        return cls(response_id=response_id, content="", content_complete=True)

    @classmethod
    def complete(cls, response_id: int, content: str, ending: EndCallDirective | None = None) -> "ResponseFrame":
        if ending is None:
            return cls(
                response_id=response_id,
                content=content,
                content_complete=True,
                end_call=False,
                end_call_after_spoken=False,
            )
        return cls(
            response_id=response_id,
            content=content,
            content_complete=True,
            end_call=ending.mode == EndCallMode.IMMEDIATE,
            end_call_after_spoken=ending.mode == EndCallMode.AFTER_SPOKEN,
            no_interruption_allowed=not ending.interruptible,
            end_call_reason=ending.reason.value,
        )

    @property
    def ends_call(self) -> bool:
        return bool(self.end_call or self.end_call_after_spoken)
