from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from core.config import InterviewSettings
from interview_relay.compatibility.prober import CompatibilityProber
from interview_relay.context.metadata import InterviewMetadata
from interview_relay.interview.history import HistoryBuffer
from interview_relay.interview.timer import InterviewTimer
from interview_relay.prompts.languages import DEFAULT_LANGUAGE

logger = logging.getLogger("session.state")

GREETING_RESPONSE_ID = 0


class SessionPhase(str, Enum):
    AWAITING_SETUP = "awaiting_setup"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class CallSession:
    """Mutable per-connection state, owned by one dispatcher."""

    call_id: str
    settings: InterviewSettings
    history: HistoryBuffer
    timer: InterviewTimer
    prober: CompatibilityProber
    language: str = DEFAULT_LANGUAGE
    interview_field: str = "General"
    system_prompt: str = ""
    metadata: InterviewMetadata | None = None
    phase: SessionPhase = SessionPhase.AWAITING_SETUP

    next_response_id: int = 1
    last_response_id: int = -1
    greeted: bool = False
    reminder_count: int = 0
    processing: bool = False
    closed: bool = False
    end_reason: str = ""
    created_at: float = field(default_factory=time.time)

    def is_closed(self) -> bool:
        return self.closed

    def claim_response_id(self, inbound: int | None = None) -> int:
        """
        Adopts the inbound id when the platform supplies one, otherwise self-increments.
        The greeting owns id 0, so claimed ids start at 1.
        """
        if inbound is not None and inbound > GREETING_RESPONSE_ID:
            response_id = int(inbound)
            if response_id <= self.last_response_id:
                logger.warning(
                    "Inbound response_id not increasing | call_id=%s inbound=%s last=%s",
                    self.call_id,
                    response_id,
                    self.last_response_id,
                )
        else:
            response_id = max(self.next_response_id, self.last_response_id + 1, 1)

        self.last_response_id = max(self.last_response_id, response_id)
        self.next_response_id = self.last_response_id + 1
        return response_id

    def claim_greeting_id(self) -> int:
        self.last_response_id = max(self.last_response_id, GREETING_RESPONSE_ID)
        return GREETING_RESPONSE_ID

    def end(self, reason: str) -> None:
        self.phase = SessionPhase.ENDED
        if not self.end_reason:
            self.end_reason = reason


def new_call_session(call_id: str, settings: InterviewSettings, prober: CompatibilityProber, clock=None) -> CallSession:
    timer_kwargs = {"clock": clock} if clock is not None else {}
    return CallSession(
        call_id=call_id,
        settings=settings,
        history=HistoryBuffer(settings.max_history),
        timer=InterviewTimer(settings.max_duration_minutes, settings.warning_threshold_minutes, **timer_kwargs),
        prober=prober,
    )
