from __future__ import annotations

import logging

from core.logger import log_event
from interview_relay.interview.history import HistoryBuffer
from interview_relay.services.completion_service import CompletionResult, CompletionService
from interview_relay.session.frames import OutboundFrameWriter
from interview_relay.system_metrics import increment_metric

logger = logging.getLogger("session.responder")

FALLBACK_APOLOGY = (
    "I apologize, I'm having a brief technical issue. "
    "Could you please repeat what you just said?"
)


class ResponseGenerator:
    """Produces one assistant turn from the history and streams it out."""

    def __init__(self, completions: CompletionService, writer: OutboundFrameWriter, history: HistoryBuffer, call_id: str = ""):
        self.completions = completions
        self.writer = writer
        self.history = history
        self.call_id = call_id

    async def generate(self, response_id: int) -> CompletionResult:
        dropped = self.history.prune()
        if dropped:
            logger.info("History pruned before generation | call_id=%s dropped=%s", self.call_id, dropped)

        async def _forward(fragment: str) -> None:
            await self.writer.send_chunk(response_id, fragment)

        result = await self.completions.stream_reply(self.history.as_messages(), _forward, call_id=self.call_id)

        if not result.ok:
            increment_metric("completion_fallbacks", 1)
            logger.error(
                "Sending fallback apology | call_id=%s response_id=%s attempts=%s err=%s",
                self.call_id,
                response_id,
                result.attempts,
                result.error,
            )
            await self.writer.speak(response_id, FALLBACK_APOLOGY)
            log_event("responder", "fallback_sent", self.call_id, response_id=response_id, attempts=result.attempts)
            return result

        await self.writer.send_completion(response_id)
        if result.text:
            self.history.add_assistant(result.text)
        increment_metric("responses_generated", 1)
        log_event(
            "responder",
            "response_generated",
            self.call_id,
            response_id=response_id,
            fragments=result.fragments,
            attempts=result.attempts,
            truncated=result.truncated,
            text=result.text,
        )
        return result
