from __future__ import annotations

import asyncio
import logging
from typing import Callable

from core.logger import log_event
from interview_relay.compatibility.models import CompatibilityAnalyzer, CompatibilityVerdict
from interview_relay.context.metadata import InterviewMetadata
from interview_relay.schemas import EndReason

logger = logging.getLogger("compatibility.prober")

IsClosedFn = Callable[[], bool]


def graceful_ending_message(reason: EndReason) -> str:
    if reason == EndReason.INCOMPATIBILITY:
        return (
            "Thank you for your time today. Based on your background, this role seems quite far from "
            "your current experience, so I'd like to end this practice session here. "
            "I'd encourage you to try a mock interview for a position closer to your skills - "
            "you'll get much more useful feedback that way. Good luck!"
        )
    return (
        "Thank you for your time today. I think your experience would be better showcased in a "
        "different role, so let's wrap up this session here. Feel free to start a new interview "
        "whenever you're ready. Good luck!"
    )


class CompatibilityProber:
    """
    Out-of-band resume/job fit checks for one call.

    At most two analyses run: a quick one once metadata is known, and one lenient full
    analysis after enough history has accumulated. Both run as background tasks and only
    ever set flags; the dispatcher reads ``should_end`` on the next owed response.
    Failures are fail-open (no verdict, interview continues).
    """

    def __init__(
        self,
        analyzer: CompatibilityAnalyzer | None,
        call_id: str = "",
        quick_min_confidence: float = 0.95,
        full_min_confidence: float = 0.85,
        min_messages: int = 6,
    ):
        self.analyzer = analyzer
        self.call_id = call_id
        self.quick_min_confidence = quick_min_confidence
        self.full_min_confidence = full_min_confidence
        self.min_messages = max(1, int(min_messages))

        self.verdict = CompatibilityVerdict()
        self.checked = False
        self.should_end = False
        self.ending_reason = EndReason.INCOMPATIBILITY
        self.quick_started = False
        self.full_started = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _flag(self, verdict: CompatibilityVerdict, stage: str, reason: EndReason) -> None:
        self.should_end = True
        self.ending_reason = reason
        self.checked = True
        logger.warning(
            "Incompatibility flagged | call_id=%s stage=%s reason=%s confidence=%.2f reasons=%s",
            self.call_id,
            stage,
            reason.value,
            verdict.confidence,
            list(verdict.reasons),
        )
        log_event("compatibility", "incompatibility_flagged", self.call_id, stage=stage, reason=reason.value, confidence=verdict.confidence)

    def start_background_check(self, metadata: InterviewMetadata | None, is_closed: IsClosedFn) -> asyncio.Task | None:
        if self.analyzer is None or self.quick_started:
            return None
        if metadata is None or not metadata.has_resume_and_role:
            return None
        self.quick_started = True
        logger.info("Starting background compatibility check | call_id=%s", self.call_id)
        return self._spawn(self._run_quick(metadata, is_closed))

    async def _run_quick(self, metadata: InterviewMetadata, is_closed: IsClosedFn) -> None:
        try:
            verdict = await self.analyzer(metadata.resume_text, metadata.job_title, metadata.job_description, True)
        except Exception as exc:
            logger.warning("Background compatibility check failed | call_id=%s err=%s", self.call_id, exc)
            return

        if is_closed():
            logger.info("Compatibility result ignored, call already closed | call_id=%s", self.call_id)
            return
        if self.checked:
            return

        self.verdict = verdict
        if verdict.extremely_incompatible and verdict.confidence > self.quick_min_confidence:
            self._flag(verdict, "quick", EndReason.INCOMPATIBILITY)

    def needs_full_check(self, history_size: int, metadata: InterviewMetadata | None) -> bool:
        if self.analyzer is None or self.checked or self.full_started or self.should_end:
            return False
        if metadata is None or not metadata.has_resume_and_role:
            return False
        return history_size >= self.min_messages

    def start_full_check(self, metadata: InterviewMetadata, is_closed: IsClosedFn) -> asyncio.Task | None:
        if self.full_started:
            return None
        self.full_started = True
        logger.info("Starting full compatibility check | call_id=%s", self.call_id)
        return self._spawn(self._run_full(metadata, is_closed))

    async def _run_full(self, metadata: InterviewMetadata, is_closed: IsClosedFn) -> None:
        try:
            verdict = await self.analyzer(metadata.resume_text, metadata.job_title, metadata.job_description, False)
        except Exception as exc:
            logger.warning("Full compatibility check failed | call_id=%s err=%s", self.call_id, exc)
            self.checked = True
            return

        if is_closed():
            logger.info("Compatibility result ignored, call already closed | call_id=%s", self.call_id)
            return

        self.checked = True
        self.verdict = verdict
        # ordinary mismatches never end the session
        if (
            not verdict.is_congruent
            and verdict.extremely_incompatible
            and verdict.confidence > self.full_min_confidence
        ):
            self._flag(verdict, "full", EndReason.MISMATCH)
