from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable

from pydantic import ValidationError

from core.config import InterviewSettings
from core.logger import log_event
from interview_relay.compatibility.models import CompatibilityAnalyzer
from interview_relay.compatibility.prober import CompatibilityProber, graceful_ending_message
from interview_relay.context.metadata import normalize_metadata, resolve_call_id
from interview_relay.interview.outcome import CallOutcome, build_call_outcome
from interview_relay.interview.reminders import SILENCE_FAREWELL, reminder_message, reminders_exhausted
from interview_relay.prompts.assembler import assemble_interview_prompt
from interview_relay.schemas import EndCallDirective, EndCallMode, EndReason, EventKind, InboundEvent
from interview_relay.services.completion_service import CompletionService
from interview_relay.session.frames import OutboundFrameWriter, SendFn
from interview_relay.session.registry import CallRegistry
from interview_relay.session.responder import ResponseGenerator
from interview_relay.session.state import CallSession, SessionPhase, new_call_session
from interview_relay.system_metrics import increment_metric, record_call_ended

logger = logging.getLogger("session.dispatcher")

Handler = Callable[[InboundEvent], Awaitable[None]]


class ProtocolDispatcher:
    """
    Per-call protocol state machine: AWAITING_SETUP -> ACTIVE -> ENDED.

    Pings are answered inline. Owed responses run as tracked tasks so the receive loop
    keeps draining pings while a completion streams; the session's processing flag makes
    sure at most one of them is in flight, later ones are dropped.
    """

    def __init__(
        self,
        session: CallSession,
        writer: OutboundFrameWriter,
        responder: ResponseGenerator,
        registry: CallRegistry | None = None,
    ):
        self.session = session
        self.writer = writer
        self.responder = responder
        self.registry = registry
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[EventKind, Handler] = {
            EventKind.CALL_DETAILS: self._on_setup,
            EventKind.CALL_STARTED: self._on_setup,
            EventKind.UPDATE_ONLY: self._on_update_only,
            EventKind.RESPONSE_REQUIRED: self._on_response_required,
            EventKind.REMINDER_REQUIRED: self._on_reminder_required,
            EventKind.PING_PONG: self._on_ping_pong,
        }

    @property
    def call_id(self) -> str:
        return self.session.call_id

    async def start(self) -> None:
        await self.writer.send_config()
        log_event("dispatcher", "session_opened", self.call_id)

    # ================= INBOUND =================

    async def handle_raw(self, text: str) -> None:
        try:
            payload = json.loads(text)
            event = InboundEvent.model_validate(payload)
        except json.JSONDecodeError as exc:
            increment_metric("decode_errors", 1)
            logger.warning("Inbound frame is not JSON | call_id=%s err=%s", self.call_id, exc)
            return
        except ValidationError as exc:
            increment_metric("decode_errors", 1)
            logger.warning("Inbound frame failed validation | call_id=%s errors=%s", self.call_id, exc.error_count())
            return
        await self.handle_event(event)

    async def handle_event(self, event: InboundEvent) -> None:
        kind = event.kind
        if self.registry is not None:
            self.registry.touch(self.call_id)

        if self.session.closed:
            return
        if self.session.phase == SessionPhase.ENDED and kind != EventKind.PING_PONG:
            logger.debug("Event after call end ignored | call_id=%s type=%s", self.call_id, event.interaction_type)
            return

        handler = self._handlers.get(kind, self._on_unknown) if kind is not None else self._on_unknown
        try:
            await handler(event)
        except Exception:
            logger.exception("Event handler failed | call_id=%s type=%s", self.call_id, event.interaction_type)

    async def _on_unknown(self, event: InboundEvent) -> None:
        increment_metric("unknown_events", 1)
        logger.warning("Unknown interaction type | call_id=%s type=%s", self.call_id, event.interaction_type)

    async def _on_ping_pong(self, event: InboundEvent) -> None:
        await self.writer.send_ping_pong()

    async def _on_update_only(self, event: InboundEvent) -> None:
        logger.debug("Update only, no response owed | call_id=%s", self.call_id)

    async def _on_setup(self, event: InboundEvent) -> None:
        await self._setup(event, synthesized=False)

    async def _on_response_required(self, event: InboundEvent) -> None:
        if self.session.processing:
            increment_metric("overlapping_requests_dropped", 1)
            logger.warning(
                "Response already in flight, dropping request | call_id=%s response_id=%s",
                self.call_id,
                event.response_id,
            )
            return
        self.session.processing = True
        self._spawn(self._respond(event))

    async def _on_reminder_required(self, event: InboundEvent) -> None:
        if self.session.processing:
            logger.info("Reminder skipped, response in flight | call_id=%s", self.call_id)
            return
        if not self.session.greeted:
            await self._setup(event, synthesized=True)
            return

        session = self.session
        session.reminder_count += 1
        response_id = session.claim_response_id(event.response_id)
        logger.info(
            "Reminder required | call_id=%s count=%s max=%s",
            self.call_id,
            session.reminder_count,
            session.settings.max_reminders,
        )

        if reminders_exhausted(session.reminder_count, session.settings.max_reminders):
            await self._end_call(
                response_id,
                SILENCE_FAREWELL,
                EndCallDirective(reason=EndReason.SILENCE, mode=EndCallMode.AFTER_SPOKEN, interruptible=False),
            )
            return

        increment_metric("reminders_sent", 1)
        await self.writer.speak(response_id, reminder_message(session.reminder_count))

    # ================= SETUP =================

    async def _setup(self, event: InboundEvent, synthesized: bool) -> bool:
        session = self.session
        if session.greeted:
            logger.info("Duplicate call setup ignored | call_id=%s", self.call_id)
            return False

        event_call_id = resolve_call_id(event, session.call_id)
        if event_call_id != session.call_id:
            logger.info("Event call_id differs from path | path=%s event=%s", session.call_id, event_call_id)

        metadata = normalize_metadata(event)
        session.metadata = metadata
        prompt = assemble_interview_prompt(
            metadata,
            job_description_limit=session.settings.job_description_char_limit,
            resume_limit=session.settings.resume_char_limit,
        )
        session.language = prompt.language
        session.interview_field = prompt.field
        session.system_prompt = prompt.system_prompt
        session.history.set_system(prompt.system_prompt)

        session.prober.start_background_check(metadata, session.is_closed)

        session.greeted = True
        session.phase = SessionPhase.ACTIVE
        if self.registry is not None:
            self.registry.set_phase(self.call_id, session.phase.value)

        await self.writer.speak(session.claim_greeting_id(), prompt.greeting)
        increment_metric("greetings_sent", 1)
        logger.info(
            "Greeting sent | call_id=%s language=%s field=%s has_metadata=%s synthesized=%s",
            self.call_id,
            session.language,
            session.interview_field,
            metadata is not None,
            synthesized,
        )
        log_event(
            "dispatcher",
            "call_setup",
            self.call_id,
            language=session.language,
            field=session.interview_field,
            synthesized=synthesized,
            greeting=prompt.greeting,
        )
        return True

    # ================= RESPONSE =================

    async def _respond(self, event: InboundEvent) -> None:
        session = self.session
        try:
            if not session.greeted:
                await self._setup(event, synthesized=True)
                return

            user_text = event.last_user_utterance()
            if user_text is not None:
                session.history.add_user(user_text)
                session.reminder_count = 0

            response_id = session.claim_response_id(event.response_id)

            if session.timer.has_exceeded_time():
                logger.info("Interview time exceeded | call_id=%s elapsed=%s", self.call_id, session.timer.formatted_elapsed())
                await self._end_call(
                    response_id,
                    session.timer.time_up_message(),
                    EndCallDirective(reason=EndReason.MAX_DURATION, mode=EndCallMode.IMMEDIATE, interruptible=False),
                )
                return

            prober = session.prober
            if prober.should_end:
                await self._end_call(
                    response_id,
                    graceful_ending_message(prober.ending_reason),
                    EndCallDirective(reason=prober.ending_reason, mode=EndCallMode.AFTER_SPOKEN, interruptible=False),
                )
                return

            if session.timer.should_warn():
                session.timer.mark_warned()
                increment_metric("time_warnings_sent", 1)
                logger.info("Time warning | call_id=%s remaining_sec=%.0f", self.call_id, session.timer.remaining_sec())
                await self.writer.speak(response_id, session.timer.warning_message())
                return

            if user_text is None:
                logger.warning("No user message to respond to | call_id=%s response_id=%s", self.call_id, response_id)
                return

            if prober.needs_full_check(len(session.history), session.metadata):
                prober.start_full_check(session.metadata, session.is_closed)

            await self.responder.generate(response_id)
        except asyncio.CancelledError:
            logger.info("Response cancelled | call_id=%s", self.call_id)
            raise
        except Exception:
            logger.exception("Response handling failed | call_id=%s", self.call_id)
        finally:
            session.processing = False

    async def _end_call(self, response_id: int, content: str, directive: EndCallDirective) -> None:
        await self.writer.speak(response_id, content, ending=directive)
        self.session.end(directive.reason.value)
        record_call_ended(directive.reason.value)
        if self.registry is not None:
            self.registry.set_phase(self.call_id, SessionPhase.ENDED.value)

    # ================= LIFECYCLE =================

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        while self._tasks or self.session.prober.pending:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.session.prober.wait()

    async def close(self, reason: str = "client_disconnect") -> CallOutcome | None:
        session = self.session
        if session.closed:
            return None
        session.closed = True

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        end_reason = session.end_reason or reason
        outcome = build_call_outcome(
            self.call_id,
            session.timer.elapsed_sec(),
            len(session.history),
            end_reason,
            min_duration_sec=session.settings.interrupted_min_duration_sec,
            min_messages=session.settings.interrupted_min_messages,
        )
        if self.registry is not None:
            self.registry.mark_inactive(self.call_id, end_reason)
        logger.info(
            "Call closed | call_id=%s reason=%s duration_sec=%s messages=%s interrupted=%s",
            self.call_id,
            outcome.end_reason,
            outcome.duration_sec,
            outcome.message_count,
            outcome.interrupted,
        )
        log_event(
            "dispatcher",
            "call_outcome",
            self.call_id,
            duration_sec=outcome.duration_sec,
            message_count=outcome.message_count,
            end_reason=outcome.end_reason,
            interrupted=outcome.interrupted,
        )
        return outcome


def build_dispatcher(
    call_id: str,
    send_fn: SendFn,
    settings: InterviewSettings,
    completions: CompletionService,
    analyzer: CompatibilityAnalyzer | None = None,
    registry: CallRegistry | None = None,
    clock=None,
) -> ProtocolDispatcher:
    prober = CompatibilityProber(
        analyzer,
        call_id=call_id,
        quick_min_confidence=settings.quick_check_min_confidence,
        full_min_confidence=settings.full_check_min_confidence,
        min_messages=settings.compatibility_min_messages,
    )
    session = new_call_session(call_id, settings, prober, clock=clock)
    writer = OutboundFrameWriter(send_fn, session.history, call_id)
    responder = ResponseGenerator(completions, writer, session.history, call_id)
    return ProtocolDispatcher(session, writer, responder, registry=registry)
