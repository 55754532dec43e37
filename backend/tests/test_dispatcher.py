import asyncio
import json
from dataclasses import replace

import pytest

from interview_relay.compatibility.models import CompatibilityVerdict, Severity, VerdictStatus
from interview_relay.interview.reminders import FIRST_REMINDER, SILENCE_FAREWELL
from interview_relay.services.completion_service import CompletionService
from interview_relay.session.dispatcher import build_dispatcher
from interview_relay.session.registry import CallRegistry
from interview_relay.session.responder import FALLBACK_APOLOGY
from interview_relay.session.state import SessionPhase
from interview_relay.system_metrics import get_metric


METADATA = {
    "first_name": "Ana",
    "job_title": "Backend Engineer",
    "company_name": "Acme",
    "job_description": "Python services, APIs and databases.",
    "interviewee_cv": "Five years building Python APIs at a logistics company.",
}


def _setup_event(**extra) -> dict:
    event = {"interaction_type": "call_details", "call": {"call_id": "call-1", "metadata": METADATA}}
    event.update(extra)
    return event


def _turn(text: str = "I built payment APIs.", response_id: int | None = None) -> dict:
    event = {"interaction_type": "response_required", "transcript": [{"role": "user", "content": text}]}
    if response_id is not None:
        event["response_id"] = response_id
    return event


class _Harness:
    def __init__(self, client, settings, analyzer=None, clock=None):
        self.sent: list[dict] = []
        self.sleeps: list[float] = []

        async def _send(payload: dict):
            self.sent.append(payload)

        async def _sleep(delay: float):
            self.sleeps.append(delay)

        self.registry = CallRegistry()
        self.registry.register("call-1")
        self.dispatcher = build_dispatcher(
            "call-1",
            _send,
            settings,
            CompletionService(client, settings, sleep=_sleep),
            analyzer=analyzer,
            registry=self.registry,
            clock=clock,
        )

    @property
    def session(self):
        return self.dispatcher.session

    async def feed(self, event: dict) -> None:
        await self.dispatcher.handle_raw(json.dumps(event))
        await self.dispatcher.wait_idle()

    def spoken(self) -> list[dict]:
        return [frame for frame in self.sent if frame.get("response_type") == "response"]

    def complete_frames(self) -> list[dict]:
        return [frame for frame in self.spoken() if frame["content_complete"] and frame["content"]]


@pytest.mark.asyncio
async def test_config_frame_sent_first(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings)

    await h.dispatcher.start()

    assert h.sent == [{"response_type": "config", "config": {"auto_reconnect": True, "call_details": True}}]


@pytest.mark.asyncio
async def test_greeting_uses_id_zero_and_setup_is_idempotent(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings)

    await h.feed(_setup_event())
    await h.feed(_setup_event())

    greetings = h.complete_frames()
    assert len(greetings) == 1
    assert greetings[0]["response_id"] == 0
    assert greetings[0]["end_call"] is False
    assert h.session.history.count("system") == 1
    assert h.session.history.turns[0].role == "system"
    assert h.session.phase == SessionPhase.ACTIVE
    assert h.registry.get("call-1")["phase"] == "active"


@pytest.mark.asyncio
async def test_response_ids_increase_after_greeting(make_completion_client, fast_settings):
    client, _ = make_completion_client(["Great,", " tell me more."])
    h = _Harness(client, fast_settings)

    await h.feed(_setup_event())
    await h.feed(_turn("first answer"))
    await h.feed(_turn("second answer"))
    await h.feed(_turn("third answer", response_id=7))

    ids = [frame["response_id"] for frame in h.spoken()]
    assert ids[0] == 0
    distinct = list(dict.fromkeys(ids))
    assert distinct == [0, 1, 2, 7]
    assert all(later > earlier for earlier, later in zip(distinct, distinct[1:]))


@pytest.mark.asyncio
async def test_streamed_reply_frames_and_history(make_completion_client, fast_settings):
    client, _ = make_completion_client(["Great,", " tell me more."])
    h = _Harness(client, fast_settings)

    await h.feed(_setup_event())
    await h.feed(_turn("I led a migration.", response_id=1))

    frames = [frame for frame in h.spoken() if frame["response_id"] == 1]
    assert [frame["content"] for frame in frames] == ["Great,", " tell me more.", ""]
    assert [frame["content_complete"] for frame in frames] == [False, False, True]

    turns = h.session.history.turns
    assert turns[-2].role == "user" and turns[-2].text == "I led a migration."
    assert turns[-1].role == "assistant" and turns[-1].text == "Great, tell me more."


@pytest.mark.asyncio
async def test_response_required_before_setup_synthesizes_greeting(make_completion_client, fast_settings):
    client, completions = make_completion_client()
    h = _Harness(client, fast_settings)

    await h.feed(_turn("hello?", response_id=3) | {"metadata": METADATA})

    frames = h.spoken()
    assert len(frames) == 1
    assert frames[0]["response_id"] == 0
    assert h.session.greeted is True
    assert h.session.metadata is not None and h.session.metadata.first_name == "Ana"
    assert completions.calls == []

    await h.feed(_turn("I am ready."))
    assert h.spoken()[-1]["response_id"] == 1


@pytest.mark.asyncio
async def test_overlapping_response_request_is_dropped(make_completion_client, fast_settings):
    client, completions = make_completion_client(["Only", " once."])
    h = _Harness(client, fast_settings)
    await h.feed(_setup_event())
    history_before = len(h.session.history)
    dropped_before = get_metric("overlapping_requests_dropped")

    completions.gate = asyncio.Event()
    await h.dispatcher.handle_raw(json.dumps(_turn("first", response_id=1)))
    await h.dispatcher.handle_raw(json.dumps(_turn("second", response_id=2)))
    completions.gate.set()
    await h.dispatcher.wait_idle()

    assert len(completions.calls) == 1
    assert h.session.history.count("assistant") == 2
    assert len(h.session.history) == history_before + 2
    assert all(frame["response_id"] in {0, 1} for frame in h.spoken())
    assert get_metric("overlapping_requests_dropped") == dropped_before + 1
    assert h.session.processing is False


@pytest.mark.asyncio
async def test_ping_answered_while_generation_in_flight(make_completion_client, fast_settings):
    client, completions = make_completion_client(["Sure."])
    h = _Harness(client, fast_settings)
    await h.feed(_setup_event())

    completions.gate = asyncio.Event()
    await h.dispatcher.handle_raw(json.dumps(_turn(response_id=1)))
    for _ in range(3):
        await asyncio.sleep(0)
    await h.dispatcher.handle_raw(json.dumps({"interaction_type": "ping_pong", "timestamp": 123}))

    assert h.sent[-1]["response_type"] == "ping_pong"
    assert isinstance(h.sent[-1]["timestamp"], int)

    completions.gate.set()
    await h.dispatcher.wait_idle()
    assert h.spoken()[-1]["content_complete"] is True


@pytest.mark.asyncio
async def test_warning_replaces_reply_then_expiry_ends_call(make_completion_client, fast_settings, clock):
    settings = replace(fast_settings, max_duration_minutes=15, warning_threshold_minutes=5)
    client, completions = make_completion_client()
    h = _Harness(client, settings, clock=clock)
    await h.feed(_setup_event())

    clock.now = 10 * 60 + 30
    await h.feed(_turn(response_id=1))
    warning = h.spoken()[-1]
    assert "left in our interview" in warning["content"]
    assert warning["end_call"] is False
    assert completions.calls == []

    await h.feed(_turn(response_id=2))
    assert len(completions.calls) == 1

    clock.now = 15 * 60 + 1
    await h.feed(_turn(response_id=3))
    ending = h.spoken()[-1]
    assert ending["response_id"] == 3
    assert ending["end_call"] is True
    assert ending["end_call_after_spoken"] is False
    assert ending["end_call_reason"] == "max_duration"
    assert ending["no_interruption_allowed"] is True
    assert h.session.phase == SessionPhase.ENDED


@pytest.mark.asyncio
async def test_expiry_takes_precedence_over_warning(make_completion_client, fast_settings, clock):
    settings = replace(fast_settings, max_duration_minutes=15, warning_threshold_minutes=5)
    client, _ = make_completion_client()
    h = _Harness(client, settings, clock=clock)
    await h.feed(_setup_event())

    clock.now = 20 * 60
    await h.feed(_turn(response_id=1))

    frames = [frame for frame in h.spoken() if frame["response_id"] == 1]
    assert len(frames) == 1
    assert frames[0]["end_call_reason"] == "max_duration"
    assert h.session.timer.warned is False


@pytest.mark.asyncio
async def test_events_after_end_are_ignored_except_ping(make_completion_client, fast_settings, clock):
    client, completions = make_completion_client()
    h = _Harness(client, fast_settings, clock=clock)
    await h.feed(_setup_event())
    clock.now = 60 * 60
    await h.feed(_turn(response_id=1))
    sent_before = len(h.sent)

    await h.feed(_turn(response_id=2))
    await h.feed({"interaction_type": "reminder_required", "response_id": 3})
    assert len(h.sent) == sent_before

    await h.feed({"interaction_type": "ping_pong"})
    assert h.sent[-1]["response_type"] == "ping_pong"
    assert completions.calls == []


@pytest.mark.asyncio
async def test_second_reminder_ends_call_for_silence(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, replace(fast_settings, max_reminders=2))
    await h.feed(_setup_event())

    await h.feed({"interaction_type": "reminder_required", "response_id": 1})
    first = h.spoken()[-1]
    assert first["content"] == FIRST_REMINDER
    assert first["end_call"] is False

    await h.feed({"interaction_type": "reminder_required", "response_id": 2})
    farewell = h.spoken()[-1]
    assert farewell["content"] == SILENCE_FAREWELL
    assert farewell["end_call_reason"] == "silence"
    assert farewell["end_call_after_spoken"] is True
    assert farewell["end_call"] is False
    assert farewell["no_interruption_allowed"] is True
    assert h.session.history.turns[-1].text == SILENCE_FAREWELL


@pytest.mark.asyncio
async def test_user_reply_resets_reminder_count(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, replace(fast_settings, max_reminders=2))
    await h.feed(_setup_event())

    await h.feed({"interaction_type": "reminder_required", "response_id": 1})
    await h.feed(_turn("Sorry, I'm back.", response_id=2))
    assert h.session.reminder_count == 0

    await h.feed({"interaction_type": "reminder_required", "response_id": 3})
    assert h.spoken()[-1]["content"] == FIRST_REMINDER
    assert h.session.phase == SessionPhase.ACTIVE


@pytest.mark.asyncio
async def test_exhausted_retries_send_one_apology_and_release_guard(make_completion_client, fast_settings):
    settings = replace(fast_settings, max_retries=3, base_retry_delay_sec=0.5, max_retry_delay_sec=4.0)
    client, completions = make_completion_client(
        RuntimeError("down"),
        RuntimeError("down"),
        RuntimeError("down"),
        ["Back", " online."],
    )
    h = _Harness(client, settings)
    await h.feed(_setup_event())

    await h.feed(_turn(response_id=1))
    frames = [frame for frame in h.spoken() if frame["response_id"] == 1]
    assert len(frames) == 1
    assert frames[0]["content"] == FALLBACK_APOLOGY
    assert frames[0]["content_complete"] is True
    assert h.sleeps == [0.5, 1.0]
    assert h.session.processing is False

    await h.feed(_turn(response_id=2))
    assert len(completions.calls) == 4
    assert h.session.history.turns[-1].text == "Back online."


@pytest.mark.asyncio
async def test_high_confidence_incompatibility_ends_next_response(make_completion_client, fast_settings):
    async def _analyzer(resume_text, job_title, job_description, quick):
        return CompatibilityVerdict(
            status=VerdictStatus.INCOMPATIBLE,
            confidence=0.98,
            severity=Severity.HIGH,
            extremely_incompatible=True,
        )

    client, completions = make_completion_client()
    h = _Harness(client, fast_settings, analyzer=_analyzer)
    await h.feed(_setup_event())

    await h.feed(_turn(response_id=1))

    ending = h.spoken()[-1]
    assert ending["end_call_reason"] == "incompatibility"
    assert ending["end_call_after_spoken"] is True
    assert ending["no_interruption_allowed"] is True
    assert completions.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "verdict",
    [
        CompatibilityVerdict(status=VerdictStatus.INCOMPATIBLE, confidence=0.9, severity=Severity.HIGH, extremely_incompatible=True),
        CompatibilityVerdict(status=VerdictStatus.INCOMPATIBLE, confidence=0.99, severity=Severity.MODERATE),
    ],
)
async def test_ordinary_mismatch_never_ends_call(make_completion_client, fast_settings, verdict):
    async def _analyzer(resume_text, job_title, job_description, quick):
        return verdict

    client, completions = make_completion_client(["Interesting."])
    h = _Harness(client, fast_settings, analyzer=_analyzer)
    await h.feed(_setup_event())

    await h.feed(_turn(response_id=1))

    assert len(completions.calls) == 1
    assert not any(frame.get("end_call_reason") for frame in h.spoken())
    assert h.session.phase == SessionPhase.ACTIVE


@pytest.mark.asyncio
async def test_analyzer_failure_is_fail_open(make_completion_client, fast_settings):
    async def _analyzer(resume_text, job_title, job_description, quick):
        raise RuntimeError("analysis unavailable")

    client, completions = make_completion_client(["Go on."])
    h = _Harness(client, fast_settings, analyzer=_analyzer)
    await h.feed(_setup_event())
    await h.feed(_turn(response_id=1))

    assert len(completions.calls) == 1
    assert h.session.prober.should_end is False


@pytest.mark.asyncio
async def test_malformed_and_unknown_frames_are_ignored(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings)
    decode_errors_before = get_metric("decode_errors")

    await h.dispatcher.handle_raw("not json at all")
    await h.dispatcher.handle_raw("[1, 2, 3]")
    await h.dispatcher.handle_raw(json.dumps({"interaction_type": "response_required", "response_id": "abc"}))
    await h.dispatcher.handle_raw(json.dumps({"interaction_type": "agent_interrupt"}))

    assert h.sent == []
    assert get_metric("decode_errors") == decode_errors_before + 3

    await h.feed(_setup_event())
    assert h.complete_frames()[0]["response_id"] == 0


@pytest.mark.asyncio
async def test_update_only_is_informational(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings)
    await h.feed(_setup_event())
    sent_before = len(h.sent)

    await h.feed({"interaction_type": "update_only", "transcript": [{"role": "user", "content": "um"}]})

    assert len(h.sent) == sent_before


@pytest.mark.asyncio
async def test_close_builds_outcome_and_marks_inactive(make_completion_client, fast_settings, clock):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings, clock=clock)
    await h.feed(_setup_event())
    clock.now = 30

    outcome = await h.dispatcher.close("client_disconnect")

    assert outcome is not None
    assert outcome.end_reason == "client_disconnect"
    assert outcome.interrupted is True
    assert outcome.duration_sec == 30
    assert h.registry.get("call-1")["active"] is False
    assert await h.dispatcher.close("client_disconnect") is None


@pytest.mark.asyncio
async def test_close_cancels_in_flight_generation(make_completion_client, fast_settings):
    client, completions = make_completion_client(["never"])
    h = _Harness(client, fast_settings)
    await h.feed(_setup_event())

    completions.gate = asyncio.Event()
    await h.dispatcher.handle_raw(json.dumps(_turn(response_id=1)))
    await asyncio.sleep(0)

    await h.dispatcher.close("client_disconnect")

    assert h.session.processing is False
    assert all(frame["response_id"] == 0 for frame in h.spoken())


@pytest.mark.asyncio
async def test_setup_records_language_and_interview_field(make_completion_client, fast_settings):
    client, _ = make_completion_client()
    h = _Harness(client, fast_settings)

    await h.feed(_setup_event())

    assert h.session.interview_field == "Engineering"
    assert h.session.system_prompt
    assert h.session.created_at > 0


@pytest.mark.asyncio
async def test_empty_completion_falls_back_to_apology(make_completion_client, fast_settings):
    client, completions = make_completion_client([])
    h = _Harness(client, fast_settings)
    await h.feed(_setup_event())

    await h.feed(_turn(response_id=1))

    frames = [frame for frame in h.spoken() if frame["response_id"] == 1]
    assert [frame["content"] for frame in frames] == [FALLBACK_APOLOGY]
    assert frames[0]["content_complete"] is True
    assert len(completions.calls) == fast_settings.max_retries
    assert h.session.processing is False


@pytest.mark.asyncio
async def test_full_check_flag_ends_call_with_mismatch(make_completion_client, fast_settings):
    async def _analyzer(resume_text, job_title, job_description, quick):
        if quick:
            return CompatibilityVerdict(status=VerdictStatus.COMPATIBLE, confidence=0.6)
        return CompatibilityVerdict(
            status=VerdictStatus.INCOMPATIBLE,
            confidence=0.9,
            severity=Severity.HIGH,
            extremely_incompatible=True,
        )

    settings = replace(fast_settings, compatibility_min_messages=2)
    client, completions = make_completion_client(["Tell me more."])
    h = _Harness(client, settings, analyzer=_analyzer)
    await h.feed(_setup_event())

    await h.feed(_turn(response_id=1))
    assert h.session.prober.should_end is True
    await h.feed(_turn("Here is more.", response_id=2))

    ending = h.spoken()[-1]
    assert ending["response_id"] == 2
    assert ending["end_call_reason"] == "mismatch"
    assert ending["end_call_after_spoken"] is True
    assert "better showcased in a different role" in ending["content"]
    assert len(completions.calls) == 1
    assert h.session.phase == SessionPhase.ENDED
