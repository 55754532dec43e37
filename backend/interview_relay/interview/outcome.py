from dataclasses import asdict, dataclass

ABRUPT_END_REASONS = {
    "silence",
    "max_duration",
    "client_disconnect",
    "connection_error",
}


@dataclass
class CallOutcome:
    call_id: str
    duration_sec: float
    message_count: int
    end_reason: str
    interrupted: bool

    def to_dict(self) -> dict:
        return asdict(self)


def is_interrupted(
    end_reason: str,
    duration_sec: float,
    message_count: int,
    min_duration_sec: float = 120.0,
    min_messages: int = 6,
) -> bool:
    # thresholds are policy, see InterviewSettings.interrupted_*
    if str(end_reason or "").strip().lower() in ABRUPT_END_REASONS:
        return True
    return duration_sec < min_duration_sec and message_count < min_messages


def build_call_outcome(
    call_id: str,
    duration_sec: float,
    message_count: int,
    end_reason: str,
    min_duration_sec: float = 120.0,
    min_messages: int = 6,
) -> CallOutcome:
    duration = max(0.0, float(duration_sec or 0.0))
    return CallOutcome(
        call_id=str(call_id or ""),
        duration_sec=round(duration, 2),
        message_count=max(0, int(message_count or 0)),
        end_reason=str(end_reason or "client_disconnect"),
        interrupted=is_interrupted(end_reason, duration, message_count, min_duration_sec, min_messages),
    )
