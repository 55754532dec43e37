import pytest

from interview_relay.interview.outcome import build_call_outcome, is_interrupted


@pytest.mark.parametrize(
    "end_reason,duration_sec,message_count,expected",
    [
        ("silence", 900, 30, True),
        ("max_duration", 900, 30, True),
        ("client_disconnect", 600, 20, True),
        ("incompatibility", 60, 3, True),
        ("incompatibility", 300, 3, False),
        ("mismatch", 60, 10, False),
    ],
)
def test_interrupted_policy(end_reason, duration_sec, message_count, expected):
    assert is_interrupted(end_reason, duration_sec, message_count) is expected


def test_thresholds_are_configurable():
    assert is_interrupted("mismatch", 200, 3, min_duration_sec=300, min_messages=6) is True
    assert is_interrupted("mismatch", 200, 3, min_duration_sec=100, min_messages=6) is False


def test_build_call_outcome_normalizes_values():
    outcome = build_call_outcome("call-9", 12.3456, 4, "")

    assert outcome.to_dict() == {
        "call_id": "call-9",
        "duration_sec": 12.35,
        "message_count": 4,
        "end_reason": "client_disconnect",
        "interrupted": True,
    }
