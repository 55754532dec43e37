from interview_relay.interview.timer import InterviewTimer


class _Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_timer_warns_once_inside_threshold():
    clock = _Clock()
    timer = InterviewTimer(15, warning_threshold_minutes=5, clock=clock)

    clock.now += 9 * 60
    assert timer.should_warn() is False

    clock.now += 61
    assert timer.should_warn() is True
    timer.mark_warned()
    assert timer.should_warn() is False
    assert timer.has_exceeded_time() is False


def test_timer_expiry_suppresses_warning():
    clock = _Clock()
    timer = InterviewTimer(15, warning_threshold_minutes=5, clock=clock)

    clock.now += 15 * 60
    assert timer.has_exceeded_time() is True
    assert timer.should_warn() is False
    assert timer.remaining_sec() == 0.0


def test_timer_messages_and_elapsed_format():
    clock = _Clock()
    timer = InterviewTimer(15, warning_threshold_minutes=2, clock=clock)

    clock.now += 13 * 60 + 5
    assert timer.formatted_elapsed() == "13:05"
    assert "about 2 minutes left" in timer.warning_message()

    clock.now += 60
    assert "about 1 minute left" in timer.warning_message()
    assert "end of our interview" in timer.time_up_message()
