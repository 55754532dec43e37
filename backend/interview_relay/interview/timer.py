import time
from typing import Callable


class InterviewTimer:
    """
    Wall-clock budget for one call.

    Predicates are evaluated at the start of every owed response; nothing here cancels
    in-flight work. Expiry takes precedence over the warning when both hold.
    """

    def __init__(
        self,
        max_duration_minutes: float,
        warning_threshold_minutes: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_duration_sec = max(0.0, float(max_duration_minutes) * 60.0)
        self.warning_threshold_sec = max(0.0, float(warning_threshold_minutes) * 60.0)
        self._clock = clock
        self.started_at = clock()
        self.warned = False

    def elapsed_sec(self) -> float:
        return max(0.0, self._clock() - self.started_at)

    def remaining_sec(self) -> float:
        return max(0.0, self.max_duration_sec - self.elapsed_sec())

    def has_exceeded_time(self) -> bool:
        return self.elapsed_sec() >= self.max_duration_sec

    def should_warn(self) -> bool:
        if self.warned or self.has_exceeded_time():
            return False
        return self.remaining_sec() < self.warning_threshold_sec

    def mark_warned(self) -> None:
        self.warned = True

    def formatted_elapsed(self) -> str:
        total = int(self.elapsed_sec())
        return f"{total // 60}:{total % 60:02d}"

    def warning_message(self) -> str:
        minutes = max(1, round(self.remaining_sec() / 60.0))
        unit = "minute" if minutes == 1 else "minutes"
        return (
            f"Just so you know, we have about {minutes} {unit} left in our interview. "
            "Let's make the most of it."
        )

    def time_up_message(self) -> str:
        return (
            "We've reached the end of our interview time. "
            "Thank you so much for your answers today, you'll receive your feedback shortly. "
            "Good luck!"
        )
