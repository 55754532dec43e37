FIRST_REMINDER = (
    "I'm sorry, I didn't catch that. Could you please repeat your answer? "
    "Take your time - there's no rush."
)

FOLLOWUP_REMINDER = (
    "I'm still here whenever you're ready. "
    "If you need a moment to think, that's perfectly fine. "
    "Just let me know when you'd like to continue."
)

SILENCE_FAREWELL = (
    "I notice you've been quiet for a while. "
    "That's completely okay - interviews can be challenging. "
    "I'm going to end our session here to save your time. "
    "Feel free to start a new interview whenever you're ready. "
    "Take care, and good luck with your job search!"
)


def reminder_message(reminder_count: int) -> str:
    if reminder_count <= 1:
        return FIRST_REMINDER
    return FOLLOWUP_REMINDER


def reminders_exhausted(reminder_count: int, max_reminders: int) -> bool:
    return reminder_count >= max(1, int(max_reminders))
