import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()  # low time-to-first-token for voice
COMPATIBILITY_MODEL = str(os.getenv("COMPATIBILITY_MODEL") or "gpt-4o-mini").strip()
LOG_LEVEL = str(os.getenv("LOG_LEVEL") or "INFO").strip().upper()
WS_MAX_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "1048576")))


def _env_float(name: str, default: float, minimum: float) -> float:
    try:
        return max(minimum, float(os.getenv(name, str(default))))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int) -> int:
    try:
        return max(minimum, int(os.getenv(name, str(default))))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class InterviewSettings:
    max_duration_minutes: float = 15.0
    warning_threshold_minutes: float = 2.0

    max_retries: int = 3
    base_retry_delay_sec: float = 0.5
    max_retry_delay_sec: float = 4.0

    max_reminders: int = 2
    max_history: int = 20

    completion_model: str = "gpt-4o-mini"
    temperature: float = 0.4
    max_tokens: int = 100
    presence_penalty: float = 0.5
    frequency_penalty: float = 0.3

    compatibility_model: str = "gpt-4o-mini"
    compatibility_min_messages: int = 6
    quick_check_min_confidence: float = 0.95
    full_check_min_confidence: float = 0.85

    job_description_char_limit: int = 500
    resume_char_limit: int = 1000

    interrupted_min_duration_sec: float = 120.0
    interrupted_min_messages: int = 6


def load_interview_settings() -> InterviewSettings:
    return InterviewSettings(
        max_duration_minutes=_env_float("MAX_INTERVIEW_DURATION_MINUTES", 15.0, 1.0),
        warning_threshold_minutes=_env_float("TIME_WARNING_MINUTES", 2.0, 0.0),
        max_retries=_env_int("LLM_MAX_RETRIES", 3, 1),
        base_retry_delay_sec=_env_float("LLM_BASE_RETRY_DELAY_MS", 500.0, 0.0) / 1000.0,
        max_retry_delay_sec=_env_float("LLM_MAX_RETRY_DELAY_MS", 4000.0, 0.0) / 1000.0,
        max_reminders=_env_int("MAX_REMINDERS", 2, 1),
        max_history=_env_int("MAX_CONVERSATION_HISTORY", 20, 2),
        completion_model=MODEL_NAME,
        compatibility_model=COMPATIBILITY_MODEL,
        compatibility_min_messages=_env_int("COMPATIBILITY_MIN_MESSAGES", 6, 1),
        quick_check_min_confidence=_env_float("QUICK_CHECK_MIN_CONFIDENCE", 0.95, 0.0),
        full_check_min_confidence=_env_float("FULL_CHECK_MIN_CONFIDENCE", 0.85, 0.0),
        interrupted_min_duration_sec=_env_float("INTERRUPTED_MIN_DURATION_SEC", 120.0, 0.0),
        interrupted_min_messages=_env_int("INTERRUPTED_MIN_MESSAGES", 6, 0),
    )
