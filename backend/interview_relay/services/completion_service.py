import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from openai import AsyncOpenAI

from core.config import OPENAI_API_KEY, InterviewSettings
from interview_relay.system_metrics import increment_metric, observe_latency_ms

logger = logging.getLogger("services.completion")

FragmentFn = Callable[[str], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]


def build_completion_client(api_key: str | None = None) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key or OPENAI_API_KEY)


def retry_delay(attempt: int, base_delay_sec: float, max_delay_sec: float) -> float:
    """Backoff before retry number ``attempt + 1``: base * 2^attempt, capped."""
    return min(max(0.0, base_delay_sec) * (2 ** max(0, attempt)), max(0.0, max_delay_sec))


class EmptyCompletionError(RuntimeError):
    pass


@dataclass
class CompletionResult:
    text: str = ""
    attempts: int = 0
    fragments: int = 0
    truncated: bool = False
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CompletionService:
    def __init__(self, client: AsyncOpenAI, settings: InterviewSettings, sleep: SleepFn = asyncio.sleep):
        self.client = client
        self.settings = settings
        self._sleep = sleep

    async def _open_stream(self, messages: list[dict]):
        return await self.client.chat.completions.create(
            model=self.settings.completion_model,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            presence_penalty=self.settings.presence_penalty,
            frequency_penalty=self.settings.frequency_penalty,
            stream=True,
        )

    async def stream_reply(self, messages: list[dict], on_fragment: FragmentFn, call_id: str = "") -> CompletionResult:
        """
        Streams one assistant reply, forwarding each fragment as soon as it arrives.

        Failures before the first fragment are retried with exponential backoff, and a stream
        that ends without any content counts as a failure. A failure after fragments were
        already forwarded ends the turn with the partial text, since the caller has already
        heard it.
        """
        max_attempts = max(1, int(self.settings.max_retries))
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            emitted: list[str] = []
            started = time.perf_counter()
            try:
                stream = await self._open_stream(messages)
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta
                    content = (delta.content if delta is not None else None) or ""
                    if not content:
                        continue
                    if not emitted:
                        observe_latency_ms((time.perf_counter() - started) * 1000.0)
                    emitted.append(content)
                    await on_fragment(content)

                if not emitted:
                    raise EmptyCompletionError("completion stream produced no content")
                return CompletionResult(text="".join(emitted), attempts=attempt + 1, fragments=len(emitted))
            except Exception as exc:
                if emitted:
                    logger.warning(
                        "Completion stream broke after partial reply | call_id=%s fragments=%s err=%s",
                        call_id,
                        len(emitted),
                        exc,
                    )
                    return CompletionResult(
                        text="".join(emitted),
                        attempts=attempt + 1,
                        fragments=len(emitted),
                        truncated=True,
                    )

                last_error = exc
                if attempt < max_attempts - 1:
                    backoff_sec = retry_delay(attempt, self.settings.base_retry_delay_sec, self.settings.max_retry_delay_sec)
                    increment_metric("completion_retries", 1)
                    logger.warning(
                        "Completion request failed, retrying %d/%d after %.2fs | call_id=%s err=%s",
                        attempt + 1,
                        max_attempts,
                        backoff_sec,
                        call_id,
                        exc,
                    )
                    await self._sleep(backoff_sec)
                else:
                    logger.error("Completion retries exhausted | call_id=%s err=%s", call_id, exc)

        return CompletionResult(attempts=max_attempts, error=last_error)
