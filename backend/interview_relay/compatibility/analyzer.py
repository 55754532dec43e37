from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable

from openai import AsyncOpenAI
from pydantic import ValidationError

from interview_relay.compatibility.models import (
    CompatibilityAnalysisError,
    CompatibilityReply,
    CompatibilityVerdict,
)

logger = logging.getLogger("compatibility.analyzer")

JSON_SYSTEM_MESSAGE = "You screen candidates for mock interviews. Reply with a single JSON object."

QUICK_RESUME_CHARS = 1500
FULL_RESUME_CHARS = 4000


def build_compatibility_prompt(resume_text: str, job_title: str, job_description: str, quick: bool) -> str:
    if quick:
        resume = (resume_text or "")[:QUICK_RESUME_CHARS]
        job = (job_description or "")[:500]
        strictness = (
            "Only mark is_extremely_incompatible=true when the background has NO plausible overlap "
            "with the role at all (such as a pastry chef applying as a neurosurgeon)."
        )
    else:
        resume = (resume_text or "")[:FULL_RESUME_CHARS]
        job = (job_description or "")[:2000]
        strictness = (
            "Be lenient. Career changers, junior candidates and partial skill matches are congruent. "
            "Use severity=high only when the role requires licenses or expertise the resume cannot "
            "plausibly contain."
        )

    return f"""
You are screening whether a candidate's resume plausibly fits a job they want to practice interviewing for.

{strictness}

Return STRICT JSON with keys:
is_congruent (bool), confidence (0.0-1.0), is_extremely_incompatible (bool),
severity ("low" | "moderate" | "high"), reasons (list of short strings).

Job title:
{job_title}

Job description:
{job}

Resume:
{resume}
""".strip()


def parse_compatibility_reply(raw: str) -> CompatibilityVerdict:
    try:
        data = json.loads(raw or "{}")
        reply = CompatibilityReply.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise CompatibilityAnalysisError(f"invalid compatibility reply: {exc}") from exc
    return CompatibilityVerdict.from_reply(reply)


class LlmCompatibilityAnalyzer:
    """Asks a small JSON-mode model whether the resume plausibly fits the role."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        timeout_sec: float = 12.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.model = model
        self.timeout_sec = timeout_sec
        self._sleep = sleep

    async def _request_json(self, prompt: str, timeout_sec: float, retries: int) -> str:
        last_error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self.model,
                        messages=[
                            {"role": "system", "content": JSON_SYSTEM_MESSAGE},
                            {"role": "user", "content": prompt},
                        ],
                        temperature=0.1,
                        response_format={"type": "json_object"},
                    ),
                    timeout=timeout_sec,
                )
                return str(response.choices[0].message.content or "").strip()
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("Compatibility request timed out | attempt=%s", attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("Compatibility request failed | attempt=%s err=%s", attempt + 1, exc)

            if attempt < retries:
                await self._sleep(0.35 * (attempt + 1))

        raise CompatibilityAnalysisError(f"compatibility request failed: {last_error}") from last_error

    async def __call__(self, resume_text: str, job_title: str, job_description: str, quick: bool) -> CompatibilityVerdict:
        prompt = build_compatibility_prompt(resume_text, job_title, job_description, quick)
        raw = await self._request_json(
            prompt,
            timeout_sec=min(self.timeout_sec, 8.0) if quick else self.timeout_sec,
            retries=0 if quick else 1,
        )
        verdict = parse_compatibility_reply(raw)
        logger.info(
            "Compatibility analysis | quick=%s congruent=%s confidence=%.2f severity=%s",
            quick,
            verdict.is_congruent,
            verdict.confidence,
            verdict.severity.value,
        )
        return verdict
