from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass

from interview_relay.schemas import InboundEvent

logger = logging.getLogger("context.metadata")

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")


@dataclass(frozen=True)
class InterviewMetadata:
    first_name: str = ""
    last_name: str = ""
    job_title: str = ""
    company_name: str = ""
    job_description: str = ""
    resume_text: str = ""
    interview_id: str = ""
    preferred_language: str = ""
    resume_file_name: str = ""
    resume_mime_type: str = ""

    @property
    def has_resume_and_role(self) -> bool:
        return bool(self.resume_text.strip() and self.job_title.strip())


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def decode_resume(raw: str) -> str:
    value = _text(raw)
    if len(value) < 16 or not _BASE64_RE.match(value):
        return value
    try:
        decoded = base64.b64decode("".join(value.split()), validate=True)
        text = decoded.decode("utf-8")
    except (binascii.Error, ValueError):
        return value
    # binary documents (pdf/docx) are passed through untouched
    printable = sum(1 for ch in text if ch.isprintable() or ch in "\n\r\t")
    if not text.strip() or printable < len(text) * 0.95:
        return value
    return text.strip()


def _language_from(source: dict) -> str:
    language_config = source.get("language_config")
    nested_code = language_config.get("code") if isinstance(language_config, dict) else None
    return _text(source.get("preferred_language") or nested_code or source.get("language_code"))


def pick_metadata_source(event: InboundEvent) -> dict | None:
    call = event.call
    candidates = [
        event.metadata,
        event.retell_llm_dynamic_variables,
        call.metadata if call else None,
        call.retell_llm_dynamic_variables if call else None,
    ]
    for candidate in candidates:
        if isinstance(candidate, dict) and candidate:
            return candidate
    return None


def normalize_metadata(event: InboundEvent) -> InterviewMetadata | None:
    source = pick_metadata_source(event)
    if source is None:
        return None

    return InterviewMetadata(
        first_name=_text(source.get("first_name")),
        last_name=_text(source.get("last_name")),
        job_title=_text(source.get("job_title")),
        company_name=_text(source.get("company_name")),
        job_description=_text(source.get("job_description")),
        resume_text=decode_resume(source.get("interviewee_cv")),
        interview_id=_text(source.get("interview_id")),
        preferred_language=_language_from(source),
        resume_file_name=_text(source.get("resume_file_name")),
        resume_mime_type=_text(source.get("resume_mime_type")),
    )


def resolve_call_id(event: InboundEvent, fallback: str = "") -> str:
    if event.call_id:
        return event.call_id
    if event.call and event.call.call_id:
        return event.call.call_id
    return fallback
