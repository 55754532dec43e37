from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from pydantic import BaseModel, Field


class VerdictStatus(str, Enum):
    NOT_CHECKED = "not_checked"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


class Severity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class CompatibilityReply(BaseModel):
    """JSON contract expected back from the analysis model."""

    is_congruent: bool
    confidence: float = Field(ge=0.0, le=1.0)
    is_extremely_incompatible: bool = False
    severity: Severity = Severity.LOW
    reasons: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class CompatibilityVerdict:
    status: VerdictStatus = VerdictStatus.NOT_CHECKED
    confidence: float = 0.0
    severity: Severity = Severity.LOW
    extremely_incompatible: bool = False
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_congruent(self) -> bool:
        return self.status != VerdictStatus.INCOMPATIBLE

    @classmethod
    def from_reply(cls, reply: CompatibilityReply) -> "CompatibilityVerdict":
        extreme = not reply.is_congruent and (
            reply.is_extremely_incompatible or reply.severity == Severity.HIGH
        )
        return cls(
            status=VerdictStatus.COMPATIBLE if reply.is_congruent else VerdictStatus.INCOMPATIBLE,
            confidence=float(reply.confidence),
            severity=Severity.HIGH if extreme else reply.severity,
            extremely_incompatible=extreme,
            reasons=tuple(str(item) for item in reply.reasons if str(item).strip()),
        )


class CompatibilityAnalysisError(RuntimeError):
    pass


# (resume_text, job_title, job_description, quick) -> verdict
CompatibilityAnalyzer = Callable[[str, str, str, bool], Awaitable[CompatibilityVerdict]]
