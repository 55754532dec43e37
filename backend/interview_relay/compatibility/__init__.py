from interview_relay.compatibility.analyzer import LlmCompatibilityAnalyzer
from interview_relay.compatibility.models import CompatibilityVerdict, Severity, VerdictStatus
from interview_relay.compatibility.prober import CompatibilityProber

__all__ = ["LlmCompatibilityAnalyzer", "CompatibilityVerdict", "Severity", "VerdictStatus", "CompatibilityProber"]
