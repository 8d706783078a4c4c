"""Reflection Pipeline Package"""

from commitsmith.pipeline.cancellation import CancellationToken
from commitsmith.pipeline.errors import (
    GenerationError,
    NothingToAnalyzeError,
    PipelineCancelled,
    PipelineError,
    ProviderUnavailableError,
)
from commitsmith.pipeline.models import (
    AcceptanceDecision,
    Candidate,
    DiffContext,
    PipelineResult,
    PipelineTimings,
    ReflectionFeedback,
    VerificationResult,
)
from commitsmith.pipeline.parsing import (
    DEFAULT_REFLECTION,
    DEFAULT_VERIFICATION,
    ParseOutcome,
    extract_json_object,
    parse_candidate,
    parse_reflection,
    parse_verification,
)
from commitsmith.pipeline.policy import acceptance_threshold, decide
from commitsmith.pipeline.reflection import ReflectionPipeline

__all__ = [
    "ReflectionPipeline", "CancellationToken",
    "PipelineError", "NothingToAnalyzeError", "ProviderUnavailableError",
    "GenerationError", "PipelineCancelled",
    "DiffContext", "Candidate", "ReflectionFeedback", "VerificationResult",
    "AcceptanceDecision", "PipelineTimings", "PipelineResult",
    "ParseOutcome", "DEFAULT_REFLECTION", "DEFAULT_VERIFICATION",
    "extract_json_object", "parse_candidate", "parse_reflection", "parse_verification",
    "acceptance_threshold", "decide",
]
