"""Records passed through and returned by the reflection pipeline."""

from dataclasses import dataclass, field

from commitsmith.analysis.models import DiffAnalysis
from commitsmith.message import CommitMessage


@dataclass(frozen=True)
class DiffContext:
    """What the diff source hands to the pipeline."""
    diff: str
    files: tuple[str, ...]
    branch: str = ""
    recent_commits: tuple[str, ...] = ()
    hint: str | None = None
    summary: str = ""
    truncated: bool = False
    # path -> (old content, new content), used for syntax-tree enrichment
    file_versions: dict[str, tuple[str, str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Candidate:
    """One generated commit message proposal."""
    message: CommitMessage
    confidence: int | None = None
    reasoning: str | None = None


@dataclass(frozen=True)
class ReflectionFeedback:
    decision: str
    quality_score: float
    issues: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    reasoning: str = ""
    criteria_scores: dict[str, float] | None = None

    @property
    def wants_accept(self) -> bool:
        return self.decision == "accept"


@dataclass(frozen=True)
class VerificationResult:
    factual_accuracy: float
    has_critical_issues: bool
    issues: tuple[str, ...] = ()
    verified_symbols: tuple[str, ...] = ()
    missing_symbols: tuple[str, ...] = ()
    hallucinated_symbols: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    reasoning: str = ""


@dataclass(frozen=True)
class AcceptanceDecision:
    """Outcome of the acceptance policy for one iteration."""
    iteration: int
    threshold: int
    quality_acceptable: bool
    factually_accurate: bool
    accepted: bool
    reason: str


@dataclass(frozen=True)
class PipelineTimings:
    """Seconds spent per phase, cumulative over all iterations."""
    total: float = 0.0
    generation: float = 0.0
    reflection: float = 0.0
    verification: float = 0.0
    refinement: float = 0.0


@dataclass(frozen=True)
class PipelineResult:
    """Final message plus the audit trail of how it was reached."""
    success: bool
    provider: str = ""
    message: CommitMessage | None = None
    confidence: int | None = None
    iterations: int = 0
    reflections: tuple[ReflectionFeedback, ...] = ()
    verifications: tuple[VerificationResult, ...] = ()
    decisions: tuple[AcceptanceDecision, ...] = ()
    final_quality_score: float | None = None
    final_factual_accuracy: float | None = None
    timings: PipelineTimings = field(default_factory=PipelineTimings)
    analysis: DiffAnalysis | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def formatted_message(self) -> str | None:
        return self.message.format() if self.message else None
