"""Lenient parsing of structured model responses.

Models wrap JSON in fences, prepend headings, or add commentary around it.
The parsers here dig the first JSON object out of such text and validate its
fields. They never raise: a response that cannot be used becomes a
ParseOutcome carrying the documented default and the reason.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from commitsmith.message import CommitMessage, clean_commit_message
from commitsmith.pipeline.errors import GenerationError
from commitsmith.pipeline.models import Candidate, ReflectionFeedback, VerificationResult

log = structlog.get_logger(__name__)

T = TypeVar("T")

FENCE_RE = re.compile(r'^\s*```[\w-]*\s*$', re.MULTILINE)
HEADING_RE = re.compile(r'^\s*#{1,6}\s.*$', re.MULTILINE)

VALID_DECISIONS = {"accept", "refine"}

DEFAULT_REFLECTION = ReflectionFeedback(
    decision="accept",
    quality_score=70,
    reasoning="Failed to parse reflection, accepting current commit.",
)

DEFAULT_VERIFICATION = VerificationResult(
    factual_accuracy=70,
    has_critical_issues=False,
    reasoning="Failed to parse verification, assuming no critical issues.",
)


@dataclass(frozen=True)
class ParseOutcome(Generic[T]):
    """Either a parsed value or a documented fallback."""
    value: T
    parsed: bool
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> 'ParseOutcome[T]':
        return cls(value=value, parsed=True)

    @classmethod
    def fallback(cls, value: T, error: str) -> 'ParseOutcome[T]':
        return cls(value=value, parsed=False, error=error)


def _balanced_object(text: str, start: int) -> str | None:
    """The {...} starting at start, honouring strings and escapes."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_object(text: str) -> dict | None:
    """First JSON object found in text, or None."""
    if not text:
        return None
    cleaned = HEADING_RE.sub('', FENCE_RE.sub('', text))
    start = cleaned.find('{')
    if start == -1:
        return None

    candidates = []
    balanced = _balanced_object(cleaned, start)
    if balanced:
        candidates.append(balanced)
    end = cleaned.rfind('}')
    if end > start:
        candidates.append(cleaned[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _number(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip('%')
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    # NaN and infinities are not scores
    return number if math.isfinite(number) else None


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _strings(value) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def parse_reflection(text: str) -> ParseOutcome[ReflectionFeedback]:
    data = extract_json_object(text)
    if data is None:
        return ParseOutcome.fallback(DEFAULT_REFLECTION, "no JSON object in reflection response")

    decision = str(data.get("decision", "")).strip().lower()
    if decision not in VALID_DECISIONS:
        return ParseOutcome.fallback(DEFAULT_REFLECTION, f"invalid decision {data.get('decision')!r}")

    quality = _number(data.get("qualityScore"))
    if quality is None:
        return ParseOutcome.fallback(DEFAULT_REFLECTION, "qualityScore missing or not numeric")

    if not isinstance(data.get("issues"), list) or not isinstance(data.get("improvements"), list):
        return ParseOutcome.fallback(DEFAULT_REFLECTION, "issues/improvements must be lists")

    criteria = None
    raw_criteria = data.get("criteriaScores")
    if isinstance(raw_criteria, dict):
        criteria = {}
        for name, score in raw_criteria.items():
            number = _number(score)
            if number is not None:
                criteria[str(name)] = _clamp(number)
        criteria = criteria or None

    return ParseOutcome.ok(ReflectionFeedback(
        decision=decision,
        quality_score=_clamp(quality),
        issues=_strings(data["issues"]),
        improvements=_strings(data["improvements"]),
        reasoning=str(data.get("reasoning") or ""),
        criteria_scores=criteria,
    ))


def _format_issue(issue) -> str:
    if isinstance(issue, dict):
        severity = str(issue.get("severity") or "minor").strip()
        kind = str(issue.get("type") or "issue").strip()
        text = f"[{severity}] {kind}: {str(issue.get('description') or '').strip()}".rstrip()
        if issue.get("evidence"):
            text += f" (evidence: {str(issue['evidence']).strip()})"
        return text
    return str(issue).strip()


def parse_verification(text: str) -> ParseOutcome[VerificationResult]:
    data = extract_json_object(text)
    if data is None:
        return ParseOutcome.fallback(DEFAULT_VERIFICATION, "no JSON object in verification response")

    accuracy = _number(data.get("factualAccuracy"))
    if accuracy is None:
        return ParseOutcome.fallback(DEFAULT_VERIFICATION, "factualAccuracy missing or not numeric")

    critical = data.get("hasCriticalIssues")
    if not isinstance(critical, bool):
        return ParseOutcome.fallback(DEFAULT_VERIFICATION, "hasCriticalIssues must be a boolean")

    if not isinstance(data.get("issues"), list):
        return ParseOutcome.fallback(DEFAULT_VERIFICATION, "issues must be a list")

    try:
        issues = tuple(i for i in (_format_issue(issue) for issue in data["issues"]) if i)
    except (TypeError, ValueError) as e:
        return ParseOutcome.fallback(DEFAULT_VERIFICATION, f"unusable issue entry: {e}")

    return ParseOutcome.ok(VerificationResult(
        factual_accuracy=_clamp(accuracy),
        has_critical_issues=critical,
        issues=issues,
        verified_symbols=_strings(data.get("verifiedSymbols")),
        missing_symbols=_strings(data.get("missingSymbols")),
        hallucinated_symbols=_strings(data.get("hallucinatedSymbols")),
        recommendations=_strings(data.get("recommendations")),
        reasoning=str(data.get("reasoning") or ""),
    ))


def parse_candidate(text: str) -> Candidate:
    """Generation output -> Candidate, from JSON or a plain commit text.

    Raises:
        GenerationError: when the response holds no usable message
    """
    data = extract_json_object(text)
    if data is not None and "subject" in data:
        try:
            message = CommitMessage.from_dict(data)
        except ValueError as e:
            log.warning("candidate_json_rejected", error=str(e))
        else:
            confidence = _number(data.get("confidence"))
            reasoning = data.get("reasoning")
            return Candidate(
                message=message,
                confidence=int(_clamp(confidence)) if confidence is not None else None,
                reasoning=str(reasoning) if reasoning else None,
            )

    cleaned = clean_commit_message(text or "")
    if not cleaned.strip() or cleaned.lstrip().startswith('{'):
        raise GenerationError("Could not extract a commit message from the model response")
    return Candidate(message=CommitMessage.from_formatted_string(cleaned))
