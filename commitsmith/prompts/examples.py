"""Few-shot commit examples and their selection."""

from dataclasses import dataclass

from commitsmith.analysis.models import DiffAnalysis
from commitsmith.message import CommitMessage


@dataclass(frozen=True)
class CommitExample:
    """An annotated commit message used as a few-shot example."""
    diff_summary: str
    message: CommitMessage
    quality_score: int  # 1-5
    reasoning: str
    pattern: str
    complexity: str
    files_changed: int


COMMIT_EXAMPLES: list[CommitExample] = [
    CommitExample(
        diff_summary="New UserValidator class with email and password checks, wired into the signup handler.",
        message=CommitMessage(
            type="feat",
            scope="auth",
            subject="validate email and password strength on signup",
            body="- add UserValidator with format and strength rules\n"
                 "- return field-level errors instead of a generic 400",
        ),
        quality_score=5,
        reasoning="Subject names the behavior users get, body names the new class and the visible effect.",
        pattern="feature_addition",
        complexity="moderate",
        files_changed=3,
    ),
    CommitExample(
        diff_summary="Retry with backoff added around the upload request, timeout raised for large payloads.",
        message=CommitMessage(
            type="fix",
            scope="api",
            subject="stop large uploads from timing out",
            body="- retry failed uploads three times with exponential backoff\n"
                 "- scale the request timeout with payload size",
        ),
        quality_score=5,
        reasoning="Subject describes the problem solved, body lists the mechanism.",
        pattern="bug_fix",
        complexity="moderate",
        files_changed=2,
    ),
    CommitExample(
        diff_summary="parseDate split into tokenize and buildDate helpers, no behavior change.",
        message=CommitMessage(
            type="refactor",
            scope="dates",
            subject="split date parsing into tokenizer and builder",
        ),
        quality_score=4,
        reasoning="Names both new pieces and implies no behavior change.",
        pattern="refactoring",
        complexity="simple",
        files_changed=1,
    ),
    CommitExample(
        diff_summary="Six new test cases for the cart total, covering discounts and empty carts.",
        message=CommitMessage(
            type="test",
            scope="cart",
            subject="cover discount and empty cart totals",
        ),
        quality_score=4,
        reasoning="Says what behavior the tests pin down rather than counting tests.",
        pattern="test_addition",
        complexity="simple",
        files_changed=1,
    ),
    CommitExample(
        diff_summary="README gains an installation section and a configuration table.",
        message=CommitMessage(
            type="docs",
            scope="readme",
            subject="document installation and config options",
        ),
        quality_score=4,
        reasoning="Short, specific, docs type with no code touched.",
        pattern="documentation",
        complexity="simple",
        files_changed=1,
    ),
    CommitExample(
        diff_summary="Bumped the HTTP client to 2.x and the lock file with it.",
        message=CommitMessage(
            type="build",
            scope="deps",
            subject="upgrade http client to 2.x",
            body="- picks up connection pool fixes needed by the sync worker",
        ),
        quality_score=4,
        reasoning="Names the dependency and the reason for the bump.",
        pattern="dependency_update",
        complexity="simple",
        files_changed=2,
    ),
    CommitExample(
        diff_summary="Search results cached per query for 60 seconds, list rendering memoized.",
        message=CommitMessage(
            type="perf",
            scope="search",
            subject="cache search results and memoize result list",
            body="- repeated queries within a minute skip the backend\n"
                 "- result rows no longer re-render on every keystroke",
        ),
        quality_score=5,
        reasoning="States the optimization and its user-visible effect.",
        pattern="performance",
        complexity="moderate",
        files_changed=3,
    ),
    CommitExample(
        diff_summary="Public getUser removed in favour of fetchUser with a different signature across the client, "
                     "server and shared types.",
        message=CommitMessage(
            type="refactor",
            scope="api",
            subject="replace getUser with fetchUser",
            body="- fetchUser takes an options object and returns null when missing\n"
                 "- callers in client and server migrated",
            breaking=True,
            breaking_description="getUser is removed, use fetchUser(id, options) instead.",
        ),
        quality_score=5,
        reasoning="Breaking change flagged with a footer telling users how to migrate.",
        pattern="refactoring",
        complexity="complex",
        files_changed=8,
    ),
    CommitExample(
        diff_summary="try/except around config loading, clear error message for malformed files.",
        message=CommitMessage(
            type="fix",
            scope="config",
            subject="report malformed config files instead of crashing",
        ),
        quality_score=4,
        reasoning="Describes the failure mode that no longer happens.",
        pattern="error_handling",
        complexity="simple",
        files_changed=1,
    ),
]


def _score(example: CommitExample, analysis: DiffAnalysis) -> int:
    score = 0
    dominant = analysis.primary_pattern
    if dominant is not None and example.pattern == dominant.kind:
        score += 10
    if example.complexity == analysis.complexity:
        score += 5
    file_diff = abs(example.files_changed - analysis.summary.files_changed)
    if file_diff == 0:
        score += 3
    elif file_diff <= 2:
        score += 1
    return score + example.quality_score


def select_relevant_examples(analysis: DiffAnalysis, count: int = 2,
                             examples: list[CommitExample] | None = None) -> list[CommitExample]:
    """Top examples by pattern, complexity and scale similarity."""
    pool = COMMIT_EXAMPLES if examples is None else examples
    ranked = sorted(pool, key=lambda e: _score(e, analysis), reverse=True)
    return ranked[:max(0, count)]


def format_examples(examples: list[CommitExample]) -> str:
    blocks = []
    for i, example in enumerate(examples, 1):
        blocks.append(
            f"Example {i}\n"
            f"Changes: {example.diff_summary}\n"
            f"Message:\n{example.message.format()}\n"
            f"Why it works: {example.reasoning}"
        )
    return "\n\n".join(blocks)
