"""Prompt Builder - Construct the prompts of the generate / reflect / verify loop.

Every build_* method returns a (system_prompt, user_prompt) pair.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from commitsmith import COMMIT_TYPES
from commitsmith.analysis.models import DiffAnalysis
from commitsmith.prompts.examples import CommitExample, format_examples

if TYPE_CHECKING:
    from commitsmith.pipeline.models import Candidate, DiffContext, ReflectionFeedback, VerificationResult

# Bullet count thresholds by file count: (min_files, bullet_range)
BULLET_THRESHOLDS = [
    (15, "5-6"),
    (8, "4-5"),
    (4, "3-4"),
    (0, "1-2"),
]

MAX_SYMBOLS_LISTED = 15
MAX_FILES_LISTED = 10

REFLECTION_CRITERIA = {
    "type_accuracy": "the type matches the primary nature of the change",
    "scope_relevance": "the scope names the most affected module in one word",
    "subject_clarity": "the subject is specific, imperative and says what the change achieves",
    "body_quality": "the body adds why/impact instead of restating the diff",
    "convention_compliance": "conventional commit format, lowercase subject, no trailing period",
}

GENERATION_SYSTEM_PROMPT = """You are a senior software engineer specialized in writing precise, informative git commit messages. You have reviewed thousands of pull requests at major tech companies and open-source projects.

Your expertise:
- Deep understanding of conventional commit format (type, scope, subject, body)
- Ability to identify the PRIMARY purpose of a change from a diff
- Writing for future developers who will read git log at 2am debugging production

Your standards:
- Every word earns its place, no filler
- The diff shows WHAT; you explain WHY
- Specific verbs over vague ones (never "update", "change", "modify")
- Only mention files, functions and classes that appear in the diff"""

REFLECTION_SYSTEM_PROMPT = """You are a strict reviewer of git commit messages. You judge a proposed conventional commit against the change it describes and decide whether it is good enough to keep.

Score each criterion from 0 to 100:
{criteria}

Then give an overall qualityScore (0-100) and decide:
- "accept" when the message is accurate, specific and follows the conventions
- "refine" when a concrete improvement would make a real difference

Return ONLY a JSON object, no markdown fences:
{{
  "decision": "accept" | "refine",
  "qualityScore": number,
  "criteriaScores": {{{criteria_keys}}},
  "issues": ["string"],
  "improvements": ["string"],
  "reasoning": "string"
}}"""

VERIFICATION_SYSTEM_PROMPT = """You are a pragmatic fact checker. Compare a proposed commit message with the REAL diff and report critical hallucinations and major factual errors.

Checks:
1. HALLUCINATION (critical only when obvious): the message names components, classes or functions that appear nowhere in the diff, neither in file names nor in code. Reasonable generalizations are fine.
2. OMISSION (major only when significant): the message leaves out the central part of the change (more than half of it). Minor details left out are not issues.
3. INACCURACY (major only on clear contradiction): the message misdescribes the main nature of the change, e.g. says "refactor" for a new feature.

Scoring:
- factualAccuracy 100: no hallucination, major symbols mentioned
- 80-99: minor omissions or acceptable generalizations
- 60-79: major omissions but no hallucination
- 0-59: critical hallucination or several major errors
- hasCriticalIssues is true only with a critical hallucination, accuracy below 50, or three or more major errors
- Deleted files are not hallucinations when the message says they were removed

Return ONLY a JSON object, no markdown fences:
{
  "factualAccuracy": number,
  "hasCriticalIssues": boolean,
  "issues": [{"type": "hallucination" | "omission" | "inaccuracy", "severity": "critical" | "major" | "minor", "description": "string", "evidence": "string"}],
  "verifiedSymbols": ["string"],
  "missingSymbols": ["string"],
  "hallucinatedSymbols": ["string"],
  "recommendations": ["string"],
  "reasoning": "string"
}"""


@dataclass
class PromptConfig:
    """User-provided settings that shape the generation prompt."""
    forced_type: str | None = None
    include_body: bool = True
    max_subject_length: int = 72


@dataclass
class RefinementRequest:
    """Feedback from the last cycle, turned into regeneration instructions."""
    previous: Candidate
    reflection: ReflectionFeedback
    verification: VerificationResult | None = None


class PromptBuilder:
    """Constructs the prompts for each step of the loop."""

    def __init__(self, config: PromptConfig | None = None):
        self.config = config or PromptConfig()

    # ------------------------------------------------------------------
    # Generation and refinement
    # ------------------------------------------------------------------

    def build_generation(self, context: DiffContext, analysis: DiffAnalysis,
                         examples: list[CommitExample] | None = None,
                         refinement: RefinementRequest | None = None) -> tuple[str, str]:
        sections = [
            self._build_format_section(analysis),
            self._build_examples_section(examples or []),
            self._build_analysis_section(analysis),
            self._build_diff_section(context),
            self._build_history_section(context),
            self._build_hints_section(context),
            self._build_refinement_section(refinement) if refinement else "",
            self._build_final_instructions(),
        ]
        return GENERATION_SYSTEM_PROMPT, "\n\n".join(filter(None, sections))

    def _build_format_section(self, analysis: DiffAnalysis) -> str:
        max_len = self.config.max_subject_length
        if self.config.forced_type:
            type_instruction = f"IMPORTANT: Use type '{self.config.forced_type}' for this commit."
        else:
            types_list = "\n".join(f"  - {t}: {desc}" for t, desc in COMMIT_TYPES.items())
            type_instruction = f"Choose the most appropriate type:\n{types_list}"

        if self.config.include_body:
            bullets = self._get_bullet_range(analysis.summary.files_changed)
            body_instruction = (
                f"body: {bullets} bullet lines starting with '- ', each a complete thought that explains "
                f"what changed and why, naming specific files, components or functions"
            )
        else:
            body_instruction = "body: null (subject line only, no body)"

        return f"""<format>
Describe the commit as JSON with these fields:
- type: one conventional commit type
- scope: ONE WORD naming the module, feature or component (never a file path), or null
- subject: lowercase, imperative mood, no trailing period; the whole header "type(scope): subject" fits in {max_len} chars
- {body_instruction}
- breaking: true only when a public API is removed or changes incompatibly
- breakingDescription: what breaks and how to migrate, or null
- confidence: 0-100, how sure you are the message is accurate
- reasoning: one sentence on why you chose this type and scope

{type_instruction}
</format>"""

    def _get_bullet_range(self, file_count: int) -> str:
        for threshold, range_str in BULLET_THRESHOLDS:
            if file_count >= threshold:
                return range_str
        return BULLET_THRESHOLDS[-1][1]

    def _build_examples_section(self, examples: list[CommitExample]) -> str:
        if not examples:
            return ""
        return f"""<examples>
These show the quality bar. Never reuse their wording; describe the ACTUAL change below.

{format_examples(examples)}
</examples>"""

    def _build_analysis_section(self, analysis: DiffAnalysis) -> str:
        lines = [
            "<analysis>",
            f"Complexity: {analysis.complexity} "
            f"({analysis.summary.files_changed} files, +{analysis.summary.lines_added} -{analysis.summary.lines_removed})",
        ]

        if analysis.change_patterns:
            lines.append("Detected patterns:")
            for pattern in analysis.change_patterns:
                lines.append(f"  - {pattern.kind} ({pattern.confidence:.0%}): {pattern.description}")

        if analysis.modified_symbols:
            lines.append("Symbols added or changed:")
            for symbol in analysis.modified_symbols[:MAX_SYMBOLS_LISTED]:
                lines.append(f"  - {symbol.name} ({symbol.kind}) in {symbol.file}")
            if len(analysis.modified_symbols) > MAX_SYMBOLS_LISTED:
                lines.append(f"  ... and {len(analysis.modified_symbols) - MAX_SYMBOLS_LISTED} more")

        if analysis.file_changes:
            lines.append("Files by importance:")
            for change in analysis.file_changes[:MAX_FILES_LISTED]:
                lines.append(
                    f"  - [{change.importance}] {change.path} {change.change_type} "
                    f"(+{change.lines_added} -{change.lines_removed})"
                )

        ast = analysis.ast_analysis
        if ast.refactorings:
            lines.append("Syntax-tree findings:")
            for refactoring in ast.refactorings:
                lines.append(f"  - {refactoring.description or refactoring.kind} ({refactoring.file})")
        for impact in ast.semantic_impact:
            lines.append(f"Impact: {impact.kind} [{impact.severity}] {impact.description or ''} ({impact.file})".rstrip())
        if ast.has_breaking_change:
            lines.append("A public API was removed: consider marking the commit as breaking.")

        lines.append("</analysis>")
        return "\n".join(lines)

    def _build_diff_section(self, context: DiffContext) -> str:
        parts = ["<changes>", f"FILES CHANGED: {len(context.files)}"]
        if context.summary:
            parts.extend(["", context.summary])
        parts.extend(["", "DIFF DETAILS:", context.diff])
        if context.truncated:
            parts.append("\n[Note: Diff was truncated due to size. Focus on the file summary above for scope.]")
        parts.append("</changes>")
        return "\n".join(parts)

    def _build_history_section(self, context: DiffContext) -> str:
        lines = []
        if context.branch:
            lines.append(f"Branch: {context.branch}")
        if context.recent_commits:
            lines.append("Recent commits (match their conventions):")
            lines.extend(f"  - {subject}" for subject in context.recent_commits)
        if not lines:
            return ""
        return "<history>\n" + "\n".join(lines) + "\n</history>"

    def _build_hints_section(self, context: DiffContext) -> str:
        if not context.hint:
            return ""

        return f"""<context>
The developer provided this context about the changes:
"{context.hint}"

Use this to inform your message, but verify it matches what you see in the diff.
</context>"""

    def _build_refinement_section(self, refinement: RefinementRequest) -> str:
        reflection = refinement.reflection
        lines = [
            "<refinement>",
            "Your previous message:",
            refinement.previous.message.format(),
            "",
            f"Review score: {reflection.quality_score}/100",
        ]
        if reflection.issues:
            lines.append("Issues to fix:")
            lines.extend(f"  - {issue}" for issue in reflection.issues)
        if reflection.improvements:
            lines.append("Requested improvements:")
            lines.extend(f"  - {item}" for item in reflection.improvements)

        verification = refinement.verification
        if verification is not None:
            if verification.hallucinated_symbols:
                lines.append("Not in the diff, do NOT mention: " + ", ".join(verification.hallucinated_symbols))
            if verification.missing_symbols:
                lines.append("Important and missing: " + ", ".join(verification.missing_symbols))
            if verification.issues:
                lines.append("Fact check findings:")
                lines.extend(f"  - {issue}" for issue in verification.issues)

        lines.append("")
        lines.append("Write an improved message that fixes every issue above. Keep what was already right.")
        lines.append("</refinement>")
        return "\n".join(lines)

    def _build_final_instructions(self) -> str:
        return """<instructions>
Generate exactly ONE commit message as a single JSON object.

Rules:
- No markdown fences, no preamble, no explanation outside the JSON
- Mention only symbols and files that appear in the diff
</instructions>"""

    # ------------------------------------------------------------------
    # Reflection
    # ------------------------------------------------------------------

    def build_reflection(self, candidate: Candidate, context: DiffContext, analysis: DiffAnalysis) -> tuple[str, str]:
        criteria = "\n".join(f"- {name}: {desc}" for name, desc in REFLECTION_CRITERIA.items())
        criteria_keys = ", ".join(f'"{name}": number' for name in REFLECTION_CRITERIA)
        system = REFLECTION_SYSTEM_PROMPT.format(criteria=criteria, criteria_keys=criteria_keys)

        parts = [
            "PROPOSED COMMIT:",
            candidate.message.format(),
            "",
            "STRUCTURED FIELDS:",
            json.dumps(candidate.message.to_dict(), indent=2),
        ]
        if candidate.reasoning:
            parts.extend(["", f"Author's reasoning: {candidate.reasoning}"])
        parts.extend(["", self._build_analysis_section(analysis)])
        parts.extend(["", "CHANGED FILES:"])
        parts.extend(f"  - {path}" for path in context.files[:MAX_FILES_LISTED * 2])
        parts.extend(["", "Review the commit against the change and return the JSON verdict."])
        return system, "\n".join(parts)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def build_verification(self, candidate: Candidate, diff: str, analysis: DiffAnalysis,
                           diff_limit: int = 8000) -> tuple[str, str]:
        message = candidate.message
        parts = ["COMMIT TO VERIFY:", f"Type: {message.type}"]
        if message.scope:
            parts.append(f"Scope: {message.scope}")
        parts.append(f"Subject: {message.subject}")
        if message.body:
            parts.append(f"Body: {message.body}")
        if message.breaking:
            parts.append(f"Breaking: {message.breaking_description or 'yes'}")

        shown = diff if len(diff) <= diff_limit else f"{diff[:diff_limit]}\n... [diff truncated]"
        parts.extend(["", "REAL DIFF (source of truth):", "```", shown, "```", ""])

        primary = analysis.primary_pattern
        parts.append("STRUCTURED ANALYSIS (reference):")
        parts.append(f"- Files: {analysis.summary.files_changed}")
        parts.append(f"- Pattern: {primary.kind if primary else 'unknown'}")
        if analysis.modified_symbols:
            parts.append(f"- Symbols actually changed ({len(analysis.modified_symbols)} total):")
            for symbol in analysis.modified_symbols[:10]:
                parts.append(f"  * {symbol.name} ({symbol.kind})")
            if len(analysis.modified_symbols) > 10:
                parts.append(f"  ... and {len(analysis.modified_symbols) - 10} more")

        parts.extend([
            "",
            "QUESTIONS:",
            "1. HALLUCINATION: does the commit mention components absent from the diff?",
            "2. OMISSION: does the commit leave out major symbols of the diff?",
            "3. ACCURACY: do the type and description match the detected pattern?",
        ])
        return VERIFICATION_SYSTEM_PROMPT, "\n".join(parts)
