"""
Tests for prompt construction and few-shot example selection.

Run with:
    pytest tests/test_prompts.py -v
"""

import json

import pytest

from commitsmith.analysis.models import (
    ASTAnalysis, ChangePattern, DiffAnalysis, DiffSummary, FileChangeSummary, ModifiedSymbol,
    Refactoring, SemanticImpact,
)
from commitsmith.message import CommitMessage
from commitsmith.pipeline import Candidate, DiffContext, ReflectionFeedback, VerificationResult
from commitsmith.prompts import (
    COMMIT_EXAMPLES, REFLECTION_CRITERIA, PromptBuilder, PromptConfig, RefinementRequest,
    format_examples, select_relevant_examples,
)


@pytest.fixture
def context():
    return DiffContext(
        diff="diff --git a/src/app.py b/src/app.py\n+def load_user(user_id):",
        files=("src/app.py",),
        branch="feature/user-loading",
        recent_commits=("feat(api): add health endpoint", "fix(db): close idle connections"),
        summary="FILES CHANGED:\nsrc/app.py (+10 -2)",
    )


@pytest.fixture
def analysis():
    return DiffAnalysis(
        modified_symbols=(ModifiedSymbol("src/app.py", "load_user", "function"),),
        change_patterns=(ChangePattern("feature_addition", "New functionality", 1, 0.8),),
        file_changes=(FileChangeSummary("src/app.py", 10, 2, importance="high"),),
        complexity="simple",
        summary=DiffSummary(files_changed=1, lines_added=10, lines_removed=2),
    )


@pytest.fixture
def candidate():
    return Candidate(
        message=CommitMessage(type="feat", scope="users", subject="load users by id", body="- add load_user"),
        confidence=80,
        reasoning="new loader function",
    )


@pytest.fixture
def builder():
    return PromptBuilder()


# ---------------------------------------------------------------------------
# Generation prompt
# ---------------------------------------------------------------------------

class TestGenerationPrompt:

    def test_returns_system_and_user(self, builder, context, analysis):
        system, user = builder.build_generation(context, analysis)
        assert "senior software engineer" in system
        assert user

    def test_contains_diff_and_summary(self, builder, context, analysis):
        _, user = builder.build_generation(context, analysis)
        assert "FILES CHANGED: 1" in user
        assert "src/app.py (+10 -2)" in user
        assert "+def load_user(user_id):" in user

    def test_contains_analysis(self, builder, context, analysis):
        _, user = builder.build_generation(context, analysis)
        assert "Complexity: simple (1 files, +10 -2)" in user
        assert "feature_addition (80%)" in user
        assert "load_user (function) in src/app.py" in user
        assert "[high] src/app.py modified" in user

    def test_history_section(self, builder, context, analysis):
        _, user = builder.build_generation(context, analysis)
        assert "Branch: feature/user-loading" in user
        assert "- fix(db): close idle connections" in user

    def test_history_omitted_without_branch_or_commits(self, builder, analysis):
        bare = DiffContext(diff="+x", files=("a.py",))
        _, user = builder.build_generation(bare, analysis)
        assert "<history>" not in user

    def test_hint_included_when_provided(self, builder, context, analysis):
        hinted = DiffContext(diff=context.diff, files=context.files, hint="fixing the login bug")
        _, user = builder.build_generation(hinted, analysis)
        assert '"fixing the login bug"' in user

    def test_hint_excluded_when_none(self, builder, context, analysis):
        _, user = builder.build_generation(context, analysis)
        assert "<context>" not in user

    def test_forced_type(self, context, analysis):
        _, user = PromptBuilder(PromptConfig(forced_type="fix")).build_generation(context, analysis)
        assert "Use type 'fix'" in user
        assert "Choose the most appropriate type" not in user

    def test_all_types_listed_by_default(self, builder, context, analysis):
        _, user = builder.build_generation(context, analysis)
        assert "  - revert: " in user
        assert "  - feat: " in user

    def test_no_body_instruction(self, context, analysis):
        _, user = PromptBuilder(PromptConfig(include_body=False)).build_generation(context, analysis)
        assert "body: null (subject line only, no body)" in user

    def test_subject_length_limit(self, context, analysis):
        _, user = PromptBuilder(PromptConfig(max_subject_length=50)).build_generation(context, analysis)
        assert "fits in 50 chars" in user

    def test_truncated_diff_note(self, builder, analysis):
        truncated = DiffContext(diff="+added", files=("src/app.py",), truncated=True)
        _, user = builder.build_generation(truncated, analysis)
        assert "truncated due to size" in user

    @pytest.mark.parametrize("files, expected", [
        (1, "1-2"),
        (4, "3-4"),
        (8, "4-5"),
        (20, "5-6"),
    ])
    def test_bullet_range_scales(self, builder, context, files, expected):
        sized = DiffAnalysis(summary=DiffSummary(files_changed=files))
        _, user = builder.build_generation(context, sized)
        assert f"body: {expected} bullet lines" in user

    def test_examples_section(self, builder, context, analysis):
        examples = COMMIT_EXAMPLES[:1]
        _, user = builder.build_generation(context, analysis, examples=examples)
        assert "<examples>" in user
        assert examples[0].message.header in user

    def test_syntax_tree_findings(self, builder, context):
        ast = ASTAnalysis(
            refactorings=(Refactoring("function_rename", "getUser", "loadUser", 0.95, "src/app.ts",
                                      "Function renamed from getUser to loadUser"),),
            semantic_impact=(SemanticImpact("breaking_change", "src/app.ts", "high",
                                            "Public API removed or modified: getUser"),),
        )
        _, user = builder.build_generation(context, DiffAnalysis(ast_analysis=ast))
        assert "Function renamed from getUser to loadUser (src/app.ts)" in user
        assert "Impact: breaking_change [high]" in user
        assert "consider marking the commit as breaking" in user

    def test_many_symbols_collapsed(self, builder, context):
        symbols = tuple(ModifiedSymbol("src/app.py", f"fn_{i}", "function") for i in range(20))
        _, user = builder.build_generation(context, DiffAnalysis(modified_symbols=symbols))
        assert "fn_14" in user
        assert "fn_15" not in user
        assert "... and 5 more" in user


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------

class TestRefinementPrompt:

    def test_carries_feedback(self, builder, context, analysis, candidate):
        request = RefinementRequest(
            previous=candidate,
            reflection=ReflectionFeedback(decision="refine", quality_score=60,
                                          issues=("subject is vague",), improvements=("name the loader",)),
            verification=VerificationResult(factual_accuracy=50, has_critical_issues=True,
                                            hallucinated_symbols=("UserCache",), missing_symbols=("load_user",),
                                            issues=("[critical] hallucination: cache",)),
        )
        _, user = builder.build_generation(context, analysis, refinement=request)

        assert "<refinement>" in user
        assert "feat(users): load users by id" in user
        assert "Review score: 60/100" in user
        assert "  - subject is vague" in user
        assert "  - name the loader" in user
        assert "do NOT mention: UserCache" in user
        assert "Important and missing: load_user" in user
        assert "[critical] hallucination: cache" in user

    def test_without_verification(self, builder, context, analysis, candidate):
        request = RefinementRequest(previous=candidate,
                                    reflection=ReflectionFeedback(decision="refine", quality_score=70))
        _, user = builder.build_generation(context, analysis, refinement=request)
        assert "do NOT mention" not in user
        assert "Write an improved message" in user


# ---------------------------------------------------------------------------
# Reflection and verification prompts
# ---------------------------------------------------------------------------

class TestReflectionPrompt:

    def test_system_lists_criteria(self, builder, context, analysis, candidate):
        system, _ = builder.build_reflection(candidate, context, analysis)
        for name in REFLECTION_CRITERIA:
            assert f"- {name}:" in system
            assert f'"{name}": number' in system
        assert '"decision": "accept" | "refine"' in system

    def test_user_contains_candidate(self, builder, context, analysis, candidate):
        _, user = builder.build_reflection(candidate, context, analysis)
        assert "PROPOSED COMMIT:\nfeat(users): load users by id" in user
        assert "Author's reasoning: new loader function" in user
        assert "  - src/app.py" in user

    def test_structured_fields_are_json(self, builder, context, analysis, candidate):
        _, user = builder.build_reflection(candidate, context, analysis)
        start = user.index("STRUCTURED FIELDS:\n") + len("STRUCTURED FIELDS:\n")
        end = user.index("\n}", start) + 2
        assert json.loads(user[start:end])["scope"] == "users"


class TestVerificationPrompt:

    def test_contains_commit_and_diff(self, builder, context, analysis, candidate):
        system, user = builder.build_verification(candidate, context.diff, analysis)
        assert "fact checker" in system
        assert "Type: feat" in user
        assert "Scope: users" in user
        assert "Subject: load users by id" in user
        assert "+def load_user(user_id):" in user
        assert "- Pattern: feature_addition" in user
        assert "* load_user (function)" in user

    def test_diff_truncated_at_limit(self, builder, analysis, candidate):
        diff = "+" + "x" * 500
        _, user = builder.build_verification(candidate, diff, analysis, diff_limit=100)
        assert "... [diff truncated]" in user
        assert "x" * 150 not in user

    def test_unknown_pattern_without_analysis(self, builder, candidate):
        _, user = builder.build_verification(candidate, "+x", DiffAnalysis())
        assert "- Pattern: unknown" in user
        assert "Symbols actually changed" not in user

    def test_breaking_line(self, builder, analysis):
        breaking = Candidate(message=CommitMessage(type="feat", subject="drop v1", breaking=True,
                                                   breaking_description="v1 removed"))
        _, user = builder.build_verification(breaking, "+x", analysis)
        assert "Breaking: v1 removed" in user


# ---------------------------------------------------------------------------
# Example selection
# ---------------------------------------------------------------------------

class TestExampleSelection:

    def test_prefers_matching_pattern(self):
        analysis = DiffAnalysis(
            change_patterns=(ChangePattern("bug_fix", "Bug fix", 1, 0.7),),
            complexity="moderate",
            summary=DiffSummary(files_changed=2),
        )
        selected = select_relevant_examples(analysis, count=2)
        assert len(selected) == 2
        assert selected[0].pattern == "bug_fix"

    def test_count_respected(self):
        analysis = DiffAnalysis()
        assert select_relevant_examples(analysis, count=0) == []
        assert len(select_relevant_examples(analysis, count=3)) == 3
        assert len(select_relevant_examples(analysis, count=100)) == len(COMMIT_EXAMPLES)

    def test_custom_pool(self):
        pool = COMMIT_EXAMPLES[:2]
        assert set(e.pattern for e in select_relevant_examples(DiffAnalysis(), 5, pool)) <= {e.pattern for e in pool}

    def test_format_examples(self):
        text = format_examples(COMMIT_EXAMPLES[:2])
        assert text.startswith("Example 1\nChanges: ")
        assert "\n\nExample 2\n" in text
        assert "Why it works: " in text
