"""
Tests for the structural diff analyzer.

Run with:
    pytest tests/test_diff_analyzer.py -v
"""

import pytest

from commitsmith.analysis.diff_analyzer import DiffAnalyzer, enrich_with_ast, split_diff_sections
from commitsmith.analysis.models import ASTAnalysis, DiffAnalysis, DiffSummary, ModifiedSymbol, SemanticImpact


def make_file_diff(path, added=(), removed=(), new=False, deleted=False, old_path=None):
    """Build one file's section of a unified diff."""
    old = old_path or path
    lines = [f"diff --git a/{old} b/{path}"]
    if new:
        lines += ["new file mode 100644", "index 0000000..1111111", "--- /dev/null", f"+++ b/{path}"]
    elif deleted:
        lines += ["deleted file mode 100644", "index 1111111..0000000", f"--- a/{old}", "+++ /dev/null"]
    else:
        lines += ["index 1111111..2222222 100644", f"--- a/{old}", f"+++ b/{path}"]
    lines.append(f"@@ -1,{len(removed)} +1,{len(added)} @@")
    lines += [f"-{line}" for line in removed]
    lines += [f"+{line}" for line in added]
    return "\n".join(lines)


def join(*sections):
    return "\n".join(sections) + "\n"


@pytest.fixture
def analyzer():
    return DiffAnalyzer()


@pytest.fixture
def calc_diff():
    """A new calc() function plus a test asserting it."""
    return join(
        make_file_diff("src/calc.ts", added=[
            "export function calc(a: number, b: number): number {",
            "  return a + b;",
            "}",
        ]),
        make_file_diff("src/calc.test.ts", added=[
            "import { calc } from './calc';",
            "",
            "test('calc adds numbers', () => {",
            "  expect(calc(1, 2)).toBe(3);",
            "});",
        ]),
    )


def pattern(analysis, kind):
    return next((p for p in analysis.change_patterns if p.kind == kind), None)


# ---------------------------------------------------------------------------
# Diff splitting
# ---------------------------------------------------------------------------

class TestSplitDiffSections:

    def test_header_lines_are_not_counted(self):
        sections = split_diff_sections(make_file_diff("a.py", added=["x = 1"], removed=["x = 0"]))
        assert len(sections) == 1
        assert sections[0].added == ["x = 1"]
        assert sections[0].removed == ["x = 0"]
        assert sections[0].has_headers

    def test_new_and_deleted_markers(self):
        sections = split_diff_sections(join(
            make_file_diff("new.py", added=["a = 1"], new=True),
            make_file_diff("gone.py", removed=["b = 2"], deleted=True),
        ))
        assert sections[0].new_file and not sections[0].deleted_file
        assert sections[1].deleted_file and not sections[1].new_file

    def test_rename_uses_new_path(self):
        sections = split_diff_sections(make_file_diff("src/new.py", added=["pass"], old_path="src/old.py"))
        assert sections[0].path == "src/new.py"
        assert sections[0].old_path == "src/old.py"

    def test_lines_before_first_marker_ignored(self):
        assert split_diff_sections("+orphan line\n-another\n") == []


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

class TestSymbolExtraction:

    def test_calc_function_from_source_only(self, analyzer, calc_diff):
        analysis = analyzer.analyze(calc_diff, ["src/calc.ts", "src/calc.test.ts"])
        assert analysis.modified_symbols == (ModifiedSymbol("src/calc.ts", "calc", "function"),)

    def test_test_files_never_yield_symbols(self, analyzer):
        diff = make_file_diff("tests/test_parser.py", added=[
            "def helper(value):",
            "class FakeClient:",
            "MAX_CASES = 10",
        ])
        assert analyzer.analyze(diff, ["tests/test_parser.py"]).modified_symbols == ()

    def test_removed_lines_ignored(self, analyzer):
        diff = make_file_diff("src/app.ts", removed=["export function legacy() {", "}"])
        assert analyzer.analyze(diff, ["src/app.ts"]).modified_symbols == ()

    def test_duplicates_collapse(self, analyzer):
        diff = join(
            make_file_diff("src/a.py", added=["def run():", "    pass", "def run():"]),
            make_file_diff("src/b.py", added=["def run():"]),
        )
        symbols = analyzer.analyze(diff, ["src/a.py", "src/b.py"]).modified_symbols
        assert [(s.file, s.name) for s in symbols] == [("src/a.py", "run"), ("src/b.py", "run")]

    def test_symbols_of_kind(self, analyzer):
        diff = make_file_diff("src/models.ts", added=[
            "export interface User {",
            "export class UserStore {",
            "export const MAX_USERS = 100;",
        ])
        analysis = analyzer.analyze(diff, ["src/models.ts"])
        assert [s.name for s in analysis.symbols_of_kind("class")] == ["UserStore"]
        assert [s.name for s in analysis.symbols_of_kind("interface")] == ["User"]
        assert [s.name for s in analysis.symbols_of_kind("const")] == ["MAX_USERS"]


# ---------------------------------------------------------------------------
# Change patterns
# ---------------------------------------------------------------------------

class TestChangePatterns:

    def test_calc_scenario_has_test_addition(self, analyzer, calc_diff):
        analysis = analyzer.analyze(calc_diff, ["src/calc.ts", "src/calc.test.ts"])
        test_addition = pattern(analysis, "test_addition")
        assert test_addition is not None
        assert test_addition.count == 1
        assert test_addition.confidence == 0.9

    def test_supporting_tests_get_lower_confidence(self, analyzer):
        diff = join(
            make_file_diff("src/a.ts", added=["export function a() {", "}"]),
            make_file_diff("src/b.ts", added=["export function b() {", "}"]),
            make_file_diff("src/a.test.ts", added=["it('works', () => {});"]),
        )
        analysis = analyzer.analyze(diff, ["src/a.ts", "src/b.ts", "src/a.test.ts"])
        assert pattern(analysis, "test_addition").confidence == 0.5

    @pytest.mark.parametrize("staged, expected", [
        (["tests/test_api.py"], 0.85),
        (["src/api.py", "src/db.py", "tests/test_api.py"], 0.4),
    ])
    def test_test_modification(self, analyzer, staged, expected):
        diff = make_file_diff("tests/test_api.py", added=["    assert response.status == 200"])
        analysis = analyzer.analyze(diff, staged)
        assert pattern(analysis, "test_addition") is None
        assert pattern(analysis, "test_modification").confidence == expected

    def test_bug_fix(self, analyzer):
        diff = make_file_diff("src/parser.ts", added=[
            "// fixed bug in tokenizer",
            "const issue = findIssue(id);",
            "correctOffset(value);",
        ])
        assert pattern(analyzer.analyze(diff, ["src/parser.ts"]), "bug_fix").confidence == 0.7

    def test_error_handling(self, analyzer):
        diff = make_file_diff("src/loader.ts", added=[
            "try {",
            "  load();",
            "} catch (err) {",
            "  throw new ValidationError(err.message);",
            "}",
        ])
        found = pattern(analyzer.analyze(diff, ["src/loader.ts"]), "error_handling")
        assert found.count == 3
        assert found.confidence == 0.8

    @pytest.mark.parametrize("staged, expected", [
        (["README.md"], 0.95),
        (["README.md", "src/api.ts"], 0.3),
    ])
    def test_documentation(self, analyzer, staged, expected):
        diff = make_file_diff("README.md", added=["## Usage", "Run the tool."])
        assert pattern(analyzer.analyze(diff, staged), "documentation").confidence == expected

    def test_dependency_manifest_is_not_configuration(self, analyzer):
        diff = make_file_diff("package.json", added=['    "left-pad": "^1.3.0",'])
        analysis = analyzer.analyze(diff, ["package.json"])
        assert pattern(analysis, "dependency_update").confidence == 0.85
        assert pattern(analysis, "configuration") is None

    def test_configuration(self, analyzer):
        diff = make_file_diff("tsconfig.json", added=['    "strict": true,'])
        assert pattern(analyzer.analyze(diff, ["tsconfig.json"]), "configuration").confidence == 0.9

    def test_type_definition(self, analyzer):
        diff = make_file_diff("src/types.ts", added=["export interface User {", "export type Id = string;"])
        assert pattern(analyzer.analyze(diff, ["src/types.ts"]), "type_definition").count == 2

    def test_code_movement_flags_refactoring(self, analyzer):
        moved = [
            "const subtotal = lineItems.reduce(sum, 0);",
            "const discount = applyCoupon(subtotal, code);",
            "const shipping = shippingFor(address, weight);",
            "const total = subtotal - discount + shipping;",
        ]
        hunk = []
        for line in moved:
            hunk += [f"-  {line}", f"+    {line}"]
        diff = join(
            "diff --git a/src/checkout.ts b/src/checkout.ts",
            "--- a/src/checkout.ts",
            "+++ b/src/checkout.ts",
            "@@ -1,4 +1,4 @@",
            *hunk,
        )
        found = pattern(analyzer.analyze(diff, ["src/checkout.ts"]), "refactoring")
        assert found is not None
        assert "4 moved lines" in found.description

    def test_three_moved_lines_are_not_enough(self, analyzer):
        hunk = []
        for line in ["const alpha = computeAlpha(input);", "const beta = computeBeta(input);",
                     "const gamma = computeGamma(input);"]:
            hunk += [f"-{line}", f"+  {line}"]
        diff = join("diff --git a/src/x.ts b/src/x.ts", "@@ -1,3 +1,3 @@", *hunk)
        assert pattern(analyzer.analyze(diff, ["src/x.ts"]), "refactoring") is None

    def test_performance(self, analyzer):
        diff = make_file_diff("src/lookup.ts", added=["const cache = new Map<string, User>();"])
        assert pattern(analyzer.analyze(diff, ["src/lookup.ts"]), "performance").confidence == 0.7

    def test_feature_addition_for_new_class(self, analyzer):
        diff = make_file_diff("src/services/billing.ts", new=True, added=[
            "export class BillingService {",
            "  constructor(private readonly gateway: PaymentGateway) {}",
            "  async charge(customerId: string, amount: number): Promise<Receipt> {",
            "    const customer = await this.gateway.lookup(customerId);",
            "    return this.gateway.charge(customer, amount);",
            "  }",
            "  async refund(receiptId: string): Promise<void> {",
            "    await this.gateway.refund(receiptId);",
            "  }",
            "  get provider(): string {",
            "    return this.gateway.name;",
            "  }",
            "}",
        ])
        analysis = analyzer.analyze(diff, ["src/services/billing.ts"])
        assert pattern(analysis, "feature_addition").confidence == 0.8
        names = {s.name for s in analysis.modified_symbols}
        assert {"BillingService", "charge", "refund", "provider"} <= names

    def test_confidences_bounded_and_sorted(self, analyzer):
        diff = join(
            make_file_diff("README.md", added=["## Errors"]),
            make_file_diff("tsconfig.json", added=['"strict": true']),
            make_file_diff("package.json", added=['"zod": "^3.0.0"']),
            make_file_diff("src/api.ts", added=[
                "export interface Request {",
                "export type Handler = (req: Request) => void;",
                "try {",
                "} catch (error) {",
                "  throw new Error('bad request');",
                "const cache = new Map();",
            ]),
        )
        analysis = analyzer.analyze(diff, ["README.md", "tsconfig.json", "package.json", "src/api.ts"])
        confidences = [p.confidence for p in analysis.change_patterns]
        assert len(confidences) >= 5
        assert all(0.0 <= c <= 1.0 for c in confidences)
        assert confidences == sorted(confidences, reverse=True)
        assert analysis.primary_pattern.kind == "configuration"
        assert pattern(analysis, "documentation").confidence == 0.3


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFileChanges:

    def test_headers_decide_created_and_deleted(self, analyzer):
        diff = join(
            make_file_diff("src/new.py", added=["x = 1"], new=True),
            make_file_diff("src/old.py", removed=["y = 2"], deleted=True),
            make_file_diff("src/kept.py", added=["z = 3"], removed=["z = 2"]),
        )
        changes = {c.path: c for c in analyzer.analyze(diff, ["src/new.py", "src/old.py", "src/kept.py"]).file_changes}
        assert changes["src/new.py"].change_type == "created"
        assert changes["src/new.py"].is_new
        assert changes["src/old.py"].change_type == "deleted"
        assert changes["src/kept.py"].change_type == "modified"

    def test_heuristic_without_headers(self, analyzer):
        diff = "diff --git a/src/gen.py b/src/gen.py\n@@ -0,0 +1,12 @@\n" + "\n".join(f"+v{i} = {i}" for i in range(12))
        (change,) = analyzer.analyze(diff, ["src/gen.py"]).file_changes
        assert change.change_type == "created"
        assert change.lines_added == 12

    def test_sorted_by_importance(self, analyzer):
        diff = join(
            make_file_diff("README.md", added=["text"] * 30),
            make_file_diff("src/util.py", added=["a = 1"]),
            make_file_diff("src/feature.py", added=["b = 2"], new=True),
        )
        changes = analyzer.analyze(diff, ["README.md", "src/util.py", "src/feature.py"]).file_changes
        assert [c.importance for c in changes] == ["high", "medium", "low"]
        assert changes[0].path == "src/feature.py"

    @pytest.mark.parametrize("path, is_new, total, expected", [
        ("src/app.ts", True, 5, "high"),
        ("src/services/user.py", False, 25, "high"),
        ("src/domain/order.go", False, 21, "high"),
        ("src/util.py", False, 60, "high"),
        ("README.md", False, 100, "low"),
        ("tests/test_util.py", True, 100, "low"),
        ("src/util.py", False, 10, "medium"),
        ("src/services/user.py", False, 20, "medium"),
        ("deploy.yaml", True, 5, "medium"),
    ])
    def test_file_importance(self, analyzer, path, is_new, total, expected):
        assert analyzer._file_importance(path, is_new, total) == expected


class TestRelationships:

    def test_es_import_from_test_file(self, analyzer, calc_diff):
        relationships = analyzer.analyze(calc_diff, ["src/calc.ts", "src/calc.test.ts"]).file_relationships
        assert [(r.source, r.target, r.kind) for r in relationships] == [("src/calc.test.ts", "./calc", "import")]

    @pytest.mark.parametrize("line, target", [
        ("from commitsmith.config import Config", "commitsmith.config"),
        ("import json", "json"),
        ("const fs = require('fs');", "fs"),
        ("import './styles.css';", "./styles.css"),
    ])
    def test_import_forms(self, analyzer, line, target):
        diff = make_file_diff("src/mod.py", added=[line])
        assert [r.target for r in analyzer.analyze(diff, ["src/mod.py"]).file_relationships] == [target]

    def test_go_block_import_only_in_go_files(self, analyzer):
        go = make_file_diff("cmd/server.go", added=['\t"net/http"'])
        ts = make_file_diff("src/strings.ts", added=['\t"net/http"'])
        assert [r.target for r in analyzer.analyze(go, ["cmd/server.go"]).file_relationships] == ["net/http"]
        assert analyzer.analyze(ts, ["src/strings.ts"]).file_relationships == ()


# ---------------------------------------------------------------------------
# Complexity and summary
# ---------------------------------------------------------------------------

class TestComplexity:

    @pytest.mark.parametrize("files, added, symbols, expected", [
        (2, 49, 3, "simple"),
        (3, 10, 0, "moderate"),
        (2, 50, 0, "moderate"),
        (2, 10, 4, "moderate"),
        (5, 200, 10, "moderate"),
        (6, 10, 0, "complex"),
        (2, 201, 0, "complex"),
        (1, 5, 11, "complex"),
    ])
    def test_thresholds(self, analyzer, files, added, symbols, expected):
        summary = DiffSummary(files_changed=files, lines_added=added, lines_removed=0)
        assert analyzer._compute_complexity(summary, symbols) == expected

    def test_six_files_two_hundred_fifty_lines_is_complex(self, analyzer):
        sizes = [40, 40, 40, 40, 40, 50]
        paths = [f"src/module_{i}.py" for i in range(len(sizes))]
        diff = join(*(
            make_file_diff(path, added=[f"value_{n} = {n}" for n in range(size)])
            for path, size in zip(paths, sizes)
        ))
        analysis = analyzer.analyze(diff, paths)
        assert analysis.summary.files_changed == 6
        assert analysis.summary.total_changes == 250
        assert analysis.complexity == "complex"

    def test_calc_scenario_is_simple(self, analyzer, calc_diff):
        analysis = analyzer.analyze(calc_diff, ["src/calc.ts", "src/calc.test.ts"])
        assert analysis.summary == DiffSummary(files_changed=2, lines_added=8, lines_removed=0)
        assert analysis.complexity == "simple"


class TestDegenerateInput:

    @pytest.mark.parametrize("diff", ["", "   \n", "just some text\nwith no file markers"])
    def test_empty_analysis(self, analyzer, diff):
        analysis = analyzer.analyze(diff, ["src/app.py"])
        assert analysis == DiffAnalysis()
        assert analysis.complexity == "simple"
        assert analysis.ast_analysis.is_empty


# ---------------------------------------------------------------------------
# Syntax-tree enrichment
# ---------------------------------------------------------------------------

class FakeDetector:

    def __init__(self):
        self.calls = []

    def supports_file(self, path):
        return path.endswith(".ts")

    def analyze_file_ast(self, path, old, new):
        self.calls.append(path)
        return ASTAnalysis(semantic_impact=(SemanticImpact("breaking_change", path, "high"),))


class TestEnrichWithAst:

    def test_merges_findings_for_supported_files(self, analyzer, calc_diff):
        analysis = analyzer.analyze(calc_diff, ["src/calc.ts"])
        detector = FakeDetector()
        enriched = enrich_with_ast(analysis, detector, {"src/calc.ts": ("old", "new"), "README.md": ("", "x")})

        assert detector.calls == ["src/calc.ts"]
        assert enriched.ast_analysis.has_breaking_change
        assert analysis.ast_analysis.is_empty
        assert enriched.modified_symbols == analysis.modified_symbols

    def test_no_detector_returns_same_analysis(self, analyzer, calc_diff):
        analysis = analyzer.analyze(calc_diff, ["src/calc.ts"])
        assert enrich_with_ast(analysis, None, {"src/calc.ts": ("a", "b")}) is analysis
