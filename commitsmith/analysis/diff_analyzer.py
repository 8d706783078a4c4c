"""Diff Analyzer - Extract structured signal from a unified diff.

The analyzer is a pure function of (diff text, staged file list): no git, no
network, no file system. Everything downstream (prompts, example selection,
acceptance thresholds) reads the DiffAnalysis it returns.
"""

import re
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath

import structlog

from commitsmith.analysis.models import (
    ASTAnalysis,
    ChangePattern,
    DiffAnalysis,
    DiffSummary,
    FileChangeSummary,
    FileRelationship,
    IMPORTANCE_ORDER,
    ModifiedSymbol,
)
from commitsmith.analysis.similarity import char_overlap
from commitsmith.analysis.symbols import SYMBOL_MATCHERS, match_symbol

log = structlog.get_logger(__name__)

DIFF_HEADER_RE = re.compile(r'^diff --git a/(.+?) b/(.+)$')

CODE_EXTENSIONS = frozenset({
    '.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs', '.py', '.go', '.rs',
    '.java', '.kt', '.rb', '.cs', '.c', '.h', '.cpp', '.hpp', '.swift', '.php', '.scala',
})

# Movement detection ignores short lines, they collide too easily
MOVED_LINE_MIN_LENGTH = 20
MOVED_LINE_OVERLAP = 0.8
MOVED_PAIRS_FOR_REFACTOR = 3


@dataclass
class FileSection:
    """The slice of a unified diff that belongs to one file."""
    path: str
    old_path: str
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    hunk_lines: list[str] = field(default_factory=list)
    has_headers: bool = False
    new_file: bool = False
    deleted_file: bool = False


def split_diff_sections(diff: str) -> list[FileSection]:
    """Split a unified diff into per-file sections.

    Lines before a file's first hunk are headers; only lines inside hunks
    count as added or removed.
    """
    sections: list[FileSection] = []
    current: FileSection | None = None
    in_hunk = False

    for line in diff.split('\n'):
        header = DIFF_HEADER_RE.match(line)
        if header:
            current = FileSection(path=header.group(2), old_path=header.group(1))
            sections.append(current)
            in_hunk = False
            continue
        if current is None:
            continue

        if line.startswith('@@'):
            in_hunk = True
            current.hunk_lines.append(line)
            continue

        if not in_hunk:
            current.has_headers = True
            if line.startswith('new file mode') or line == '--- /dev/null':
                current.new_file = True
            elif line.startswith('deleted file mode') or line == '+++ /dev/null':
                current.deleted_file = True
            continue

        current.hunk_lines.append(line)
        if line.startswith('+'):
            current.added.append(line[1:])
        elif line.startswith('-'):
            current.removed.append(line[1:])

    return sections


class DiffAnalyzer:
    """Turns a unified diff into symbols, change patterns and file importance."""

    TEST_PATTERNS: list[str] = [
        r'(^|/)tests?/', r'(^|/)specs?/', r'__tests__/',
        r'\.test\.', r'\.spec\.', r'_test\.', r'_spec\.',
        r'(^|/)test_[^/]*$', r'Tests?\.java$',
    ]

    DOCS_PATTERNS: list[str] = [
        r'\.md$', r'\.rst$', r'\.adoc$', r'(^|/)docs?/', r'README', r'CHANGELOG',
    ]

    CONFIG_PATTERNS: list[str] = [
        r'\.json$', r'\.ya?ml$', r'\.toml$', r'\.ini$', r'config',
    ]

    DEPENDENCY_PATTERNS: list[str] = [
        r'(^|/)package(-lock)?\.json$', r'(^|/)yarn\.lock$', r'(^|/)pnpm-lock\.yaml$',
        r'(^|/)go\.(mod|sum)$', r'(^|/)requirements[^/]*\.txt$', r'(^|/)Pipfile(\.lock)?$',
        r'(^|/)poetry\.lock$', r'(^|/)Cargo\.(toml|lock)$', r'(^|/)Gemfile(\.lock)?$',
        r'(^|/)composer\.(json|lock)$',
    ]

    CORE_PATH_PATTERN = re.compile(r'(^|/)(domain|services?|use[-_]?cases?)/', re.IGNORECASE)

    TEST_CASE_RE = re.compile(r'(?:\b(?:it|test|describe|context)\s*\(|^\s*(?:async\s+)?def\s+test_\w*\s*\()')
    BUG_FIX_ADDED_RE = re.compile(r'\b(?:fix|fixes|fixed|bug|issue|error|correct)', re.IGNORECASE)
    BUG_FIX_REMOVED_RE = re.compile(r'\b(?:broken|incorrect|wrong|buggy)\b', re.IGNORECASE)
    ERROR_HANDLING_RE = re.compile(r'\b(?:try|catch|throw|raise|except|error|Error|exception|Exception)\b')
    TYPE_DEFINITION_RE = re.compile(r'\b(?:interface|type)\s+\w+')
    REFACTOR_RE = re.compile(r'\b(?:refactor|rename|move|extract|split)', re.IGNORECASE)
    PERFORMANCE_RE = re.compile(r'\b(?:performance|optimi[sz]e|cache|lazy|memo)', re.IGNORECASE)
    NEW_CLASS_RE = re.compile(r'^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?(?:class|interface)\s+\w+')

    IMPORT_PATTERNS: list[re.Pattern] = [
        re.compile(r'^\s*import\s+.*?\s+from\s+[\'"]([^\'"]+)[\'"]'),
        re.compile(r'^\s*import\s+[\'"]([^\'"]+)[\'"]'),
        re.compile(r'\brequire\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
        re.compile(r'^\s*from\s+([\w.]+)\s+import\s'),
        re.compile(r'^\s*import\s+([\w.]+)\s*$'),
    ]

    # Go import lines, either single or inside an import ( ... ) block
    GO_IMPORT_RE = re.compile(r'^\s*(?:import\s+)?(?:\w+\s+)?"([\w./-]+)"\s*$')

    def __init__(self, symbol_matchers=None):
        self.symbol_matchers = symbol_matchers or SYMBOL_MATCHERS
        self._test_re = [re.compile(p, re.IGNORECASE) for p in self.TEST_PATTERNS]
        self._docs_re = [re.compile(p, re.IGNORECASE) for p in self.DOCS_PATTERNS]
        self._config_re = [re.compile(p, re.IGNORECASE) for p in self.CONFIG_PATTERNS]
        self._dependency_re = [re.compile(p) for p in self.DEPENDENCY_PATTERNS]

    # ------------------------------------------------------------------
    # File classification
    # ------------------------------------------------------------------

    def is_test_file(self, path: str) -> bool:
        return any(p.search(path) for p in self._test_re)

    def is_docs_file(self, path: str) -> bool:
        return any(p.search(path) for p in self._docs_re)

    def is_dependency_file(self, path: str) -> bool:
        return any(p.search(path) for p in self._dependency_re)

    def is_config_file(self, path: str) -> bool:
        if self.is_dependency_file(path):
            return False
        return any(p.search(path) for p in self._config_re)

    def is_code_file(self, path: str) -> bool:
        return PurePosixPath(path).suffix.lower() in CODE_EXTENSIONS

    def is_source_file(self, path: str) -> bool:
        """Non-test code, the files a commit is usually about."""
        return self.is_code_file(path) and not self.is_test_file(path)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def analyze(self, diff: str, staged_files: list[str]) -> DiffAnalysis:
        """Main entry point: unified diff + staged paths -> DiffAnalysis."""
        staged_files = list(dict.fromkeys(staged_files or []))
        if not diff or not diff.strip():
            return DiffAnalysis()

        sections = split_diff_sections(diff)
        if not sections:
            log.debug("diff_without_file_headers", length=len(diff))
            return DiffAnalysis()

        symbols = self._extract_symbols(sections)
        summary = self._compute_summary(sections)
        analysis = DiffAnalysis(
            modified_symbols=tuple(symbols),
            change_patterns=tuple(self._detect_patterns(sections, staged_files, summary)),
            file_relationships=tuple(self._extract_relationships(sections)),
            file_changes=tuple(self._analyze_file_changes(sections, staged_files)),
            complexity=self._compute_complexity(summary, len(symbols)),
            summary=summary,
        )
        log.debug(
            "diff_analyzed",
            files=summary.files_changed,
            changes=summary.total_changes,
            symbols=len(symbols),
            patterns=[p.kind for p in analysis.change_patterns],
            complexity=analysis.complexity,
        )
        return analysis

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def _extract_symbols(self, sections: list[FileSection]) -> list[ModifiedSymbol]:
        seen = set()
        symbols = []
        for section in sections:
            if self.is_test_file(section.path):
                continue
            for line in section.added:
                found = match_symbol(line, self.symbol_matchers)
                if not found:
                    continue
                symbol = ModifiedSymbol(file=section.path, name=found[0], kind=found[1])
                if symbol.key not in seen:
                    seen.add(symbol.key)
                    symbols.append(symbol)
        return symbols

    # ------------------------------------------------------------------
    # Change patterns
    # ------------------------------------------------------------------

    def _detect_patterns(self, sections: list[FileSection], staged_files: list[str],
                         summary: DiffSummary) -> list[ChangePattern]:
        patterns: list[ChangePattern] = []

        test_files = [f for f in staged_files if self.is_test_file(f)]
        source_files = [f for f in staged_files if self.is_source_file(f)]
        code_files = [f for f in staged_files if self.is_code_file(f)]
        tests_dominate = len(test_files) >= len(source_files)

        source_sections = [s for s in sections if not self.is_test_file(s.path)]
        test_sections = [s for s in sections if self.is_test_file(s.path)]
        added = [line for s in source_sections for line in s.added]
        removed = [line for s in source_sections for line in s.removed]

        if test_files:
            new_tests = sum(1 for s in test_sections for line in s.added if self.TEST_CASE_RE.search(line))
            if new_tests > 0:
                patterns.append(ChangePattern(
                    kind="test_addition",
                    description=f"Added {new_tests} test case(s)",
                    count=new_tests,
                    confidence=0.9 if tests_dominate else 0.5,
                ))
            else:
                patterns.append(ChangePattern(
                    kind="test_modification",
                    description=f"Modified {len(test_files)} test file(s)",
                    count=len(test_files),
                    confidence=0.85 if tests_dominate else 0.4,
                ))

        bug_fix_count = (sum(1 for line in added if self.BUG_FIX_ADDED_RE.search(line))
                         + sum(1 for line in removed if self.BUG_FIX_REMOVED_RE.search(line)))
        if bug_fix_count > 2:
            patterns.append(ChangePattern(
                kind="bug_fix",
                description="Bug fix indicators in changed lines",
                count=bug_fix_count,
                confidence=0.7,
            ))

        error_count = sum(1 for line in added if self.ERROR_HANDLING_RE.search(line))
        if error_count > 2:
            patterns.append(ChangePattern(
                kind="error_handling",
                description="Error handling added or changed",
                count=error_count,
                confidence=0.8,
            ))

        docs_files = [f for f in staged_files if self.is_docs_file(f)]
        if docs_files:
            patterns.append(ChangePattern(
                kind="documentation",
                description=f"Updated {len(docs_files)} documentation file(s)",
                count=len(docs_files),
                confidence=0.3 if code_files else 0.95,
            ))

        config_files = [f for f in staged_files if self.is_config_file(f)]
        if config_files:
            patterns.append(ChangePattern(
                kind="configuration",
                description=f"Changed {len(config_files)} configuration file(s)",
                count=len(config_files),
                confidence=0.9,
            ))

        dependency_files = [f for f in staged_files if self.is_dependency_file(f)]
        if dependency_files:
            patterns.append(ChangePattern(
                kind="dependency_update",
                description="Dependency manifests changed",
                count=len(dependency_files),
                confidence=0.85,
            ))

        type_count = sum(1 for line in added if self.TYPE_DEFINITION_RE.search(line))
        if type_count > 1:
            patterns.append(ChangePattern(
                kind="type_definition",
                description=f"Added or changed {type_count} type definition(s)",
                count=type_count,
                confidence=0.85,
            ))

        refactor_count = sum(1 for line in added if self.REFACTOR_RE.search(line))
        moved_pairs = self._count_moved_pairs(source_sections)
        if refactor_count > 0 or moved_pairs > MOVED_PAIRS_FOR_REFACTOR:
            description = "Code restructuring detected"
            if moved_pairs > MOVED_PAIRS_FOR_REFACTOR:
                description = f"Code movement detected ({moved_pairs} moved lines)"
            patterns.append(ChangePattern(
                kind="refactoring",
                description=description,
                count=refactor_count + moved_pairs,
                confidence=0.65,
            ))

        perf_count = sum(1 for line in added if self.PERFORMANCE_RE.search(line))
        if perf_count > 0:
            patterns.append(ChangePattern(
                kind="performance",
                description="Performance related changes",
                count=perf_count,
                confidence=0.7,
            ))

        new_classes = sum(1 for line in added if self.NEW_CLASS_RE.search(line))
        new_files = sum(1 for s in source_sections if len(s.added) > 10 and len(s.removed) < 5)
        if (new_classes > 0 or new_files > 0 or len(source_files) > len(test_files)) \
                and summary.lines_added > summary.lines_removed * 1.5:
            patterns.append(ChangePattern(
                kind="feature_addition",
                description="New functionality added",
                count=summary.lines_added,
                confidence=0.8,
            ))

        patterns.sort(key=lambda p: -p.confidence)
        return patterns

    def _count_moved_pairs(self, sections: list[FileSection]) -> int:
        """Adjacent -/+ pairs whose text is nearly the same."""
        moved = 0
        for section in sections:
            lines = section.hunk_lines
            for current, following in zip(lines, lines[1:]):
                if not (current.startswith('-') and following.startswith('+')):
                    continue
                old = current[1:].strip()
                new = following[1:].strip()
                if len(old) > MOVED_LINE_MIN_LENGTH and char_overlap(old, new) > MOVED_LINE_OVERLAP:
                    moved += 1
        return moved

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _analyze_file_changes(self, sections: list[FileSection], staged_files: list[str]) -> list[FileChangeSummary]:
        by_path = {s.path: s for s in sections}
        by_path.update({s.old_path: s for s in sections if s.old_path not in by_path})

        changes = []
        for path in staged_files:
            section = by_path.get(path)
            if section is None:
                continue
            added, removed = len(section.added), len(section.removed)

            if section.has_headers and (section.new_file or section.deleted_file):
                is_new, is_deleted = section.new_file, section.deleted_file
            else:
                is_new = added > 10 and removed == 0
                is_deleted = removed > 10 and added == 0

            change_type = "created" if is_new else "deleted" if is_deleted else "modified"
            changes.append(FileChangeSummary(
                path=path,
                lines_added=added,
                lines_removed=removed,
                is_new=is_new,
                change_type=change_type,
                importance=self._file_importance(path, is_new, added + removed),
            ))

        changes.sort(key=lambda c: (IMPORTANCE_ORDER[c.importance], -c.total_changes))
        return changes

    def _file_importance(self, path: str, is_new: bool, total: int) -> str:
        is_source = self.is_source_file(path)
        if is_new and is_source:
            return "high"
        if self.CORE_PATH_PATTERN.search(path) and total > 20:
            return "high"
        if is_source and total > 50:
            return "high"
        if path.lower().endswith('.md') or self.is_test_file(path):
            return "low"
        return "medium"

    def _extract_relationships(self, sections: list[FileSection]) -> list[FileRelationship]:
        seen = set()
        relationships = []
        for section in sections:
            patterns = self.IMPORT_PATTERNS
            if section.path.endswith('.go'):
                patterns = [*patterns, self.GO_IMPORT_RE]
            for line in section.added:
                for pattern in patterns:
                    match = pattern.search(line)
                    if not match:
                        continue
                    key = (section.path, match.group(1))
                    if key not in seen:
                        seen.add(key)
                        relationships.append(FileRelationship(source=section.path, target=match.group(1)))
                    break
        return relationships

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _compute_summary(self, sections: list[FileSection]) -> DiffSummary:
        return DiffSummary(
            files_changed=len({s.path for s in sections}),
            lines_added=sum(len(s.added) for s in sections),
            lines_removed=sum(len(s.removed) for s in sections),
        )

    def _compute_complexity(self, summary: DiffSummary, symbol_count: int) -> str:
        files, total = summary.files_changed, summary.total_changes
        if files <= 2 and total < 50 and symbol_count <= 3:
            return "simple"
        if files > 5 or total > 200 or symbol_count > 10:
            return "complex"
        return "moderate"


def enrich_with_ast(analysis: DiffAnalysis, detector, versions: dict[str, tuple[str, str]]) -> DiffAnalysis:
    """Attach syntax-tree findings for every supported file in versions.

    versions maps a path to its (old content, new content).
    """
    if detector is None or not versions:
        return analysis

    findings = []
    for path, (old, new) in versions.items():
        if not detector.supports_file(path):
            continue
        result = detector.analyze_file_ast(path, old, new)
        if not result.is_empty:
            findings.append(result)

    if not findings:
        return analysis
    merged = ASTAnalysis.merge([analysis.ast_analysis, *findings])
    log.debug(
        "ast_enrichment",
        files=len(findings),
        refactorings=len(merged.refactorings),
        breaking=merged.has_breaking_change,
    )
    return replace(analysis, ast_analysis=merged)
