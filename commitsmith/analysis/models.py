"""Analysis records produced by the diff analyzer and the refactor detector."""

from dataclasses import dataclass, field

SYMBOL_KINDS = ("function", "class", "interface", "type", "const", "method")

PATTERN_KINDS = (
    "test_addition", "test_modification", "bug_fix", "refactoring",
    "feature_addition", "documentation", "configuration", "dependency_update",
    "error_handling", "type_definition", "performance",
)

COMPLEXITY_LEVELS = ("simple", "moderate", "complex")

IMPORTANCE_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class ModifiedSymbol:
    file: str
    name: str
    kind: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.file, self.name, self.kind)


@dataclass(frozen=True)
class ChangePattern:
    kind: str
    description: str
    count: int
    confidence: float


@dataclass(frozen=True)
class FileRelationship:
    source: str
    target: str
    kind: str = "import"


@dataclass(frozen=True)
class FileChangeSummary:
    """Per-file line counts and how much the file matters for the message."""
    path: str
    lines_added: int
    lines_removed: int
    is_new: bool = False
    change_type: str = "modified"
    importance: str = "medium"

    @property
    def total_changes(self) -> int:
        return self.lines_added + self.lines_removed


@dataclass(frozen=True)
class DiffSummary:
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0

    @property
    def total_changes(self) -> int:
        return self.lines_added + self.lines_removed


@dataclass(frozen=True)
class Refactoring:
    kind: str
    source: str
    target: str
    confidence: float
    file: str
    description: str | None = None


@dataclass(frozen=True)
class StructuralChange:
    kind: str
    node_kind: str
    name: str
    file: str
    line_range: tuple[int, int] | None = None
    is_public_api: bool | None = None


@dataclass(frozen=True)
class SemanticImpact:
    kind: str
    file: str
    severity: str
    description: str | None = None


@dataclass(frozen=True)
class ASTAnalysis:
    """Syntax-tree findings for one file, or several merged together."""
    refactorings: tuple[Refactoring, ...] = ()
    structural_changes: tuple[StructuralChange, ...] = ()
    semantic_impact: tuple[SemanticImpact, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.refactorings or self.structural_changes or self.semantic_impact)

    @property
    def has_breaking_change(self) -> bool:
        return any(i.kind == "breaking_change" for i in self.semantic_impact)

    @classmethod
    def merge(cls, analyses) -> 'ASTAnalysis':
        refactorings, structural, impact = [], [], []
        for analysis in analyses:
            refactorings.extend(analysis.refactorings)
            structural.extend(analysis.structural_changes)
            impact.extend(analysis.semantic_impact)
        return cls(tuple(refactorings), tuple(structural), tuple(impact))


@dataclass(frozen=True)
class DiffAnalysis:
    """Everything the analyzer learned about one diff."""
    modified_symbols: tuple[ModifiedSymbol, ...] = ()
    change_patterns: tuple[ChangePattern, ...] = ()
    file_relationships: tuple[FileRelationship, ...] = ()
    file_changes: tuple[FileChangeSummary, ...] = ()
    complexity: str = "simple"
    summary: DiffSummary = field(default_factory=DiffSummary)
    ast_analysis: ASTAnalysis = field(default_factory=ASTAnalysis)

    @property
    def primary_pattern(self) -> ChangePattern | None:
        return self.change_patterns[0] if self.change_patterns else None

    def symbols_of_kind(self, kind: str) -> list[ModifiedSymbol]:
        return [s for s in self.modified_symbols if s.kind == kind]
