"""Diff and syntax-tree analysis Package"""

from commitsmith.analysis.models import (
    ASTAnalysis,
    ChangePattern,
    DiffAnalysis,
    DiffSummary,
    FileChangeSummary,
    FileRelationship,
    ModifiedSymbol,
    Refactoring,
    SemanticImpact,
    StructuralChange,
)
from commitsmith.analysis.diff_analyzer import DiffAnalyzer, enrich_with_ast, split_diff_sections
from commitsmith.analysis.ast_detector import RefactorDetector

__all__ = [
    "ASTAnalysis",
    "ChangePattern",
    "DiffAnalysis",
    "DiffAnalyzer",
    "DiffSummary",
    "FileChangeSummary",
    "FileRelationship",
    "ModifiedSymbol",
    "RefactorDetector",
    "Refactoring",
    "SemanticImpact",
    "StructuralChange",
    "enrich_with_ast",
    "split_diff_sections",
]
