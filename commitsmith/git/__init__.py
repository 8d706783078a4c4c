"""Git Operations Package"""

from commitsmith.git.analyzer import GitAnalyzer, GitError, FileChange, StagedChanges
from commitsmith.git.diff_processor import DiffProcessor, ProcessedDiff, ProcessorConfig, Priority

__all__ = [
    "GitAnalyzer",
    "GitError",
    "FileChange",
    "StagedChanges",
    "DiffProcessor",
    "ProcessedDiff",
    "ProcessorConfig",
    "Priority",
]
