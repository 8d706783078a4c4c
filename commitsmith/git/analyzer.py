"""Git Analyzer - Read staged changes and repository context from git."""

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import structlog

log = structlog.get_logger(__name__)


@dataclass
class FileChange:
    """Represents a single file's changes."""
    path: str
    additions: int
    deletions: int

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    @property
    def directory(self) -> str:
        """Extract the top-level directory for scope detection."""
        parts = Path(self.path).parts
        if len(parts) > 1 and parts[0] in ('src', 'lib', 'app'):
            return parts[1] if len(parts) > 1 else parts[0]
        return parts[0] if parts else ''


@dataclass
class StagedChanges:
    """Complete picture of what's staged for commit."""
    files: list[FileChange] = field(default_factory=list)
    diff: str = ""
    branch: str = ""
    recent_commits: list[str] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    @property
    def is_empty(self) -> bool:
        return len(self.files) == 0


class GitError(Exception):
    """Raised when git operations fail."""
    pass


class GitAnalyzer:
    """Extracts staged changes and surrounding context from git."""

    RECENT_COMMITS = 5

    def __init__(self):
        self._verify_git_available()
        self._verify_in_repo()

    def _run_git(self, *args: str) -> str:
        """Run a git command and return stdout."""
        try:
            result = subprocess.run(
                ['git', *args],
                capture_output=True,
                text=True,
                check=True,
                encoding='utf-8',
                errors='replace'
            )
            return result.stdout
        except subprocess.CalledProcessError as e:
            raise GitError(f"Git command failed: git {' '.join(args)}\n{e.stderr}")
        except FileNotFoundError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_git_available(self) -> None:
        """Fail fast if git isn't available."""
        try:
            self._run_git('--version')
        except GitError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_in_repo(self) -> None:
        """Fail fast if we're not in a git repository."""
        try:
            self._run_git('rev-parse', '--git-dir')
        except GitError:
            raise GitError("Not inside a git repository")

    def get_staged_changes(self) -> StagedChanges:
        """Get staged changes plus branch and recent history."""
        files = self._get_staged_files()
        diff = self._get_staged_diff()
        return StagedChanges(
            files=files,
            diff=diff,
            branch=self.get_current_branch(),
            recent_commits=self.get_recent_commits(),
        )

    def _get_staged_files(self) -> list[FileChange]:
        """Parse 'git diff --staged --numstat' output."""
        output = self._run_git('diff', '--staged', '--numstat')

        if not output.strip():
            return []

        files = []
        for line in output.strip().split('\n'):
            parts = line.split('\t')
            if len(parts) >= 3:
                additions = int(parts[0]) if parts[0] != '-' else 0
                deletions = int(parts[1]) if parts[1] != '-' else 0
                path = parts[2]
                files.append(FileChange(path=path, additions=additions, deletions=deletions))

        return files

    def _get_staged_diff(self) -> str:
        """Get the actual diff content for staged changes."""
        return self._run_git('diff', '--staged')

    def get_current_branch(self) -> str:
        """Current branch name, empty on a detached HEAD or unborn repo."""
        try:
            return self._run_git('rev-parse', '--abbrev-ref', 'HEAD').strip()
        except GitError:
            return ""

    def get_recent_commits(self, count: int | None = None) -> list[str]:
        """Subjects of the last few commits, newest first."""
        count = count or self.RECENT_COMMITS
        try:
            output = self._run_git('log', f'-{count}', '--pretty=format:%s')
        except GitError:
            # No commits yet
            return []
        return [line for line in output.split('\n') if line.strip()]

    def get_file_versions(self, path: str) -> tuple[str, str]:
        """(HEAD content, staged content) of a file; missing sides are empty."""
        return self._show(f'HEAD:{path}'), self._show(f':{path}')

    def _show(self, spec: str) -> str:
        try:
            return self._run_git('show', spec)
        except GitError as e:
            log.debug("git_show_missing", spec=spec, error=(str(e).splitlines() or [''])[0])
            return ""
