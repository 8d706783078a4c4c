"""Commit Message - structural mapping between commit text and fields."""

import re
from dataclasses import dataclass

from commitsmith import COMMIT_TYPE_NAMES

TYPES_PATTERN = '|'.join(COMMIT_TYPE_NAMES)

HEADER_RE = re.compile(r'^(\w+)(?:\(([^)]+)\))?(!)?: (.+)$')
BREAKING_FOOTER_RE = re.compile(r'^BREAKING[ -]CHANGE:\s*(.+)$', re.MULTILINE)

# Loose type names models tend to produce
TYPE_ALIASES = {
    'feature': 'feat',
    'features': 'feat',
    'bugfix': 'fix',
    'bug': 'fix',
    'hotfix': 'fix',
    'refactoring': 'refactor',
    'documentation': 'docs',
    'doc': 'docs',
    'performance': 'perf',
    'tests': 'test',
    'testing': 'test',
    'chores': 'chore',
}


def normalize_type(value: str) -> str | None:
    """Map a raw type string to a canonical conventional type, or None."""
    raw = (value or '').strip().lower()
    raw = TYPE_ALIASES.get(raw, raw)
    return raw if raw in COMMIT_TYPE_NAMES else None


def _clean_subject(subject: str) -> str:
    subject = subject.strip().strip('`').strip()
    return subject.rstrip('.').rstrip()


@dataclass(frozen=True)
class CommitMessage:
    """A conventional commit split into its parts."""
    type: str
    subject: str
    scope: str | None = None
    body: str | None = None
    breaking: bool = False
    breaking_description: str | None = None

    @property
    def header(self) -> str:
        scope = f"({self.scope})" if self.scope else ""
        bang = "!" if self.breaking else ""
        return f"{self.type}{scope}{bang}: {self.subject}"

    def format(self) -> str:
        """Render the full commit text: header, body, breaking footer."""
        parts = [self.header]
        if self.body and self.body.strip():
            parts.append(self.body.strip())
        if self.breaking and self.breaking_description:
            parts.append(f"BREAKING CHANGE: {self.breaking_description.strip()}")
        return "\n\n".join(parts)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "scope": self.scope,
            "subject": self.subject,
            "body": self.body,
            "breaking": self.breaking,
            "breakingDescription": self.breaking_description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CommitMessage':
        """Build from the JSON fields a model returns.

        Raises:
            ValueError: when the type is unknown or the subject is missing
        """
        commit_type = normalize_type(str(data.get('type', '')))
        if commit_type is None:
            raise ValueError(f"Unknown commit type: {data.get('type')!r}")

        subject = _clean_subject(str(data.get('subject') or ''))
        if not subject:
            raise ValueError("Commit subject is empty")

        scope = data.get('scope')
        scope = str(scope).strip() if scope else None

        body = data.get('body')
        if isinstance(body, list):
            body = "\n".join(f"- {str(line).lstrip('- ').strip()}" for line in body if str(line).strip())
        body = str(body).strip() if body else None

        breaking_description = data.get('breakingDescription') or data.get('breaking_description')
        return cls(
            type=commit_type,
            subject=subject,
            scope=scope or None,
            body=body or None,
            breaking=bool(data.get('breaking')),
            breaking_description=str(breaking_description).strip() if breaking_description else None,
        )

    @classmethod
    def from_formatted_string(cls, text: str) -> 'CommitMessage':
        """Parse a rendered commit message back into fields.

        A header that is not conventional becomes a chore whose subject is
        the first line.
        """
        text = text.strip()
        lines = text.split('\n')
        first_line = lines[0].strip() if lines else ''
        rest = '\n'.join(lines[1:]).strip()

        breaking_description = None
        footer = BREAKING_FOOTER_RE.search(rest)
        if footer:
            breaking_description = footer.group(1).strip()
            rest = (rest[:footer.start()] + rest[footer.end():]).strip()

        match = HEADER_RE.match(first_line)
        commit_type = normalize_type(match.group(1)) if match else None
        if not match or commit_type is None:
            return cls(type='chore', subject=_clean_subject(first_line), body=rest or None)

        return cls(
            type=commit_type,
            scope=match.group(2),
            subject=_clean_subject(match.group(4)),
            body=rest or None,
            breaking=bool(match.group(3)) or breaking_description is not None,
            breaking_description=breaking_description,
        )


JUNK_LINE_RE = re.compile(r'^(diff --git |@@\s|[+-]{3}\s[ab]/|index [0-9a-f]|```)')


def clean_commit_message(text: str) -> str:
    """Cut a model's free-text reply down to the commit message itself."""
    lines = text.strip().split('\n')
    start_idx = 0
    for i, line in enumerate(lines):
        if re.match(rf'^[`\s]*({TYPES_PATTERN})[\(!:]', line):
            start_idx = i
            break

    # Stop at echoed diff output or a code block
    end_idx = len(lines)
    for i in range(start_idx + 1, len(lines)):
        if JUNK_LINE_RE.match(lines[i]):
            end_idx = i
            break

    cleaned = '\n'.join(lines[start_idx:end_idx]).rstrip()
    lines = cleaned.split('\n')
    if lines:
        lines[0] = lines[0].strip('`').strip()

    return '\n'.join(lines)


def validate_message(message: CommitMessage, max_subject_length: int = 72) -> list[str]:
    """Return human-readable problems with a message, empty when it is fine."""
    problems = []
    if message.type not in COMMIT_TYPE_NAMES:
        problems.append(f"Unknown commit type '{message.type}'")
    if not message.subject:
        problems.append("Subject is empty")
    if len(message.header) > max_subject_length:
        problems.append(f"Header is {len(message.header)} chars (max {max_subject_length})")
    if message.subject.endswith('.'):
        problems.append("Subject ends with a period")
    if message.breaking and not message.breaking_description:
        problems.append("Breaking change without a description")
    return problems
