"""
commitsmith

Commit message generation from staged git changes, with structural diff
analysis and a self-critique loop that verifies each message against the diff.
"""

__version__ = "2.0.0"

# Centralized commit types - single source of truth
# Used by: message.py (mapping), prompts (type list), cli/args.py (argparse)
COMMIT_TYPES = {
    'feat': 'A new feature or capability',
    'fix': 'A bug fix',
    'refactor': 'Code restructuring without behavior change',
    'chore': 'Maintenance tasks, dependencies, tooling',
    'docs': 'Documentation only changes',
    'test': 'Adding or updating tests',
    'style': 'Formatting, whitespace, no code change',
    'perf': 'Performance improvement',
    'ci': 'CI/CD configuration changes',
    'build': 'Build system or external dependency changes',
    'revert': 'Reverts a previous commit',
}

# List of type names for validation and argparse
COMMIT_TYPE_NAMES = list(COMMIT_TYPES.keys())

# Note on breaking changes: "feat(api)!:" marks the header, and a
# "BREAKING CHANGE:" footer carries the description.
