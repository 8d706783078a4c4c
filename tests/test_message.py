"""
Tests for commit message parsing, rendering and cleanup.

Run with:
    pytest tests/test_message.py -v
"""

import pytest

from commitsmith.message import (
    CommitMessage, clean_commit_message, normalize_type, validate_message,
)


# ---------------------------------------------------------------------------
# normalize_type
# ---------------------------------------------------------------------------

class TestNormalizeType:

    @pytest.mark.parametrize("raw, expected", [
        ("feat", "feat"),
        ("FIX", "fix"),
        (" refactor ", "refactor"),
        ("feature", "feat"),
        ("bugfix", "fix"),
        ("documentation", "docs"),
        ("tests", "test"),
        ("revert", "revert"),
        ("improvement", None),
        ("", None),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_type(raw) == expected


# ---------------------------------------------------------------------------
# CommitMessage.from_dict / format
# ---------------------------------------------------------------------------

class TestFromDict:

    def test_full_fields(self):
        msg = CommitMessage.from_dict({
            "type": "feat",
            "scope": "auth",
            "subject": "add JWT token refresh",
            "body": "- refresh before expiry",
        })
        assert msg == CommitMessage(type="feat", scope="auth", subject="add JWT token refresh",
                                    body="- refresh before expiry")

    def test_loose_type_and_trailing_period(self):
        msg = CommitMessage.from_dict({"type": "Feature", "subject": "`add login.`"})
        assert msg.type == "feat"
        assert msg.subject == "add login"

    def test_body_list_becomes_bullets(self):
        msg = CommitMessage.from_dict({
            "type": "fix",
            "subject": "handle timeout",
            "body": ["retry once", "- log the failure", "  "],
        })
        assert msg.body == "- retry once\n- log the failure"

    def test_empty_scope_and_body_are_none(self):
        msg = CommitMessage.from_dict({"type": "chore", "scope": "", "subject": "bump", "body": ""})
        assert msg.scope is None
        assert msg.body is None

    def test_breaking_description_keys(self):
        camel = CommitMessage.from_dict({"type": "feat", "subject": "drop v1", "breaking": True,
                                         "breakingDescription": "v1 removed"})
        snake = CommitMessage.from_dict({"type": "feat", "subject": "drop v1", "breaking": True,
                                         "breaking_description": "v1 removed"})
        assert camel == snake
        assert camel.breaking_description == "v1 removed"

    @pytest.mark.parametrize("data", [
        {"type": "improvement", "subject": "x"},
        {"subject": "x"},
        {"type": "feat", "subject": "   "},
        {"type": "feat"},
    ])
    def test_invalid_raises(self, data):
        with pytest.raises(ValueError):
            CommitMessage.from_dict(data)

    def test_to_dict_uses_wire_names(self):
        data = CommitMessage(type="fix", subject="x", breaking=True, breaking_description="y").to_dict()
        assert data["breakingDescription"] == "y"
        assert CommitMessage.from_dict(data).breaking_description == "y"


class TestFormat:

    @pytest.mark.parametrize("msg, expected", [
        (CommitMessage(type="chore", subject="bump version"), "chore: bump version"),
        (CommitMessage(type="fix", scope="api", subject="handle timeout"), "fix(api): handle timeout"),
        (CommitMessage(type="feat", scope="auth", subject="add login", body="- add endpoint"),
         "feat(auth): add login\n\n- add endpoint"),
        (CommitMessage(type="feat", scope="api", subject="drop v1", breaking=True,
                       breaking_description="v1 clients must upgrade"),
         "feat(api)!: drop v1\n\nBREAKING CHANGE: v1 clients must upgrade"),
        (CommitMessage(type="feat", subject="drop v1", breaking=True),
         "feat!: drop v1"),
    ])
    def test_format(self, msg, expected):
        assert msg.format() == expected

    def test_whitespace_body_omitted(self):
        assert CommitMessage(type="docs", subject="fix typo", body="  \n ").format() == "docs: fix typo"


# ---------------------------------------------------------------------------
# CommitMessage.from_formatted_string
# ---------------------------------------------------------------------------

class TestFromFormattedString:

    def test_header_only(self):
        msg = CommitMessage.from_formatted_string("fix(api): handle timeout")
        assert (msg.type, msg.scope, msg.subject, msg.body) == ("fix", "api", "handle timeout", None)

    def test_body_and_breaking_footer(self):
        msg = CommitMessage.from_formatted_string(
            "feat(api)!: drop v1 endpoints\n\n- remove /v1 routes\n\nBREAKING CHANGE: v1 clients must upgrade"
        )
        assert msg.breaking
        assert msg.body == "- remove /v1 routes"
        assert msg.breaking_description == "v1 clients must upgrade"

    def test_footer_alone_marks_breaking(self):
        msg = CommitMessage.from_formatted_string("refactor: rename config keys\n\nBREAKING-CHANGE: keys renamed")
        assert msg.breaking
        assert msg.breaking_description == "keys renamed"

    def test_non_conventional_header_becomes_chore(self):
        msg = CommitMessage.from_formatted_string("Update the readme.\n\nMore words")
        assert msg.type == "chore"
        assert msg.subject == "Update the readme"
        assert msg.body == "More words"

    def test_unknown_type_becomes_chore(self):
        msg = CommitMessage.from_formatted_string("wip: half done")
        assert msg.type == "chore"
        assert msg.subject == "wip: half done"

    def test_format_then_parse_keeps_fields(self):
        original = CommitMessage(type="perf", scope="db", subject="batch inserts", body="- use executemany",
                                 breaking=True, breaking_description="insert() now takes a list")
        assert CommitMessage.from_formatted_string(original.format()) == original


# ---------------------------------------------------------------------------
# clean_commit_message
# ---------------------------------------------------------------------------

class TestCleanCommitMessage:

    def test_strips_llm_preamble(self):
        raw = "Sure! Here's a commit message:\n\nfeat(cli): add verbose flag"
        assert clean_commit_message(raw) == "feat(cli): add verbose flag"

    def test_strips_triple_backticks(self):
        raw = "```\nfix(api): handle timeout\n```"
        assert clean_commit_message(raw) == "fix(api): handle timeout"

    def test_preserves_body_bullets(self):
        raw = "feat(auth): add login\n\n- add endpoint\n- validate creds"
        assert clean_commit_message(raw) == raw

    def test_strips_trailing_diff_block(self):
        raw = (
            "refactor(db): extract builder\n\n"
            "- new class\n\n"
            "diff --git a/foo.py b/foo.py\n"
            "+some code"
        )
        result = clean_commit_message(raw)
        assert "diff --git" not in result
        assert result == "refactor(db): extract builder\n\n- new class"

    def test_strips_trailing_code_block(self):
        raw = "fix(cli): escape args\n\n- fix quoting\n\n```python\ncode here\n```"
        assert "```" not in clean_commit_message(raw)

    def test_handles_type_with_bang(self):
        assert clean_commit_message("feat!: remove deprecated endpoints") == "feat!: remove deprecated endpoints"

    def test_whitespace_only_preamble(self):
        raw = "   \n\nfeat(cli): add flag"
        assert clean_commit_message(raw) == "feat(cli): add flag"

    def test_no_conventional_line_keeps_text(self):
        assert clean_commit_message("Update readme") == "Update readme"


# ---------------------------------------------------------------------------
# validate_message
# ---------------------------------------------------------------------------

class TestValidateMessage:

    def test_clean_message_has_no_problems(self):
        assert validate_message(CommitMessage(type="fix", scope="api", subject="handle timeout")) == []

    def test_long_header(self):
        msg = CommitMessage(type="feat", subject="x" * 80)
        problems = validate_message(msg)
        assert problems == [f"Header is {len(msg.header)} chars (max 72)"]

    def test_custom_length_limit(self):
        msg = CommitMessage(type="feat", subject="add login")
        assert validate_message(msg, max_subject_length=10)
        assert not validate_message(msg, max_subject_length=50)

    @pytest.mark.parametrize("msg, fragment", [
        (CommitMessage(type="fix", subject="handle timeout."), "period"),
        (CommitMessage(type="feat", subject="drop v1", breaking=True), "Breaking change"),
        (CommitMessage(type="wip", subject="half done"), "Unknown commit type"),
        (CommitMessage(type="fix", subject=""), "Subject is empty"),
    ])
    def test_problems(self, msg, fragment):
        assert any(fragment in p for p in validate_message(msg))
