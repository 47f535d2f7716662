"""Tests for webhook models, signature validation, id extraction and message text."""

import hashlib
import hmac

import pytest

from oprelay.webhooks.handlers import (
    branch_created_comment,
    commit_comment,
    extract_work_package_id,
    pull_request_issue_comment,
    pull_request_merged_comment,
    pull_request_opened_comment,
    validate_github_signature,
    work_package_created_message,
    work_package_moved_message,
    work_package_status_id,
)
from oprelay.webhooks.models import WebhookEvent


def _sign(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


# ---------------------------------------------------------------------------
# Model tests
# ---------------------------------------------------------------------------

class TestWebhookEvent:
    def test_field_values(self):
        event = WebhookEvent(
            source="github",
            event_type="push",
            action="",
            body=b"{}",
            signature="sha256=abc",
            delivery_id="d-1",
        )
        assert event.source == "github"
        assert event.event_type == "push"
        assert event.body == b"{}"
        assert event.signature == "sha256=abc"
        assert event.delivery_id == "d-1"

    def test_defaults(self):
        event = WebhookEvent(source="openproject", event_type="work_package")
        assert event.action == ""
        assert event.body == b""
        assert event.signature is None
        assert event.delivery_id is None

    def test_immutable(self):
        event = WebhookEvent(source="github", event_type="push")
        with pytest.raises(AttributeError):
            event.action = "closed"


# ---------------------------------------------------------------------------
# Validation tests
# ---------------------------------------------------------------------------

class TestGitHubSignature:
    body = b'{"ref": "refs/heads/op/7-fix"}'

    def test_valid_signature(self):
        assert validate_github_signature(self.body, _sign("my-secret", self.body), "my-secret") is True

    def test_invalid_signature(self):
        assert validate_github_signature(self.body, "sha256=bad", "my-secret") is False

    def test_missing_signature(self):
        assert validate_github_signature(self.body, "", "my-secret") is False
        assert validate_github_signature(self.body, None, "my-secret") is False

    def test_no_secret_configured_rejects(self):
        assert validate_github_signature(self.body, _sign("", self.body), "") is False

    def test_body_mutation_rejected(self):
        sig = _sign("my-secret", self.body)
        for i in range(len(self.body)):
            mutated = bytearray(self.body)
            mutated[i] ^= 0x01
            assert validate_github_signature(bytes(mutated), sig, "my-secret") is False

    def test_header_mutation_rejected(self):
        sig = _sign("my-secret", self.body)
        for i in range(len(sig)):
            replacement = "0" if sig[i] != "0" else "1"
            mutated = sig[:i] + replacement + sig[i + 1:]
            assert validate_github_signature(self.body, mutated, "my-secret") is False

    def test_non_ascii_header_rejected(self):
        assert validate_github_signature(self.body, "sha256=ü", "my-secret") is False

    def test_whitespace_sensitive(self):
        sig = _sign("my-secret", self.body)
        reformatted = b'{"ref":"refs/heads/op/7-fix"}'
        assert validate_github_signature(reformatted, sig, "my-secret") is False


# ---------------------------------------------------------------------------
# Extraction tests
# ---------------------------------------------------------------------------

class TestExtractWorkPackageId:
    @pytest.mark.parametrize(
        "text",
        ["op/42", "feature/op/42-login", "OP/42-x", "[op-42] Fix login", "[OP-42]", "Fix [Op-42] now"],
    )
    def test_matches(self, text):
        assert extract_work_package_id(text) == "42"

    @pytest.mark.parametrize(
        "text",
        ["", None, "main", "op-42", "op/", "[op-]", "opx/42", "[op 42]"],
    )
    def test_no_match(self, text):
        assert extract_work_package_id(text) is None

    def test_first_reference_wins(self):
        assert extract_work_package_id("op/3 then [op-9]") == "3"
        assert extract_work_package_id("[op-9] then op/3") == "9"


# ---------------------------------------------------------------------------
# Comment text tests
# ---------------------------------------------------------------------------

class TestGitHubComments:
    def test_branch_created(self):
        text = branch_created_comment(
            {"ref": "op/12-feature", "repository": {"full_name": "org/repo"}}
        )
        assert "`op/12-feature`" in text
        assert "https://github.com/org/repo/tree/op%2F12-feature" in text
        assert "**org/repo**" in text

    def test_commit_uses_short_sha_and_first_line(self):
        text = commit_comment(
            "org/repo",
            "op/7-fix",
            {"id": "abcdef0123456789", "message": "Fix bug\n\nLong description"},
        )
        assert "[`abcdef0`](https://github.com/org/repo/commit/abcdef0123456789)" in text
        assert text.endswith(": Fix bug")
        assert "Long description" not in text

    def test_commit_without_id(self):
        text = commit_comment("org/repo", "op/7-fix", {"id": None, "message": "Orphan"})
        assert "[``](https://github.com/org/repo/commit/)" in text
        assert text.endswith(": Orphan")

    def test_pull_request_merged(self):
        text = pull_request_merged_comment({
            "number": 5,
            "pull_request": {"title": "Add login", "html_url": "https://gh/pr/5"},
            "repository": {"full_name": "org/repo"},
        })
        assert text == "✅ Pull request [#5: Add login](https://gh/pr/5) merged into **org/repo**."

    def test_pull_request_opened(self):
        text = pull_request_opened_comment({
            "number": 6,
            "pull_request": {"title": "WIP", "html_url": "u", "head": {"ref": "op/3-x"}},
            "repository": {"full_name": "org/repo"},
        })
        assert "#6: WIP" in text
        assert "`op/3-x`" in text

    def test_pr_issue_comment_first_line(self):
        text = pull_request_issue_comment({
            "issue": {"number": 8, "title": "[op-3] thing"},
            "comment": {"user": {"login": "bob"}, "body": "LGTM\nnit: spacing", "html_url": "c"},
            "repository": {"full_name": "org/repo"},
        })
        assert "**@bob**" in text
        assert text.endswith(": LGTM")


class TestOpenProjectMessages:
    def test_status_id_from_status(self):
        assert work_package_status_id({"status": {"id": 9}}) == 9
        assert work_package_status_id({"status": {"id": "12"}}) == 12

    def test_status_id_from_embedded(self):
        assert work_package_status_id({"_embedded": {"status": {"id": 3}}}) == 3

    def test_status_id_missing(self):
        assert work_package_status_id({}) is None
        assert work_package_status_id({"status": {"id": "done"}}) is None

    def test_moved_message(self):
        text = work_package_moved_message(
            {
                "id": 11,
                "subject": "Login",
                "status": {"id": 9, "name": "Closed"},
                "_embedded": {"project": {"identifier": "web"}},
            },
            "https://op.example.com/",
        )
        assert "**#11 - Login**" in text
        assert "moved to **Closed**" in text
        assert text.endswith("\nhttps://op.example.com/work_packages/11")

    def test_created_message_defaults(self):
        text = work_package_created_message({"id": 2}, "https://op")
        assert "**#2 - Work package**" in text
        assert "project **project**" in text
        assert "by **someone**" in text
