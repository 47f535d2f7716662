"""Webhook signature validation, work-package id extraction and message text."""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Any
from urllib.parse import quote


# ---------------------------------------------------------------------------
# Signature validation
# ---------------------------------------------------------------------------

def validate_github_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Validate GitHub webhook HMAC-SHA256 signature over the raw body.

    Returns False if no secret is configured (rejects unauthenticated requests).
    """
    if not secret:
        return False
    if not signature:
        return False
    expected = "sha256=" + hmac.new(
        secret.encode(), body, hashlib.sha256
    ).hexdigest()
    try:
        provided = signature.encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode("ascii"), provided)


# ---------------------------------------------------------------------------
# Work-package reference extraction
# ---------------------------------------------------------------------------

# Supported: op/<id>-... (branch style) and [op-<id>] (legacy title tag)
_OP_TAG_RE = re.compile(r"(?:\[op-(\d+)\]|op/(\d+))", re.IGNORECASE)


def extract_work_package_id(text: str | None) -> str | None:
    """Return the first work-package id referenced in *text*, or None."""
    if not text:
        return None
    match = _OP_TAG_RE.search(text)
    if match is None:
        return None
    return match.group(1) or match.group(2)


def first_line(text: str | None) -> str:
    return (text or "").split("\n", 1)[0]


# ---------------------------------------------------------------------------
# GitHub -> OpenProject comment text
# ---------------------------------------------------------------------------

def _repo_name(payload: dict[str, Any], default: str = "unknown repo") -> str:
    return (payload.get("repository") or {}).get("full_name") or default


def branch_created_comment(payload: dict[str, Any]) -> str:
    branch = payload.get("ref", "")
    repo = _repo_name(payload)
    url = f"https://github.com/{repo}/tree/{quote(branch, safe='')}"
    return f"🔀 Branch [`{branch}`]({url}) created in GitHub repository **{repo}**."


def commit_comment(repo: str, branch: str, commit: dict[str, Any]) -> str:
    sha = str(commit.get("id") or "")
    url = f"https://github.com/{repo}/commit/{sha}"
    return (
        f"📦 Commit [`{sha[:7]}`]({url}) pushed to branch `{branch}`: "
        f"{first_line(commit.get('message'))}"
    )


def pull_request_merged_comment(payload: dict[str, Any]) -> str:
    pr = payload.get("pull_request") or {}
    title = pr.get("title") or "Pull Request"
    repo = _repo_name(payload, "repo")
    return (
        f"✅ Pull request [#{payload.get('number')}: {title}]({pr.get('html_url')}) "
        f"merged into **{repo}**."
    )


def pull_request_opened_comment(payload: dict[str, Any]) -> str:
    pr = payload.get("pull_request") or {}
    title = pr.get("title") or "Pull Request"
    branch = (pr.get("head") or {}).get("ref", "")
    repo = _repo_name(payload)
    return (
        f"🚀 Pull request [#{payload.get('number')}: {title}]({pr.get('html_url')}) "
        f"opened targeting branch `{branch}` in **{repo}**."
    )


def pull_request_issue_comment(payload: dict[str, Any]) -> str:
    issue = payload.get("issue") or {}
    comment = payload.get("comment") or {}
    user = (comment.get("user") or {}).get("login") or "someone"
    repo = _repo_name(payload, "repo")
    return (
        f"💬 Comment by **@{user}** on PR [#{issue.get('number')}]({comment.get('html_url')}) "
        f"in **{repo}**: {first_line(comment.get('body'))}"
    )


# ---------------------------------------------------------------------------
# OpenProject -> chat notification text
# ---------------------------------------------------------------------------

def _work_package_url(base_url: str, wp_id: Any) -> str:
    return f"{base_url.rstrip('/')}/work_packages/{wp_id}"


def work_package_status_id(work_package: dict[str, Any]) -> int | None:
    """Numeric status id of a webhook work package, or None if unparseable."""
    status = work_package.get("status") or (work_package.get("_embedded") or {}).get("status") or {}
    try:
        return int(str(status.get("id")).strip())
    except (TypeError, ValueError):
        return None


def work_package_moved_message(work_package: dict[str, Any], base_url: str) -> str:
    embedded = work_package.get("_embedded") or {}
    status = work_package.get("status") or embedded.get("status") or {}
    status_name = status.get("name") or f"Status {status.get('id')}"
    wp_id = work_package.get("id")
    subject = work_package.get("subject") or "WP"
    project = (embedded.get("project") or {}).get("identifier") or "project"
    return (
        f"🛠️ Work package **#{wp_id} - {subject}** in project **{project}** "
        f"moved to **{status_name}**.\n{_work_package_url(base_url, wp_id)}"
    )


def work_package_created_message(work_package: dict[str, Any], base_url: str) -> str:
    embedded = work_package.get("_embedded") or {}
    wp_id = work_package.get("id")
    subject = work_package.get("subject") or "Work package"
    project = (embedded.get("project") or {}).get("identifier") or "project"
    author = (embedded.get("author") or {}).get("name") or "someone"
    return (
        f"🆕 Work package **#{wp_id} - {subject}** created in project **{project}** "
        f"by **{author}**.\n{_work_package_url(base_url, wp_id)}"
    )
