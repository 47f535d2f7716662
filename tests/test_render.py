"""Tests for the summary renderings and the user directory."""

from datetime import date

from oprelay.config import DirectoryEntry
from oprelay.core.directory import UserDirectory
from oprelay.core.render import (
    DUE_TODAY_INSTRUCTION,
    OVERDUE_INSTRUCTION,
    render_digest,
    render_html,
    render_reminders,
    truncate,
)
from oprelay.core.summary import TodaySummary
from oprelay.openproject.models import RoadmapSummary, UserSummary, WorkPackageSummary

DAY = date(2024, 5, 1)


def item(wp_id, subject="Subject", assignee=None, due=None, status="New"):
    return WorkPackageSummary(
        id=wp_id, subject=subject, status=status, assignee=assignee, due_date=due
    )


class TestTruncate:
    def test_short_unchanged(self):
        assert truncate("abc", 40) == "abc"

    def test_long_gets_ellipsis(self):
        out = truncate("x" * 50, 40)
        assert len(out) == 40
        assert out.endswith("...")


class TestDigest:
    def test_empty_sections(self):
        text = render_digest(TodaySummary(), DAY)
        assert text.startswith("📋 **Daily Task Summary (2024-05-01)**")
        assert "No tasks due today." in text
        assert "No overdue tasks." in text
        assert "In Progress" not in text
        assert "Roadmaps" not in text

    def test_items_and_roadmaps(self):
        summary = TodaySummary(
            today=[item(1, "Fix login", assignee="Ann")],
            overdue=[item(2, "Old bug", due="2024-04-01")],
            in_progress=[item(3, "Ongoing", status="In progress")],
            roadmaps=[RoadmapSummary(id=9, name="v1", total_work_packages=4,
                                     closed_work_packages=1, progress=25)],
        )
        text = render_digest(summary, DAY)
        assert "**#1** Fix login (New) — Ann" in text
        assert "Due 2024-04-01" in text
        assert "**In Progress:**" in text
        assert "25% (1/4 closed)" in text

    def test_sections_in_order(self):
        summary = TodaySummary(in_progress=[item(3)])
        text = render_digest(summary, DAY)
        assert text.index("Due Today") < text.index("In Progress") < text.index("Overdue")


class TestHtml:
    def test_escapes_user_text(self):
        summary = TodaySummary(today=[item(1, "<script>alert(1)</script>", assignee="A&B")])
        html = render_html(summary, DAY, "https://op.example.com")
        assert "<script>alert" not in html
        assert "&lt;script&gt;" in html
        assert "A&amp;B" in html
        assert 'href="https://op.example.com/work_packages/1"' in html

    def test_empty_sections_and_no_base_url(self):
        html = render_html(TodaySummary(), DAY)
        assert html.startswith("<!DOCTYPE html>")
        assert html.count("No tasks") == 2

    def test_progress_bar(self):
        summary = TodaySummary(roadmaps=[RoadmapSummary(id=2, name="v2", progress=67)])
        html = render_html(summary, DAY, "https://op")
        assert 'style="width:67%"' in html
        assert "https://op/versions/2" in html


class TestReminders:
    def test_one_message_per_item(self):
        directory = UserDirectory([DirectoryEntry(id=5, name="Ann Lee", username="1234")])
        summary = TodaySummary(
            today=[item(1, "Ship it", assignee="ann lee", due="2024-05-01")],
            overdue=[item(2, "Late", assignee="Bob")],
        )
        today_msg, overdue_msg = render_reminders(summary, "https://op", directory)

        assert today_msg.startswith("📌 **DUE TODAY**")
        assert "<@1234> – **#1**: *Ship it*" in today_msg
        assert "Due **2024-05-01**" in today_msg
        assert DUE_TODAY_INSTRUCTION in today_msg
        assert today_msg.endswith("https://op/work_packages/1")

        assert overdue_msg.startswith("⏰ **OVER_DUE**")
        assert "Bob – **#2**" in overdue_msg
        assert OVERDUE_INSTRUCTION in overdue_msg

    def test_link_placeholder_without_base_url(self):
        summary = TodaySummary(today=[item(1)])
        (msg,) = render_reminders(summary, "", UserDirectory())
        assert msg.endswith("#")

    def test_long_subject_truncated(self):
        summary = TodaySummary(overdue=[item(1, "y" * 120)])
        (msg,) = render_reminders(summary, "", UserDirectory())
        assert "y" * 77 + "..." in msg


class TestDirectory:
    def test_mention_unknown_is_plain_name(self):
        assert UserDirectory().mention("Someone") == "Someone"

    def test_mention_empty(self):
        assert UserDirectory().mention(None) == ""

    def test_mention_without_username(self):
        directory = UserDirectory([DirectoryEntry(id=1, name="Ann")])
        assert directory.mention("Ann") == "Ann"

    def test_merge_remote_wins(self):
        directory = UserDirectory([
            DirectoryEntry(id=1, name="Local"),
            DirectoryEntry(id=2, name="Only local"),
        ])
        merged = directory.merge([UserSummary(id=1, name="Remote")])
        assert [(u.id, u.name) for u in merged] == [(1, "Remote"), (2, "Only local")]

    def test_users_is_a_copy(self):
        directory = UserDirectory([DirectoryEntry(id=1, name="Ann")])
        directory.users.clear()
        assert len(directory.users) == 1
