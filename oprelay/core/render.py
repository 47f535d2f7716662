"""Plain-text, HTML and reminder renderings of the daily summary."""

from __future__ import annotations

from datetime import date
from html import escape
from typing import TYPE_CHECKING

from oprelay.openproject.models import WorkPackageSummary

if TYPE_CHECKING:
    from oprelay.core.directory import UserDirectory
    from oprelay.core.summary import TodaySummary

DUE_TODAY_INSTRUCTION = "Please update the status of the task is in expected timeline."
OVERDUE_INSTRUCTION = "Please close the task asap or talk to the team to update it."


def truncate(text: str, limit: int) -> str:
    return text[: limit - 3] + "..." if len(text) > limit else text


def _work_package_url(base_url: str, wp_id: int) -> str:
    return f"{base_url}/work_packages/{wp_id}" if base_url else "#"


# ---------------------------------------------------------------------------
# Chat digest
# ---------------------------------------------------------------------------

def _digest_item(wp: WorkPackageSummary, include_due: bool = False) -> str:
    parts = [
        f"**#{wp.id}**",
        truncate(wp.subject, 40),
        f"({wp.status})",
        f"— {wp.assignee}" if wp.assignee else "",
        f"— Due {wp.due_date}" if include_due and wp.due_date else "",
    ]
    return "• " + " ".join(p for p in parts if p)


def render_digest(summary: TodaySummary, today: date) -> str:
    lines = [
        f"📋 **Daily Task Summary ({today.isoformat()})**",
        "",
        "**Due Today:**",
        "\n".join(_digest_item(wp) for wp in summary.today) or "No tasks due today.",
    ]

    if summary.in_progress:
        lines += ["", "**In Progress:**",
                  "\n".join(_digest_item(wp, True) for wp in summary.in_progress)]

    lines += ["", "**Overdue Tasks:**",
              "\n".join(_digest_item(wp, True) for wp in summary.overdue) or "No overdue tasks."]

    if summary.roadmaps:
        lines += ["", "**Roadmaps:**"]
        for r in summary.roadmaps:
            name = truncate(r.name or f"Version {r.id}", 40)
            lines.append(
                f"• **{name}** (#{r.id}) — {r.progress}% "
                f"({r.closed_work_packages}/{r.total_work_packages} closed)"
            )

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# HTML view
# ---------------------------------------------------------------------------

_STYLE = """
    body { font-family: Arial, sans-serif; margin: 2rem; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 2rem; }
    th, td { border: 1px solid #ccc; padding: 6px 10px; text-align: left; }
    th { background: #f0f0f0; }
    a { color: #0366d6; text-decoration: none; }
    .progress-bar { width: 100px; background: #eee; border: 1px solid #ccc; height: 10px; position: relative; }
    .progress-bar span { display: block; height: 100%; background: #4caf50; }
"""


def _html_section(title: str, items: list[WorkPackageSummary], base_url: str) -> str:
    if not items:
        return f"<h2>{title}</h2><p><em>No tasks</em></p>"
    rows = "\n".join(
        "<tr>"
        f'<td><a href="{escape(_work_package_url(base_url, wp.id))}" target="_blank">#{wp.id}</a></td>'
        f"<td>{escape(wp.subject)}</td>"
        f"<td>{escape(wp.status)}</td>"
        f"<td>{escape(wp.assignee or '—')}</td>"
        f"<td>{escape(wp.project or '—')}</td>"
        f"<td>{escape(wp.due_date or '—')}</td>"
        "</tr>"
        for wp in items
    )
    return (
        f"<h2>{title}</h2>\n<table>\n<thead>\n"
        "<tr><th>ID</th><th>Subject</th><th>Status</th><th>Assignee</th>"
        "<th>Project</th><th>Due</th></tr>\n"
        f"</thead>\n<tbody>\n{rows}\n</tbody>\n</table>"
    )


def _html_roadmaps(summary: TodaySummary, base_url: str) -> str:
    rows = []
    for r in summary.roadmaps:
        url = f"{base_url}/versions/{r.id}" if base_url else "#"
        rows.append(
            "<tr>"
            f"<td>#{r.id}</td>"
            f'<td><a href="{escape(url)}" target="_blank">{escape(r.name or "Version")}</a></td>'
            f"<td>{escape(r.status or '–')}</td>"
            f"<td>{r.closed_work_packages}/{r.total_work_packages}</td>"
            f'<td><div class="progress-bar"><span style="width:{r.progress}%"></span></div> {r.progress}%</td>'
            "</tr>"
        )
    return (
        "<h2>Roadmaps</h2>\n<table>\n<thead>\n"
        "<tr><th>ID</th><th>Name</th><th>Status</th><th>Closed/Total</th><th>Progress</th></tr>\n"
        "</thead>\n<tbody>\n" + "\n".join(rows) + "\n</tbody>\n</table>"
    )


def render_html(summary: TodaySummary, today: date, base_url: str = "") -> str:
    day = today.isoformat()
    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="utf-8" />',
        f"  <title>Daily Task Summary {day}</title>",
        f"  <style>{_STYLE}  </style>",
        "</head>",
        "<body>",
        f"  <h1>📋 Daily Task Summary ({day})</h1>",
        _html_section("Due Today", summary.today, base_url),
    ]
    if summary.in_progress:
        parts.append(_html_section("In Progress", summary.in_progress, base_url))
    parts.append(_html_section("Overdue Tasks", summary.overdue, base_url))
    if summary.roadmaps:
        parts.append(_html_roadmaps(summary, base_url))
    parts += ["</body>", "</html>"]
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Per-assignee reminders
# ---------------------------------------------------------------------------

def _reminder(
    wp: WorkPackageSummary,
    heading: str,
    instruction: str,
    base_url: str,
    directory: UserDirectory,
) -> str:
    parts = [
        heading,
        f"{directory.mention(wp.assignee)} – **#{wp.id}**: *{truncate(wp.subject, 80)}*",
        f"Due **{wp.due_date}**" if wp.due_date else "",
        instruction,
        _work_package_url(base_url, wp.id),
    ]
    return "\n".join(p for p in parts if p)


def render_reminders(
    summary: TodaySummary, base_url: str, directory: UserDirectory
) -> list[str]:
    """One message per due-today item, then one per overdue item."""
    messages = [
        _reminder(wp, "📌 **DUE TODAY**", DUE_TODAY_INSTRUCTION, base_url, directory)
        for wp in summary.today
    ]
    messages += [
        _reminder(wp, "⏰ **OVER_DUE**", OVERDUE_INSTRUCTION, base_url, directory)
        for wp in summary.overdue
    ]
    return messages
