"""Typed summaries projected from OpenProject API records.

OpenProject returns the same logical field from different places depending on
whether the related resource was embedded (``include=``) or only linked, so
every projection below walks a fixed precedence list of paths and keeps the
first value that is present.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Sequence

_MISSING = object()

Path = Sequence[str]


def _dig(record: dict[str, Any], path: Path) -> Any:
    node: Any = record
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def first_present(record: dict[str, Any], paths: Iterable[Path], default: Any = None) -> Any:
    """Return the value at the first path that resolves to a non-None value."""
    for path in paths:
        value = _dig(record, path)
        if value is not _MISSING and value is not None:
            return value
    return default


STATUS_NAME_PATHS: tuple[Path, ...] = (
    ("_embedded", "status", "name"),
    ("status", "name"),
    ("_links", "status", "title"),
)
ASSIGNEE_PATHS: tuple[Path, ...] = (
    ("_embedded", "assignee", "name"),
    ("assignee", "name"),
    ("_links", "assignee", "title"),
)
PROJECT_PATHS: tuple[Path, ...] = (
    ("_embedded", "project", "name"),
    ("_embedded", "project", "title"),
    ("project", "name"),
    ("_links", "project", "title"),
)


@dataclass(frozen=True)
class WorkPackageSummary:
    id: int
    subject: str
    status: str
    assignee: str | None = None
    project: str | None = None
    start_date: str | None = None
    due_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "status": self.status,
            "assignee": self.assignee,
            "project": self.project,
            "startDate": self.start_date,
            "dueDate": self.due_date,
        }


@dataclass(frozen=True)
class RoadmapSummary:
    id: int
    name: str | None
    description: str | None = None
    status: str | None = None
    sharing: str | None = None
    start_date: str | None = None
    due_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    project: str | None = None
    project_id: int | None = None
    total_work_packages: int = 0
    closed_work_packages: int = 0
    progress: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "sharing": self.sharing,
            "startDate": self.start_date,
            "dueDate": self.due_date,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "project": self.project,
            "projectId": self.project_id,
            "totalWorkPackages": self.total_work_packages,
            "closedWorkPackages": self.closed_work_packages,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class UserSummary:
    id: int
    name: str | None
    username: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def normalize_work_package(record: dict[str, Any]) -> WorkPackageSummary:
    return WorkPackageSummary(
        id=record.get("id"),
        subject=record.get("subject") or "",
        status=str(first_present(record, STATUS_NAME_PATHS, "unknown")),
        assignee=first_present(record, ASSIGNEE_PATHS),
        project=first_present(record, PROJECT_PATHS),
        start_date=first_present(record, (("startDate",), ("start_date",))),
        due_date=record.get("dueDate"),
    )


def completion_percent(closed: int, total: int) -> int:
    """Closed share of *total* as a whole percent, halves rounded up."""
    if total <= 0:
        return 0
    return int(closed * 100 / total + 0.5)


def normalize_roadmap(
    record: dict[str, Any], total: int = 0, closed: int = 0
) -> RoadmapSummary:
    return RoadmapSummary(
        id=record.get("id"),
        name=record.get("name"),
        description=first_present(record, (("description", "raw"), ("description", "html"))),
        status=first_present(record, (("status",), ("_links", "status", "title"))),
        sharing=record.get("sharing"),
        start_date=first_present(record, (("startDate",), ("start_date",))),
        due_date=first_present(record, (("dueDate",), ("due_date",))),
        created_at=first_present(record, (("createdAt",), ("created_at",))),
        updated_at=first_present(record, (("updatedAt",), ("updated_at",))),
        project=first_present(record, (("_embedded", "project", "name"), ("_links", "project", "title"))),
        project_id=first_present(record, (("_embedded", "project", "id"),)),
        total_work_packages=total,
        closed_work_packages=closed,
        progress=completion_percent(closed, total),
    )


def normalize_user(record: dict[str, Any]) -> UserSummary:
    composed = f"{record.get('firstName') or ''} {record.get('lastName') or ''}".strip()
    name = record.get("name")
    if name is None:
        name = composed or None
    return UserSummary(
        id=record.get("id"),
        name=name,
        username=first_present(record, (("login",), ("username",))),
        email=first_present(record, (("email",), ("mail",))),
    )


# ---------------------------------------------------------------------------
# Status predicates
# ---------------------------------------------------------------------------

def status_name(record: dict[str, Any]) -> str:
    return str(first_present(record, STATUS_NAME_PATHS, ""))


def is_open(record: dict[str, Any], terminal_threshold: int = 8) -> bool:
    """Decide whether a work package is still open.

    Checked in order: the embedded ``isClosed`` flag, the embedded status
    name, the linked status title, then the numeric id at the end of the
    status href (ids above *terminal_threshold* are closed). Anything that
    resolves none of these counts as open.
    """
    embedded_status = _dig(record, ("_embedded", "status"))
    if isinstance(embedded_status, dict):
        if isinstance(embedded_status.get("isClosed"), bool):
            return not embedded_status["isClosed"]
        if embedded_status.get("name"):
            return str(embedded_status["name"]).lower() != "closed"

    link_title = _dig(record, ("_links", "status", "title"))
    if link_title not in (_MISSING, None, ""):
        return str(link_title).lower() != "closed"

    href = _dig(record, ("_links", "status", "href"))
    if isinstance(href, str) and href:
        try:
            return int(href.rstrip("/").rsplit("/", 1)[-1]) <= terminal_threshold
        except ValueError:
            pass

    return True


def is_in_progress(record: dict[str, Any]) -> bool:
    return status_name(record).lower() == "in progress"
