"""Project / Task / Artifact records and the list envelope shared by all list calls.

Field names in ``to_dict``/``from_dict`` are the on-disk JSON names, so the
same dicts are written to ``project.json`` / ``task.json`` and returned by
the tool layer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# What a missing timestamp decodes to (Go's zero time on disk).
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

DEFAULT_LIMIT = 50

_TIMESTAMP = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime, *, precise: bool = True) -> str:
    """RFC 3339 in UTC with a ``Z`` suffix. ``precise=False`` drops sub-second digits."""
    dt = dt.astimezone(timezone.utc)
    text = f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
    if precise and dt.microsecond:
        text += f".{dt.microsecond:06d}".rstrip("0")
    return text + "Z"


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 string (any fraction length, ``Z`` or offset) to aware UTC."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if value is None or value == "":
        return ZERO_TIME
    m = _TIMESTAMP.match(str(value).strip())
    if not m:
        raise ValueError(f"invalid timestamp: {value!r}")
    frac = (m.group("frac") or "")[:6].ljust(6, "0")
    tz = m.group("tz") or "Z"
    if tz == "Z":
        tz = "+00:00"
    dt = datetime.fromisoformat(f"{m.group('base')}.{frac}{tz}")
    return dt.astimezone(timezone.utc)


def unix_seconds(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(seconds=1)


def unix_nanos(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(microseconds=1) * 1000


def _string_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"metadata must be an object, got {type(value).__name__}")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


# ── Enumerations ─────────────────────────────────────────────


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    def __str__(self) -> str:
        return self.value

    @property
    def emoji(self) -> str:
        return status_emoji(self)


_STATUS_EMOJI = {
    "open": "📋",
    "in_progress": "🔄",
    "completed": "✅",
    "archived": "📦",
}


def status_emoji(status: str) -> str:
    return _STATUS_EMOJI.get(str(status), "📋")


def coerce_status(value: Any) -> TaskStatus | str:
    """Known statuses become ``TaskStatus``; anything else read from disk stays a plain string."""
    if not value:
        return TaskStatus.OPEN
    try:
        return TaskStatus(value)
    except ValueError:
        return str(value)


class ArtifactType(str, Enum):
    """Recognized artifact types. The field itself is an open string."""

    NOTE = "note"
    CODE = "code"
    DECISION = "decision"
    DISCUSSION = "discussion"
    REFERENCE = "reference"
    FILE_READ = "file_read"
    FILE_LIST = "file_list"
    SEARCH = "search"
    GENERIC = "artifact"

    def __str__(self) -> str:
        return self.value


# ── Entities ─────────────────────────────────────────────────


@dataclass
class Project:
    """Top-level container; one directory per project."""

    id: str
    name: str
    description: str = ""
    workspace_path: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description:
            data["description"] = self.description
        if self.workspace_path:
            data["workspace_path"] = self.workspace_path
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        data["created_at"] = format_timestamp(self.created_at)
        data["updated_at"] = format_timestamp(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            workspace_path=str(data.get("workspace_path") or ""),
            metadata=_string_map(data.get("metadata")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Task:
    """A unit of work inside a project. ``status`` is mirrored in its directory name."""

    id: str
    project_id: str
    name: str
    description: str = ""
    status: TaskStatus | str = TaskStatus.OPEN
    workspace_path: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def dir_name(self) -> str:
        return f"[{self.status}]-{self.id}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
        }
        if self.description:
            data["description"] = self.description
        data["status"] = str(self.status)
        if self.workspace_path:
            data["workspace_path"] = self.workspace_path
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        data["created_at"] = format_timestamp(self.created_at)
        data["updated_at"] = format_timestamp(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=str(data.get("id") or ""),
            project_id=str(data.get("project_id") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            status=coerce_status(data.get("status")),
            workspace_path=str(data.get("workspace_path") or ""),
            metadata=_string_map(data.get("metadata")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Artifact:
    """Immutable piece of task output, stored as one Markdown file."""

    id: str
    project_id: str
    task_id: str
    type: str
    content: str
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def filename(self) -> str:
        return f"{self.type}.{unix_seconds(self.created_at)}.md"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "type": str(self.type),
            "content": self.content,
        }
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        data["created_at"] = format_timestamp(self.created_at)
        return data


def new_project(project_id: str, name: str, now: datetime | None = None) -> Project:
    now = now or utcnow()
    return Project(id=project_id, name=name, created_at=now, updated_at=now)


def new_task(project_id: str, task_id: str, name: str, now: datetime | None = None) -> Task:
    now = now or utcnow()
    return Task(
        id=task_id,
        project_id=project_id,
        name=name,
        status=TaskStatus.OPEN,
        created_at=now,
        updated_at=now,
    )


def new_artifact(
    project_id: str,
    task_id: str,
    artifact_type: str,
    content: str,
    now: datetime | None = None,
) -> Artifact:
    """Build an artifact whose ID is the nanosecond timestamp of ``now``."""
    now = now or utcnow()
    return Artifact(
        id=str(unix_nanos(now)),
        project_id=project_id,
        task_id=task_id,
        type=str(artifact_type),
        content=content,
        created_at=now,
    )


# ── Listing ──────────────────────────────────────────────────


@dataclass
class ListOptions:
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    status: TaskStatus | str | None = None  # tasks only; None = every status


@dataclass
class ListResult(Generic[T]):
    """One page of a sorted listing plus the size of the whole listing."""

    items: list[T]
    total: int
    limit: int
    offset: int
    has_more: bool

    def to_dict(self, item_key: str = "items") -> dict[str, Any]:
        return {
            item_key: [item.to_dict() for item in self.items],  # type: ignore[attr-defined]
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "has_more": self.has_more,
        }
