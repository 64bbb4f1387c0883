"""Data models for jira-tui.

Every record is parsed from the JSON returned by the JIRA REST API through a
``from_dict`` classmethod. Missing required keys raise ``KeyError`` and
malformed values raise ``TypeError``/``ValueError``; the client turns these
into ``RequestFailedError`` so a response is never partially accepted.
"""

from dataclasses import dataclass
from datetime import datetime


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a JIRA timestamp.

    JIRA sends e.g. "2026-03-15T10:30:00.000+0000". Absent values give None,
    present but malformed values raise ValueError.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected timestamp string, got {type(value).__name__}")
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid timestamp: {value!r}")


def adf_to_text(value) -> str | None:
    """Flatten an Atlassian Document Format node to plain text.

    API v3 returns descriptions and comment bodies as ADF documents; older
    servers return plain strings, which pass through unchanged.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        raise TypeError(f"Expected rich text document, got {type(value).__name__}")

    node_type = value.get("type")
    if node_type == "text":
        return value.get("text", "")
    if node_type == "hardBreak":
        return "\n"

    parts = [adf_to_text(child) or "" for child in value.get("content", [])]
    if node_type in ("doc", "bulletList", "orderedList"):
        return "\n".join(parts)
    text = "".join(parts)
    if node_type == "listItem":
        return f"- {text}"
    return text


def text_to_adf(text: str) -> dict:
    """Wrap plain text in a minimal ADF document, one paragraph per line."""
    paragraphs = []
    for line in text.split("\n"):
        content = [{"type": "text", "text": line}] if line else []
        paragraphs.append({"type": "paragraph", "content": content})
    return {"type": "doc", "version": 1, "content": paragraphs}


@dataclass(frozen=True)
class User:
    """A JIRA user (assignee, reporter, comment author, project lead)."""

    account_id: str
    display_name: str
    email_address: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            account_id=data.get("accountId", ""),
            display_name=data["displayName"],
            email_address=data.get("emailAddress"),
        )

    @classmethod
    def optional(cls, data: dict | None) -> "User | None":
        return cls.from_dict(data) if data else None


@dataclass(frozen=True)
class StatusCategory:
    id: int
    key: str  # "new" | "indeterminate" | "done"
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> "StatusCategory":
        return cls(id=int(data.get("id", 0)), key=data["key"], name=data["name"])


@dataclass(frozen=True)
class Status:
    id: str
    name: str
    category: StatusCategory

    @classmethod
    def from_dict(cls, data: dict) -> "Status":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            category=StatusCategory.from_dict(data["statusCategory"]),
        )


@dataclass(frozen=True)
class Priority:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> "Priority":
        return cls(id=str(data["id"]), name=data["name"])


@dataclass(frozen=True)
class IssueType:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> "IssueType":
        return cls(id=str(data["id"]), name=data["name"])


@dataclass(frozen=True)
class Comment:
    id: str
    body: str
    author: User
    created: datetime | None
    updated: datetime | None

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        return cls(
            id=str(data["id"]),
            body=adf_to_text(data["body"]) or "",
            author=User.from_dict(data["author"]),
            created=parse_datetime(data.get("created")),
            updated=parse_datetime(data.get("updated")),
        )


@dataclass(frozen=True)
class Issue:
    """Snapshot of an issue as returned by the server.

    Issues are never patched locally; a refresh replaces the whole object.
    """

    id: str
    key: str
    summary: str
    status: Status
    issue_type: IssueType
    description: str | None = None
    assignee: User | None = None
    reporter: User | None = None
    priority: Priority | None = None
    created: datetime | None = None
    updated: datetime | None = None
    comments: tuple[Comment, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        fields = data["fields"]
        priority = fields.get("priority")
        comment_block = fields.get("comment") or {}
        return cls(
            id=str(data["id"]),
            key=data["key"],
            summary=fields["summary"],
            status=Status.from_dict(fields["status"]),
            issue_type=IssueType.from_dict(fields["issuetype"]),
            description=adf_to_text(fields.get("description")),
            assignee=User.optional(fields.get("assignee")),
            reporter=User.optional(fields.get("reporter")),
            priority=Priority.from_dict(priority) if priority else None,
            created=parse_datetime(fields.get("created")),
            updated=parse_datetime(fields.get("updated")),
            comments=tuple(Comment.from_dict(c) for c in comment_block.get("comments", [])),
        )


@dataclass(frozen=True)
class Sprint:
    """A sprint. ``state`` is kept as the server sends it (future/active/closed)."""

    id: int
    name: str
    state: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_date: datetime | None = None
    complete_date: datetime | None = None
    origin_board_id: int | None = None
    goal: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Sprint":
        origin = data.get("originBoardId")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            state=data["state"],
            start_date=parse_datetime(data.get("startDate")),
            end_date=parse_datetime(data.get("endDate")),
            created_date=parse_datetime(data.get("createdDate")),
            complete_date=parse_datetime(data.get("completeDate")),
            origin_board_id=int(origin) if origin is not None else None,
            goal=data.get("goal") or None,
        )


@dataclass(frozen=True)
class BoardLocation:
    project_id: int | None = None
    project_key: str | None = None
    project_name: str | None = None
    display_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BoardLocation":
        project_id = data.get("projectId")
        return cls(
            project_id=int(project_id) if project_id is not None else None,
            project_key=data.get("projectKey"),
            project_name=data.get("projectName"),
            display_name=data.get("displayName"),
        )


@dataclass(frozen=True)
class Board:
    id: int
    name: str
    board_type: str  # "scrum" | "kanban" | "simple"
    location: BoardLocation | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Board":
        location = data.get("location")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            board_type=data.get("type", ""),
            location=BoardLocation.from_dict(location) if location else None,
        )

    def belongs_to(self, project_key: str) -> bool:
        """Whether the board is attached to the given project.

        Matches on the board name containing the key or on the board
        location's project key.
        """
        if project_key in self.name:
            return True
        return self.location is not None and self.location.project_key == project_key


@dataclass(frozen=True)
class Project:
    id: str
    key: str
    name: str
    project_type: str
    description: str | None = None
    lead: User | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            id=str(data["id"]),
            key=data["key"],
            name=data["name"],
            project_type=data.get("projectTypeKey", ""),
            description=data.get("description") or None,
            lead=User.optional(data.get("lead")),
        )


@dataclass(frozen=True)
class Transition:
    """A workflow transition available for one issue."""

    id: str
    name: str
    to: Status

    @classmethod
    def from_dict(cls, data: dict) -> "Transition":
        return cls(id=str(data["id"]), name=data["name"], to=Status.from_dict(data["to"]))


@dataclass(frozen=True)
class Epic:
    id: int
    key: str
    name: str
    summary: str
    color: str
    done: bool

    @classmethod
    def from_dict(cls, data: dict) -> "Epic":
        return cls(
            id=int(data["id"]),
            key=data["key"],
            name=data["name"],
            summary=data.get("summary", ""),
            color=(data.get("color") or {}).get("key", ""),
            done=bool(data.get("done", False)),
        )


@dataclass
class SprintUpdate:
    """Partial sprint update; only fields that are set are sent."""

    name: str | None = None
    goal: str | None = None
    state: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    def to_dict(self) -> dict:
        payload: dict = {}
        if self.name is not None:
            payload["name"] = self.name
        if self.goal is not None:
            payload["goal"] = self.goal
        if self.state is not None:
            payload["state"] = self.state
        if self.start_date is not None:
            payload["startDate"] = self.start_date.isoformat()
        if self.end_date is not None:
            payload["endDate"] = self.end_date.isoformat()
        return payload

