"""Local mirror of the Dradis resource hierarchy.

Entities are plain dataclasses decoded from the API's JSON. Parent links
(``Node.project``, ``Issue.project``, ``Evidence.node``, ``Note.node``,
``Attachment.node``) are not part of the wire format: they are set by the
client after every decode and are excluded from equality and ``repr``.

Nothing here is thread-safe. Two concurrent creates against the same Node
may race on its ``evidence``/``notes`` lists.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields as dc_fields
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from .errors import NotFoundError
from .fields import OrderedFieldMap


def _backref(default: Any = None) -> Any:
    return field(default=default, repr=False, compare=False)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(value)


def _fields(value: Any) -> OrderedFieldMap:
    if isinstance(value, OrderedFieldMap):
        return value.clone()
    return OrderedFieldMap(value or {})


def _same(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def refresh(target: Any, source: Any, data: Mapping[str, Any]) -> None:
    """Copy wire fields of ``source`` onto ``target``, leaving back-references alone.

    Only fields whose key is present in the raw response ``data`` are copied;
    anything the server left out keeps its current local value.
    """
    aliases = getattr(target, "wire_keys", {})
    for f in dc_fields(target):
        if not f.compare:
            continue
        if any(k in data for k in aliases.get(f.name, (f.name,))):
            setattr(target, f.name, getattr(source, f.name))


# ---------- Projects / Teams ----------
@dataclass
class Client:
    id: int = 0
    name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Client":
        data = data or {}
        return cls(id=_int(data.get("id")), name=_text(data.get("name")))


@dataclass
class Author:
    email: str = ""


@dataclass
class Owner:
    email: str = ""


@dataclass
class Project:
    id: int = 0
    name: str = ""
    client: Client = field(default_factory=Client)
    created_at: str = ""
    updated_at: str = ""
    authors: List[Author] = field(default_factory=list)
    owners: List[Owner] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=_int(data.get("id")),
            name=_text(data.get("name")),
            client=Client.from_dict(data.get("client")),
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
            authors=[Author(email=_text(a.get("email"))) for a in data.get("authors") or []],
            owners=[Owner(email=_text(o.get("email"))) for o in data.get("owners") or []],
        )


@dataclass
class TeamProject:
    """Shallow project summary embedded in a Team (id and name only)."""
    id: int = 0
    name: str = ""


@dataclass
class Team:
    id: int = 0
    name: str = ""
    team_since: str = ""
    created_at: str = ""
    updated_at: str = ""
    projects: List[TeamProject] = field(default_factory=list)

    wire_keys: ClassVar[Dict[str, Tuple[str, ...]]] = {"team_since": ("client_since", "team_since")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Team":
        # the API answers with "client_since" although requests use "team_since"
        since = data.get("client_since")
        if since is None:
            since = data.get("team_since")
        return cls(
            id=_int(data.get("id")),
            name=_text(data.get("name")),
            team_since=_text(since),
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
            projects=[TeamProject(id=_int(p.get("id")), name=_text(p.get("name")))
                      for p in data.get("projects") or []],
        )


# ---------- Issues ----------
@dataclass
class Issue:
    id: int = 0
    title: str = ""
    fields: OrderedFieldMap = field(default_factory=OrderedFieldMap)
    text: str = ""
    created_at: str = ""
    updated_at: str = ""
    project: Optional[Project] = _backref()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            id=_int(data.get("id")),
            title=_text(data.get("title")),
            fields=_fields(data.get("fields")),
            text=_text(data.get("text")),
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
        )

    def copy_fields(self) -> OrderedFieldMap:
        return self.fields.clone()


@dataclass
class IssueLibraryEntry:
    id: int = 0
    title: str = ""
    fields: OrderedFieldMap = field(default_factory=OrderedFieldMap)
    state: int = 0
    content: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueLibraryEntry":
        return cls(
            id=_int(data.get("id")),
            title=_text(data.get("title")),
            fields=_fields(data.get("fields")),
            state=_int(data.get("state")),
            content=_text(data.get("content")),
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
        )

    def copy_fields(self) -> OrderedFieldMap:
        return self.fields.clone()


# ---------- Node children ----------
@dataclass
class EvidenceIssue:
    """Copy of the issue an Evidence documents. Not a live reference."""
    id: int = 0
    title: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EvidenceIssue":
        data = data or {}
        return cls(id=_int(data.get("id")), title=_text(data.get("title")), url=_text(data.get("url")))


@dataclass
class Evidence:
    id: int = 0
    content: str = ""
    fields: OrderedFieldMap = field(default_factory=OrderedFieldMap)
    issue: EvidenceIssue = field(default_factory=EvidenceIssue)
    node: Optional["Node"] = _backref()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        return cls(
            id=_int(data.get("id")),
            content=_text(data.get("content")),
            fields=_fields(data.get("fields")),
            issue=EvidenceIssue.from_dict(data.get("issue")),
        )

    def copy_fields(self) -> OrderedFieldMap:
        return self.fields.clone()


@dataclass
class Note:
    id: int = 0
    category_id: int = 0
    title: str = ""
    fields: OrderedFieldMap = field(default_factory=OrderedFieldMap)
    text: str = ""
    node: Optional["Node"] = _backref()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=_int(data.get("id")),
            category_id=_int(data.get("category_id")),
            title=_text(data.get("title")),
            fields=_fields(data.get("fields")),
            text=_text(data.get("text")),
        )

    def copy_fields(self) -> OrderedFieldMap:
        return self.fields.clone()


@dataclass
class Attachment:
    filename: str = ""
    link: str = ""
    node: Optional["Node"] = _backref()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(filename=_text(data.get("filename")), link=_text(data.get("link")))


# ---------- Nodes ----------
NODE_TYPE_DEFAULT = 0
NODE_TYPE_HOST = 1


@dataclass
class Node:
    id: int = 0
    label: str = ""
    type_id: int = NODE_TYPE_DEFAULT
    parent_id: int = 0
    position: int = 0
    created_at: str = ""
    updated_at: str = ""
    evidence: List[Evidence] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    project: Optional[Project] = _backref()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            id=_int(data.get("id")),
            label=_text(data.get("label")),
            type_id=_int(data.get("type_id")),
            parent_id=_int(data.get("parent_id")),
            position=_int(data.get("position")),
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
            evidence=[Evidence.from_dict(e) for e in data.get("evidence") or []],
            notes=[Note.from_dict(n) for n in data.get("notes") or []],
        )

    def wire(self, project: Optional[Project] = None) -> "Node":
        """Point this node at ``project`` (when given) and every child back at this node.

        Must run after each decode: a freshly decoded node has no links.
        """
        if project is not None:
            self.project = project
        for e in self.evidence:
            e.node = self
        for n in self.notes:
            n.node = self
        return self

    # ---------- lookups ----------
    def get_evidence_by_id(self, evidence_id: int) -> Evidence:
        for e in self.evidence:
            if e.id == evidence_id:
                return e
        raise NotFoundError("evidence on node for id", evidence_id)

    def get_evidence_by_issue_title(self, title: str) -> List[Evidence]:
        return [e for e in self.evidence if _same(e.issue.title, title)]

    def get_evidence_by_field(self, key: str, value: str) -> List[Evidence]:
        return [e for e in self.evidence if e.fields.lookup(key) == value]

    def get_note_by_id(self, note_id: int) -> Note:
        for n in self.notes:
            if n.id == note_id:
                return n
        raise NotFoundError("note on node for id", note_id)

    def get_notes_by_title(self, title: str) -> List[Note]:
        return [n for n in self.notes if _same(n.title, title)]

    # ---------- mutations (only after a confirmed server response) ----------
    def _add_evidence(self, evidence: Evidence) -> None:
        evidence.node = self
        self.evidence.append(evidence)

    def _remove_evidence(self, evidence_id: int) -> None:
        _remove_by_id(self.evidence, evidence_id)

    def _add_note(self, note: Note) -> None:
        note.node = self
        self.notes.append(note)

    def _remove_note(self, note_id: int) -> None:
        _remove_by_id(self.notes, note_id)


def _remove_by_id(items: List[Any], item_id: int) -> None:
    # unknown ids are ignored; callers only get here after the server deleted the item
    for i, item in enumerate(items):
        if item.id == item_id:
            del items[i]
            return


def find_by_name(items: List[Any], attr: str, query: str, what: str) -> Any:
    """First item whose ``attr`` equals ``query`` ignoring case, else NotFoundError."""
    for item in items:
        if _same(getattr(item, attr), query):
            return item
    raise NotFoundError(what, query)
