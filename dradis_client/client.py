from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
import urllib3

from .config import DradisConfig
from .errors import DecodeError, DetachedEntityError, UnexpectedStatusError
from .fields import OrderedFieldMap, render_fields
from .models import (
    Attachment,
    Evidence,
    Issue,
    IssueLibraryEntry,
    Node,
    Note,
    Project,
    Team,
    find_by_name,
    refresh,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NOTE_CATEGORY = 6  # "Default category" on a stock Dradis install

FieldsArg = Union[OrderedFieldMap, Dict[str, Any]]


# ------------ partial update payloads ------------
@dataclass
class ProjectDetails:
    """Project attributes to send. ``None`` fields are left out of the request."""
    name: Optional[str] = None
    team_id: Optional[int] = None
    report_template_properties_id: Optional[int] = None
    author_ids: Optional[List[int]] = None
    template: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"project": _present(asdict(self))}


@dataclass
class TeamDetails:
    name: Optional[str] = None
    team_since: Optional[str] = None  # YYYY-MM-DD; server defaults to today on create

    def to_payload(self) -> Dict[str, Any]:
        return {"team": _present(asdict(self))}


@dataclass
class NodeDetails:
    label: Optional[str] = None
    type_id: Optional[int] = None
    parent_id: Optional[int] = None
    position: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"node": _present(asdict(self))}


def _present(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _require(value: Optional[str], what: str) -> None:
    if not value or not str(value).strip():
        raise ValueError(f"{what} must not be empty")


# ------------ graph helpers ------------
def _project_of(entity: Union[Node, Issue]) -> Project:
    if entity.project is None:
        raise DetachedEntityError(f"{type(entity).__name__} {entity.id} has no project")
    return entity.project


def _node_of(entity: Union[Evidence, Note, Attachment]) -> Node:
    if entity.node is None:
        name = getattr(entity, "id", None) or getattr(entity, "filename", "")
        raise DetachedEntityError(f"{type(entity).__name__} {name} is not attached to a node")
    return entity.node


class DradisClient:
    """Synchronous client for the Dradis Pro REST API (``<url>/pro/api``).

    Each method issues exactly one request. Entities returned by the
    project-scoped endpoints come back with their parent links filled in
    (see ``Node.wire``); updates modify the given object in place.

    Not safe for concurrent use against the same Node or Project objects.
    """

    def __init__(self, cfg: DradisConfig, token: str) -> None:
        self.cfg = cfg
        self.base = f"{cfg.url.rstrip('/')}/pro/api"
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f'Token token="{token}"'})
        self.session.verify = cfg.verify_ssl
        if not cfg.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        # no retries: a failed call surfaces to the caller as-is
        adapter = HTTPAdapter(max_retries=0)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "DradisClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ---------- transport ----------
    def _send(self, method: str, resource: str, project_id: Optional[int] = None,
              **kwargs: Any) -> requests.Response:
        headers: Dict[str, str] = dict(kwargs.pop("headers", None) or {})
        if project_id is not None:
            headers["Dradis-Project-Id"] = str(project_id)
        if method == "DELETE":
            headers.setdefault("Content-Type", "application/json")
        url = f"{self.base}/{resource}"
        logger.debug(f"{method} {url} (project={project_id})")
        return self.session.request(method, url, headers=headers, timeout=self.cfg.timeout, **kwargs)

    def _call(self, operation: str, expected: int, method: str, resource: str,
              project_id: Optional[int] = None, **kwargs: Any) -> Any:
        r = self._send(method, resource, project_id, **kwargs)
        if r.status_code != expected:
            logger.debug(f"{operation}: HTTP {r.status_code} {r.text[:200]!r}")
            raise UnexpectedStatusError(operation, expected, r.status_code, r)
        if method == "DELETE":
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise DecodeError(operation, exc) from exc

    @staticmethod
    def _decode(operation: str, factory: Callable[[Dict[str, Any]], T], data: Any) -> T:
        if not isinstance(data, dict):
            raise DecodeError(operation, TypeError(f"expected an object, got {type(data).__name__}"))
        try:
            return factory(data)
        except (AttributeError, TypeError, ValueError) as exc:
            raise DecodeError(operation, exc) from exc

    @classmethod
    def _decode_list(cls, operation: str, factory: Callable[[Dict[str, Any]], T], data: Any) -> List[T]:
        if not isinstance(data, list):
            raise DecodeError(operation, TypeError(f"expected a list, got {type(data).__name__}"))
        return [cls._decode(operation, factory, item) for item in data]

    # ---------- Projects ----------
    def get_all_projects(self) -> List[Project]:
        op = "get projects from server"
        return self._decode_list(op, Project.from_dict, self._call(op, 200, "GET", "projects"))

    def get_project_by_id(self, project_id: int) -> Project:
        op = "get project from server"
        return self._decode(op, Project.from_dict, self._call(op, 200, "GET", f"projects/{project_id}"))

    def get_project_by_name(self, name: str) -> Project:
        return find_by_name(self.get_all_projects(), "name", name, "project")

    def create_project(self, name: str, team_id: int, report_template_properties_id: Optional[int] = None,
                       author_ids: Optional[List[int]] = None, template: Optional[str] = None) -> Project:
        _require(name, "project name")
        details = ProjectDetails(name, team_id, report_template_properties_id, author_ids, template)
        op = "create project"
        data = self._call(op, 201, "POST", "projects", json=details.to_payload())
        return self._decode(op, Project.from_dict, data)

    def update_project(self, project: Project, details: ProjectDetails) -> Project:
        op = "update project"
        data = self._call(op, 200, "PUT", f"projects/{project.id}", json=details.to_payload())
        refresh(project, self._decode(op, Project.from_dict, data), data)
        return project

    def delete_project(self, project: Project) -> None:
        logger.warning(f"Deleting project {project.id} ({project.name})")
        self._call("delete project", 200, "DELETE", f"projects/{project.id}")

    # ---------- Teams ----------
    def get_all_teams(self) -> List[Team]:
        op = "get teams list"
        return self._decode_list(op, Team.from_dict, self._call(op, 200, "GET", "teams"))

    def get_team_by_id(self, team_id: int) -> Team:
        op = "get team"
        return self._decode(op, Team.from_dict, self._call(op, 200, "GET", f"teams/{team_id}"))

    def get_team_by_name(self, name: str) -> Team:
        return find_by_name(self.get_all_teams(), "name", name, "team with name")

    def create_team(self, name: str, team_since: Optional[str] = None) -> Team:
        _require(name, "team name")
        op = "create team"
        data = self._call(op, 201, "POST", "teams", json=TeamDetails(name, team_since).to_payload())
        return self._decode(op, Team.from_dict, data)

    def update_team(self, team: Team, details: TeamDetails) -> Team:
        op = "update team"
        data = self._call(op, 200, "PUT", f"teams/{team.id}", json=details.to_payload())
        refresh(team, self._decode(op, Team.from_dict, data), data)
        return team

    def delete_team(self, team: Team) -> None:
        logger.warning(f"Deleting team {team.id} ({team.name})")
        self._call("delete team", 200, "DELETE", f"teams/{team.id}")

    # ---------- Nodes ----------
    def get_all_nodes(self, project: Project) -> List[Node]:
        op = "get nodes list"
        nodes = self._decode_list(op, Node.from_dict, self._call(op, 200, "GET", "nodes", project.id))
        return [n.wire(project) for n in nodes]

    def get_node_by_id(self, project: Project, node_id: int) -> Node:
        op = "get node"
        node = self._decode(op, Node.from_dict, self._call(op, 200, "GET", f"nodes/{node_id}", project.id))
        return node.wire(project)

    def get_node_by_label(self, project: Project, label: str) -> Node:
        return find_by_name(self.get_all_nodes(project), "label", label, "node with label")

    def create_node(self, project: Project, label: str, type_id: int = 0,
                    parent_id: Optional[int] = None, position: Optional[int] = None) -> Node:
        """Create a node. ``type_id`` is 0 for a default node, 1 for a host; no parent means top level."""
        _require(label, "node label")
        details = NodeDetails(label, type_id, parent_id, position)
        op = "create node"
        data = self._call(op, 201, "POST", "nodes", project.id, json=details.to_payload())
        return self._decode(op, Node.from_dict, data).wire(project)

    def update_node(self, node: Node, details: NodeDetails) -> Node:
        project = _project_of(node)
        op = "update node"
        data = self._call(op, 200, "PUT", f"nodes/{node.id}", project.id, json=details.to_payload())
        refresh(node, self._decode(op, Node.from_dict, data), data)
        return node.wire()

    def delete_node(self, node: Node) -> None:
        project = _project_of(node)
        logger.warning(f"Deleting node {node.id} ({node.label})")
        self._call("delete node", 200, "DELETE", f"nodes/{node.id}", project.id)

    # ---------- Issues ----------
    def _issue(self, op: str, data: Any, project: Project) -> Issue:
        issue = self._decode(op, Issue.from_dict, data)
        issue.project = project
        return issue

    def get_all_issues(self, project: Project) -> List[Issue]:
        op = "get issues list"
        issues = self._decode_list(op, Issue.from_dict, self._call(op, 200, "GET", "issues", project.id))
        for i in issues:
            i.project = project
        return issues

    def get_issue_by_id(self, project: Project, issue_id: int) -> Issue:
        op = "get issue"
        return self._issue(op, self._call(op, 200, "GET", f"issues/{issue_id}", project.id), project)

    def get_issue_by_title(self, project: Project, title: str) -> Issue:
        return find_by_name(self.get_all_issues(project), "title", title, "issue with title")

    def create_issue(self, project: Project, fields: FieldsArg) -> Issue:
        return self.create_issue_from_text(project, render_fields(fields))

    def create_issue_from_text(self, project: Project, text: str) -> Issue:
        _require(text, "issue text")
        op = "create issue"
        data = self._call(op, 201, "POST", "issues", project.id, json={"issue": {"text": text}})
        return self._issue(op, data, project)

    def update_issue(self, issue: Issue, fields: FieldsArg) -> Issue:
        """Replace the issue body with ``fields``.

        Dradis overwrites the whole body, so ``fields`` must hold every field
        the issue should keep, not only the changed ones. Start from
        ``issue.copy_fields()``.
        """
        return self.update_issue_from_text(issue, render_fields(fields))

    def update_issue_from_text(self, issue: Issue, text: str) -> Issue:
        project = _project_of(issue)
        op = "update issue"
        data = self._call(op, 200, "PUT", f"issues/{issue.id}", project.id, json={"issue": {"text": text}})
        refresh(issue, self._decode(op, Issue.from_dict, data), data)
        return issue

    def delete_issue(self, issue: Issue) -> None:
        project = _project_of(issue)
        logger.warning(f"Deleting issue {issue.id} ({issue.title})")
        self._call("delete issue", 200, "DELETE", f"issues/{issue.id}", project.id)

    # ---------- Evidence ----------
    def get_all_evidence(self, node: Node) -> List[Evidence]:
        project = _project_of(node)
        op = "get evidence list"
        items = self._decode_list(op, Evidence.from_dict,
                                  self._call(op, 200, "GET", f"nodes/{node.id}/evidence", project.id))
        for e in items:
            e.node = node
        return items

    def get_evidence_by_id(self, node: Node, evidence_id: int) -> Evidence:
        project = _project_of(node)
        op = "get evidence"
        data = self._call(op, 200, "GET", f"nodes/{node.id}/evidence/{evidence_id}", project.id)
        evidence = self._decode(op, Evidence.from_dict, data)
        evidence.node = node
        return evidence

    def create_evidence(self, node: Node, issue: Issue, fields: FieldsArg) -> Evidence:
        return self.create_evidence_from_text(node, issue, render_fields(fields))

    def create_evidence_from_text(self, node: Node, issue: Issue, content: str) -> Evidence:
        """Attach new evidence for ``issue`` to ``node``; on success it is appended to ``node.evidence``."""
        project = _project_of(node)
        op = "create evidence"
        payload = {"evidence": {"content": content, "issue_id": str(issue.id)}}
        data = self._call(op, 201, "POST", f"nodes/{node.id}/evidence", project.id, json=payload)
        evidence = self._decode(op, Evidence.from_dict, data)
        node._add_evidence(evidence)
        return evidence

    def update_evidence(self, evidence: Evidence, fields: FieldsArg, issue: Optional[Issue] = None) -> Evidence:
        """Replace the evidence content; pass ``issue`` to move it to another issue.

        As with issues, ``fields`` must be the complete field set.
        """
        return self.update_evidence_from_text(evidence, render_fields(fields), issue)

    def update_evidence_from_text(self, evidence: Evidence, content: str,
                                  issue: Optional[Issue] = None) -> Evidence:
        node = _node_of(evidence)
        project = _project_of(node)
        details: Dict[str, Any] = {"content": content}
        if issue is not None:
            details["issue_id"] = str(issue.id)
        op = "update evidence"
        data = self._call(op, 200, "PUT", f"nodes/{node.id}/evidence/{evidence.id}", project.id,
                          json={"evidence": details})
        refresh(evidence, self._decode(op, Evidence.from_dict, data), data)
        return evidence

    def delete_evidence(self, evidence: Evidence) -> None:
        node = _node_of(evidence)
        project = _project_of(node)
        logger.warning(f"Deleting evidence {evidence.id} from node {node.id}")
        self._call("delete evidence", 200, "DELETE", f"nodes/{node.id}/evidence/{evidence.id}", project.id)
        node._remove_evidence(evidence.id)

    # ---------- Notes ----------
    def get_all_notes(self, node: Node) -> List[Note]:
        project = _project_of(node)
        op = "get notes list"
        notes = self._decode_list(op, Note.from_dict,
                                  self._call(op, 200, "GET", f"nodes/{node.id}/notes", project.id))
        for n in notes:
            n.node = node
        return notes

    def get_note_by_id(self, node: Node, note_id: int) -> Note:
        project = _project_of(node)
        op = "get note"
        note = self._decode(op, Note.from_dict,
                            self._call(op, 200, "GET", f"nodes/{node.id}/notes/{note_id}", project.id))
        note.node = node
        return note

    def get_note_by_title(self, node: Node, title: str) -> Note:
        return find_by_name(self.get_all_notes(node), "title", title, "note with title")

    def create_note(self, node: Node, fields: FieldsArg, category_id: int = DEFAULT_NOTE_CATEGORY) -> Note:
        return self.create_note_from_text(node, render_fields(fields), category_id)

    def create_note_from_text(self, node: Node, text: str, category_id: int = DEFAULT_NOTE_CATEGORY) -> Note:
        project = _project_of(node)
        op = "create note"
        payload = {"note": {"text": text, "category_id": str(category_id)}}
        data = self._call(op, 201, "POST", f"nodes/{node.id}/notes", project.id, json=payload)
        note = self._decode(op, Note.from_dict, data)
        node._add_note(note)
        return note

    def update_note(self, note: Note, fields: FieldsArg, category_id: Optional[int] = None) -> Note:
        """Replace the note body (complete field set required); optionally move it to ``category_id``."""
        return self.update_note_from_text(note, render_fields(fields), category_id)

    def update_note_from_text(self, note: Note, text: str, category_id: Optional[int] = None) -> Note:
        node = _node_of(note)
        project = _project_of(node)
        details: Dict[str, Any] = {"text": text}
        if category_id is not None:
            details["category_id"] = str(category_id)
        op = "update note"
        data = self._call(op, 200, "PUT", f"nodes/{node.id}/notes/{note.id}", project.id,
                          json={"note": details})
        refresh(note, self._decode(op, Note.from_dict, data), data)
        return note

    def delete_note(self, note: Note) -> None:
        node = _node_of(note)
        project = _project_of(node)
        logger.warning(f"Deleting note {note.id} from node {node.id}")
        self._call("delete note", 200, "DELETE", f"nodes/{node.id}/notes/{note.id}", project.id)
        node._remove_note(note.id)

    # ---------- Attachments ----------
    def get_all_attachments(self, node: Node) -> List[Attachment]:
        project = _project_of(node)
        op = "get attachment list"
        items = self._decode_list(op, Attachment.from_dict,
                                  self._call(op, 200, "GET", f"nodes/{node.id}/attachments", project.id))
        for a in items:
            a.node = node
        return items

    def get_attachment_by_name(self, node: Node, filename: str) -> Attachment:
        project = _project_of(node)
        op = "get attachment"
        data = self._call(op, 200, "GET", f"nodes/{node.id}/attachments/{quote(filename, safe='')}",
                          project.id)
        attachment = self._decode(op, Attachment.from_dict, data)
        attachment.node = node
        return attachment

    def upload_attachments(self, node: Node, paths: Sequence[str]) -> List[Attachment]:
        """Upload local files to ``node`` in one multipart request."""
        project = _project_of(node)
        if not paths:
            raise ValueError("no files to upload")
        op = "upload attachments"
        handles = []
        try:
            for path in paths:
                handles.append(open(path, "rb"))
            files = [("files[]", (os.path.basename(fh.name), fh, "application/octet-stream"))
                     for fh in handles]
            data = self._call(op, 201, "POST", f"nodes/{node.id}/attachments", project.id, files=files)
        finally:
            for fh in handles:
                fh.close()
        items = self._decode_list(op, Attachment.from_dict, data)
        for a in items:
            a.node = node
        return items

    def delete_attachment(self, attachment: Attachment) -> None:
        node = _node_of(attachment)
        project = _project_of(node)
        logger.warning(f"Deleting attachment {attachment.filename} from node {node.id}")
        self._call("delete attachment", 200, "DELETE",
                   f"nodes/{node.id}/attachments/{quote(attachment.filename, safe='')}", project.id)

    # ---------- Issue library ----------
    def get_issue_library(self) -> List[IssueLibraryEntry]:
        op = "get issue library entries"
        return self._decode_list(op, IssueLibraryEntry.from_dict,
                                 self._call(op, 200, "GET", "addons/issuelib/entries"))

    def get_issue_library_entry(self, entry_id: int) -> IssueLibraryEntry:
        op = "get issue library entry"
        return self._decode(op, IssueLibraryEntry.from_dict,
                            self._call(op, 200, "GET", f"addons/issuelib/entries/{entry_id}"))

    def delete_issue_library_entry(self, entry: IssueLibraryEntry) -> None:
        logger.warning(f"Deleting issue library entry {entry.id} ({entry.title})")
        self._call("delete issue library entry", 200, "DELETE", f"addons/issuelib/entries/{entry.id}")
