from __future__ import annotations

import pytest

from dradis_client.errors import NotFoundError
from dradis_client.fields import OrderedFieldMap
from dradis_client.models import Evidence, Node, Note, Project, Team, find_by_name


def test_wire_sets_identical_back_references(project):
    node = Node.from_dict({
        "id": 4, "label": "10.0.0.1",
        "evidence": [{"id": 1, "content": "a"}, {"id": 2, "content": "b"}],
        "notes": [{"id": 9, "title": "n"}],
    })
    # fresh decode has no links
    assert node.project is None
    assert all(e.node is None for e in node.evidence)

    node.wire(project)
    assert node.project is project
    assert all(e.node is node for e in node.evidence)
    assert node.notes[0].node is node


def test_decode_keeps_field_order():
    node = Node.from_dict({"id": 1, "evidence": [
        {"id": 1, "fields": {"Port": "22/tcp", "Details": "ssh", "Reportable": "True"}},
    ]})
    assert node.evidence[0].fields.keys() == ["Port", "Details", "Reportable"]


def test_get_evidence_by_id_returns_element_in_list(node):
    e = node.get_evidence_by_id(2)
    assert e is node.evidence[1]
    with pytest.raises(NotFoundError):
        node.get_evidence_by_id(99)


def test_get_note_by_id(node):
    assert node.get_note_by_id(5) is node.notes[0]
    with pytest.raises(NotFoundError):
        node.get_note_by_id(6)


def test_get_evidence_by_issue_title_case_insensitive(node):
    found = node.get_evidence_by_issue_title("XSS")
    assert [e.id for e in found] == [1, 3]
    assert found[0] is node.evidence[0]
    assert node.get_evidence_by_issue_title("CSRF") == []


def test_get_evidence_by_field_exact_and_skips_missing(node):
    assert [e.id for e in node.get_evidence_by_field("Port", "443/tcp")] == [1]
    # case-sensitive value
    assert node.get_evidence_by_field("Port", "443/TCP") == []
    assert node.get_evidence_by_field("Nope", "x") == []


def test_get_notes_by_title(node):
    assert [n.id for n in node.get_notes_by_title("nmap host info")] == [5]


def test_remove_evidence_preserves_order(node):
    node._remove_evidence(2)
    assert [e.id for e in node.evidence] == [1, 3]


def test_remove_missing_evidence_is_noop(node):
    node._remove_evidence(42)
    assert [e.id for e in node.evidence] == [1, 2, 3]


def test_add_and_remove_note(node):
    note = Note(id=6, title="extra")
    node._add_note(note)
    assert node.notes[-1] is note and note.node is node
    node._remove_note(5)
    assert [n.id for n in node.notes] == [6]


def test_add_evidence_appends(node):
    e = Evidence(id=4)
    node._add_evidence(e)
    assert [x.id for x in node.evidence] == [1, 2, 3, 4]
    assert e.node is node


def test_copy_fields_is_detached(node):
    e = node.evidence[0]
    copy = e.copy_fields()
    copy.set("Port", "995/tcp")
    assert e.fields.get("Port") == "443/tcp"


def test_back_references_ignored_in_equality_and_repr(project):
    a = Evidence(id=1, fields=OrderedFieldMap({"k": "v"}))
    b = Evidence(id=1, fields=OrderedFieldMap({"k": "v"}))
    Node(id=1, evidence=[a]).wire(project)
    assert a == b
    assert "node=" not in repr(a)


def test_team_since_reads_client_since():
    t = Team.from_dict({"id": 1, "name": "T", "client_since": "2019-01-01", "projects": [{"id": 2, "name": "P"}]})
    assert t.team_since == "2019-01-01"
    assert t.projects[0].name == "P"


def test_find_by_name_first_match_wins():
    projects = [Project(id=1, name="Alpha"), Project(id=2, name="ALPHA")]
    assert find_by_name(projects, "name", "alpha", "project").id == 1
    with pytest.raises(NotFoundError) as exc:
        find_by_name(projects, "name", "alp", "project")
    assert exc.value.query == "alp"
