from __future__ import annotations

import pytest

from dradis_client.errors import FieldNotFoundError
from dradis_client.fields import OrderedFieldMap, render_fields


def test_keys_keep_first_insertion_order():
    m = OrderedFieldMap()
    m.set("Title", "XSS")
    m.set("Severity", "High")
    m.set("Description", "...")
    m.set("Severity", "Medium")  # re-set keeps position

    assert m.keys() == ["Title", "Severity", "Description"]
    assert m.get("Severity") == "Medium"
    # restartable: iterating twice yields the same sequence
    assert list(m) == list(m) == ["Title", "Severity", "Description"]


def test_get_missing_key_raises_with_key():
    m = OrderedFieldMap({"Title": "XSS"})
    with pytest.raises(FieldNotFoundError) as exc:
        m.get("Port")
    assert exc.value.key == "Port"
    assert isinstance(exc.value, KeyError)
    assert m.lookup("Port") is None


def test_clone_is_independent():
    m = OrderedFieldMap([("k", "v1"), ("other", "o")])
    m2 = m.clone()
    m2.set("k", "v2")
    m2.set("new", "n")
    m.set("other", "changed")

    assert m.get("k") == "v1"
    assert "new" not in m
    assert m2.get("other") == "o"
    assert m2.keys() == ["k", "other", "new"]


def test_render_fields_exact_format():
    m = OrderedFieldMap()
    m.set("Port", "443/tcp")
    m.set("Details", "Lorem ipsum")
    assert render_fields(m) == "#[Port]#\r\n443/tcp\r\n\r\n#[Details]#\r\nLorem ipsum\r\n\r\n"


def test_render_empty_map():
    assert render_fields(OrderedFieldMap()) == ""


def test_render_plain_dict_and_no_escaping():
    # the delimiter inside a value is passed through untouched
    text = render_fields({"Details": "see #[Other]# below"})
    assert text == "#[Details]#\r\nsee #[Other]# below\r\n\r\n"


def test_delete_and_equality():
    a = OrderedFieldMap({"a": "1", "b": "2"})
    b = OrderedFieldMap({"b": "2", "a": "1"})
    assert a != b  # order matters
    a.delete("a")
    assert a.keys() == ["b"]
    with pytest.raises(FieldNotFoundError):
        a.delete("a")
